"""Agent status and termination domain enums."""

from enum import StrEnum


class AgentStatus(StrEnum):
    """Agent lifecycle status."""

    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    TERMINATED = "TERMINATED"
    DEACTIVATED = "DEACTIVATED"


class TerminationReasonCode(StrEnum):
    """Coded reason for a termination."""

    RESIGNATION = "RESIGNATION"
    MISCONDUCT = "MISCONDUCT"
    NON_PERFORMANCE = "NON_PERFORMANCE"
    FRAUD = "FRAUD"
    LICENSE_EXPIRED = "LICENSE_EXPIRED"
    OTHER = "OTHER"


class TerminationWorkflowStatus(StrEnum):
    """Progress of the termination side effects."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ReinstatementStatus(StrEnum):
    """Reinstatement request status."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


class ReinstatementDecision(StrEnum):
    """Decision an approver can submit."""

    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ArchiveType(StrEnum):
    """Reason an agent data archive was taken."""

    TERMINATION = "TERMINATION"
    REINSTATEMENT = "REINSTATEMENT"
    PERIODIC = "PERIODIC"
    MANUAL = "MANUAL"


# Actor recorded for decisions made without a human
SYSTEM_ACTOR = "SYSTEM"
