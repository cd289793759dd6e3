"""Workflow process and batch domain enums."""

from enum import StrEnum


class ProcessKind(StrEnum):
    """Kinds of durable process the runtime can execute."""

    TERMINATION = "TERMINATION"
    REINSTATEMENT = "REINSTATEMENT"


class ProcessStatus(StrEnum):
    """Execution status of a durable process."""

    RUNNING = "RUNNING"
    WAITING = "WAITING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


TERMINAL_PROCESS_STATUSES = frozenset(
    {ProcessStatus.COMPLETED, ProcessStatus.FAILED, ProcessStatus.CANCELLED}
)


class StepOutcome(StrEnum):
    """Recorded outcome of one process step."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class ScanPhase(StrEnum):
    """Phases of one expiry sweep."""

    SCANNING = "SCANNING"
    BATCHING = "BATCHING"
    DRY_RUN_DONE = "DRY_RUN_DONE"
    COMMITTING = "COMMITTING"
    DONE = "DONE"


class BatchOperationType(StrEnum):
    """Kinds of batch operation recorded in the batch log."""

    LICENSE_EXPIRY_DEACTIVATION = "LICENSE_EXPIRY_DEACTIVATION"


class ReminderType(StrEnum):
    """Named reminder offsets."""

    DAYS_30 = "30_DAYS"
    DAYS_15 = "15_DAYS"
    DAYS_7 = "7_DAYS"
    EXPIRY_DAY = "EXPIRY_DAY"


class ReminderSendStatus(StrEnum):
    """Delivery status of a reminder log entry."""

    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
