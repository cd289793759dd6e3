"""Domain models package."""

from agent_lifecycle.models.domain.agent import (
    AgentStatus,
    ArchiveType,
    ReinstatementDecision,
    ReinstatementStatus,
    TerminationReasonCode,
    TerminationWorkflowStatus,
)
from agent_lifecycle.models.domain.license import (
    ExpiryStatus,
    License,
    LicenseStatus,
    LicenseType,
    ResidentStatus,
)
from agent_lifecycle.models.domain.process import ProcessKind, ProcessStatus, ScanPhase

__all__ = [
    "AgentStatus",
    "ArchiveType",
    "ExpiryStatus",
    "License",
    "LicenseStatus",
    "LicenseType",
    "ProcessKind",
    "ProcessStatus",
    "ReinstatementDecision",
    "ReinstatementStatus",
    "ResidentStatus",
    "ScanPhase",
    "TerminationReasonCode",
    "TerminationWorkflowStatus",
]
