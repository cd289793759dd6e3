"""Data Transfer Objects package."""

from agent_lifecycle.models.dto.agent_status import (
    ProcessResponse,
    ReinstatementCreate,
    ReinstatementDecisionRequest,
    ReinstatementResponse,
    TerminationRequest,
    TerminationResponse,
)
from agent_lifecycle.models.dto.batch import BatchOperationResponse, ExpiryScanRequest
from agent_lifecycle.models.dto.license import (
    LicenseCreate,
    LicenseListResponse,
    LicenseRenewRequest,
    LicenseResponse,
    ReminderSlot,
)

__all__ = [
    "LicenseCreate",
    "LicenseRenewRequest",
    "LicenseResponse",
    "LicenseListResponse",
    "ReminderSlot",
    "ExpiryScanRequest",
    "BatchOperationResponse",
    "TerminationRequest",
    "TerminationResponse",
    "ReinstatementCreate",
    "ReinstatementDecisionRequest",
    "ReinstatementResponse",
    "ProcessResponse",
]
