"""Domain-specific exceptions for the agent lifecycle API.

These exceptions provide a clean separation between service-layer errors
and HTTP responses, avoiding string matching in routers.
"""

from typing import Any


class LifecycleAPIError(Exception):
    """Base exception for all agent lifecycle errors."""

    def __init__(self, message: str = "An error occurred", details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


# =============================================================================
# Resource Not Found Errors (404)
# =============================================================================


class NotFoundError(LifecycleAPIError):
    """Base class for resource not found errors."""

    pass


class LicenseNotFoundError(NotFoundError):
    """Raised when a license cannot be found."""

    def __init__(self, license_id: Any = None) -> None:
        details = {"license_id": str(license_id)} if license_id else {}
        super().__init__("License not found", details)


class AgentNotFoundError(NotFoundError):
    """Raised when an agent profile cannot be found."""

    def __init__(self, agent_id: Any = None) -> None:
        details = {"agent_id": str(agent_id)} if agent_id else {}
        super().__init__("Agent not found", details)


class TerminationRecordNotFoundError(NotFoundError):
    """Raised when a termination record cannot be found."""

    def __init__(self, termination_id: Any = None, agent_id: Any = None) -> None:
        details: dict[str, Any] = {}
        if termination_id:
            details["termination_id"] = str(termination_id)
        if agent_id:
            details["agent_id"] = str(agent_id)
        super().__init__("Termination record not found", details)


class ReinstatementRequestNotFoundError(NotFoundError):
    """Raised when a reinstatement request cannot be found."""

    def __init__(self, reinstatement_id: Any = None) -> None:
        details = {"reinstatement_id": str(reinstatement_id)} if reinstatement_id else {}
        super().__init__("Reinstatement request not found", details)


class ProcessNotFoundError(NotFoundError):
    """Raised when a workflow process cannot be found."""

    def __init__(self, process_id: Any = None) -> None:
        details = {"process_id": str(process_id)} if process_id else {}
        super().__init__("Process not found", details)


class BatchOperationNotFoundError(NotFoundError):
    """Raised when a batch operation log cannot be found."""

    def __init__(self, batch_id: Any = None) -> None:
        details = {"batch_id": str(batch_id)} if batch_id else {}
        super().__init__("Batch operation not found", details)


# =============================================================================
# Conflict Errors (409)
# =============================================================================


class ConflictError(LifecycleAPIError):
    """Base class for resource conflict errors."""

    pass


class LicenseVersionConflictError(ConflictError):
    """Raised when a license was modified concurrently.

    The caller must re-read the license and retry.
    """

    def __init__(self, license_id: Any = None, expected_version: int | None = None) -> None:
        details: dict[str, Any] = {}
        if license_id:
            details["license_id"] = str(license_id)
        if expected_version is not None:
            details["expected_version"] = expected_version
        super().__init__("License was modified concurrently", details)


class LicenseNumberExistsError(ConflictError):
    """Raised when a license number is already in use."""

    def __init__(self, license_number: str | None = None) -> None:
        details = {"license_number": license_number} if license_number else {}
        super().__init__("License number already exists", details)


class AgentAlreadyTerminatedError(ConflictError):
    """Raised when terminating an agent that is already terminated."""

    def __init__(self, agent_id: Any = None) -> None:
        details = {"agent_id": str(agent_id)} if agent_id else {}
        super().__init__("Agent is already terminated", details)


class PendingReinstatementExistsError(ConflictError):
    """Raised when an agent already has a pending reinstatement request."""

    def __init__(self, agent_id: Any = None, reinstatement_id: Any = None) -> None:
        details: dict[str, Any] = {}
        if agent_id:
            details["agent_id"] = str(agent_id)
        if reinstatement_id:
            details["reinstatement_id"] = str(reinstatement_id)
        super().__init__("A pending reinstatement request already exists", details)


class DecisionAlreadyRecordedError(ConflictError):
    """Raised when a decision arrives for a request that is no longer pending."""

    def __init__(self, reinstatement_id: Any = None, status: str | None = None) -> None:
        details: dict[str, Any] = {}
        if reinstatement_id:
            details["reinstatement_id"] = str(reinstatement_id)
        if status:
            details["status"] = status
        super().__init__("A decision was already recorded for this request", details)


# =============================================================================
# Validation Errors (400)
# =============================================================================


class ValidationError(LifecycleAPIError):
    """Base class for validation errors."""

    pass


class RuleDeniedError(ValidationError):
    """Raised at the request boundary when the rule engine denies a transition."""

    def __init__(self, reason: str, message: str, license_id: Any = None) -> None:
        details: dict[str, Any] = {"reason": reason}
        if license_id:
            details["license_id"] = str(license_id)
        self.reason = reason
        super().__init__(message, details)


class AgentNotTerminatedError(ValidationError):
    """Raised when reinstating an agent that is not terminated."""

    def __init__(self, agent_id: Any = None, status: str | None = None) -> None:
        details: dict[str, Any] = {}
        if agent_id:
            details["agent_id"] = str(agent_id)
        if status:
            details["status"] = status
        super().__init__("Only terminated agents can be reinstated", details)


# =============================================================================
# Fatal Errors (503)
# =============================================================================


class ProcessStartError(LifecycleAPIError):
    """Raised when a process cannot record that it has started."""

    def __init__(self, kind: str | None = None, subject_id: Any = None) -> None:
        details: dict[str, Any] = {}
        if kind:
            details["kind"] = kind
        if subject_id:
            details["subject_id"] = str(subject_id)
        super().__init__("Process could not be started", details)
