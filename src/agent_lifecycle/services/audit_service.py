"""Audit service for centralized audit logging."""

import logging
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from agent_lifecycle.models.orm.audit_log import AuditLogORM
from agent_lifecycle.repositories.audit_repository import AuditRepository

logger = logging.getLogger(__name__)


class AuditAction:
    """Standard audit action types."""

    # License lifecycle
    LICENSE_CREATE = "license_create"
    LICENSE_RENEW = "license_renew"
    LICENSE_CONVERT = "license_convert_to_permanent"
    LICENSE_EXPIRE = "license_expire"
    LICENSE_DELETE = "license_delete"
    LICENSE_PRIMARY_CLEARED = "license_primary_cleared"

    # Agent status
    AGENT_TERMINATE = "agent_terminate"
    AGENT_DEACTIVATE = "agent_deactivate"
    AGENT_REINSTATE = "agent_reinstate"

    # Reinstatement
    REINSTATEMENT_REQUEST = "reinstatement_request"
    REINSTATEMENT_APPROVE = "reinstatement_approve"
    REINSTATEMENT_REJECT = "reinstatement_reject"

    # Processes
    PROCESS_START_FAILED = "process_start_failed"
    PROCESS_CANCEL = "process_cancel"
    DATA_ARCHIVE = "data_archive"


class ResourceType:
    """Standard resource types for audit logging."""

    LICENSE = "license"
    AGENT = "agent"
    TERMINATION = "termination"
    REINSTATEMENT = "reinstatement"
    PROCESS = "process"
    ARCHIVE = "archive"


# Decision actions counted when checking that a request was decided once
REINSTATEMENT_DECISION_ACTIONS = (
    AuditAction.REINSTATEMENT_APPROVE,
    AuditAction.REINSTATEMENT_REJECT,
)


class AuditService:
    """Service for audit logging operations.

    ``record`` is used inside atomic units of work and lets failures
    propagate so the surrounding transaction rolls back with it. ``log`` is
    for informational events and never fails the caller.
    """

    # Personal fields that should be masked in audit logs
    SENSITIVE_FIELDS = frozenset({
        "bank_account_number",
        "ifsc_code",
        "pan_number",
        "aadhar_number",
        "date_of_birth",
    })

    def __init__(self, session: AsyncSession) -> None:
        """Initialize audit service.

        Args:
            session: Database session
        """
        self.session = session
        self.audit_repo = AuditRepository(session)

    @classmethod
    def _to_json_value(cls, value: Any) -> Any:
        """Convert a value into something a JSON column accepts."""
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, dict):
            return cls._prepare_changes(value)
        if isinstance(value, (list, tuple, set)):
            return [cls._to_json_value(item) for item in value]
        return value

    @classmethod
    def _prepare_changes(cls, data: dict[str, Any] | None) -> dict[str, Any] | None:
        """Mask personal fields and make values JSON-safe.

        Args:
            data: Dictionary that may contain sensitive fields

        Returns:
            Dictionary with sensitive values replaced by "[REDACTED]"
        """
        if data is None:
            return None

        prepared: dict[str, Any] = {}
        for key, value in data.items():
            if key.lower() in cls.SENSITIVE_FIELDS:
                prepared[key] = "[REDACTED]"
            else:
                prepared[key] = cls._to_json_value(value)
        return prepared

    @classmethod
    def change_set(
        cls, before: dict[str, Any] | None, after: dict[str, Any] | None
    ) -> dict[str, Any]:
        """Build a before/after change payload."""
        changes: dict[str, Any] = {}
        if before:
            changes["before"] = before
        if after:
            changes["after"] = after
        return cls._prepare_changes(changes) or {}

    async def record(
        self,
        action: str,
        resource_type: str,
        resource_id: UUID | None = None,
        agent_id: UUID | None = None,
        actor: str | None = None,
        reason: str | None = None,
        changes: dict[str, Any] | None = None,
    ) -> AuditLogORM:
        """Write an audit entry as part of the caller's transaction.

        Raises:
            SQLAlchemyError: If the entry cannot be written
        """
        entry = await self.audit_repo.log(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            agent_id=agent_id,
            actor=actor,
            reason=reason,
            changes=self._prepare_changes(changes),
        )
        logger.debug(
            "Audit recorded: action=%s resource=%s/%s actor=%s",
            action,
            resource_type,
            resource_id,
            actor,
        )
        return entry

    async def log(
        self,
        action: str,
        resource_type: str,
        resource_id: UUID | str | None = None,
        agent_id: UUID | None = None,
        actor: str | None = None,
        reason: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Log an informational audit event.

        Args:
            action: Action performed (use AuditAction constants)
            resource_type: Type of resource (use ResourceType constants)
            resource_id: ID of the affected resource
            agent_id: Agent the resource belongs to
            actor: Who performed the action
            reason: Free-text reason
            details: Dictionary of details to log
        """
        if isinstance(resource_id, str):
            try:
                resource_id = UUID(resource_id)
            except ValueError:
                resource_id = None

        try:
            await self.record(
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                agent_id=agent_id,
                actor=actor,
                reason=reason,
                changes=details,
            )
        except Exception as e:
            # Informational events never fail the main operation
            logger.error("Failed to write audit log: %s", e)

    async def count_decisions(self, reinstatement_id: UUID) -> int:
        """Count terminal decisions recorded for a reinstatement request."""
        total = 0
        for action in REINSTATEMENT_DECISION_ACTIONS:
            total += await self.audit_repo.count_by_action(action, resource_id=reinstatement_id)
        return total
