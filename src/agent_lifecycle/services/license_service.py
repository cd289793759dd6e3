"""License service for issuing and transitioning agent licenses.

Architecture Note:
    Eligibility is decided by the pure functions in ``license_rules``; this
    service only loads the license, asks for a decision, and applies an
    allowed decision through ``apply_transition``. The row update and its
    audit entry are written in the same transaction, and the update is
    conditional on the version the decision was computed against, so two
    concurrent renewals of one license cannot both succeed.
"""

import logging
from datetime import date, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from agent_lifecycle.exceptions import (
    AgentNotFoundError,
    LicenseNotFoundError,
    LicenseNumberExistsError,
    LicenseVersionConflictError,
    RuleDeniedError,
)
from agent_lifecycle.models.domain.license import License, LicenseStatus, LicenseType
from agent_lifecycle.models.dto.license import (
    ExpiringLicensesResponse,
    ExpiringSummary,
    LicenseCreate,
    LicenseResponse,
    ReminderLogEntry,
    ReminderScheduleResponse,
    RenewalHistoryEntry,
    RenewalHistoryResponse,
)
from agent_lifecycle.models.orm.license import LicenseORM
from agent_lifecycle.repositories.agent_repository import AgentRepository
from agent_lifecycle.repositories.license_repository import LicenseRepository
from agent_lifecycle.repositories.reminder_repository import ReminderRepository
from agent_lifecycle.services import license_rules, reminder_service
from agent_lifecycle.services.audit_service import AuditAction, AuditService, ResourceType
from agent_lifecycle.services.license_rules import RuleAction, RuleDecision

logger = logging.getLogger(__name__)

_AUDIT_ACTIONS = {
    RuleAction.RENEW: AuditAction.LICENSE_RENEW,
    RuleAction.CONVERT_TO_PERMANENT: AuditAction.LICENSE_CONVERT,
    RuleAction.EXPIRE: AuditAction.LICENSE_EXPIRE,
}

_HISTORY_ACTIONS = [AuditAction.LICENSE_RENEW, AuditAction.LICENSE_CONVERT]


def to_domain(license_orm: LicenseORM) -> License:
    """Convert an ORM row into the immutable domain model."""
    return License.model_validate(license_orm)


def to_response(license: License, today: date, soon_days: int = 30) -> LicenseResponse:
    """Build the license view with its derived expiry fields.

    Args:
        license: License to present
        today: Reference date for the expiry fields
        soon_days: Window for EXPIRING_SOON

    Returns:
        LicenseResponse DTO
    """
    denial = license_rules.renewal_denial(license, today)
    return LicenseResponse(
        id=license.id,
        agent_id=license.agent_id,
        license_line=license.license_line,
        license_type=license.license_type,
        license_number=license.license_number,
        resident_status=license.resident_status,
        license_date=license.license_date,
        renewal_date=license.renewal_date,
        authority_date=license.authority_date,
        renewal_count=license.renewal_count,
        status=license.status,
        is_primary=license.is_primary,
        exam_passed=license.exam_passed,
        exam_date=license.exam_date,
        certificate_number=license.certificate_number,
        metadata=license.extra_data,
        version=license.version,
        created_at=license.created_at,
        updated_at=license.updated_at,
        days_until_expiry=license_rules.days_until_expiry(license, today),
        expiry_status=license_rules.expiry_status(license, today, soon_days),
        can_renew=denial is None,
        renewal_denied_reason=str(denial.reason) if denial else None,
    )


class LicenseService:
    """Service for license issuance and rule-driven transitions."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize service with database session."""
        self.session = session
        self.license_repo = LicenseRepository(session)
        self.agent_repo = AgentRepository(session)
        self.reminder_repo = ReminderRepository(session)
        self.audit_service = AuditService(session)

    async def _load(self, license_id: UUID) -> License:
        license_orm = await self.license_repo.get_active(license_id)
        if license_orm is None:
            raise LicenseNotFoundError(license_id)
        return to_domain(license_orm)

    def _check_version(self, license: License, expected_version: int | None) -> None:
        if expected_version is not None and expected_version != license.version:
            raise LicenseVersionConflictError(license.id, expected_version)

    async def create_license(
        self,
        agent_id: UUID,
        data: LicenseCreate,
        created_by: str,
    ) -> License:
        """Issue a new license to an agent.

        Args:
            agent_id: Owning agent
            data: License fields
            created_by: Actor issuing the license

        Returns:
            Created License

        Raises:
            AgentNotFoundError: If the agent does not exist
            LicenseNumberExistsError: If the license number is taken
        """
        agent = await self.agent_repo.get_active(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)

        if await self.license_repo.get_by_number(data.license_number) is not None:
            raise LicenseNumberExistsError(data.license_number)

        exam_passed = data.exam_passed or (
            data.license_type == LicenseType.PERMANENT and data.exam_date is not None
        )
        renewal_date = license_rules.initial_renewal_date(
            data.license_type, data.license_date, exam_passed
        )

        if data.is_primary:
            cleared = await self.license_repo.clear_primary(agent_id, updated_by=created_by)
            for cleared_id in cleared:
                await self.audit_service.record(
                    action=AuditAction.LICENSE_PRIMARY_CLEARED,
                    resource_type=ResourceType.LICENSE,
                    resource_id=cleared_id,
                    agent_id=agent_id,
                    actor=created_by,
                    changes=self.audit_service.change_set(
                        {"is_primary": True}, {"is_primary": False}
                    ),
                )

        license_orm = await self.license_repo.create(
            agent_id=agent_id,
            license_line=data.license_line,
            license_type=data.license_type,
            license_number=data.license_number,
            resident_status=data.resident_status,
            license_date=data.license_date,
            renewal_date=renewal_date,
            authority_date=data.authority_date,
            renewal_count=0,
            status=LicenseStatus.ACTIVE,
            is_primary=data.is_primary,
            exam_passed=exam_passed,
            exam_date=data.exam_date,
            certificate_number=data.certificate_number,
            extra_data=data.metadata or {},
            created_by=created_by,
            updated_by=created_by,
        )
        license = to_domain(license_orm)

        await self.audit_service.record(
            action=AuditAction.LICENSE_CREATE,
            resource_type=ResourceType.LICENSE,
            resource_id=license.id,
            agent_id=agent_id,
            actor=created_by,
            changes=self.audit_service.change_set(
                None,
                {
                    "license_number": license.license_number,
                    "license_type": license.license_type,
                    "license_date": license.license_date,
                    "renewal_date": license.renewal_date,
                    "status": license.status,
                },
            ),
        )

        await self.session.commit()
        logger.info(
            "Issued %s license %s to agent %s", license.license_type, license.id, agent_id
        )
        return license

    async def get_license(self, license_id: UUID) -> License:
        """Get a license by ID.

        Raises:
            LicenseNotFoundError: If the license does not exist or was deleted
        """
        return await self._load(license_id)

    async def list_by_agent(self, agent_id: UUID) -> list[License]:
        """Get all live licenses of an agent, primary first."""
        return [to_domain(row) for row in await self.license_repo.get_by_agent(agent_id)]

    async def apply_transition(
        self,
        decision: RuleDecision,
        actor: str | None,
        reason: str | None = None,
        commit: bool = True,
    ) -> License:
        """Apply an allowed rule decision and write its audit entry.

        Args:
            decision: Decision returned by the rule engine
            actor: Who requested the transition
            reason: Free-text reason stored on the audit entry
            commit: Commit the unit of work before returning

        Returns:
            License as stored after the transition

        Raises:
            RuleDeniedError: If the decision denies the transition
            LicenseNotFoundError: If the license no longer exists
            LicenseVersionConflictError: If the license changed since the decision
        """
        if not decision.allow:
            raise RuleDeniedError(
                reason=str(decision.reason), message=decision.message, license_id=decision.license_id
            )

        updated = await self.license_repo.apply_changes(
            decision.license_id, decision.expected_version, decision.changes, updated_by=actor
        )
        if not updated:
            if await self.license_repo.get_active(decision.license_id) is None:
                raise LicenseNotFoundError(decision.license_id)
            raise LicenseVersionConflictError(decision.license_id, decision.expected_version)

        license_orm = await self.license_repo.get_active(decision.license_id)
        if license_orm is None:
            raise LicenseNotFoundError(decision.license_id)
        license = to_domain(license_orm)

        before: dict[str, Any] = {**decision.previous, "version": decision.expected_version}
        after: dict[str, Any] = {**decision.changes, "version": license.version}
        await self.audit_service.record(
            action=_AUDIT_ACTIONS[decision.action],
            resource_type=ResourceType.LICENSE,
            resource_id=license.id,
            agent_id=license.agent_id,
            actor=actor,
            reason=reason or decision.message,
            changes=self.audit_service.change_set(before, after),
        )

        old_renewal_date = decision.previous.get("renewal_date")
        if old_renewal_date is not None and old_renewal_date != license.renewal_date:
            cancelled = await self.reminder_repo.cancel_unsent_for_renewal_date(
                license.id, old_renewal_date
            )
            if cancelled:
                logger.info(
                    "Cancelled %d stale reminders for license %s", cancelled, license.id
                )

        if commit:
            await self.session.commit()
        logger.info("License %s: %s -> version %d", license.id, decision.action, license.version)
        return license

    async def renew_license(
        self,
        license_id: UUID,
        actor: str,
        today: date | None = None,
        expected_version: int | None = None,
        reason: str | None = None,
    ) -> License:
        """Renew a license for one year from today.

        Args:
            license_id: License UUID
            actor: Who requested the renewal
            today: Reference date (defaults to the current date)
            expected_version: Version the caller last read, if known
            reason: Optional reason for the audit trail

        Returns:
            Renewed License

        Raises:
            LicenseNotFoundError: If the license does not exist
            LicenseVersionConflictError: If the license changed concurrently
            RuleDeniedError: If the license is not eligible for renewal
        """
        license = await self._load(license_id)
        self._check_version(license, expected_version)
        decision = license_rules.renew(license, today or date.today())
        return await self.apply_transition(decision, actor=actor, reason=reason)

    async def convert_to_permanent(
        self,
        license_id: UUID,
        exam_date: date,
        certificate_number: str,
        actor: str,
        exam_passed: bool = True,
        expected_version: int | None = None,
    ) -> License:
        """Convert a provisional license to permanent after the exam.

        Raises:
            LicenseNotFoundError: If the license does not exist
            LicenseVersionConflictError: If the license changed concurrently
            RuleDeniedError: If the conversion is not allowed
        """
        license = await self._load(license_id)
        self._check_version(license, expected_version)
        decision = license_rules.convert_to_permanent(
            license,
            exam_date=exam_date,
            certificate_number=certificate_number,
            exam_passed=exam_passed,
        )
        return await self.apply_transition(decision, actor=actor)

    async def delete_license(
        self,
        license_id: UUID,
        actor: str,
        expected_version: int | None = None,
        reason: str | None = None,
    ) -> None:
        """Soft-delete a license.

        Raises:
            LicenseNotFoundError: If the license does not exist
            LicenseVersionConflictError: If the license changed concurrently
        """
        license = await self._load(license_id)
        self._check_version(license, expected_version)

        if not await self.license_repo.soft_delete(license.id, license.version, deleted_by=actor):
            raise LicenseVersionConflictError(license.id, license.version)

        await self.audit_service.record(
            action=AuditAction.LICENSE_DELETE,
            resource_type=ResourceType.LICENSE,
            resource_id=license.id,
            agent_id=license.agent_id,
            actor=actor,
            reason=reason,
            changes=self.audit_service.change_set(
                {"license_number": license.license_number, "status": license.status},
                {"deleted": True},
            ),
        )
        await self.session.commit()
        logger.info("Soft-deleted license %s", license.id)

    async def get_renewal_history(self, license_id: UUID) -> RenewalHistoryResponse:
        """Reconstruct renewals and conversions from the audit log.

        Raises:
            LicenseNotFoundError: If the license does not exist
        """
        await self._load(license_id)
        entries = await self.audit_service.audit_repo.get_by_resource(
            ResourceType.LICENSE, license_id, actions=_HISTORY_ACTIONS, limit=500
        )

        history = []
        for entry in entries:
            changes = entry.changes or {}
            before = changes.get("before", {})
            after = changes.get("after", {})
            history.append(
                RenewalHistoryEntry(
                    action=entry.action,
                    previous_renewal_date=before.get("renewal_date"),
                    new_renewal_date=after.get("renewal_date"),
                    previous_renewal_count=before.get("renewal_count"),
                    new_renewal_count=after.get("renewal_count"),
                    actor=entry.actor,
                    reason=entry.reason,
                    occurred_at=entry.created_at,
                )
            )
        return RenewalHistoryResponse(license_id=license_id, entries=history)

    async def get_expiring_licenses(
        self,
        days: int = 30,
        today: date | None = None,
    ) -> ExpiringLicensesResponse:
        """List in-force licenses whose renewal date falls in the next N days.

        Args:
            days: Look-ahead window
            today: Reference date (defaults to the current date)

        Returns:
            ExpiringLicensesResponse with a 7/15/30-day summary
        """
        today = today or date.today()
        rows = await self.license_repo.find_expiring(today, max(days, 30))

        summary = ExpiringSummary()
        items = []
        for row in rows:
            license = to_domain(row)
            remaining = license_rules.days_until_expiry(license, today)
            if remaining <= 7:
                summary.within_7_days += 1
            if remaining <= 15:
                summary.within_15_days += 1
            if remaining <= 30:
                summary.within_30_days += 1
            if license.renewal_date <= today + timedelta(days=days):
                items.append(to_response(license, today))

        return ExpiringLicensesResponse(
            as_of=today, days=days, total=len(items), summary=summary, items=items
        )

    async def get_reminder_schedule(
        self, license_id: UUID, offsets: list[int] | None = None
    ) -> ReminderScheduleResponse:
        """Reminder calendar of a license next to its dispatch log.

        Raises:
            LicenseNotFoundError: If the license does not exist
        """
        license = await self._load(license_id)
        log = await self.reminder_repo.get_for_license(license_id)
        return ReminderScheduleResponse(
            license_id=license.id,
            renewal_date=license.renewal_date,
            schedule=reminder_service.schedule_for(
                license, offsets or reminder_service.DEFAULT_OFFSETS
            ),
            log=[ReminderLogEntry.model_validate(entry) for entry in log],
        )
