"""License reminder log repository."""

from datetime import date
from uuid import UUID

from sqlalchemy import select, update

from agent_lifecycle.models.domain.agent import AgentStatus
from agent_lifecycle.models.domain.license import IN_FORCE_STATUSES
from agent_lifecycle.models.domain.process import ReminderSendStatus
from agent_lifecycle.models.orm.agent import AgentProfileORM
from agent_lifecycle.models.orm.license import LicenseORM
from agent_lifecycle.models.orm.reminder import LicenseReminderORM
from agent_lifecycle.repositories.base import BaseRepository


class ReminderRepository(BaseRepository[LicenseReminderORM]):
    """Repository for reminder delivery log entries."""

    model = LicenseReminderORM

    async def get_for_license(self, license_id: UUID) -> list[LicenseReminderORM]:
        """Get all reminder log entries for a license, oldest first."""
        result = await self.session.execute(
            select(LicenseReminderORM)
            .where(LicenseReminderORM.license_id == license_id)
            .order_by(LicenseReminderORM.reminder_date.asc())
        )
        return list(result.scalars().all())

    async def get_slot(
        self, license_id: UUID, reminder_type: str, reminder_date: date
    ) -> LicenseReminderORM | None:
        """Get the log entry for one reminder slot."""
        result = await self.session.execute(
            select(LicenseReminderORM).where(
                LicenseReminderORM.license_id == license_id,
                LicenseReminderORM.reminder_type == reminder_type,
                LicenseReminderORM.reminder_date == reminder_date,
            )
        )
        return result.scalar_one_or_none()

    async def cancel_unsent_for_renewal_date(self, license_id: UUID, renewal_date: date) -> int:
        """Cancel reminders that were scheduled against an old renewal date.

        Returns:
            Number of entries cancelled
        """
        result = await self.session.execute(
            update(LicenseReminderORM)
            .where(
                LicenseReminderORM.license_id == license_id,
                LicenseReminderORM.renewal_date == renewal_date,
                LicenseReminderORM.sent_status.in_(
                    [ReminderSendStatus.PENDING, ReminderSendStatus.FAILED]
                ),
            )
            .values(sent_status=ReminderSendStatus.CANCELLED)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def find_retryable(
        self, today: date, max_retries: int, limit: int = 500
    ) -> list[tuple[LicenseReminderORM, LicenseORM]]:
        """Find FAILED reminders from earlier days that may still be resent.

        The license must still be in force with the renewal date the reminder
        was scheduled against, that date must not have passed, and the
        license's agent must be ACTIVE.

        Args:
            today: Reference date; reminders due today are not included
            max_retries: Attempts after which a reminder stays FAILED
            limit: Maximum number of reminders returned

        Returns:
            (reminder, license) pairs, oldest reminder first
        """
        result = await self.session.execute(
            select(LicenseReminderORM, LicenseORM)
            .join(LicenseORM, LicenseORM.id == LicenseReminderORM.license_id)
            .join(AgentProfileORM, AgentProfileORM.id == LicenseORM.agent_id)
            .where(
                LicenseReminderORM.sent_status == ReminderSendStatus.FAILED,
                LicenseReminderORM.retry_count < max_retries,
                LicenseReminderORM.reminder_date < today,
                LicenseReminderORM.renewal_date >= today,
                LicenseReminderORM.renewal_date == LicenseORM.renewal_date,
                LicenseORM.status.in_(list(IN_FORCE_STATUSES)),
                LicenseORM.deleted_at.is_(None),
                AgentProfileORM.status == AgentStatus.ACTIVE,
                AgentProfileORM.deleted_at.is_(None),
            )
            .order_by(LicenseReminderORM.reminder_date.asc())
            .limit(limit)
        )
        return [(reminder, license_orm) for reminder, license_orm in result.all()]
