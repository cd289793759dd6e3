"""License renewal reminder scheduling and dispatch."""

import logging
from datetime import date, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from agent_lifecycle.clients.base import AgentContact, NotificationClient
from agent_lifecycle.models.domain.license import License
from agent_lifecycle.models.domain.process import ReminderSendStatus, ReminderType
from agent_lifecycle.models.dto.license import ReminderSlot
from agent_lifecycle.models.orm.base import utcnow
from agent_lifecycle.models.orm.license import LicenseORM
from agent_lifecycle.models.orm.reminder import LicenseReminderORM
from agent_lifecycle.repositories.agent_repository import AgentRepository
from agent_lifecycle.repositories.license_repository import LicenseRepository
from agent_lifecycle.repositories.reminder_repository import ReminderRepository

logger = logging.getLogger(__name__)

DEFAULT_OFFSETS = (30, 15, 7, 0)

_NAMED_OFFSETS = {
    30: ReminderType.DAYS_30,
    15: ReminderType.DAYS_15,
    7: ReminderType.DAYS_7,
    0: ReminderType.EXPIRY_DAY,
}


def reminder_type_for(offset_days: int) -> str:
    """Name of the reminder sent ``offset_days`` before expiry."""
    named = _NAMED_OFFSETS.get(offset_days)
    return str(named) if named is not None else f"{offset_days}_DAYS"


def schedule(
    renewal_date: date, offsets: tuple[int, ...] | list[int] = DEFAULT_OFFSETS
) -> list[ReminderSlot]:
    """Compute the reminder calendar for a renewal date.

    The result depends only on the arguments, so recomputing after a renewal
    yields the new calendar and the caller invalidates the old one.

    Args:
        renewal_date: License renewal (expiry) date
        offsets: Days before expiry, largest first

    Returns:
        One slot per offset, in the order given
    """
    return [
        ReminderSlot(
            offset_days=offset,
            reminder_type=reminder_type_for(offset),
            reminder_date=renewal_date - timedelta(days=offset),
        )
        for offset in offsets
    ]


def schedule_for(
    license: License, offsets: tuple[int, ...] | list[int] = DEFAULT_OFFSETS
) -> list[ReminderSlot]:
    """Compute the reminder calendar for a license."""
    return schedule(license.renewal_date, offsets)


class ReminderService:
    """Sends due reminders and records each delivery in the reminder log."""

    def __init__(
        self,
        session: AsyncSession,
        notifications: NotificationClient,
        offsets: list[int] | None = None,
        max_retries: int = 3,
    ) -> None:
        """Initialize service.

        Args:
            session: Database session
            notifications: Notification collaborator
            offsets: Days before expiry to remind at
            max_retries: Attempts per reminder slot before it stays FAILED
        """
        self.session = session
        self.notifications = notifications
        self.offsets = sorted(set(offsets if offsets is not None else DEFAULT_OFFSETS), reverse=True)
        self.max_retries = max_retries
        self.license_repo = LicenseRepository(session)
        self.agent_repo = AgentRepository(session)
        self.reminder_repo = ReminderRepository(session)

    async def dispatch_due(self, today: date | None = None) -> dict[str, int]:
        """Send every reminder whose date is today and retry earlier failures.

        Each slot is keyed by (license, type, reminder date) and committed
        individually, so re-running the job on the same day never sends a
        reminder twice. FAILED slots are retried on the same day and on later
        days, up to ``max_retries`` attempts, while the license still renews
        on the date the slot was scheduled against.

        Args:
            today: Reference date (defaults to the current date)

        Returns:
            Dict with counts: due, sent, failed, skipped, retried
        """
        today = today or date.today()
        counts = {"due": 0, "sent": 0, "failed": 0, "skipped": 0, "retried": 0}

        renewal_dates = [today + timedelta(days=offset) for offset in self.offsets]
        licenses = await self.license_repo.find_by_renewal_dates(renewal_dates)

        for license_orm in licenses:
            counts["due"] += 1
            outcome = await self._dispatch_one(license_orm, today)
            counts[outcome] += 1

        for slot, license_orm in await self.reminder_repo.find_retryable(today, self.max_retries):
            counts["retried"] += 1
            outcome = await self._deliver(slot, license_orm)
            counts[outcome] += 1

        logger.info("Reminder dispatch for %s: %s", today.isoformat(), counts)
        return counts

    async def _dispatch_one(self, license_orm: LicenseORM, today: date) -> str:
        offset = (license_orm.renewal_date - today).days
        reminder_type = reminder_type_for(offset)

        slot = await self.reminder_repo.get_slot(license_orm.id, reminder_type, today)
        if slot is not None:
            if slot.sent_status != ReminderSendStatus.FAILED or slot.retry_count >= self.max_retries:
                return "skipped"
        else:
            slot = await self.reminder_repo.create(
                license_id=license_orm.id,
                reminder_type=reminder_type,
                reminder_date=today,
                renewal_date=license_orm.renewal_date,
                sent_status=ReminderSendStatus.PENDING,
            )
        return await self._deliver(slot, license_orm)

    async def _deliver(self, slot: LicenseReminderORM, license_orm: LicenseORM) -> str:
        """Send one reminder slot and record the outcome on it."""
        agent = await self.agent_repo.get_active(license_orm.agent_id)
        delivery: dict[str, Any] | None = None
        failure: str | None = None
        if agent is None:
            failure = "Agent not found"
        else:
            try:
                delivery = await self.notifications.send_renewal_reminder(
                    AgentContact.from_profile(agent),
                    license_number=license_orm.license_number,
                    renewal_date=license_orm.renewal_date,
                    reminder_type=slot.reminder_type,
                )
            except Exception as e:
                # Reminder delivery is best effort; the slot records the failure
                failure = str(e) or type(e).__name__

        if delivery is not None:
            slot.sent_status = ReminderSendStatus.SENT
            slot.sent_date = utcnow()
            slot.email_sent = bool(delivery.get("email_sent"))
            slot.sms_sent = bool(delivery.get("sms_sent"))
            slot.failure_reason = None
        else:
            slot.sent_status = ReminderSendStatus.FAILED
            slot.failure_reason = failure
            slot.retry_count = slot.retry_count + 1
            logger.warning(
                "Reminder %s for license %s failed: %s", slot.reminder_type, license_orm.id, failure
            )

        await self.session.commit()
        return "sent" if delivery is not None else "failed"
