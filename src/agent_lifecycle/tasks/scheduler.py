"""Background task scheduler using APScheduler."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from agent_lifecycle.config import get_settings

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler: AsyncIOScheduler | None = None


async def expiry_scan_job() -> None:
    """Background job to expire overdue licenses and deactivate unlicensed agents."""
    from agent_lifecycle.database import session_scope
    from agent_lifecycle.services.expiry_scan_service import ExpiryScanService

    settings = get_settings()
    logger.info("Starting scheduled license expiry sweep")

    try:
        async with session_scope() as session:
            service = ExpiryScanService(session, batch_size=settings.expiry_batch_size)
            batch_log = await service.run(triggered_by="scheduler")
    except Exception as e:
        logger.error("Expiry sweep failed: %s", e)
        return

    logger.info(
        "Scheduled expiry sweep completed: %d expired, %d agents deactivated",
        batch_log.succeeded,
        len(batch_log.deactivated_agent_ids),
    )


async def reminder_dispatch_job() -> None:
    """Background job to send license renewal reminders due today."""
    from agent_lifecycle.database import session_scope
    from agent_lifecycle.services.reminder_service import ReminderService
    from agent_lifecycle.workflows.runtime import get_runtime

    settings = get_settings()
    logger.info("Dispatching license renewal reminders")

    try:
        async with session_scope() as session:
            service = ReminderService(
                session,
                notifications=get_runtime().clients.notifications,
                offsets=settings.reminder_offsets_days,
                max_retries=settings.reminder_max_retries,
            )
            counts = await service.dispatch_due()
    except Exception as e:
        logger.error("Reminder dispatch failed: %s", e)
        return

    logger.info("Reminder dispatch completed: %s", counts)


async def process_resume_job() -> None:
    """Background job to fire due process timers and resume stalled processes."""
    from agent_lifecycle.workflows.runtime import get_runtime

    try:
        result = await get_runtime().tick()
        if result["timers_fired"] or result["resumed"]:
            logger.info("Process maintenance pass: %s", result)
    except Exception as e:
        logger.error("Process maintenance pass failed: %s", e)


async def start_scheduler() -> None:
    """Start the background task scheduler."""
    global _scheduler

    settings = get_settings()
    _scheduler = AsyncIOScheduler()

    # Nightly expiry sweep
    _scheduler.add_job(
        expiry_scan_job,
        trigger=CronTrigger(hour=settings.expiry_scan_hour, minute=settings.expiry_scan_minute),
        id="expiry_scan",
        name="License expiry sweep",
        replace_existing=True,
    )

    # Daily renewal reminders
    _scheduler.add_job(
        reminder_dispatch_job,
        trigger=CronTrigger(hour=settings.reminder_dispatch_hour, minute=0),
        id="reminder_dispatch",
        name="License renewal reminders",
        replace_existing=True,
    )

    # Due timers and crash recovery for agent status processes
    _scheduler.add_job(
        process_resume_job,
        trigger=IntervalTrigger(minutes=settings.process_resume_interval_minutes),
        id="process_resume",
        name="Resume agent status processes",
        replace_existing=True,
    )

    _scheduler.start()
    logger.info("Background scheduler started")


async def stop_scheduler() -> None:
    """Stop the background task scheduler."""
    global _scheduler

    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Background scheduler stopped")
