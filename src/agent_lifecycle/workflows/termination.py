"""Agent termination process.

The agent status flip and the termination record are written synchronously
before this process starts. The process only converges the remaining side
effects; every step is best effort and its outcome is written onto the
termination record as soon as it runs.
"""

import logging
from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from agent_lifecycle.clients.base import AgentContact
from agent_lifecycle.exceptions import AgentNotFoundError, TerminationRecordNotFoundError
from agent_lifecycle.models.domain.agent import ArchiveType, TerminationWorkflowStatus
from agent_lifecycle.repositories.agent_repository import AgentRepository
from agent_lifecycle.repositories.termination_repository import TerminationRepository
from agent_lifecycle.services.archive_service import ArchiveService
from agent_lifecycle.workflows.context import ProcessContext, RecordHook, StepRecord

logger = logging.getLogger(__name__)


def termination_input(
    termination_id: UUID,
    effective_date: date,
    reason: str,
    reason_code: str,
    terminated_by: str,
) -> dict[str, Any]:
    """Typed input of a termination process, as stored on the process row."""
    return {
        "termination_id": str(termination_id),
        "effective_date": effective_date.isoformat(),
        "reason": reason,
        "reason_code": str(reason_code),
        "terminated_by": terminated_by,
    }


def _record_flag(termination_id: UUID, flag: str) -> RecordHook:
    """Set an action flag on success, append to the error list on failure."""

    async def record(session: AsyncSession, step: StepRecord) -> None:
        termination = await TerminationRepository(session).get(termination_id)
        if termination is None:
            raise TerminationRecordNotFoundError(termination_id)
        if step.succeeded:
            setattr(termination, flag, True)
            if flag == "letter_generated":
                termination.termination_letter_url = step.result
                termination.termination_letter_generated_at = datetime.fromisoformat(step.at)
        elif step.failed:
            termination.errors = [*(termination.errors or []), step.error_entry()]
        await session.flush()

    return record


async def load_contact(ctx: ProcessContext) -> AgentContact:
    """Load the contact details of the process's agent."""
    async with ctx.session() as session:
        agent = await AgentRepository(session).get(ctx.agent_id)
        if agent is None:
            raise AgentNotFoundError(ctx.agent_id)
        return AgentContact.from_profile(agent)


async def _set_workflow_status(
    ctx: ProcessContext,
    termination_id: UUID,
    status: TerminationWorkflowStatus,
    error: dict[str, Any] | None = None,
    completed: bool = False,
) -> None:
    async with ctx.session() as session:
        termination = await TerminationRepository(session).get(termination_id)
        if termination is None:
            raise TerminationRecordNotFoundError(termination_id)
        termination.workflow_status = status
        if error is not None:
            termination.errors = [*(termination.errors or []), error]
        if completed:
            termination.completed_at = ctx.now()
        await session.commit()


async def run_termination(ctx: ProcessContext) -> None:
    """Converge the side effects of a termination."""
    termination_id = UUID(ctx.input["termination_id"])
    effective_date = date.fromisoformat(ctx.input["effective_date"])
    terminated_by = ctx.input["terminated_by"]

    await _set_workflow_status(ctx, termination_id, TerminationWorkflowStatus.IN_PROGRESS)
    agent = await load_contact(ctx)

    async def archive_data() -> str:
        async with ctx.session() as session:
            archive = await ArchiveService(session).archive_agent(
                agent_id=ctx.agent_id,
                source_id=termination_id,
                archive_type=ArchiveType.TERMINATION,
                archived_by=terminated_by,
                now=ctx.now(),
                retention_years=ctx.runtime.archive_retention_years,
            )
            await session.commit()
            return str(archive.id)

    await ctx.step(
        "disable_portal",
        lambda: ctx.clients.portal.disable_access(agent),
        record=_record_flag(termination_id, "portal_disabled"),
    )
    await ctx.step(
        "stop_commission",
        lambda: ctx.clients.commission.stop_commission(agent, effective_date),
        record=_record_flag(termination_id, "commission_stopped"),
    )
    await ctx.step(
        "generate_letter",
        lambda: ctx.clients.documents.generate_termination_letter(
            agent, termination_id, effective_date, ctx.input["reason"]
        ),
        record=_record_flag(termination_id, "letter_generated"),
    )
    await ctx.step(
        "archive_data",
        archive_data,
        record=_record_flag(termination_id, "data_archived"),
    )
    await ctx.step(
        "send_notifications",
        lambda: ctx.clients.notifications.send_termination_notice(
            agent, effective_date, ctx.input["reason_code"]
        ),
        record=_record_flag(termination_id, "notifications_sent"),
    )

    if await ctx.refresh_cancel_flag():
        await _set_workflow_status(
            ctx,
            termination_id,
            TerminationWorkflowStatus.FAILED,
            error={
                "step": "process",
                "error": "cancelled",
                "cancelled_by": ctx.cancelled_by,
                "at": ctx.now().isoformat(),
            },
            completed=True,
        )
        logger.info("Termination %s cancelled by %s", termination_id, ctx.cancelled_by)
        return

    await _set_workflow_status(
        ctx, termination_id, TerminationWorkflowStatus.COMPLETED, completed=True
    )
    logger.info("Termination %s completed", termination_id)


async def on_failed(ctx: ProcessContext, error: str) -> None:
    """Mark the termination record FAILED when the process itself fails."""
    await _set_workflow_status(
        ctx,
        UUID(ctx.input["termination_id"]),
        TerminationWorkflowStatus.FAILED,
        error={"step": "process", "error": error, "at": ctx.now().isoformat()},
        completed=True,
    )
