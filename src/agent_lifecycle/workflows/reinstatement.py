"""Agent reinstatement process.

The request row exists before the process starts. The process asks an
approver for a decision, parks until a decision signal or the timeout
resolves the wait, then applies the outcome with a single conditional
update guarded on the request still being PENDING.
"""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from agent_lifecycle.clients.base import AgentContact
from agent_lifecycle.exceptions import ReinstatementRequestNotFoundError
from agent_lifecycle.models.domain.agent import (
    SYSTEM_ACTOR,
    ReinstatementDecision,
    ReinstatementStatus,
)
from agent_lifecycle.repositories.agent_repository import AgentRepository
from agent_lifecycle.repositories.termination_repository import ReinstatementRepository
from agent_lifecycle.services.audit_service import AuditAction, AuditService, ResourceType
from agent_lifecycle.workflows.context import ProcessContext, RecordHook, StepRecord
from agent_lifecycle.workflows.termination import load_contact

logger = logging.getLogger(__name__)

APPROVAL_WAIT = "approval-decision"

TIMEOUT_REASON = "Request timeout - no decision received within 30 days"
CANCELLED_REASON = "Request cancelled"
NOT_TERMINATED_REASON = "Agent is no longer terminated"
PROCESS_FAILED_REASON = "Reinstatement process failed"


def reinstatement_input(reinstatement_id: UUID, reason: str, requested_by: str) -> dict[str, Any]:
    """Typed input of a reinstatement process, as stored on the process row."""
    return {
        "reinstatement_id": str(reinstatement_id),
        "reason": reason,
        "requested_by": requested_by,
    }


def decision_from_resolution(resolution: dict[str, Any]) -> dict[str, Any]:
    """Turn whatever resolved the wait into a concrete decision.

    A timer or a cancellation resolves to REJECTED with an explicit actor
    and reason so the default outcome is auditable.
    """
    source = resolution.get("source")
    if source == "timer":
        return {
            "decision": ReinstatementDecision.REJECTED,
            "decided_by": SYSTEM_ACTOR,
            "rejection_reason": TIMEOUT_REASON,
            "source": source,
        }
    if source == "cancel":
        return {
            "decision": ReinstatementDecision.REJECTED,
            "decided_by": resolution.get("cancelled_by") or SYSTEM_ACTOR,
            "rejection_reason": CANCELLED_REASON,
            "source": source,
        }
    return {
        "decision": ReinstatementDecision(resolution["decision"]),
        "decided_by": resolution["decided_by"],
        "rejection_reason": resolution.get("rejection_reason"),
        "reinstatement_conditions": resolution.get("reinstatement_conditions"),
        "probation_period_days": resolution.get("probation_period_days"),
        "source": source,
    }


def _record_errors(reinstatement_id: UUID) -> RecordHook:
    async def record(session: AsyncSession, step: StepRecord) -> None:
        if step.failed:
            request = await ReinstatementRepository(session).get(reinstatement_id)
            if request is None:
                raise ReinstatementRequestNotFoundError(reinstatement_id)
            request.errors = [*(request.errors or []), step.error_entry()]
            await session.flush()

    return record


async def reject_request(
    session: AsyncSession,
    reinstatement_id: UUID,
    agent_id: UUID,
    rejected_by: str,
    reason: str,
    now: datetime,
    source: str | None = None,
) -> bool:
    """Move a PENDING request to REJECTED and audit the decision.

    Returns:
        True if this call made the terminal transition
    """
    if not await ReinstatementRepository(session).mark_rejected(
        reinstatement_id, rejected_by, reason, now
    ):
        return False
    await AuditService(session).record(
        action=AuditAction.REINSTATEMENT_REJECT,
        resource_type=ResourceType.REINSTATEMENT,
        resource_id=reinstatement_id,
        agent_id=agent_id,
        actor=rejected_by,
        reason=reason,
        changes={"status": ReinstatementStatus.REJECTED, "source": source},
    )
    return True


async def run_reinstatement(ctx: ProcessContext) -> None:
    """Wait for a decision on a reinstatement request and apply it."""
    reinstatement_id = UUID(ctx.input["reinstatement_id"])
    agent = await load_contact(ctx)

    await ctx.step(
        "notify_approver",
        lambda: ctx.clients.notifications.send_approval_request(
            agent, reinstatement_id, ctx.input["reason"]
        ),
        record=_record_errors(reinstatement_id),
    )

    resolution = await ctx.wait_for_signal(APPROVAL_WAIT, ctx.runtime.reinstatement_timeout)
    decision = decision_from_resolution(resolution)
    logger.info(
        "Reinstatement %s resolved by %s: %s",
        reinstatement_id,
        decision["source"],
        decision["decision"],
    )

    if decision["decision"] == ReinstatementDecision.APPROVED:
        await _approve(ctx, reinstatement_id, agent, decision)
    else:
        await _reject(ctx, reinstatement_id, agent, decision)


async def _approve(
    ctx: ProcessContext,
    reinstatement_id: UUID,
    agent: AgentContact,
    decision: dict[str, Any],
) -> None:
    approved_by = decision["decided_by"]

    async def apply_approval() -> str:
        async with ctx.session() as session:
            request = await ReinstatementRepository(session).get(reinstatement_id)
            if request is None:
                raise ReinstatementRequestNotFoundError(reinstatement_id)
            if request.status != ReinstatementStatus.PENDING:
                return str(request.status)

            now = ctx.now()
            if not await ReinstatementRepository(session).mark_approved(
                reinstatement_id,
                approved_by,
                now,
                decision.get("reinstatement_conditions"),
                decision.get("probation_period_days"),
            ):
                await session.rollback()
                request = await ReinstatementRepository(session).get(reinstatement_id)
                return str(request.status)
            if not await AgentRepository(session).mark_reinstated(ctx.agent_id, approved_by, now):
                await session.rollback()
                await reject_request(
                    session,
                    reinstatement_id,
                    ctx.agent_id,
                    SYSTEM_ACTOR,
                    NOT_TERMINATED_REASON,
                    now,
                    source=decision["source"],
                )
                await session.commit()
                logger.warning(
                    "Reinstatement %s rejected: agent %s is not terminated",
                    reinstatement_id,
                    ctx.agent_id,
                )
                return str(ReinstatementStatus.REJECTED)

            audit = AuditService(session)
            await audit.record(
                action=AuditAction.REINSTATEMENT_APPROVE,
                resource_type=ResourceType.REINSTATEMENT,
                resource_id=reinstatement_id,
                agent_id=ctx.agent_id,
                actor=approved_by,
                changes={
                    "status": ReinstatementStatus.APPROVED,
                    "reinstatement_conditions": decision.get("reinstatement_conditions"),
                    "probation_period_days": decision.get("probation_period_days"),
                    "source": decision["source"],
                },
            )
            await audit.record(
                action=AuditAction.AGENT_REINSTATE,
                resource_type=ResourceType.AGENT,
                resource_id=ctx.agent_id,
                agent_id=ctx.agent_id,
                actor=approved_by,
                changes={"status": "ACTIVE", "commission_enabled": True},
            )
            await session.commit()
            return str(ReinstatementStatus.APPROVED)

    applied = await ctx.step(
        "apply_approval",
        apply_approval,
        record=_record_errors(reinstatement_id),
        required=True,
    )
    if applied.result != ReinstatementStatus.APPROVED:
        return

    await ctx.step(
        "restore_portal",
        lambda: ctx.clients.portal.restore_access(agent),
        record=_record_errors(reinstatement_id),
    )
    await ctx.step(
        "notify_approved",
        lambda: ctx.clients.notifications.send_reinstatement_confirmation(
            agent, decision.get("reinstatement_conditions")
        ),
        record=_record_errors(reinstatement_id),
    )
    logger.info("Agent %s reinstated by %s", ctx.agent_id, approved_by)


async def _reject(
    ctx: ProcessContext,
    reinstatement_id: UUID,
    agent: AgentContact,
    decision: dict[str, Any],
) -> None:
    reason = decision.get("rejection_reason") or "Rejected"

    async def apply_rejection() -> bool:
        async with ctx.session() as session:
            won = await reject_request(
                session,
                reinstatement_id,
                ctx.agent_id,
                decision["decided_by"],
                reason,
                ctx.now(),
                source=decision["source"],
            )
            await session.commit()
            return won

    await ctx.step(
        "apply_rejection",
        apply_rejection,
        record=_record_errors(reinstatement_id),
        required=True,
    )
    await ctx.step(
        "notify_rejected",
        lambda: ctx.clients.notifications.send_reinstatement_rejection(agent, reason),
        record=_record_errors(reinstatement_id),
    )
    logger.info("Reinstatement %s rejected by %s", reinstatement_id, decision["decided_by"])


async def on_failed(ctx: ProcessContext, error: str) -> None:
    """Record the failure and release the agent for a new request."""
    reinstatement_id = UUID(ctx.input["reinstatement_id"])
    async with ctx.session() as session:
        request = await ReinstatementRepository(session).get(reinstatement_id)
        if request is None:
            raise ReinstatementRequestNotFoundError(reinstatement_id)
        request.errors = [
            *(request.errors or []),
            {"step": "process", "error": error, "at": ctx.now().isoformat()},
        ]
        await session.flush()
        await reject_request(
            session,
            reinstatement_id,
            ctx.agent_id,
            SYSTEM_ACTOR,
            PROCESS_FAILED_REASON,
            ctx.now(),
            source="failure",
        )
        await session.commit()
