"""Agent profile repository."""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select, update

from agent_lifecycle.models.domain.agent import AgentStatus
from agent_lifecycle.models.orm.agent import AgentProfileORM
from agent_lifecycle.repositories.base import BaseRepository


class AgentRepository(BaseRepository[AgentProfileORM]):
    """Repository for agent status transitions.

    Status flips are conditional on the current status so that two callers
    racing on the same agent cannot both succeed.
    """

    model = AgentProfileORM

    async def get_active(self, agent_id: UUID) -> AgentProfileORM | None:
        """Get an agent that has not been soft-deleted."""
        result = await self.session.execute(
            select(AgentProfileORM)
            .where(AgentProfileORM.id == agent_id, AgentProfileORM.deleted_at.is_(None))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def mark_terminated(
        self,
        agent_id: UUID,
        effective_date: date,
        reason: str,
        reason_code: str,
        terminated_by: str,
        now: datetime,
    ) -> bool:
        """Flip an agent to TERMINATED and stop commission.

        Returns:
            True if the agent was flipped, False if it was already terminated
        """
        result = await self.session.execute(
            update(AgentProfileORM)
            .where(
                AgentProfileORM.id == agent_id,
                AgentProfileORM.status != AgentStatus.TERMINATED,
            )
            .values(
                status=AgentStatus.TERMINATED,
                status_date=now,
                status_reason=reason,
                commission_enabled=False,
                termination_date=effective_date,
                termination_reason=reason,
                termination_reason_code=reason_code,
                terminated_by=terminated_by,
                version=AgentProfileORM.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def mark_reinstated(self, agent_id: UUID, reinstated_by: str, now: datetime) -> bool:
        """Return a TERMINATED agent to ACTIVE and clear termination fields.

        Returns:
            True if the agent was reinstated, False if it was not terminated
        """
        result = await self.session.execute(
            update(AgentProfileORM)
            .where(
                AgentProfileORM.id == agent_id,
                AgentProfileORM.status == AgentStatus.TERMINATED,
            )
            .values(
                status=AgentStatus.ACTIVE,
                status_date=now,
                status_reason="Reinstated",
                commission_enabled=True,
                termination_date=None,
                termination_reason=None,
                termination_reason_code=None,
                terminated_by=None,
                reinstated_at=now,
                reinstated_by=reinstated_by,
                version=AgentProfileORM.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def mark_deactivated(self, agent_id: UUID, reason: str, now: datetime) -> bool:
        """Move an ACTIVE agent to DEACTIVATED.

        Returns:
            True if the agent was deactivated
        """
        result = await self.session.execute(
            update(AgentProfileORM)
            .where(
                AgentProfileORM.id == agent_id,
                AgentProfileORM.status == AgentStatus.ACTIVE,
            )
            .values(
                status=AgentStatus.DEACTIVATED,
                status_date=now,
                status_reason=reason,
                version=AgentProfileORM.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
