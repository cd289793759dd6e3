"""Termination record and reinstatement request repositories."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update

from agent_lifecycle.models.domain.agent import ReinstatementStatus, TerminationWorkflowStatus
from agent_lifecycle.models.orm.termination import ReinstatementRequestORM, TerminationRecordORM
from agent_lifecycle.repositories.base import BaseRepository


class TerminationRepository(BaseRepository[TerminationRecordORM]):
    """Repository for termination records."""

    model = TerminationRecordORM

    async def get_latest_for_agent(self, agent_id: UUID) -> TerminationRecordORM | None:
        """Get the most recent termination record for an agent."""
        result = await self.session.execute(
            select(TerminationRecordORM)
            .where(TerminationRecordORM.agent_id == agent_id)
            .order_by(TerminationRecordORM.termination_date.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_unattached(
        self, terminated_before: datetime, limit: int = 100
    ) -> list[TerminationRecordORM]:
        """Find PENDING records that never got a process attached."""
        result = await self.session.execute(
            select(TerminationRecordORM)
            .where(
                TerminationRecordORM.workflow_status == TerminationWorkflowStatus.PENDING,
                TerminationRecordORM.process_id.is_(None),
                TerminationRecordORM.termination_date <= terminated_before,
            )
            .order_by(TerminationRecordORM.termination_date.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def attach_process(self, termination_id: UUID, process_id: UUID) -> bool:
        """Link a process to a PENDING record that has none yet.

        Returns:
            True if this call attached the process
        """
        result = await self.session.execute(
            update(TerminationRecordORM)
            .where(
                TerminationRecordORM.id == termination_id,
                TerminationRecordORM.workflow_status == TerminationWorkflowStatus.PENDING,
                TerminationRecordORM.process_id.is_(None),
            )
            .values(process_id=process_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class ReinstatementRepository(BaseRepository[ReinstatementRequestORM]):
    """Repository for reinstatement requests."""

    model = ReinstatementRequestORM

    async def get_pending_for_agent(self, agent_id: UUID) -> ReinstatementRequestORM | None:
        """Get the open request for an agent, if any."""
        result = await self.session.execute(
            select(ReinstatementRequestORM).where(
                ReinstatementRequestORM.agent_id == agent_id,
                ReinstatementRequestORM.status == ReinstatementStatus.PENDING,
            )
        )
        return result.scalars().first()

    async def find_unattached(
        self, requested_before: datetime, limit: int = 100
    ) -> list[ReinstatementRequestORM]:
        """Find PENDING requests that never got a process attached."""
        result = await self.session.execute(
            select(ReinstatementRequestORM)
            .where(
                ReinstatementRequestORM.status == ReinstatementStatus.PENDING,
                ReinstatementRequestORM.process_id.is_(None),
                ReinstatementRequestORM.request_date <= requested_before,
            )
            .order_by(ReinstatementRequestORM.request_date.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def attach_process(self, reinstatement_id: UUID, process_id: UUID) -> bool:
        """Link a process to a PENDING request that has none yet.

        Returns:
            True if this call attached the process
        """
        result = await self.session.execute(
            update(ReinstatementRequestORM)
            .where(
                ReinstatementRequestORM.id == reinstatement_id,
                ReinstatementRequestORM.status == ReinstatementStatus.PENDING,
                ReinstatementRequestORM.process_id.is_(None),
            )
            .values(process_id=process_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def mark_approved(
        self,
        reinstatement_id: UUID,
        approved_by: str,
        now: datetime,
        conditions: str | None,
        probation_period_days: int | None,
    ) -> bool:
        """Move a PENDING request to APPROVED.

        Returns:
            True if this call made the terminal transition
        """
        result = await self.session.execute(
            update(ReinstatementRequestORM)
            .where(
                ReinstatementRequestORM.id == reinstatement_id,
                ReinstatementRequestORM.status == ReinstatementStatus.PENDING,
            )
            .values(
                status=ReinstatementStatus.APPROVED,
                approved_by=approved_by,
                approved_at=now,
                reinstatement_conditions=conditions,
                probation_period_days=probation_period_days,
                version=ReinstatementRequestORM.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def mark_rejected(
        self,
        reinstatement_id: UUID,
        rejected_by: str,
        reason: str,
        now: datetime,
    ) -> bool:
        """Move a PENDING request to REJECTED.

        Returns:
            True if this call made the terminal transition
        """
        result = await self.session.execute(
            update(ReinstatementRequestORM)
            .where(
                ReinstatementRequestORM.id == reinstatement_id,
                ReinstatementRequestORM.status == ReinstatementStatus.PENDING,
            )
            .values(
                status=ReinstatementStatus.REJECTED,
                rejected_by=rejected_by,
                rejected_at=now,
                rejection_reason=reason,
                version=ReinstatementRequestORM.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

