"""Workflow process repository."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import and_, or_, select, update

from agent_lifecycle.models.domain.process import TERMINAL_PROCESS_STATUSES, ProcessStatus
from agent_lifecycle.models.orm.process import WorkflowProcessORM
from agent_lifecycle.repositories.base import BaseRepository

_LIVE_STATUSES = [ProcessStatus.RUNNING, ProcessStatus.WAITING]


class ProcessRepository(BaseRepository[WorkflowProcessORM]):
    """Repository for durable process state.

    Every write that two actors may race on (lease, wait resolution, cancel)
    is a conditional UPDATE returning whether this caller won.
    """

    model = WorkflowProcessORM

    def _lease_free(self, now: datetime):
        return or_(
            WorkflowProcessORM.lease_expires_at.is_(None),
            WorkflowProcessORM.lease_expires_at < now,
        )

    async def _update(self, process_id: UUID, *conditions: Any, **values: Any) -> bool:
        result = await self.session.execute(
            update(WorkflowProcessORM)
            .where(WorkflowProcessORM.id == process_id, *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def acquire_lease(self, process_id: UUID, now: datetime, lease_until: datetime) -> bool:
        """Claim the right to execute a live process.

        Returns:
            True if no other executor holds an unexpired lease
        """
        return await self._update(
            process_id,
            WorkflowProcessORM.status.in_(_LIVE_STATUSES),
            self._lease_free(now),
            lease_expires_at=lease_until,
        )

    async def release_lease(self, process_id: UUID) -> None:
        """Give up the execution lease."""
        await self._update(process_id, lease_expires_at=None)

    async def save_step_results(
        self, process_id: UUID, step_results: dict[str, Any], lease_until: datetime
    ) -> None:
        """Persist step outcomes and extend the lease."""
        await self._update(process_id, step_results=step_results, lease_expires_at=lease_until)

    async def set_status(
        self,
        process_id: UUID,
        status: ProcessStatus,
        last_error: str | None = None,
        completed_at: datetime | None = None,
    ) -> None:
        """Set the execution status."""
        values: dict[str, Any] = {"status": status}
        if last_error is not None:
            values["last_error"] = last_error
        if completed_at is not None:
            values["completed_at"] = completed_at
        await self._update(process_id, **values)

    async def open_wait(self, process_id: UUID, wait_name: str, deadline: datetime) -> bool:
        """Persist the wait deadline the first time the wait is reached.

        Returns:
            True if the deadline was written by this call
        """
        return await self._update(
            process_id,
            WorkflowProcessORM.wait_deadline.is_(None),
            wait_name=wait_name,
            wait_deadline=deadline,
        )

    async def resolve_wait(
        self,
        process_id: UUID,
        resolution: dict[str, Any],
        now: datetime,
        before_deadline: bool = False,
    ) -> bool:
        """Resolve the wait slot unless something already resolved it.

        Args:
            process_id: Process whose wait to resolve
            resolution: What resolved the wait
            now: Resolution time
            before_deadline: Refuse once a persisted deadline has been reached

        Returns:
            True if this call resolved the wait
        """
        conditions = [
            WorkflowProcessORM.resolution.is_(None),
            WorkflowProcessORM.status.notin_(list(TERMINAL_PROCESS_STATUSES)),
        ]
        if before_deadline:
            conditions.append(
                or_(
                    WorkflowProcessORM.wait_deadline.is_(None),
                    WorkflowProcessORM.wait_deadline > now,
                )
            )
        return await self._update(process_id, *conditions, resolution=resolution, resolved_at=now)

    async def request_cancel(self, process_id: UUID, cancelled_by: str) -> bool:
        """Flag a live process for cancellation.

        Returns:
            True if the process was live and is now flagged
        """
        return await self._update(
            process_id,
            WorkflowProcessORM.status.in_(_LIVE_STATUSES),
            WorkflowProcessORM.cancel_requested.is_(False),
            cancel_requested=True,
            cancelled_by=cancelled_by,
        )

    async def find_due_timers(self, now: datetime, limit: int = 100) -> list[UUID]:
        """Find waiting processes whose deadline has passed unresolved."""
        result = await self.session.execute(
            select(WorkflowProcessORM.id)
            .where(
                WorkflowProcessORM.status == ProcessStatus.WAITING,
                WorkflowProcessORM.resolution.is_(None),
                WorkflowProcessORM.wait_deadline <= now,
            )
            .order_by(WorkflowProcessORM.wait_deadline.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def find_resumable(self, now: datetime, limit: int = 100) -> list[UUID]:
        """Find processes that should run but nobody is running.

        That is RUNNING processes with a free lease (crashed or never
        launched) and WAITING processes whose wait is resolved or cancelled.
        """
        result = await self.session.execute(
            select(WorkflowProcessORM.id)
            .where(
                self._lease_free(now),
                or_(
                    WorkflowProcessORM.status == ProcessStatus.RUNNING,
                    and_(
                        WorkflowProcessORM.status == ProcessStatus.WAITING,
                        or_(
                            WorkflowProcessORM.resolution.is_not(None),
                            WorkflowProcessORM.cancel_requested.is_(True),
                        ),
                    ),
                ),
            )
            .order_by(WorkflowProcessORM.created_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())
