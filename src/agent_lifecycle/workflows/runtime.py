"""Database-backed durable execution runtime.

Process state lives in ``workflow_processes``. A run takes a short lease on
the row, re-executes the process definition (completed steps are replayed
from ``step_results``), and either finishes, fails, or parks on a wait. A
parked process holds no task; it is picked up again when a signal resolves
the wait, when its timer is due, or when the periodic resume pass finds a
process whose lease lapsed.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agent_lifecycle.clients.base import ClientBundle
from agent_lifecycle.config import Settings
from agent_lifecycle.exceptions import ProcessNotFoundError, ProcessStartError
from agent_lifecycle.models.domain.process import ProcessKind, ProcessStatus
from agent_lifecycle.models.orm.base import utcnow
from agent_lifecycle.models.orm.process import WorkflowProcessORM
from agent_lifecycle.repositories.process_repository import ProcessRepository
from agent_lifecycle.repositories.termination_repository import (
    ReinstatementRepository,
    TerminationRepository,
)
from agent_lifecycle.workflows import reinstatement, termination
from agent_lifecycle.workflows.context import ProcessContext, ProcessSuspended, as_utc
from agent_lifecycle.workflows.retry import RetryPolicy, Sleep

logger = logging.getLogger(__name__)


class ProcessRuntime:
    """Starts, resumes, signals and cancels durable processes."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clients: ClientBundle,
        retry_policy: RetryPolicy | None = None,
        reinstatement_timeout: timedelta = timedelta(days=30),
        archive_retention_years: int = 7,
        lease_seconds: int = 300,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], datetime] = utcnow,
        inline: bool = False,
    ) -> None:
        """Initialize runtime.

        Args:
            session_factory: Factory for database sessions
            clients: Collaborator clients used by process steps
            retry_policy: Step retry policy
            reinstatement_timeout: How long a reinstatement waits for a decision
            archive_retention_years: Retention of termination archives
            lease_seconds: How long a run may hold a process before others may take it
            sleep: Awaitable sleep used between retries
            clock: Source of the current UTC time
            inline: Run processes in the caller's task instead of a background task
        """
        self.session_factory = session_factory
        self.clients = clients
        self.retry_policy = retry_policy or RetryPolicy()
        self.reinstatement_timeout = reinstatement_timeout
        self.archive_retention_years = archive_retention_years
        self.lease_seconds = lease_seconds
        self.sleep = sleep
        self.clock = clock
        self.inline = inline
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        clients: ClientBundle,
        settings: Settings,
    ) -> "ProcessRuntime":
        """Build a runtime configured from application settings."""
        return cls(
            session_factory=session_factory,
            clients=clients,
            retry_policy=RetryPolicy.from_settings(settings),
            reinstatement_timeout=timedelta(days=settings.reinstatement_timeout_days),
            archive_retention_years=settings.archive_retention_years,
            lease_seconds=settings.process_lease_seconds,
        )

    def lease_deadline(self) -> datetime:
        return self.clock() + timedelta(seconds=self.lease_seconds)

    async def start(
        self,
        kind: ProcessKind,
        subject_id: UUID,
        agent_id: UUID,
        input: dict[str, Any],
    ) -> UUID | None:
        """Record that a process exists and attach it to its subject.

        The process row and the subject's process link commit together.
        This write is the one step that is not retried or downgraded: if it
        fails the process does not exist and nothing else is attempted.

        Returns:
            The new process ID, or None if the subject already has a process
            or is no longer PENDING

        Raises:
            ProcessStartError: If the process row cannot be written
        """
        try:
            async with self.session_factory() as session:
                process = await ProcessRepository(session).create(
                    kind=kind,
                    subject_id=subject_id,
                    agent_id=agent_id,
                    status=ProcessStatus.RUNNING,
                    input=input,
                    step_results={},
                )
                process_id = process.id
                if not await self._attach(session, kind, subject_id, process_id):
                    await session.rollback()
                    logger.info("%s %s already has a process", kind, subject_id)
                    return None
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Could not start %s process for %s: %s", kind, subject_id, e)
            raise ProcessStartError(kind, subject_id) from e

        logger.info("Started %s process %s for %s", kind, process_id, subject_id)
        return process_id

    async def _attach(
        self, session: AsyncSession, kind: ProcessKind, subject_id: UUID, process_id: UUID
    ) -> bool:
        if kind == ProcessKind.TERMINATION:
            return await TerminationRepository(session).attach_process(subject_id, process_id)
        if kind == ProcessKind.REINSTATEMENT:
            return await ReinstatementRepository(session).attach_process(subject_id, process_id)
        raise ValueError(f"Unknown process kind: {kind}")

    async def adopt_unstarted(self, now: datetime | None = None) -> int:
        """Start processes for records whose request died before starting one.

        Only records older than one lease are considered, so a request that
        is still between its commit and its start is left alone.

        Returns:
            Number of processes started and launched
        """
        now = now or self.clock()
        cutoff = now - timedelta(seconds=self.lease_seconds)
        async with self.session_factory() as session:
            terminations = await TerminationRepository(session).find_unattached(cutoff)
            requests = await ReinstatementRepository(session).find_unattached(cutoff)

        pending: list[tuple[ProcessKind, UUID, UUID, dict[str, Any]]] = [
            (
                ProcessKind.TERMINATION,
                record.id,
                record.agent_id,
                termination.termination_input(
                    record.id,
                    record.effective_date,
                    record.termination_reason,
                    record.termination_reason_code,
                    record.terminated_by,
                ),
            )
            for record in terminations
        ]
        pending.extend(
            (
                ProcessKind.REINSTATEMENT,
                request.id,
                request.agent_id,
                reinstatement.reinstatement_input(
                    request.id, request.reinstatement_reason, request.requested_by
                ),
            )
            for request in requests
        )

        adopted = 0
        for kind, subject_id, agent_id, process_input in pending:
            try:
                process_id = await self.start(kind, subject_id, agent_id, process_input)
            except ProcessStartError as e:
                logger.error("Could not adopt %s %s: %s", kind, subject_id, e.message)
                continue
            if process_id is None:
                continue
            logger.warning("Adopted %s %s that had no process", kind, subject_id)
            await self.launch(process_id)
            adopted += 1
        return adopted

    async def launch(self, process_id: UUID) -> None:
        """Execute a process now, inline or as a background task."""
        if self.inline:
            await self.run(process_id)
            return
        task = asyncio.create_task(self._run_logged(process_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_logged(self, process_id: UUID) -> None:
        try:
            await self.run(process_id)
        except Exception as e:
            logger.error("Process %s run crashed: %s", process_id, e, exc_info=True)

    async def run(self, process_id: UUID) -> ProcessStatus | None:
        """Execute a process until it finishes or parks.

        Returns:
            Status after this run, or None if another run holds the lease
        """
        while True:
            status = await self._run_once(process_id)
            if status != ProcessStatus.WAITING:
                return status
            # A signal that arrived while this run still held the lease could
            # not start its own run; pick it up here.
            async with self.session_factory() as session:
                process = await ProcessRepository(session).get(process_id)
                if process.resolution is None and not process.cancel_requested:
                    return status

    async def _run_once(self, process_id: UUID) -> ProcessStatus | None:
        now = self.clock()
        async with self.session_factory() as session:
            repo = ProcessRepository(session)
            if not await repo.acquire_lease(process_id, now, self.lease_deadline()):
                await session.rollback()
                logger.debug("Process %s is not runnable or is leased elsewhere", process_id)
                return None
            await repo.set_status(process_id, ProcessStatus.RUNNING)
            await session.commit()
            process = await repo.get(process_id)
            ctx = ProcessContext(
                runtime=self,
                process_id=process.id,
                kind=ProcessKind(process.kind),
                subject_id=process.subject_id,
                agent_id=process.agent_id,
                input=dict(process.input),
                step_results=dict(process.step_results or {}),
            )

        try:
            await self._dispatch(ctx)
        except ProcessSuspended as suspended:
            await self._finish(process_id, ProcessStatus.WAITING)
            logger.info("Process %s parked on %s", process_id, suspended.wait_name)
            return ProcessStatus.WAITING
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.error("Process %s failed: %s", process_id, error, exc_info=True)
            await self._on_failed(ctx, error)
            await self._finish(process_id, ProcessStatus.FAILED, last_error=error)
            return ProcessStatus.FAILED

        status = ProcessStatus.CANCELLED if ctx.cancel_requested else ProcessStatus.COMPLETED
        await self._finish(process_id, status)
        logger.info("Process %s finished: %s", process_id, status)
        return status

    async def _dispatch(self, ctx: ProcessContext) -> None:
        if ctx.kind == ProcessKind.TERMINATION:
            await termination.run_termination(ctx)
        elif ctx.kind == ProcessKind.REINSTATEMENT:
            await reinstatement.run_reinstatement(ctx)
        else:
            raise ValueError(f"Unknown process kind: {ctx.kind}")

    async def _on_failed(self, ctx: ProcessContext, error: str) -> None:
        try:
            if ctx.kind == ProcessKind.TERMINATION:
                await termination.on_failed(ctx, error)
            elif ctx.kind == ProcessKind.REINSTATEMENT:
                await reinstatement.on_failed(ctx, error)
        except SQLAlchemyError as e:
            logger.error("Could not record failure of process %s: %s", ctx.process_id, e)

    async def _finish(
        self, process_id: UUID, status: ProcessStatus, last_error: str | None = None
    ) -> None:
        async with self.session_factory() as session:
            repo = ProcessRepository(session)
            completed_at = None if status == ProcessStatus.WAITING else self.clock()
            await repo.set_status(
                process_id, status, last_error=last_error, completed_at=completed_at
            )
            await repo.release_lease(process_id)
            await session.commit()

    async def signal(self, process_id: UUID, payload: dict[str, Any]) -> bool:
        """Deliver a signal to a process's wait.

        A signal at or after the wait deadline is refused even when the timer
        has not fired yet; the process is run so the timer resolves the wait.

        Returns:
            True if the signal resolved the wait, False if a timer, another
            signal or cancellation got there first
        """
        now = self.clock()
        async with self.session_factory() as session:
            repo = ProcessRepository(session)
            won = await repo.resolve_wait(
                process_id, {"source": "signal", **payload}, now, before_deadline=True
            )
            await session.commit()
            process = None if won else await repo.get(process_id)

        if not won:
            logger.info("Signal to process %s ignored: wait resolved or past its deadline", process_id)
            if (
                process is not None
                and process.resolution is None
                and process.wait_deadline is not None
                and as_utc(process.wait_deadline) <= now
            ):
                await self.launch(process_id)
            return False
        await self.launch(process_id)
        return True

    async def cancel(self, process_id: UUID, cancelled_by: str) -> bool:
        """Ask a live process to stop.

        Steps not yet run are skipped; a pending wait resolves as cancelled.

        Returns:
            True if the process was live and is now flagged
        """
        now = self.clock()
        async with self.session_factory() as session:
            repo = ProcessRepository(session)
            flagged = await repo.request_cancel(process_id, cancelled_by)
            if flagged:
                await repo.resolve_wait(
                    process_id, {"source": "cancel", "cancelled_by": cancelled_by}, now
                )
            await session.commit()

        if flagged:
            logger.info("Process %s cancellation requested by %s", process_id, cancelled_by)
            await self.launch(process_id)
        return flagged

    async def get(self, process_id: UUID) -> WorkflowProcessORM:
        """Get a process row.

        Raises:
            ProcessNotFoundError: If no such process exists
        """
        async with self.session_factory() as session:
            process = await ProcessRepository(session).get(process_id)
        if process is None:
            raise ProcessNotFoundError(process_id)
        return process

    async def fire_due_timers(self, now: datetime | None = None) -> int:
        """Run every waiting process whose deadline has passed.

        Returns:
            Number of processes launched
        """
        now = now or self.clock()
        async with self.session_factory() as session:
            due = await ProcessRepository(session).find_due_timers(now)
        for process_id in due:
            await self.launch(process_id)
        if due:
            logger.info("Fired %d due process timers", len(due))
        return len(due)

    async def resume_stalled(self, now: datetime | None = None) -> int:
        """Run processes that should be executing but nobody is.

        Also starts processes for records left without one.

        Returns:
            Number of processes launched
        """
        now = now or self.clock()
        async with self.session_factory() as session:
            stalled = await ProcessRepository(session).find_resumable(now)
        for process_id in stalled:
            await self.launch(process_id)
        if stalled:
            logger.info("Resumed %d stalled processes", len(stalled))
        return len(stalled) + await self.adopt_unstarted(now)

    async def tick(self) -> dict[str, int]:
        """One maintenance pass: due timers, then stalled processes."""
        now = self.clock()
        return {
            "timers_fired": await self.fire_due_timers(now),
            "resumed": await self.resume_stalled(now),
        }

    async def drain(self) -> None:
        """Wait for background runs started by this runtime."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


_runtime: ProcessRuntime | None = None


def set_runtime(runtime: ProcessRuntime | None) -> None:
    """Install the process runtime used by the application."""
    global _runtime
    _runtime = runtime


def get_runtime() -> ProcessRuntime:
    """Get the installed process runtime."""
    if _runtime is None:
        raise RuntimeError("Process runtime is not initialized")
    return _runtime

