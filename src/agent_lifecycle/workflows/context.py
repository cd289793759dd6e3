"""Execution context handed to process definitions.

A process definition is a plain coroutine that calls ``ctx.step`` for each
side effect and ``ctx.wait_for_signal`` for its single blocking wait. The
definition is re-executed from the top every time the process resumes; steps
that already have a recorded outcome are not run again, and a wait that was
already resolved returns its stored resolution immediately.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from agent_lifecycle.models.domain.process import ProcessKind, StepOutcome
from agent_lifecycle.repositories.process_repository import ProcessRepository
from agent_lifecycle.workflows.retry import RetryExhaustedError, run_with_retry

if TYPE_CHECKING:
    from agent_lifecycle.workflows.runtime import ProcessRuntime

logger = logging.getLogger(__name__)


class ProcessSuspended(Exception):
    """Raised inside a definition to park the process until its wait resolves."""

    def __init__(self, wait_name: str, deadline: datetime) -> None:
        self.wait_name = wait_name
        self.deadline = deadline
        super().__init__(f"Waiting for {wait_name} until {deadline.isoformat()}")


class StepFailedError(Exception):
    """Raised when a required step exhausted its retries."""

    def __init__(self, step: str, error: str) -> None:
        self.step = step
        self.error = error
        super().__init__(f"Required step {step} failed: {error}")


@dataclass(frozen=True)
class StepRecord:
    """Outcome of one step as persisted on the process."""

    name: str
    outcome: StepOutcome
    attempts: int = 0
    error: str | None = None
    result: Any = None
    at: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == StepOutcome.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.outcome == StepOutcome.FAILED

    def error_entry(self) -> dict[str, Any]:
        """Shape stored in a record's error list."""
        return {"step": self.name, "error": self.error, "attempts": self.attempts, "at": self.at}

    def to_json(self) -> dict[str, Any]:
        return {
            "outcome": str(self.outcome),
            "attempts": self.attempts,
            "error": self.error,
            "result": self.result,
            "at": self.at,
        }

    @classmethod
    def from_json(cls, name: str, data: dict[str, Any]) -> "StepRecord":
        return cls(
            name=name,
            outcome=StepOutcome(data["outcome"]),
            attempts=data.get("attempts", 0),
            error=data.get("error"),
            result=data.get("result"),
            at=data.get("at"),
        )


# Called in the same transaction that persists the step outcome
RecordHook = Callable[[AsyncSession, StepRecord], Awaitable[None]]


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes read back from the database as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class ProcessContext:
    """Durable-execution primitives for one run of one process."""

    def __init__(
        self,
        runtime: "ProcessRuntime",
        process_id: UUID,
        kind: ProcessKind,
        subject_id: UUID,
        agent_id: UUID,
        input: dict[str, Any],
        step_results: dict[str, Any],
    ) -> None:
        self.runtime = runtime
        self.process_id = process_id
        self.kind = kind
        self.subject_id = subject_id
        self.agent_id = agent_id
        self.input = input
        self.step_results = dict(step_results or {})
        self.cancel_requested = False
        self.cancelled_by: str | None = None

    @property
    def clients(self):
        return self.runtime.clients

    def now(self) -> datetime:
        return self.runtime.clock()

    def session(self) -> AsyncSession:
        """Open a new session on the runtime's database."""
        return self.runtime.session_factory()

    async def refresh_cancel_flag(self) -> bool:
        """Re-read whether an operator asked this process to stop."""
        async with self.session() as session:
            process = await ProcessRepository(session).get(self.process_id)
            if process is not None and process.cancel_requested:
                self.cancel_requested = True
                self.cancelled_by = process.cancelled_by
        return self.cancel_requested

    async def step(
        self,
        name: str,
        action: Callable[[], Awaitable[Any]],
        record: RecordHook | None = None,
        required: bool = False,
    ) -> StepRecord:
        """Run one side effect under the retry policy and persist its outcome.

        Args:
            name: Step name, unique within the process
            action: Zero-argument coroutine factory performing the side effect
            record: Hook writing the outcome onto the subject record
            required: Run even after cancellation, and fail the process if
                retries are exhausted

        Returns:
            The step's record, replayed if it already ran

        Raises:
            StepFailedError: If a required step failed on every attempt
        """
        if name in self.step_results:
            replayed = StepRecord.from_json(name, self.step_results[name])
            logger.debug("Process %s: step %s replayed (%s)", self.process_id, name, replayed.outcome)
            if required and replayed.failed:
                raise StepFailedError(name, replayed.error or "failed")
            return replayed

        if not required and await self.refresh_cancel_flag():
            step_record = StepRecord(
                name=name, outcome=StepOutcome.SKIPPED, at=self.now().isoformat()
            )
            await self._persist(step_record, record)
            logger.info("Process %s: step %s skipped after cancellation", self.process_id, name)
            return step_record

        try:
            result, attempts = await run_with_retry(
                action, self.runtime.retry_policy, sleep=self.runtime.sleep, name=name
            )
            step_record = StepRecord(
                name=name,
                outcome=StepOutcome.SUCCEEDED,
                attempts=attempts,
                result=result if _is_json_scalar(result) else None,
                at=self.now().isoformat(),
            )
        except RetryExhaustedError as e:
            step_record = StepRecord(
                name=name,
                outcome=StepOutcome.FAILED,
                attempts=e.attempts,
                error=str(e.last_error) or type(e.last_error).__name__,
                at=self.now().isoformat(),
            )
            logger.warning(
                "Process %s: step %s failed after %d attempts: %s",
                self.process_id,
                name,
                e.attempts,
                step_record.error,
            )

        await self._persist(step_record, record)

        if required and step_record.failed:
            raise StepFailedError(name, step_record.error or "failed")
        return step_record

    async def _persist(self, step_record: StepRecord, record: RecordHook | None) -> None:
        results = {**self.step_results, step_record.name: step_record.to_json()}
        async with self.session() as session:
            if record is not None:
                await record(session, step_record)
            await ProcessRepository(session).save_step_results(
                self.process_id, results, self.runtime.lease_deadline()
            )
            await session.commit()
        self.step_results = results

    async def wait_for_signal(self, wait_name: str, timeout: timedelta) -> dict[str, Any]:
        """Block until a signal or the timer resolves the wait.

        The first call persists the deadline. While neither has happened the
        process is parked via ``ProcessSuspended``; once the deadline passes
        the timer resolves the slot, unless a signal already did.

        Args:
            wait_name: Name of the wait, for status reporting
            timeout: How long to wait for a signal

        Returns:
            The resolution: {"source": "signal" | "timer" | "cancel", ...}
        """
        now = self.now()
        async with self.session() as session:
            repo = ProcessRepository(session)
            process = await repo.get(self.process_id)
            if process.resolution is not None:
                return process.resolution

            if process.wait_deadline is None:
                deadline = now + timeout
                await repo.open_wait(self.process_id, wait_name, deadline)
                await session.commit()
                logger.info(
                    "Process %s waiting for %s until %s",
                    self.process_id,
                    wait_name,
                    deadline.isoformat(),
                )
            else:
                deadline = as_utc(process.wait_deadline)

            if now < deadline:
                raise ProcessSuspended(wait_name, deadline)

            won = await repo.resolve_wait(
                self.process_id, {"source": "timer", "fired_at": now.isoformat()}, now
            )
            await session.commit()
            if won:
                logger.info("Process %s: %s timed out", self.process_id, wait_name)

            process = await repo.get(self.process_id)
            return process.resolution


def _is_json_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool, dict, list))
