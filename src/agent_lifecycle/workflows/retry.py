"""Step retry policy."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from agent_lifecycle.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff shared by every side-effecting step."""

    initial_interval: float = 1.0
    backoff_coefficient: float = 2.0
    maximum_interval: float = 30.0
    maximum_attempts: int = 3

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        """Build the policy from application settings."""
        return cls(
            initial_interval=settings.step_retry_initial_interval,
            backoff_coefficient=settings.step_retry_backoff_coefficient,
            maximum_interval=settings.step_retry_maximum_interval,
            maximum_attempts=settings.step_retry_maximum_attempts,
        )

    def delay(self, attempt: int) -> float:
        """Seconds to wait after the given failed attempt (1-based)."""
        raw = self.initial_interval * self.backoff_coefficient ** (attempt - 1)
        return min(raw, self.maximum_interval)


class RetryExhaustedError(Exception):
    """Raised when a step failed on every attempt."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Failed after {attempts} attempts: {last_error}")


async def run_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Sleep = asyncio.sleep,
    name: str = "step",
) -> tuple[T, int]:
    """Call ``fn`` until it succeeds or the policy runs out of attempts.

    Args:
        fn: Zero-argument coroutine factory
        policy: Retry policy
        sleep: Awaitable sleep, replaceable in tests
        name: Step name for logging

    Returns:
        Tuple of (result, attempts used)

    Raises:
        RetryExhaustedError: If every attempt failed
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await fn(), attempt
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if attempt >= policy.maximum_attempts:
                raise RetryExhaustedError(attempt, e) from e
            delay = policy.delay(attempt)
            logger.warning(
                "Step %s attempt %d/%d failed, retrying in %.1fs: %s",
                name,
                attempt,
                policy.maximum_attempts,
                delay,
                e,
            )
            await sleep(delay)
