"""Tests for the step retry policy."""

import pytest

from agent_lifecycle.workflows.retry import RetryExhaustedError, RetryPolicy, run_with_retry


class TestRetryPolicy:
    """Tests for backoff delays."""

    def test_default_delays(self) -> None:
        policy = RetryPolicy()

        assert [policy.delay(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]

    def test_delay_capped_at_maximum_interval(self) -> None:
        policy = RetryPolicy(initial_interval=10.0, maximum_interval=30.0)

        assert policy.delay(3) == 30.0
        assert policy.delay(10) == 30.0


class TestRunWithRetry:
    """Tests for retrying a step."""

    async def test_succeeds_after_transient_failures(self) -> None:
        attempts = 0
        delays: list[float] = []

        async def flaky() -> str:
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise ConnectionError("temporarily unavailable")
            return "ok"

        async def sleep(seconds: float) -> None:
            delays.append(seconds)

        result, used = await run_with_retry(flaky, RetryPolicy(), sleep=sleep)

        assert result == "ok"
        assert used == 3
        assert delays == [1.0, 2.0]

    async def test_exhaustion_reports_attempts_and_last_error(self) -> None:
        async def broken() -> None:
            raise ValueError("bad gateway")

        async def sleep(seconds: float) -> None:
            return None

        with pytest.raises(RetryExhaustedError) as exc_info:
            await run_with_retry(broken, RetryPolicy(maximum_attempts=4), sleep=sleep)

        assert exc_info.value.attempts == 4
        assert str(exc_info.value.last_error) == "bad gateway"
