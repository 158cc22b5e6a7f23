"""Tests for backoff policies and the shared retry loop."""

import pytest

from image_orchestrator.errors import (
    ConfigurationError,
    RateLimitExceeded,
    TransientUpstreamError,
    UpstreamError,
)
from image_orchestrator.resilience import (
    RATE_LIMIT_BACKOFF,
    SERVER_ERROR_BACKOFF,
    BackoffPolicy,
    retry_with_backoff,
)


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class TestBackoffPolicy:
    """Tests for BackoffPolicy."""

    def test_exponential_without_jitter(self) -> None:
        policy = BackoffPolicy(base_seconds=1.0, cap_seconds=100.0, jitter_seconds=0)
        assert [policy.delay(a) for a in range(5)] == [1.0, 2.0, 4.0, 8.0, 16.0]

    def test_capped(self) -> None:
        policy = BackoffPolicy(base_seconds=3.0, cap_seconds=20.0, jitter_seconds=0)
        assert policy.delay(10) == 20.0

    def test_jitter_bounds(self) -> None:
        policy = BackoffPolicy(base_seconds=2.0, cap_seconds=100.0, jitter_seconds=1.0)
        for _ in range(50):
            assert 4.0 <= policy.delay(1) <= 5.0

    def test_rate_limit_backs_off_longer(self) -> None:
        assert RATE_LIMIT_BACKOFF.base_seconds > SERVER_ERROR_BACKOFF.base_seconds
        assert RATE_LIMIT_BACKOFF.cap_seconds > SERVER_ERROR_BACKOFF.cap_seconds


class TestRetryWithBackoff:
    """Tests for retry_with_backoff."""

    @pytest.mark.asyncio
    async def test_success_first_try(self) -> None:
        sleep = SleepRecorder()
        calls = 0

        async def operation() -> str:
            nonlocal calls
            calls += 1
            return "ok"

        result = await retry_with_backoff(
            operation, max_attempts=3, delay_for=lambda a, e: 1.0, sleep=sleep
        )
        assert result == "ok"
        assert calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_retries_transient_then_succeeds(self) -> None:
        sleep = SleepRecorder()
        outcomes = [TransientUpstreamError("503"), RateLimitExceeded(), "ok"]

        async def operation() -> str:
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        result = await retry_with_backoff(
            operation,
            max_attempts=3,
            delay_for=lambda attempt, error: float(attempt + 1),
            sleep=sleep,
        )
        assert result == "ok"
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_raises_last_error_when_exhausted(self) -> None:
        sleep = SleepRecorder()
        calls = 0

        async def operation() -> str:
            nonlocal calls
            calls += 1
            raise TransientUpstreamError(f"fail {calls}")

        with pytest.raises(TransientUpstreamError, match="fail 3"):
            await retry_with_backoff(
                operation, max_attempts=3, delay_for=lambda a, e: 0.5, sleep=sleep
            )
        assert calls == 3
        assert sleep.delays == [0.5, 0.5]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [ConfigurationError("no key"), UpstreamError("HTTP 404", status_code=404)],
    )
    async def test_non_retryable_raises_immediately(self, error: Exception) -> None:
        sleep = SleepRecorder()
        calls = 0

        async def operation() -> str:
            nonlocal calls
            calls += 1
            raise error

        with pytest.raises(type(error)):
            await retry_with_backoff(
                operation, max_attempts=5, delay_for=lambda a, e: 1.0, sleep=sleep
            )
        assert calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_first_attempt_offsets_escalation(self) -> None:
        sleep = SleepRecorder()
        seen: list[int] = []

        async def operation() -> str:
            raise TransientUpstreamError("down")

        def delay_for(attempt: int, error: BaseException) -> float:
            seen.append(attempt)
            return 0.0

        with pytest.raises(TransientUpstreamError):
            await retry_with_backoff(
                operation, max_attempts=3, delay_for=delay_for, sleep=sleep, first_attempt=6
            )
        assert seen == [6, 7]

    @pytest.mark.asyncio
    async def test_invalid_attempts(self) -> None:
        async def operation() -> str:
            return "never"

        with pytest.raises(ValueError):
            await retry_with_backoff(operation, max_attempts=0, delay_for=lambda a, e: 0)
