"""Resilience utilities: exponential backoff and the shared retry loop."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from image_orchestrator.errors import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Exponential backoff with additive jitter.

    delay(attempt) = min(base * 2**attempt + uniform(0, jitter), cap)
    """

    base_seconds: float
    """Delay before the first retry."""

    cap_seconds: float
    """Upper bound for any single delay."""

    jitter_seconds: float = 1.0
    """Maximum random jitter added to each delay."""

    def delay(self, attempt: int) -> float:
        """Backoff delay in seconds after the given zero-based attempt."""
        jitter = random.uniform(0, self.jitter_seconds) if self.jitter_seconds > 0 else 0.0
        return min(self.base_seconds * (2**attempt) + jitter, self.cap_seconds)


# 429 responses back off longer than server errors or timeouts.
RATE_LIMIT_BACKOFF = BackoffPolicy(base_seconds=5.0, cap_seconds=30.0, jitter_seconds=1.0)
SERVER_ERROR_BACKOFF = BackoffPolicy(base_seconds=3.0, cap_seconds=20.0, jitter_seconds=1.0)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int,
    delay_for: Callable[[int, BaseException], float],
    should_retry: Callable[[BaseException], bool] = is_retryable,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    first_attempt: int = 0,
    label: str = "operation",
) -> T:
    """
    Run an async operation, retrying retryable failures with backoff.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        max_attempts: Total attempts before giving up
        delay_for: Maps (attempt number, error) to a delay in seconds
        should_retry: Predicate deciding whether an error is retryable
        sleep: Awaitable sleep, injectable for tests
        first_attempt: Offset for attempt numbers passed to ``delay_for`` so
            escalation can continue across several calls
        label: Name used in log messages

    Returns:
        The operation's result

    Raises:
        The last error once attempts are exhausted, or the first
        non-retryable error immediately.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for index in range(max_attempts):
        attempt = first_attempt + index
        try:
            return await operation()
        except Exception as e:
            if not should_retry(e) or index == max_attempts - 1:
                raise
            delay = delay_for(attempt, e)
            logger.warning(
                f"{label} failed ({type(e).__name__}: {e}). "
                f"Retrying in {delay:.1f}s (attempt {index + 1}/{max_attempts})"
            )
            await sleep(delay)

    raise RuntimeError("Unexpected retry loop exit")
