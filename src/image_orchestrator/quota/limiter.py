"""
Fixed-window rate limiting for upstream provider quotas.

Each provider owns one FixedWindowLimiter. The limiter is advisory
bookkeeping: callers check ``remaining()`` before dispatching and call
``consume()`` only after a successful upstream call. Bursts at window
boundaries are accepted.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
import asyncio
import logging
import time

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    """Snapshot of a provider's quota window."""

    remaining: int
    """Remaining requests in the current window."""

    limit: int
    """Maximum requests allowed in the window."""

    reset_at: datetime
    """When the current window resets."""

    @property
    def allowed(self) -> bool:
        """Whether a request may be dispatched now."""
        return self.remaining > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "remaining": self.remaining,
            "limit": self.limit,
            "reset_at": self.reset_at.isoformat(),
        }


class FixedWindowLimiter:
    """
    Fixed-window request counter.

    The window resets lazily: the first query after
    ``window_start + window_seconds`` sets count to 0 and window_start to now.
    ``count <= limit`` is not enforced on consume.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize fixed window limiter.

        Args:
            limit: Maximum requests per window
            window_seconds: Window length in seconds
            clock: Wall-clock source in epoch seconds (injectable for tests)
        """
        if limit < 0:
            raise ValueError("limit must be non-negative")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._count = 0
        self._window_start = clock()
        self._window_end = self._window_start + window_seconds
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return "fixed_window"

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def _roll_window(self, now: float) -> None:
        """Reset the window if it has elapsed (caller must hold lock)."""
        if now >= self._window_end:
            self._count = 0
            self._window_start = now
            self._window_end = now + self._window_seconds

    def _snapshot(self) -> RateLimitResult:
        return RateLimitResult(
            remaining=max(0, self._limit - self._count),
            limit=self._limit,
            reset_at=datetime.fromtimestamp(self._window_end, tz=timezone.utc),
        )

    async def remaining(self) -> RateLimitResult:
        """Current quota, resetting the window first if it has elapsed."""
        async with self._lock:
            self._roll_window(self._clock())
            return self._snapshot()

    async def consume(self, tokens: int = 1) -> RateLimitResult:
        """Record successful upstream calls against the window."""
        async with self._lock:
            self._roll_window(self._clock())
            self._count += tokens
            return self._snapshot()

    async def try_consume(self, tokens: int = 1) -> tuple[bool, RateLimitResult]:
        """
        Check and consume in one step.

        Returns:
            (True, snapshot after consuming) if the window had room,
            otherwise (False, the exhausted snapshot) with nothing consumed
        """
        async with self._lock:
            self._roll_window(self._clock())
            if self._limit - self._count < tokens:
                return False, self._snapshot()
            self._count += tokens
            return True, self._snapshot()

    async def mark_exhausted(self, reset_at: datetime | None = None) -> RateLimitResult:
        """
        Mark the window as used up after an upstream 429.

        Args:
            reset_at: Upstream-reported reset time; defaults to the end of
                the current window

        Returns:
            RateLimitResult after marking
        """
        async with self._lock:
            now = self._clock()
            self._roll_window(now)
            self._count = max(self._count, self._limit)
            if reset_at is not None:
                self._window_end = max(now, reset_at.timestamp())
            logger.warning(
                f"Quota marked exhausted until "
                f"{datetime.fromtimestamp(self._window_end, tz=timezone.utc).isoformat()}"
            )
            return self._snapshot()

    async def reset(self) -> None:
        """Start a fresh window now."""
        async with self._lock:
            now = self._clock()
            self._count = 0
            self._window_start = now
            self._window_end = now + self._window_seconds
