"""Per-client request throttling for the HTTP API."""

import logging
from collections import OrderedDict

from fastapi import Request

from image_orchestrator.quota.limiter import FixedWindowLimiter, RateLimitResult

logger = logging.getLogger(__name__)


def client_identifier(request: Request) -> str:
    """Client IP (first X-Forwarded-For hop) plus user agent."""
    forwarded = request.headers.get("x-forwarded-for")
    real_ip = request.headers.get("x-real-ip")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    elif real_ip:
        ip = real_ip
    else:
        ip = request.client.host if request.client else "unknown"
    user_agent = request.headers.get("user-agent", "unknown")
    return f"{ip}-{user_agent}"


class ClientThrottle:
    """
    One fixed-window limiter per client.

    Tracks at most ``max_clients`` clients; when full, the least recently
    seen half is dropped.
    """

    def __init__(
        self,
        requests_per_window: int = 10,
        window_seconds: float = 60,
        max_clients: int = 1000,
    ) -> None:
        self._requests_per_window = requests_per_window
        self._window_seconds = window_seconds
        self._max_clients = max_clients
        self._limiters: OrderedDict[str, FixedWindowLimiter] = OrderedDict()

    def _limiter_for(self, client_id: str) -> FixedWindowLimiter:
        limiter = self._limiters.get(client_id)
        if limiter is None:
            if len(self._limiters) >= self._max_clients:
                for _ in range(self._max_clients // 2 or 1):
                    self._limiters.popitem(last=False)
                logger.debug("Pruned client throttle table")
            limiter = FixedWindowLimiter(
                limit=self._requests_per_window,
                window_seconds=self._window_seconds,
            )
            self._limiters[client_id] = limiter
        else:
            self._limiters.move_to_end(client_id)
        return limiter

    async def hit(self, client_id: str) -> RateLimitResult | None:
        """
        Count one request for a client.

        Returns:
            None if allowed, otherwise the exhausted quota snapshot
        """
        allowed, quota = await self._limiter_for(client_id).try_consume()
        return None if allowed else quota

    def __len__(self) -> int:
        return len(self._limiters)
