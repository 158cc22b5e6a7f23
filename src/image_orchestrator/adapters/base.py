"""Abstract base class for upstream image providers."""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from image_orchestrator.errors import EmptyImageError, RateLimitExceeded
from image_orchestrator.http.client import HttpClient
from image_orchestrator.models import ImagePayload, ProviderHandle, SpeedClass
from image_orchestrator.quota.limiter import FixedWindowLimiter, RateLimitResult
from image_orchestrator.quota.queue import BoundedWorkQueue

logger = logging.getLogger(__name__)


class ImageProvider(ABC):
    """
    Abstract base class for image providers.

    Each provider owns a FixedWindowLimiter and a BoundedWorkQueue. Calls to
    ``fetch`` are admitted through the queue, re-checked against the quota at
    dispatch time, and counted against the quota only when they succeed.
    """

    def __init__(
        self,
        limiter: FixedWindowLimiter,
        max_concurrent: int,
        http_client: HttpClient | None = None,
    ) -> None:
        """
        Initialize the provider.

        Args:
            limiter: Quota window for this provider
            max_concurrent: Maximum simultaneous upstream calls
            http_client: HTTP client (a default one is created if None)
        """
        self._limiter = limiter
        self._http = http_client or HttpClient()
        self._queue: BoundedWorkQueue[ImagePayload] = BoundedWorkQueue(
            self._fetch_admitted,
            max_concurrent=max_concurrent,
            name=self.name,
        )
        self._handle = ProviderHandle(
            name=self.name,
            speed_class=self.speed_class,
            quota=self.quota,
        )

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Unique identifier for this provider.

        Returns:
            Provider name (e.g., 'unsplash', 'pixabay')
        """
        ...

    @property
    @abstractmethod
    def speed_class(self) -> SpeedClass:
        """Whether this provider is raced (fast) or used as fallback (slow)."""
        ...

    @abstractmethod
    async def fetch_image(self, word: str) -> ImagePayload:
        """
        Fetch an image for a word from the upstream.

        Called only after admission by the work queue.

        Args:
            word: Normalized word

        Returns:
            Non-empty image payload

        Raises:
            ImageAcquisitionError: On any provider failure
        """
        ...

    @property
    def handle(self) -> ProviderHandle:
        return self._handle

    @property
    def limiter(self) -> FixedWindowLimiter:
        return self._limiter

    @property
    def queue(self) -> BoundedWorkQueue[ImagePayload]:
        return self._queue

    async def quota(self) -> RateLimitResult:
        """Remaining requests and reset time for this provider."""
        return await self._limiter.remaining()

    async def fetch(self, word: str) -> ImagePayload:
        """Submit a request through the provider's work queue."""
        return await self._queue.submit(word)

    async def _fetch_admitted(self, word: str) -> ImagePayload:
        quota = await self._limiter.remaining()
        if not quota.allowed:
            raise RateLimitExceeded(
                f"{self.name} rate limit exceeded. Resets at {quota.reset_at.isoformat()}",
                reset_at=quota.reset_at,
            )

        payload = await self.fetch_image(word)
        if not payload:
            raise EmptyImageError(f"{self.name} returned an empty image")

        await self._limiter.consume()
        return payload

    async def download(self, url: str, **kwargs: Any) -> ImagePayload:
        """Download an image asset as raw bytes."""
        response = await self._http.get(url, **kwargs)
        return payload_from_response(response)

    async def status(self) -> dict[str, Any]:
        handle = self._handle
        quota = await handle.quota()
        return {
            "name": handle.name,
            "speed_class": handle.speed_class.value,
            "rate_limit": quota.to_dict(),
            "in_flight": self._queue.in_flight,
            "backlog": self._queue.backlog,
            "max_concurrent": self._queue.max_concurrent,
        }

    async def close(self) -> None:
        await self._queue.close()
        await self._http.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name}, {self.speed_class.value})"


def payload_from_response(
    response: httpx.Response,
    default_type: str = "image/jpeg",
) -> ImagePayload:
    """Build an ImagePayload from an HTTP response body."""
    content_type = response.headers.get("Content-Type", default_type).split(";")[0].strip()
    if not content_type.startswith("image/"):
        content_type = default_type
    return ImagePayload(content=response.content, content_type=content_type)
