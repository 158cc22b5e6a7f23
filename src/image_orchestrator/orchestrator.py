"""Fan-out, race and fallback across image providers."""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

import httpx

from image_orchestrator.adapters.base import ImageProvider
from image_orchestrator.adapters.pixabay import PixabayAdapter
from image_orchestrator.adapters.pollinations import PollinationsAdapter
from image_orchestrator.adapters.unsplash import UnsplashAdapter
from image_orchestrator.cache.images import ResultCache
from image_orchestrator.config import Settings, get_settings
from image_orchestrator.errors import (
    AggregateFailure,
    AllProvidersExhausted,
    EmptyImageError,
    RateLimitExceeded,
    TransientUpstreamError,
)
from image_orchestrator.http.client import HttpClient
from image_orchestrator.models import (
    AcquiredImage,
    ImagePayload,
    SpeedClass,
    normalize_word,
)
from image_orchestrator.quota.limiter import FixedWindowLimiter

logger = logging.getLogger(__name__)

DEFAULT_RACE_TIMEOUT_SECONDS = 10.0


class ImageOrchestrator:
    """
    Public entry point for image acquisition.

    Owns the result cache and the provider registry for the lifetime of the
    process. Construct one per process and pass it to whoever needs it.

    Acquisition policy:
    1. Serve from cache when possible.
    2. Skip providers with no remaining quota.
    3. Race every fast provider; the first non-empty image wins. Stop waiting
       at the race deadline; losers keep running and are discarded.
    4. Otherwise try slow providers in order.
    5. Cache and return the first success, or raise AggregateFailure.
    """

    def __init__(
        self,
        providers: Sequence[ImageProvider],
        cache: ResultCache | None = None,
        race_timeout: float = DEFAULT_RACE_TIMEOUT_SECONDS,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            providers: Provider adapters in priority order
            cache: Result cache (a default 7-day cache is created if None)
            race_timeout: Seconds to wait for fast providers before fallback
        """
        if not providers:
            raise ValueError("At least one image provider is required")

        self._providers = list(providers)
        self._cache = cache or ResultCache()
        self._race_timeout = race_timeout
        self._in_flight: dict[str, asyncio.Task[AcquiredImage]] = {}
        self._stragglers: set[asyncio.Task] = set()

    @property
    def providers(self) -> list[ImageProvider]:
        return list(self._providers)

    @property
    def cache(self) -> ResultCache:
        return self._cache

    async def acquire_image(self, word: str) -> AcquiredImage:
        """
        Return a representative image for a word.

        Concurrent calls for the same word share one acquisition.

        Raises:
            ValueError: If the word is blank
            AllProvidersExhausted: If every provider is out of quota
            AggregateFailure: If every attempted provider failed
        """
        key = normalize_word(word)
        if not key:
            raise ValueError("word must not be blank")

        cached = await self._cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for '{key}'")
            return cached

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._acquire_uncached(key))
            self._in_flight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        else:
            logger.debug(f"Joining in-flight acquisition for '{key}'")

        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Mark the error as retrieved even if every waiter went away.
            task.exception()

    async def _acquire_uncached(self, word: str) -> AcquiredImage:
        failures: dict[str, BaseException] = {}

        available: list[ImageProvider] = []
        for provider in self._providers:
            quota = await provider.quota()
            if quota.allowed:
                available.append(provider)
            else:
                failures[provider.name] = RateLimitExceeded(
                    f"{provider.name} quota exhausted until {quota.reset_at.isoformat()}",
                    reset_at=quota.reset_at,
                )

        if not available:
            raise AllProvidersExhausted(
                "All image providers are rate limited: "
                + ", ".join(p.name for p in self._providers)
            )

        fast = [p for p in available if p.speed_class is SpeedClass.FAST]
        slow = [p for p in available if p.speed_class is SpeedClass.SLOW]

        if fast:
            winner = await self._race(word, fast, failures)
            if winner is not None:
                provider, payload = winner
                return await self._complete(word, provider, payload)
            logger.warning(f"No fast provider produced an image for '{word}', falling back")

        for provider in slow:
            try:
                payload = await provider.fetch(word)
            except Exception as e:
                logger.error(f"Error fetching image from {provider.name}: {e}")
                failures[provider.name] = e
                continue
            return await self._complete(word, provider, payload)

        raise AggregateFailure(word, failures)

    async def _race(
        self,
        word: str,
        providers: list[ImageProvider],
        failures: dict[str, BaseException],
    ) -> tuple[ImageProvider, ImagePayload] | None:
        """Dispatch all providers at once; return the first non-empty success."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._race_timeout
        order = {p.name: i for i, p in enumerate(providers)}
        tasks = {asyncio.ensure_future(p.fetch(word)): p for p in providers}
        pending: set[asyncio.Task] = set(tasks)

        try:
            while pending:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                done, pending = await asyncio.wait(
                    pending,
                    timeout=remaining,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                winner: tuple[ImageProvider, ImagePayload] | None = None
                # Settle the whole batch so no failure goes unretrieved.
                for task in sorted(done, key=lambda t: order[tasks[t].name]):
                    provider = tasks[task]
                    if task.cancelled():
                        failures[provider.name] = asyncio.CancelledError()
                        continue
                    error = task.exception()
                    if error is not None:
                        logger.warning(f"Error fetching image from {provider.name}: {error}")
                        failures[provider.name] = error
                        continue
                    payload = task.result()
                    if not payload:
                        failures[provider.name] = EmptyImageError(
                            f"{provider.name} returned an empty image"
                        )
                        continue
                    if winner is None:
                        winner = provider, payload
                if winner is not None:
                    return winner
        finally:
            for task in pending:
                provider = tasks[task]
                failures.setdefault(
                    provider.name,
                    TransientUpstreamError(
                        f"{provider.name} did not answer within the "
                        f"{self._race_timeout:.0f}s race window"
                    ),
                )
                self._stragglers.add(task)
                task.add_done_callback(self._discard_straggler)

        return None

    def _discard_straggler(self, task: asyncio.Task) -> None:
        self._stragglers.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug(f"Discarded late failure from race loser: {error}")
        else:
            logger.debug("Discarded late result from race loser")

    async def _complete(
        self,
        word: str,
        provider: ImageProvider,
        payload: ImagePayload,
    ) -> AcquiredImage:
        image = AcquiredImage(
            word=word,
            image_data=payload.to_data_uri(),
            source_provider=provider.name,
        )
        await self._cache.put(word, image)
        logger.info(f"Acquired image for '{word}' from {provider.name}")
        return image

    async def status(self) -> dict[str, Any]:
        """Provider quotas and queue depth, plus cache statistics."""
        return {
            "providers": [await p.status() for p in self._providers],
            "cache": await self._cache.stats(),
            "in_flight_words": len(self._in_flight),
        }

    async def close(self) -> None:
        """Cancel background work, then release provider HTTP clients."""
        background = [*self._stragglers, *self._in_flight.values()]
        for task in background:
            task.cancel()
        await asyncio.gather(*background, return_exceptions=True)

        for provider in self._providers:
            await provider.close()
        logger.info("Image orchestrator closed")

    async def __aenter__(self) -> "ImageOrchestrator":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


def build_providers(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[ImageProvider]:
    """
    Construct the provider registry from configuration.

    Search providers are only built when their credential is present.
    Pollinations needs no credential and is always built, last.
    """
    search_timeout = httpx.Timeout(
        connect=settings.http_timeout_connect,
        read=settings.http_timeout_read,
        write=10.0,
        pool=10.0,
    )
    generation_timeout = httpx.Timeout(
        connect=settings.http_timeout_connect,
        read=settings.generation_timeout_seconds,
        write=10.0,
        pool=10.0,
    )

    providers: list[ImageProvider] = []

    if settings.unsplash_access_key:
        providers.append(
            UnsplashAdapter(
                api_key=settings.unsplash_access_key,
                limiter=FixedWindowLimiter(
                    limit=settings.unsplash_requests_per_window,
                    window_seconds=settings.unsplash_window_seconds,
                ),
                max_concurrent=settings.unsplash_max_concurrent,
                http_client=HttpClient(timeout=search_timeout, transport=transport),
            )
        )

    if settings.pixabay_api_key:
        providers.append(
            PixabayAdapter(
                api_key=settings.pixabay_api_key,
                limiter=FixedWindowLimiter(
                    limit=settings.pixabay_requests_per_window,
                    window_seconds=settings.pixabay_window_seconds,
                ),
                max_concurrent=settings.pixabay_max_concurrent,
                http_client=HttpClient(timeout=search_timeout, transport=transport),
            )
        )

    providers.append(
        PollinationsAdapter(
            limiter=FixedWindowLimiter(
                limit=settings.pollinations_requests_per_window,
                window_seconds=settings.pollinations_window_seconds,
            ),
            max_concurrent=settings.pollinations_max_concurrent,
            http_client=HttpClient(timeout=generation_timeout, transport=transport),
            attempt_timeout=settings.generation_timeout_seconds,
            attempts_per_endpoint=settings.generation_max_attempts,
        )
    )

    logger.info(f"Image providers initialized: {', '.join(p.name for p in providers)}")
    return providers


def create_orchestrator(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ImageOrchestrator:
    """Build the process-wide orchestrator from settings."""
    settings = settings or get_settings()
    return ImageOrchestrator(
        providers=build_providers(settings, transport=transport),
        cache=ResultCache(
            ttl_seconds=settings.image_cache_ttl_seconds,
            max_entries=settings.image_cache_max_entries,
        ),
        race_timeout=settings.fast_race_timeout_seconds,
    )
