"""Word-keyed cache of acquired images."""

import logging
from typing import Any

from image_orchestrator.cache.base import CacheBackend
from image_orchestrator.cache.memory import InMemoryCache
from image_orchestrator.models import AcquiredImage, normalize_word

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_TTL_SECONDS = 7 * 24 * 3600
DEFAULT_MAX_ENTRIES = 1000


class ResultCache:
    """
    Best-effort accelerator for acquisitions.

    Keys are case-insensitive (trimmed, lowercased). Values are the data URI
    and the name of the provider that produced it. Never a source of truth.
    """

    def __init__(
        self,
        backend: CacheBackend | None = None,
        ttl_seconds: float = DEFAULT_IMAGE_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        self._ttl = ttl_seconds
        self._backend = backend or InMemoryCache(
            default_ttl_seconds=ttl_seconds,
            max_size=max_entries,
        )

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    async def get(self, word: str) -> AcquiredImage | None:
        """Return the cached image for ``word``, or None on a miss."""
        key = normalize_word(word)
        value = await self._backend.get(key)
        if value is None:
            return None
        return AcquiredImage(
            word=key,
            image_data=value["image_data"],
            source_provider=value["source_provider"],
            cached=True,
        )

    async def put(self, word: str, image: AcquiredImage) -> None:
        """Store an acquired image under the normalized word."""
        key = normalize_word(word)
        await self._backend.set(
            key,
            {"image_data": image.image_data, "source_provider": image.source_provider},
            ttl_seconds=self._ttl,
        )
        logger.debug(f"Cached image for '{key}' from {image.source_provider}")

    async def clear(self) -> int:
        return await self._backend.clear()

    def size(self) -> int:
        return self._backend.size()

    async def stats(self) -> dict[str, Any]:
        return await self._backend.health_check()
