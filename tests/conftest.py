"""Pytest configuration and fixtures."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone

import pytest

from image_orchestrator.adapters.base import ImageProvider
from image_orchestrator.http.client import HttpClient
from image_orchestrator.models import ImagePayload, SpeedClass
from image_orchestrator.quota.limiter import FixedWindowLimiter

# Smallest valid PNG header plus a few bytes; content is never decoded.
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x01" * 16


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDatetimeClock:
    """Manually advanced UTC datetime clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def succeed(content: bytes = JPEG_BYTES, delay: float = 0.0, content_type: str = "image/jpeg"):
    async def behavior(word: str) -> ImagePayload:
        if delay:
            await asyncio.sleep(delay)
        return ImagePayload(content=content, content_type=content_type)

    return behavior


def fail(error: Exception, delay: float = 0.0):
    async def behavior(word: str) -> ImagePayload:
        if delay:
            await asyncio.sleep(delay)
        raise error

    return behavior


class ScriptedProvider(ImageProvider):
    """Provider whose upstream call is a scripted coroutine."""

    def __init__(
        self,
        name: str,
        speed_class: SpeedClass,
        behavior: Callable[[str], Awaitable[ImagePayload]],
        limiter: FixedWindowLimiter | None = None,
        max_concurrent: int = 5,
    ) -> None:
        self._name = name
        self._speed_class = speed_class
        self.behavior = behavior
        self.calls: list[str] = []
        super().__init__(
            limiter=limiter or FixedWindowLimiter(limit=100, window_seconds=60),
            max_concurrent=max_concurrent,
            http_client=HttpClient(),
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def speed_class(self) -> SpeedClass:
        return self._speed_class

    async def fetch_image(self, word: str) -> ImagePayload:
        self.calls.append(word)
        return await self.behavior(word)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def datetime_clock() -> FakeDatetimeClock:
    return FakeDatetimeClock()


@pytest.fixture
def sample_unsplash_response() -> dict:
    """Sample Unsplash search response for testing."""
    return {
        "total": 3,
        "results": [
            {
                "id": "abstract-1",
                "slug": "abstract-pattern-background",
                "description": "Abstract pattern",
                "alt_description": "colorful abstract background",
                "likes": 9000,
                "downloads": 50000,
                "tags": [{"title": "abstract"}, {"title": "background"}],
                "urls": {
                    "full": "https://images.unsplash.com/abstract-1-full",
                    "regular": "https://images.unsplash.com/abstract-1-regular",
                },
            },
            {
                "id": "dog-popular",
                "slug": "brown-dog-on-grass",
                "description": "A dog playing",
                "alt_description": "brown dog on grass",
                "likes": 500,
                "downloads": 2000,
                "tags": [{"title": "dog"}, {"title": "pet"}],
                "urls": {
                    "full": "https://images.unsplash.com/dog-popular-full",
                    "regular": "https://images.unsplash.com/dog-popular-regular",
                },
            },
            {
                "id": "dog-slug-only",
                "slug": "dog-park",
                "description": None,
                "alt_description": "a park",
                "likes": 10000,
                "downloads": 10,
                "tags": [{"title": "park"}],
                "urls": {"regular": "https://images.unsplash.com/dog-slug-only-regular"},
            },
        ],
    }


@pytest.fixture
def sample_pixabay_response() -> dict:
    """Sample Pixabay search response for testing."""
    return {
        "total": 2,
        "totalHits": 2,
        "hits": [
            {
                "id": 1,
                "tags": "cat, kitten, pet",
                "likes": 10,
                "views": 1000,
                "downloads": 100,
                "largeImageURL": "https://pixabay.com/get/cat-1-large.jpg",
                "webformatURL": "https://pixabay.com/get/cat-1-web.jpg",
            },
            {
                "id": 2,
                "tags": "cat, animal",
                "likes": 50,
                "views": 5000,
                "downloads": 400,
                "largeImageURL": "https://pixabay.com/get/cat-2-large.jpg",
            },
        ],
    }
