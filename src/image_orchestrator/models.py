"""Value types shared by providers, the cache and the orchestrator."""

import base64
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from image_orchestrator.quota.limiter import RateLimitResult


class SpeedClass(str, Enum):
    """Latency class of a provider."""

    FAST = "fast"  # search APIs, seconds
    SLOW = "slow"  # generative models, tens of seconds


@dataclass(frozen=True)
class ImagePayload:
    """Raw image bytes returned by an upstream provider."""

    content: bytes
    content_type: str = "image/jpeg"

    def __bool__(self) -> bool:
        return len(self.content) > 0

    def to_data_uri(self) -> str:
        """Encode as a self-describing ``data:`` URI."""
        encoded = base64.b64encode(self.content).decode("ascii")
        return f"data:{self.content_type};base64,{encoded}"


@dataclass(frozen=True)
class ProviderHandle:
    """
    Immutable descriptor of a configured provider.

    Built once when the provider registry is assembled and never changed.
    """

    name: str
    speed_class: SpeedClass
    quota: "Callable[[], Awaitable[RateLimitResult]]"


@dataclass(frozen=True)
class AcquiredImage:
    """Result of a successful acquisition."""

    word: str
    """Normalized word the image was acquired for."""

    image_data: str
    """Image encoded as a data URI."""

    source_provider: str
    """Name of the provider that produced the image."""

    cached: bool = False
    """True when served from the result cache."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "word": self.word,
            "imageData": self.image_data,
            "sourceProvider": self.source_provider,
            "cached": self.cached,
        }


def normalize_word(word: str) -> str:
    """Trim and lowercase a word for use as a cache key."""
    return word.strip().lower()
