"""Shared logic for search-based (fast) image providers."""

import logging
from abc import abstractmethod
from dataclasses import dataclass
from typing import Any

from image_orchestrator.adapters.base import ImageProvider
from image_orchestrator.errors import (
    ConfigurationError,
    ImageAcquisitionError,
    NoRelevantResult,
    RateLimitExceeded,
)
from image_orchestrator.http.client import HttpClient
from image_orchestrator.models import ImagePayload, SpeedClass
from image_orchestrator.quota.limiter import FixedWindowLimiter

logger = logging.getLogger(__name__)

# Query suffixes tried in order after the bare word.
QUERY_SUFFIXES = ("isolated", "object")

# Terms that signal a generic or ambiguous match.
GENERIC_TERMS = ("paper", "document", "text", "background", "pattern", "abstract")

# Relevance at or above which a generic term is tolerated.
GENERIC_OVERRIDE_RELEVANCE = 100


@dataclass
class SearchCandidate:
    """A scored search hit."""

    asset_url: str
    """Full-resolution image URL."""

    relevance: float
    """Textual relevance against the target word."""

    popularity: float
    """Engagement signal used to break relevance ties."""

    @property
    def sort_key(self) -> tuple[float, float]:
        return (self.relevance, self.popularity)


def query_variants(word: str) -> list[str]:
    """The word verbatim, then progressively qualified queries."""
    return [word] + [f"{word} {suffix}" for suffix in QUERY_SUFFIXES]


def is_generic(*texts: str) -> bool:
    """Whether any text mentions a denylisted generic term."""
    return any(term in text for text in texts for term in GENERIC_TERMS)


def pick_best(candidates: list[SearchCandidate]) -> SearchCandidate | None:
    """Highest relevance, then highest popularity; None if nothing relevant."""
    relevant = [c for c in candidates if c.relevance > 0 and c.asset_url]
    if not relevant:
        return None
    return max(relevant, key=lambda c: c.sort_key)


class SearchImageProvider(ImageProvider):
    """
    Base for providers that search a stock-photo API.

    Subclasses build the search request and score the raw hits; this class
    walks the query variants, picks the best candidate and downloads it.
    """

    def __init__(
        self,
        api_key: str | None,
        limiter: FixedWindowLimiter,
        max_concurrent: int,
        http_client: HttpClient | None = None,
    ) -> None:
        self._api_key = api_key or ""
        super().__init__(limiter, max_concurrent, http_client)

    @property
    def speed_class(self) -> SpeedClass:
        return SpeedClass.FAST

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    @abstractmethod
    async def search(self, query: str) -> list[dict[str, Any]]:
        """
        Run one search query.

        Returns:
            Raw hit dictionaries from the upstream
        """
        ...

    @abstractmethod
    def score(self, hit: dict[str, Any], word: str) -> SearchCandidate:
        """Score a raw hit for the target word."""
        ...

    def rank(self, hits: list[dict[str, Any]], word: str) -> SearchCandidate | None:
        """Score every hit and return the best acceptable candidate."""
        word_lower = word.lower()
        return pick_best([self.score(hit, word_lower) for hit in hits])

    async def fetch_image(self, word: str) -> ImagePayload:
        if not self.is_configured:
            raise ConfigurationError(f"{self.name} API key not configured")

        last_error: ImageAcquisitionError | None = None

        for query in query_variants(word):
            try:
                hits = await self.search(query)
            except RateLimitExceeded as e:
                await self._limiter.mark_exhausted(e.reset_at)
                raise
            except ImageAcquisitionError as e:
                logger.warning(f"{self.name}: search for '{query}' failed: {e}")
                last_error = e
                continue

            best = self.rank(hits, word) if hits else None
            if best is None:
                logger.debug(f"{self.name}: no relevant results for '{query}'")
                continue

            try:
                return await self.download(best.asset_url)
            except RateLimitExceeded as e:
                await self._limiter.mark_exhausted(e.reset_at)
                raise
            except ImageAcquisitionError as e:
                logger.warning(f"{self.name}: asset download for '{query}' failed: {e}")
                last_error = e
                continue

        if last_error is not None:
            raise last_error
        raise NoRelevantResult(f"{self.name}: no accurate images found for '{word}'")
