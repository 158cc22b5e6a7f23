"""Unsplash search adapter."""

from typing import Any

from image_orchestrator.adapters.search import (
    GENERIC_OVERRIDE_RELEVANCE,
    SearchCandidate,
    SearchImageProvider,
    is_generic,
)
from image_orchestrator.http.client import HttpClient
from image_orchestrator.quota.limiter import FixedWindowLimiter


class UnsplashAdapter(SearchImageProvider):
    """
    Adapter for the Unsplash photo search API.

    Fetches: https://api.unsplash.com/search/photos
    """

    SEARCH_URL = "https://api.unsplash.com/search/photos"
    PER_PAGE = 30

    def __init__(
        self,
        api_key: str | None = None,
        limiter: FixedWindowLimiter | None = None,
        max_concurrent: int = 10,
        http_client: HttpClient | None = None,
    ) -> None:
        """
        Initialize the Unsplash adapter.

        Args:
            api_key: Unsplash access key
            limiter: Quota window (5000 requests/hour if None)
            max_concurrent: Maximum simultaneous upstream calls
            http_client: HTTP client (a default one is created if None)
        """
        super().__init__(
            api_key=api_key,
            limiter=limiter or FixedWindowLimiter(limit=5000, window_seconds=3600),
            max_concurrent=max_concurrent,
            http_client=http_client,
        )

    @property
    def name(self) -> str:
        return "unsplash"

    async def search(self, query: str) -> list[dict[str, Any]]:
        data = await self._http.get_json(
            self.SEARCH_URL,
            params={
                "query": query,
                "per_page": self.PER_PAGE,
                "orientation": "squarish",
                "client_id": self._api_key,
            },
            headers={"Accept-Version": "v1"},
        )
        if not isinstance(data, dict):
            return []
        results = data.get("results")
        return results if isinstance(results, list) else []

    def score(self, hit: dict[str, Any], word: str) -> SearchCandidate:
        tags = " ".join(
            (tag.get("title") or "").lower()
            for tag in hit.get("tags") or []
            if isinstance(tag, dict)
        )
        description = (hit.get("description") or "").lower()
        alt_description = (hit.get("alt_description") or "").lower()
        slug = (hit.get("slug") or "").lower()

        relevance = 0
        if word in tags:
            relevance += 200
        if word in description:
            relevance += 100
        if word in alt_description:
            relevance += 80
        if word in slug:
            relevance += 60

        if relevance < GENERIC_OVERRIDE_RELEVANCE and is_generic(
            tags, description, alt_description
        ):
            relevance = 0

        urls = hit.get("urls") or {}
        popularity = (hit.get("likes") or 0) + (hit.get("downloads") or 0) / 10

        return SearchCandidate(
            asset_url=urls.get("full") or urls.get("regular") or "",
            relevance=relevance,
            popularity=popularity,
        )
