"""Pixabay search adapter."""

from typing import Any

from image_orchestrator.adapters.search import (
    GENERIC_OVERRIDE_RELEVANCE,
    SearchCandidate,
    SearchImageProvider,
    is_generic,
)
from image_orchestrator.http.client import HttpClient
from image_orchestrator.quota.limiter import FixedWindowLimiter


class PixabayAdapter(SearchImageProvider):
    """
    Adapter for the Pixabay image search API.

    Fetches: https://pixabay.com/api/
    """

    SEARCH_URL = "https://pixabay.com/api/"
    PER_PAGE = 30

    def __init__(
        self,
        api_key: str | None = None,
        limiter: FixedWindowLimiter | None = None,
        max_concurrent: int = 5,
        http_client: HttpClient | None = None,
    ) -> None:
        super().__init__(
            api_key=api_key,
            limiter=limiter or FixedWindowLimiter(limit=100, window_seconds=60),
            max_concurrent=max_concurrent,
            http_client=http_client,
        )

    @property
    def name(self) -> str:
        return "pixabay"

    async def search(self, query: str) -> list[dict[str, Any]]:
        data = await self._http.get_json(
            self.SEARCH_URL,
            params={
                "key": self._api_key,
                "q": query,
                "image_type": "all",
                "safesearch": "true",
                "order": "popular",
                "per_page": self.PER_PAGE,
                "min_width": 800,
                "min_height": 800,
            },
        )
        if not isinstance(data, dict):
            return []
        hits = data.get("hits")
        return hits if isinstance(hits, list) else []

    def score(self, hit: dict[str, Any], word: str) -> SearchCandidate:
        # Pixabay tags are a single comma-separated string
        tags = (hit.get("tags") or "").lower()

        relevance = 200 if word in tags else 0
        if relevance < GENERIC_OVERRIDE_RELEVANCE and is_generic(tags):
            relevance = 0

        popularity = (
            (hit.get("likes") or 0)
            + (hit.get("views") or 0) / 100
            + (hit.get("downloads") or 0) / 10
        )
        asset_url = (
            hit.get("fullHDURL")
            or hit.get("imageURL")
            or hit.get("largeImageURL")
            or hit.get("webformatURL")
            or ""
        )

        return SearchCandidate(
            asset_url=asset_url,
            relevance=relevance,
            popularity=popularity,
        )
