"""HTTP client with timeouts and upstream status classification."""

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from image_orchestrator.errors import (
    RateLimitExceeded,
    TransientUpstreamError,
    UpstreamError,
)

logger = logging.getLogger(__name__)


class HttpClient:
    """
    Async HTTP client that performs exactly one attempt per call.

    Retry policy belongs to the callers (see ``image_orchestrator.resilience``);
    this client only turns transport failures and HTTP status codes into the
    acquisition error taxonomy:

    - 429 -> RateLimitExceeded
    - 5xx, timeouts, connection errors -> TransientUpstreamError
    - other 4xx -> UpstreamError
    """

    DEFAULT_TIMEOUT = httpx.Timeout(
        connect=10.0,
        read=30.0,
        write=10.0,
        pool=10.0,
    )

    def __init__(
        self,
        base_url: str | None = None,
        timeout: httpx.Timeout | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the HTTP client.

        Args:
            base_url: Optional base URL for all requests
            timeout: Request timeout configuration
            headers: Default headers for all requests
            transport: Optional transport (used by tests to mock upstreams)
        """
        self._base_url = base_url
        self._timeout = timeout or self.DEFAULT_TIMEOUT
        self._default_headers = headers or {}
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url or "",
                timeout=self._timeout,
                headers=self._default_headers,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def _rate_limit_error(self, response: httpx.Response) -> RateLimitExceeded:
        """
        Build a RateLimitExceeded from a 429 response.

        Reads ``Retry-After`` (seconds) and ``X-Ratelimit-Reset`` (epoch
        seconds) when the upstream provides them.
        """
        retry_after: float | None = None
        header = response.headers.get("Retry-After")
        if header:
            try:
                retry_after = float(header)
            except ValueError:
                pass

        reset_at: datetime | None = None
        reset_header = response.headers.get("X-Ratelimit-Reset")
        if reset_header:
            try:
                reset_at = datetime.fromtimestamp(int(reset_header), tz=timezone.utc)
            except (ValueError, OverflowError, OSError):
                pass

        return RateLimitExceeded(
            f"Rate limited by {response.request.url.host}",
            retry_after=retry_after,
            reset_at=reset_at,
        )

    async def request(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Make a single HTTP request.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: Request URL
            **kwargs: Additional arguments for httpx

        Returns:
            httpx.Response with a 2xx/3xx status

        Raises:
            RateLimitExceeded: On 429
            TransientUpstreamError: On 5xx, timeout or connection failure
            UpstreamError: On any other 4xx
        """
        client = await self._get_client()

        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout on {method} {_redact(url)}")
            raise TransientUpstreamError(f"Timeout: {e}") from e
        except httpx.TransportError as e:
            logger.warning(f"Connection error on {method} {_redact(url)}: {e}")
            raise TransientUpstreamError(f"Network error: {e}") from e

        if response.status_code == 429:
            raise self._rate_limit_error(response)

        if response.status_code >= 500:
            raise TransientUpstreamError(
                f"Server error {response.status_code}",
                status_code=response.status_code,
            )

        if response.status_code >= 400:
            raise UpstreamError(
                f"HTTP {response.status_code}",
                status_code=response.status_code,
            )

        return response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Make a GET request."""
        return await self.request("GET", url, **kwargs)

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        """Make a GET request and return JSON response."""
        response = await self.get(url, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"Invalid JSON from upstream: {e}") from e

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
            logger.info("HTTP client closed")

    async def __aenter__(self) -> "HttpClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()


def _redact(url: str) -> str:
    """Strip the query string so credentials never reach the logs."""
    return url.split("?", 1)[0]
