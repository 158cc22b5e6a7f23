"""Pollinations generative image adapter (slow provider)."""

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from functools import partial
from urllib.parse import quote

from image_orchestrator.adapters.base import ImageProvider, payload_from_response
from image_orchestrator.errors import (
    EmptyImageError,
    ImageAcquisitionError,
    RateLimitExceeded,
    TransientUpstreamError,
    is_retryable,
)
from image_orchestrator.http.client import HttpClient
from image_orchestrator.models import ImagePayload, SpeedClass
from image_orchestrator.quota.limiter import FixedWindowLimiter
from image_orchestrator.resilience import (
    RATE_LIMIT_BACKOFF,
    SERVER_ERROR_BACKOFF,
    BackoffPolicy,
    retry_with_backoff,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationEndpoint:
    """One backend model endpoint, tried in list order."""

    name: str
    url: str
    model: str


DEFAULT_ENDPOINTS: tuple[GenerationEndpoint, ...] = (
    GenerationEndpoint("pollinations-flux", "https://image.pollinations.ai/prompt", "flux"),
    GenerationEndpoint("pollinations-flux-pro", "https://image.pollinations.ai/prompt", "flux-pro"),
    GenerationEndpoint("pollinations-schnell", "https://image.pollinations.ai/prompt", "schnell"),
)

IMAGE_SIZE = 512


def build_prompt(word: str) -> str:
    """Descriptive prompt that keeps the subject recognizable."""
    return (
        f"a clear, simple, and recognizable illustration of a {word}, "
        "isolated on white background, high quality, detailed, easy to identify, "
        "educational style, bright colors, clean lines, no text, no words, "
        "centered composition, professional photography style, sharp focus, "
        "well-lit, studio lighting"
    )


class PollinationsAdapter(ImageProvider):
    """
    Synthesizes an image from a prompt built from the word.

    Endpoints are tried in order. Each gets ``attempts_per_endpoint`` tries
    with exponential backoff; 429 responses back off longer than server
    errors. Backoff keeps escalating across endpoints, so successive delays
    never shrink. Every attempt is bounded by ``attempt_timeout`` seconds.
    """

    def __init__(
        self,
        endpoints: Sequence[GenerationEndpoint] = DEFAULT_ENDPOINTS,
        limiter: FixedWindowLimiter | None = None,
        max_concurrent: int = 2,
        http_client: HttpClient | None = None,
        attempt_timeout: float = 35.0,
        attempts_per_endpoint: int = 3,
        rate_limit_backoff: BackoffPolicy = RATE_LIMIT_BACKOFF,
        server_error_backoff: BackoffPolicy = SERVER_ERROR_BACKOFF,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the Pollinations adapter.

        Args:
            endpoints: Backend model endpoints in priority order
            limiter: Quota window (50 requests/minute if None)
            max_concurrent: Maximum simultaneous generations
            http_client: HTTP client (a default one is created if None)
            attempt_timeout: Hard timeout per upstream attempt, in seconds
            attempts_per_endpoint: Tries per endpoint before moving on
            rate_limit_backoff: Backoff used after a 429
            server_error_backoff: Backoff used after 5xx, timeouts, network errors
            sleep: Awaitable sleep, injectable for tests
        """
        if not endpoints:
            raise ValueError("At least one generation endpoint is required")

        self._endpoints = tuple(endpoints)
        self._attempt_timeout = attempt_timeout
        self._attempts_per_endpoint = attempts_per_endpoint
        self._rate_limit_backoff = rate_limit_backoff
        self._server_error_backoff = server_error_backoff
        self._sleep = sleep
        super().__init__(
            limiter=limiter or FixedWindowLimiter(limit=50, window_seconds=60),
            max_concurrent=max_concurrent,
            http_client=http_client,
        )

    @property
    def name(self) -> str:
        return "pollinations"

    @property
    def speed_class(self) -> SpeedClass:
        return SpeedClass.SLOW

    @property
    def endpoints(self) -> tuple[GenerationEndpoint, ...]:
        return self._endpoints

    def backoff_delay(self, attempt: int, error: BaseException) -> float:
        """Delay before the next attempt, longer after rate limiting."""
        if isinstance(error, RateLimitExceeded):
            return self._rate_limit_backoff.delay(attempt)
        return self._server_error_backoff.delay(attempt)

    async def _generate_once(self, endpoint: GenerationEndpoint, prompt: str) -> ImagePayload:
        url = f"{endpoint.url}/{quote(prompt, safe='')}"
        params = {
            "width": IMAGE_SIZE,
            "height": IMAGE_SIZE,
            "model": endpoint.model,
            "nologo": "true",
            "seed": int(time.time() * 1000) + random.randint(0, 999),
        }
        headers = {"Accept": "image/*", "Cache-Control": "no-cache"}

        try:
            response = await asyncio.wait_for(
                self._http.get(url, params=params, headers=headers),
                timeout=self._attempt_timeout,
            )
        except asyncio.TimeoutError as e:
            raise TransientUpstreamError(
                f"{endpoint.name} timed out after {self._attempt_timeout:.0f}s"
            ) from e

        payload = payload_from_response(response, default_type="image/png")
        if not payload:
            raise EmptyImageError(f"Received empty image from {endpoint.name}")
        return payload

    async def fetch_image(self, word: str) -> ImagePayload:
        prompt = build_prompt(word)
        escalation = 0
        last_error: ImageAcquisitionError | None = None

        for index, endpoint in enumerate(self._endpoints):
            try:
                return await retry_with_backoff(
                    partial(self._generate_once, endpoint, prompt),
                    max_attempts=self._attempts_per_endpoint,
                    delay_for=self.backoff_delay,
                    sleep=self._sleep,
                    first_attempt=escalation,
                    label=endpoint.name,
                )
            except ImageAcquisitionError as e:
                last_error = e
                escalation += self._attempts_per_endpoint
                logger.warning(f"{endpoint.name} exhausted for '{word}': {e}")

                is_last = index == len(self._endpoints) - 1
                if not is_last and is_retryable(e):
                    await self._sleep(self.backoff_delay(escalation - 1, e))

        raise TransientUpstreamError(
            f"Failed to generate image after {len(self._endpoints)} endpoints: {last_error}"
        ) from last_error
