"""API routes for image acquisition."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from image_orchestrator.api.throttle import ClientThrottle, client_identifier
from image_orchestrator.errors import AggregateFailure, AllProvidersExhausted
from image_orchestrator.orchestrator import ImageOrchestrator

logger = logging.getLogger(__name__)
router = APIRouter()

RETRY_MESSAGE = "Failed to load an image. Please try again in a moment."
TIMEOUT_MESSAGE = (
    "Request timeout. The image service is taking too long. Please try again."
)


# --- Request/Response Models ---

class ImageRequest(BaseModel):
    """Image acquisition request."""

    word: str = Field(..., min_length=1, max_length=100, description="Word to illustrate")


class ImageResponse(BaseModel):
    """Acquired image."""

    word: str
    imageData: str = Field(..., description="Image as a data URI")
    sourceProvider: str
    cached: bool = False


class ProviderStatus(BaseModel):
    """Quota and queue state of one provider."""

    name: str
    speed_class: str
    rate_limit: dict[str, Any]
    in_flight: int
    backlog: int
    max_concurrent: int


class ProvidersResponse(BaseModel):
    """All providers plus cache statistics."""

    providers: list[ProviderStatus]
    cache: dict[str, Any]
    in_flight_words: int


def get_orchestrator(request: Request) -> ImageOrchestrator:
    return request.app.state.orchestrator


def get_throttle(request: Request) -> ClientThrottle:
    return request.app.state.throttle


# --- Routes ---

@router.post("/images", response_model=ImageResponse)
async def acquire_image(body: ImageRequest, request: Request) -> ImageResponse:
    """Acquire an image for a word."""
    exhausted = await get_throttle(request).hit(client_identifier(request))
    if exhausted is not None:
        retry_after = max(
            0, int((exhausted.reset_at - datetime.now(timezone.utc)).total_seconds())
        )
        raise HTTPException(
            status_code=429,
            detail="Too many requests. Please try again in a minute.",
            headers={"Retry-After": str(retry_after)},
        )

    if not body.word.strip():
        raise HTTPException(status_code=422, detail="word must not be blank")

    timeout = request.app.state.settings.request_timeout_seconds
    try:
        # The shared acquisition is shielded, so only this request gives up.
        image = await asyncio.wait_for(
            get_orchestrator(request).acquire_image(body.word), timeout=timeout
        )
    except asyncio.TimeoutError:
        logger.error(f"Image acquisition for '{body.word}' exceeded {timeout:.0f}s")
        raise HTTPException(status_code=504, detail=TIMEOUT_MESSAGE)
    except (AggregateFailure, AllProvidersExhausted) as e:
        logger.error(f"Image acquisition failed: {e}")
        raise HTTPException(status_code=503, detail=RETRY_MESSAGE)

    return ImageResponse(**image.to_dict())


@router.get("/providers", response_model=ProvidersResponse)
async def list_providers(request: Request) -> ProvidersResponse:
    """Provider quota and queue status."""
    status = await get_orchestrator(request).status()
    return ProvidersResponse(**status)
