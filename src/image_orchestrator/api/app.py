"""FastAPI application for the image orchestrator."""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request

from image_orchestrator import __version__
from image_orchestrator.api.routes import router as api_router
from image_orchestrator.api.throttle import ClientThrottle
from image_orchestrator.config import Settings, get_settings
from image_orchestrator.orchestrator import ImageOrchestrator, create_orchestrator

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    orchestrator: ImageOrchestrator | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use (environment if None)
        orchestrator: Pre-built orchestrator; one is created from settings
            at startup if None
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan events."""
        logger.info("Starting image orchestrator API...")
        if getattr(app.state, "orchestrator", None) is None:
            app.state.orchestrator = create_orchestrator(settings)
        yield
        logger.info("Shutting down image orchestrator API...")
        await app.state.orchestrator.close()

    app = FastAPI(
        title="Image Orchestrator",
        description="Word-to-image acquisition across rate-limited providers",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator
    app.state.throttle = ClientThrottle(
        requests_per_window=settings.client_requests_per_minute,
        window_seconds=60,
    )

    # Request timing middleware
    @app.middleware("http")
    async def add_timing_header(request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = (time.perf_counter() - start_time) * 1000
        response.headers["X-Process-Time-Ms"] = f"{process_time:.2f}"
        return response

    app.include_router(api_router, prefix="/v1")

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": __version__}

    @app.get("/")
    async def root():
        return {
            "name": "Image Orchestrator",
            "version": __version__,
            "docs": "/docs",
            "openapi": "/openapi.json",
        }

    return app
