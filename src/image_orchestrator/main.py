"""Main entry point: serve the image orchestrator API."""

import logging

import uvicorn

from image_orchestrator.api.app import create_app
from image_orchestrator.config import Settings, get_settings
from image_orchestrator.logging_config import configure_logging

logger = logging.getLogger(__name__)


def run_server(
    settings: Settings | None = None,
    host: str | None = None,
    port: int | None = None,
) -> None:
    """Run the API with uvicorn until interrupted."""
    settings = settings or get_settings()
    configure_logging(settings)

    host = host or settings.api_host
    port = port or settings.api_port
    logger.info(f"Serving image orchestrator on {host}:{port}")

    uvicorn.run(
        create_app(settings),
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
    )


def main() -> None:
    """Main entry point."""
    run_server()


if __name__ == "__main__":
    main()
