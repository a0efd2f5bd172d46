"""Main entry point - runs the quote API server."""

import logging

import uvicorn

from uniquote.api.app import create_app
from uniquote.config import get_settings

logger = logging.getLogger(__name__)


def main():
    """Main entry point."""
    settings = get_settings()

    # Configure logging
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger.info("Starting unified quote engine...")
    logger.info(f"Environment: {settings.environment}")
    if settings.dry_run:
        logger.warning("DRY_RUN enabled - quotes come from simulated adapters")

    app = create_app(settings)
    logger.info(f"Starting API server on {settings.api_host}:{settings.api_port}")
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
