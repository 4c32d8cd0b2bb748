"""
Ledger API - Main Entry Point

Configures logging, reads settings from the environment and serves the
FastAPI application with uvicorn. uvicorn handles SIGINT/SIGTERM; the
application lifespan closes the cache client on the way out.
"""

import uvicorn

from ledger_api.config import Settings
from ledger_api.server import SERVER_VERSION, create_app
from ledger_api.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def main() -> None:
    """Run the HTTP server until it is stopped."""
    settings = Settings()
    setup_logging(level=settings.log_level, environment=settings.environment)

    logger.info(
        "server_starting",
        version=SERVER_VERSION,
        environment=settings.environment,
        log_level=settings.log_level,
        host=settings.host,
        port=settings.port,
    )

    app = create_app(settings)

    try:
        uvicorn.run(
            app,
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
        )
    except Exception as e:
        logger.error("server_error", error=str(e), exc_info=True)
        raise


if __name__ == "__main__":
    main()
