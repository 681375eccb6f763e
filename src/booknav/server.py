"""BookNav HTTP server entry point.

Runs the FastAPI application under uvicorn with the host, port and log
level from ``AppConfig``.
"""

import logging
import sys

import uvicorn

from .api import create_app
from .config import get_config

logger = logging.getLogger(__name__)


def main() -> None:
    """Main entry point for the BookNav server."""
    config = get_config()

    logging.basicConfig(
        level=logging.DEBUG if config.debug else getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    if not config.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    try:
        logger.info("=" * 60)
        logger.info(config.app_name)
        logger.info("Version: %s", config.app_version)
        logger.info("Database: %s", config.get_database_url())
        logger.info("Listening on %s:%d", config.http_host, config.http_port)
        logger.info("=" * 60)

        uvicorn.run(
            create_app(config),
            host=config.http_host,
            port=config.http_port,
            log_level=config.log_level.lower(),
        )
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Failed to start BookNav server")
        sys.exit(1)


if __name__ == "__main__":
    main()
