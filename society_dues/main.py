"""Main application entry point."""

import argparse
import logging

import uvicorn
from dotenv import load_dotenv

from society_dues.api import create_app
from society_dues.config import get_settings
from society_dues.services.logging import setup_server_logging

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the dashboard API with uvicorn."""
    parser = argparse.ArgumentParser(description="Society Dues API")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    args = parser.parse_args()

    load_dotenv()
    settings = get_settings()
    setup_server_logging(log_file=settings.log_file, level=settings.log_level)

    logger.info("Starting Uvicorn server on %s:%d...", args.host, args.port)
    uvicorn.run(
        create_app(settings),
        host=args.host,
        port=args.port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
