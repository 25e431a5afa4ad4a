"""
Entry point for Snapshot Service.
Starts the HTTP server.
"""
import argparse
import logging
from typing import List, Optional

from aiohttp import web
from dotenv import load_dotenv

from snapshot_service.config import Settings
from snapshot_service.server import create_app
from snapshot_service.utils.logging import configure_logging

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Snapshot Service")
    parser.add_argument("--host", help="Listen address (default: $HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Listen port (default: $PORT or 3001)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", help="Also write logs to this file")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    """
    Run the service until interrupted.

    Args:
        argv: Command line arguments, defaults to sys.argv
    """
    load_dotenv()
    args = parse_args(argv)

    settings = Settings.from_env().with_overrides(
        host=args.host,
        port=args.port,
        log_level=logging.DEBUG if args.debug else None,
    )
    configure_logging(level=settings.log_level, log_file=args.log_file)

    app = create_app(settings)

    logger.info(f"Screenshot service running on port {settings.port}")
    logger.info(f"Health check: http://localhost:{settings.port}/health")
    web.run_app(app, host=settings.host, port=settings.port, print=None)


if __name__ == "__main__":
    main()
