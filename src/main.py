"""Notification service entry point."""

import asyncio
import logging

from src.config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


def main() -> None:
    """Run the HTTP/WebSocket server and the job scheduler until signalled."""
    from src.app import run

    logger.info(
        "Starting notification service on %s:%d (db=%s)",
        settings.server_host,
        settings.server_port,
        settings.database_path,
    )
    asyncio.run(run())


if __name__ == "__main__":
    main()
