"""Standalone ingestion poller.

Runs :class:`~video_feed.ingestion.poller.IngestionLoop` in its own process,
for deployments that keep the API free of background work
(``RUN_POLLER_IN_API=false``)::

    video-feed-poller

SIGINT and SIGTERM ask the loop to stop; the cycle in flight finishes first.
"""

from __future__ import annotations

import asyncio
import signal
import sys

import structlog

from video_feed.config.settings import get_settings
from video_feed.core.database import AsyncSessionLocal, dispose_engine
from video_feed.core.exceptions import ConfigurationError
from video_feed.core.logging_config import configure_logging
from video_feed.core.repository import VideoRepository
from video_feed.ingestion.bootstrap import build_ingestion_loop, build_search_client

logger = structlog.get_logger(__name__)


async def run() -> None:
    """Run the ingestion loop until a stop signal arrives."""
    settings = get_settings()
    async with build_search_client(settings) as client:
        ingestion_loop = build_ingestion_loop(settings, VideoRepository(AsyncSessionLocal), client)

        event_loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            event_loop.add_signal_handler(sig, ingestion_loop.stop)

        try:
            await ingestion_loop.run_forever()
        finally:
            await dispose_engine()


def main() -> None:
    """Console-script entry point."""
    settings = get_settings()
    configure_logging(settings.log_level)
    try:
        asyncio.run(run())
    except ConfigurationError as exc:
        logger.error("poller: configuration error", error=str(exc))
        sys.exit(2)


if __name__ == "__main__":
    main()
