#!/usr/bin/env python
"""Seed the database with a handful of sample videos.

Useful for exercising the read API locally without YouTube API keys.  Run
after the Alembic migrations have been applied::

    python scripts/load_test_data.py

The script is idempotent: videos whose ``external_id`` is already stored are
skipped, so re-running it never duplicates rows.

Exit codes:
    0 — Success.
    1 — Database error.
"""

from __future__ import annotations

import asyncio
import os
import sys
from datetime import UTC, datetime, timedelta

# Ensure the src layout is on sys.path when running as a standalone script.
_SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
_SRC_DIR = os.path.join(os.path.dirname(_SCRIPT_DIR), "src")
if _SRC_DIR not in sys.path:
    sys.path.insert(0, _SRC_DIR)

import structlog  # noqa: E402

from video_feed.core.exceptions import StorageError  # noqa: E402
from video_feed.core.repository import VideoRepository  # noqa: E402
from video_feed.core.schemas.video import Thumbnails, VideoItem  # noqa: E402

logger = structlog.get_logger(__name__)

_SAMPLES: list[tuple[str, str, str, str, str, str]] = [
    (
        "test_cricket_1",
        "India vs Australia Cricket Highlights",
        "Amazing cricket match with spectacular batting and bowling",
        "Cricket World",
        "UC_cricket_1",
        "cricket",
    ),
    (
        "test_football_1",
        "Football Skills and Techniques",
        "Learn professional football moves and tricks",
        "Football Pro",
        "UC_football_1",
        "football",
    ),
    (
        "test_cricket_2",
        "Cricket World Cup Final Analysis",
        "Detailed analysis of the cricket championship final match",
        "Sports Analytics",
        "UC_sports_1",
        "cricket",
    ),
    (
        "test_tutorial_1",
        "How to improve cricket batting technique",
        "Step by step tutorial for better cricket batting",
        "Cricket Coach",
        "UC_coach_1",
        "cricket",
    ),
]


def build_sample_videos(now: datetime) -> list[VideoItem]:
    """Return the sample videos, published one hour apart before ``now``."""
    videos: list[VideoItem] = []
    for hours_ago, (video_id, title, description, channel, channel_id, topic) in enumerate(
        _SAMPLES, start=1
    ):
        videos.append(
            VideoItem(
                external_id=video_id,
                title=title,
                description=description,
                published_at=now - timedelta(hours=hours_ago),
                channel_title=channel,
                channel_id=channel_id,
                origin_query=topic,
                thumbnails=Thumbnails(
                    default=f"https://i.ytimg.com/vi/{video_id}/default.jpg",
                    medium=f"https://i.ytimg.com/vi/{video_id}/mqdefault.jpg",
                    high=f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg",
                ),
            )
        )
    return videos


async def load_test_data(repository: VideoRepository, now: datetime | None = None) -> int:
    """Insert every sample video not stored yet.

    Args:
        repository: Target store.
        now: Reference time for ``published_at``; defaults to the current time.

    Returns:
        Number of videos inserted.
    """
    inserted = 0
    for video in build_sample_videos(now or datetime.now(UTC)):
        if await repository.get_by_external_id(video.external_id) is not None:
            continue
        try:
            await repository.insert(video)
        except StorageError as exc:
            logger.warning(
                "load_test_data: insert failed",
                external_id=video.external_id,
                error=str(exc),
            )
            continue
        inserted += 1
    return inserted


async def _load() -> int:
    from video_feed.core.database import AsyncSessionLocal, dispose_engine  # noqa: PLC0415

    try:
        return await load_test_data(VideoRepository(AsyncSessionLocal))
    finally:
        await dispose_engine()


def main() -> None:
    """Entry point for the seeding script."""
    from video_feed.config.settings import get_settings  # noqa: PLC0415
    from video_feed.core.logging_config import configure_logging  # noqa: PLC0415

    configure_logging(get_settings().log_level)
    try:
        inserted = asyncio.run(_load())
    except StorageError as exc:
        logger.error("load_test_data: database error", error=str(exc))
        sys.exit(1)
    logger.info("load_test_data: done", inserted=inserted)


if __name__ == "__main__":
    main()
