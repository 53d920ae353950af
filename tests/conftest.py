"""Shared pytest fixtures for Video Feed tests.

Fixture summary
---------------
session_factory — async_sessionmaker bound to a fresh in-memory SQLite
                  database with the ``videos`` table created.
repository      — VideoRepository over ``session_factory``.
clock           — FakeClock starting at 2026-03-01 12:00 UTC.
make_item       — factory for VideoItem objects with sensible defaults.

No test needs network access, PostgreSQL or Redis.  The SQLite database is
driven through ``aiosqlite`` so repository code runs unchanged.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
import pytest_asyncio

# ---------------------------------------------------------------------------
# Test environment bootstrap
# ---------------------------------------------------------------------------
# Set env vars before any application modules are imported so that Settings()
# never points at a real database or starts a poller during collection.

_TEST_ENV_DEFAULTS: dict[str, str] = {
    "DATABASE_URL": "sqlite+aiosqlite://",
    "YOUTUBE_API_KEYS": "",
    "RUN_POLLER_IN_API": "false",
    "CELERY_BROKER_URL": "memory://",
    "CELERY_RESULT_BACKEND": "cache+memory://",
}

for _key, _default in _TEST_ENV_DEFAULTS.items():
    os.environ.setdefault(_key, _default)

# ---------------------------------------------------------------------------
# Application imports (after env bootstrap)
# ---------------------------------------------------------------------------

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from video_feed.config.settings import get_settings  # noqa: E402
from video_feed.core.models import Base  # noqa: E402
from video_feed.core.repository import VideoRepository  # noqa: E402
from video_feed.core.schemas.video import Thumbnails, VideoItem  # noqa: E402

get_settings.cache_clear()

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def build_item(external_id: str = "vid-1", **overrides: Any) -> VideoItem:
    """Return a VideoItem with defaults; any field can be overridden."""
    fields: dict[str, Any] = {
        "external_id": external_id,
        "title": f"Title {external_id}",
        "description": f"Description {external_id}",
        "published_at": T0,
        "channel_title": "Channel",
        "channel_id": "UC-channel",
        "origin_query": "cricket",
        "thumbnails": Thumbnails(
            default=f"https://i.ytimg.com/vi/{external_id}/default.jpg",
            medium=f"https://i.ytimg.com/vi/{external_id}/mqdefault.jpg",
            high=f"https://i.ytimg.com/vi/{external_id}/hqdefault.jpg",
        ),
    }
    fields.update(overrides)
    return VideoItem(**fields)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_item() -> Callable[..., VideoItem]:
    return build_item


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Yield a session factory on a throwaway in-memory database.

    ``StaticPool`` keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture
def repository(
    session_factory: async_sessionmaker[AsyncSession], clock: FakeClock
) -> VideoRepository:
    return VideoRepository(session_factory, clock=clock)
