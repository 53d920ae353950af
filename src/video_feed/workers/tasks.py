"""Celery tasks for Video Feed.

``run_ingestion_cycle`` runs exactly one :meth:`IngestionLoop.run_cycle`.
It is a synchronous Celery task that bridges to the async loop via
``asyncio.run()``.

The credential pool lives for the whole worker process so that a key
marked exhausted in one task stays skipped in the next.  Each task builds a
fresh HTTP client and database engine because both are bound to the event
loop ``asyncio.run()`` creates and then closes.

Error handling policy: the task catches all exceptions at the outermost
level, logs them at ERROR level, and does NOT re-raise.  The next beat tick
is the retry.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from video_feed.config.settings import get_settings
from video_feed.core.credential_pool import CredentialPool
from video_feed.core.database import build_session_factory
from video_feed.core.repository import VideoRepository
from video_feed.ingestion.bootstrap import (
    build_credential_pool,
    build_ingestion_loop,
    build_search_client,
)
from video_feed.workers.beat_schedule import INGESTION_TASK_NAME
from video_feed.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)

_pool: CredentialPool | None = None


def _get_pool() -> CredentialPool:
    global _pool  # noqa: PLW0603
    if _pool is None:
        _pool = build_credential_pool(get_settings())
    return _pool


async def _run_cycle_once() -> dict[str, Any]:
    settings = get_settings()
    engine, session_factory = build_session_factory(settings.database_url)
    try:
        async with build_search_client(settings, _get_pool()) as client:
            loop = build_ingestion_loop(settings, VideoRepository(session_factory), client)
            result = await loop.run_cycle()
    finally:
        await engine.dispose()
    return result.as_dict()


@celery_app.task(name=INGESTION_TASK_NAME)
def run_ingestion_cycle() -> dict[str, Any]:
    """Poll every configured topic once and store new videos.

    Returns:
        The cycle result as a dict (``stored``, ``skipped``, ``errors`` ...),
        or ``{"error": ...}`` if the cycle could not run.
    """
    log = logger.bind(task="run_ingestion_cycle")
    try:
        result = asyncio.run(_run_cycle_once())
    except Exception as exc:
        log.error("run_ingestion_cycle: failed", error=str(exc), exc_info=True)
        return {"error": str(exc)}
    log.info("run_ingestion_cycle: complete", **result)
    return result
