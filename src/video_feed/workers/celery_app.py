"""Celery application for Video Feed.

An alternative to the in-process poller: Celery beat enqueues one ingestion
cycle every ``FETCH_INTERVAL`` seconds and a worker runs it.  Set
``RUN_POLLER_IN_API=false`` on the API when running this way so only one
poller is active.

Usage (starting a worker)::

    celery -A video_feed.workers.celery_app worker --loglevel=info

Usage (starting the Beat scheduler)::

    celery -A video_feed.workers.celery_app beat --loglevel=info
"""

from __future__ import annotations

import logging

from celery import Celery
from celery.signals import worker_process_init
from dotenv import load_dotenv

_logger = logging.getLogger(__name__)

load_dotenv()

from video_feed.config.settings import get_settings  # noqa: E402

settings = get_settings()

#: The global Celery application instance.
celery_app = Celery(
    "video_feed",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["video_feed.workers.tasks"],
)

celery_app.conf.update(
    # JSON keeps tasks inspectable; all arguments and results must be
    # JSON-serializable.
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # Cycle results are only kept long enough to inspect recent runs.
    result_expires=3_600,
    # One cycle is a handful of API calls and inserts.
    task_soft_time_limit=120,
    task_time_limit=180,
)

from video_feed.workers.beat_schedule import build_beat_schedule  # noqa: E402

celery_app.conf.beat_schedule = build_beat_schedule(settings)


@worker_process_init.connect
def _dispose_engine_on_fork(**kwargs: object) -> None:  # noqa: ARG001
    """Drop any engine inherited from the parent after Celery forks a worker.

    Pooled asyncpg connections are bound to the parent's event loop and
    cannot be reused in the child.
    """
    from video_feed.core import database as _db  # noqa: PLC0415

    if _db._engine is not None:
        _db._engine.sync_engine.dispose(close=False)
    _db._engine = None
    _db._session_factory = None
