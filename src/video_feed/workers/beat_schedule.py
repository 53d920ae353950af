"""Celery Beat periodic task schedule for Video Feed.

Schedule overview:

+----------------------+-------------------------+------------------------------+
| Task name            | Schedule                | Purpose                      |
+======================+=========================+==============================+
| ingestion_cycle      | Every FETCH_INTERVAL s  | Poll every topic once and    |
|                      |                         | store new videos.            |
+----------------------+-------------------------+------------------------------+
"""

from __future__ import annotations

from typing import Any

from video_feed.config.settings import Settings

INGESTION_TASK_NAME = "video_feed.workers.tasks.run_ingestion_cycle"


def build_beat_schedule(settings: Settings) -> dict[str, dict[str, Any]]:
    """Return the beat schedule for ``settings``.

    The task expires after one interval so a backlog of missed ticks never
    runs as a burst of back-to-back cycles.
    """
    interval = float(settings.fetch_interval)
    return {
        "ingestion_cycle": {
            "task": INGESTION_TASK_NAME,
            "schedule": interval,
            "options": {
                "queue": "celery",
                "expires": interval,
            },
        },
    }
