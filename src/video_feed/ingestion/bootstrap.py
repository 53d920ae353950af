"""Build the ingestion collaborators from :class:`~video_feed.config.settings.Settings`.

Shared by the API lifespan, the standalone poller and the Celery task so the
three entry points wire the pool, client and loop the same way.
"""

from __future__ import annotations

from datetime import timedelta

from video_feed.config.settings import Settings
from video_feed.core.credential_pool import CredentialPool
from video_feed.core.exceptions import ConfigurationError
from video_feed.core.repository import VideoRepository
from video_feed.ingestion.poller import IngestionLoop
from video_feed.youtube.client import SearchClient


def build_credential_pool(settings: Settings) -> CredentialPool:
    """Return a pool over ``settings.youtube_api_keys``.

    Raises:
        ConfigurationError: If no API key is configured.
    """
    return CredentialPool(
        settings.youtube_api_keys,
        cooldown=timedelta(hours=settings.credential_cooldown_hours),
    )


def build_search_client(settings: Settings, pool: CredentialPool | None = None) -> SearchClient:
    """Return a search client using ``pool`` or a new pool from settings."""
    return SearchClient(
        pool if pool is not None else build_credential_pool(settings),
        max_results=settings.max_results_per_query,
        region_code=settings.region_code,
        relevance_language=settings.relevance_language,
        safe_search=settings.safe_search,
        timeout=settings.request_timeout_seconds,
    )


def build_ingestion_loop(
    settings: Settings,
    repository: VideoRepository,
    search_client: SearchClient,
) -> IngestionLoop:
    """Return an ingestion loop polling ``settings.youtube_search_queries``.

    Raises:
        ConfigurationError: If no topic is configured.
    """
    if not settings.youtube_search_queries:
        raise ConfigurationError("YOUTUBE_SEARCH_QUERIES must list at least one topic")
    return IngestionLoop(
        repository,
        search_client,
        settings.youtube_search_queries,
        interval=float(settings.fetch_interval),
        lookback=timedelta(hours=settings.initial_lookback_hours),
        slack=timedelta(minutes=settings.watermark_slack_minutes),
        concurrent=settings.concurrent_topic_fetches,
    )
