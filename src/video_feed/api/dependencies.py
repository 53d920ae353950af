"""FastAPI dependency providers.

Long-lived collaborators (repository, search client, ingestion loop) are
built once by the application lifespan and stored on ``app.state``.  Route
handlers reach them through the providers below, so tests can swap any of
them with ``app.dependency_overrides``.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Query, Request

from video_feed.core.query_builder import Pagination
from video_feed.core.repository import VideoRepository
from video_feed.ingestion.poller import IngestionLoop
from video_feed.youtube.client import SearchClient


def get_repository(request: Request) -> VideoRepository:
    """Return the application-wide :class:`VideoRepository`."""
    return request.app.state.repository


def get_search_client(request: Request) -> Optional[SearchClient]:
    """Return the shared :class:`SearchClient`, or ``None`` without API keys."""
    return getattr(request.app.state, "search_client", None)


def get_ingestion_loop(request: Request) -> Optional[IngestionLoop]:
    """Return the in-process :class:`IngestionLoop`, if one is running."""
    return getattr(request.app.state, "ingestion_loop", None)


def get_pagination(
    page: Optional[str] = Query(default=None, description="One-based page number."),
    page_size: Optional[str] = Query(default=None, description="Results per page (1-50)."),
) -> Pagination:
    """Parse ``page`` / ``page_size`` leniently.

    Both are declared as strings so that malformed values fall back to the
    defaults instead of failing request validation.
    """
    return Pagination.from_params(page, page_size)
