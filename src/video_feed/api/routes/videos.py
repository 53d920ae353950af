"""Video read endpoints.

``GET /api/videos``
    Stored videos, newest first by default.

``GET /api/videos/search``
    Stored videos whose title or description contains every term of ``q``.

``GET /api/videos/youtube-search``
    Live search straight against the YouTube Data API; nothing is stored.

All three accept ``page``, ``page_size`` and ``sort`` and respond with the
``{results, count, next, previous}`` envelope.  Malformed ``page``,
``page_size`` or ``sort`` values fall back to their defaults.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from video_feed.api.dependencies import get_pagination, get_repository, get_search_client
from video_feed.core.exceptions import NoCredentialAvailableError, SearchProviderError, StorageError
from video_feed.core.query_builder import Pagination, page_links
from video_feed.core.repository import VideoRepository
from video_feed.core.schemas.video import Page, VideoItem, VideoRead
from video_feed.youtube.client import SearchClient

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/videos", tags=["videos"])

LIVE_SEARCH_COUNT_MULTIPLIER = 10
"""A full live-search page reports ``page_size * 10`` as its count."""

_SortParam = Query(
    default=None,
    description="One of latest, oldest, title, channel.  Defaults to latest.",
)


async def _stored_page(
    request: Request,
    repository: VideoRepository,
    query_text: Optional[str],
    sort: Optional[str],
    pagination: Pagination,
) -> Page[VideoRead]:
    try:
        rows, total = await repository.list_page(query_text, sort, pagination)
    except StorageError as exc:
        logger.error("videos: storage error", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load videos",
        ) from exc

    next_url, previous_url = page_links(total, pagination, request.url)
    return Page[VideoRead](
        results=[VideoRead.model_validate(row) for row in rows],
        count=total,
        next=next_url,
        previous=previous_url,
    )


@router.get("", response_model=Page[VideoRead])
async def list_videos(
    request: Request,
    sort: Optional[str] = _SortParam,
    pagination: Pagination = Depends(get_pagination),
    repository: VideoRepository = Depends(get_repository),
) -> Page[VideoRead]:
    """Return a page of stored videos."""
    return await _stored_page(request, repository, None, sort, pagination)


@router.get("/search", response_model=Page[VideoRead])
async def search_videos(
    request: Request,
    q: str = Query(default="", description="Space-separated search terms."),
    sort: Optional[str] = _SortParam,
    pagination: Pagination = Depends(get_pagination),
    repository: VideoRepository = Depends(get_repository),
) -> Page[VideoRead]:
    """Return stored videos matching every term of ``q`` in title or description.

    An empty ``q`` behaves like ``GET /api/videos``.
    """
    return await _stored_page(request, repository, q.strip() or None, sort, pagination)


@router.get("/youtube-search", response_model=Page[VideoItem])
async def youtube_search(
    request: Request,
    q: str = Query(default="", description="Free-text YouTube query."),
    sort: Optional[str] = _SortParam,
    pagination: Pagination = Depends(get_pagination),
    search_client: Optional[SearchClient] = Depends(get_search_client),
) -> Page[VideoItem]:
    """Search YouTube directly.

    The provider does not report totals, so ``count`` is the number of
    results, or ``page_size * 10`` when a full page came back.

    Raises:
        HTTPException 503: No API key is configured or available.
        HTTPException 502: The YouTube call failed.
    """
    query_text = q.strip()
    if not query_text:
        return Page[VideoItem](results=[], count=0)

    if search_client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="No YouTube API key configured",
        )

    try:
        results = await search_client.search_live(query_text, pagination.page_size, sort)
    except NoCredentialAvailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        ) from exc
    except SearchProviderError as exc:
        logger.warning("videos: live search failed", query=query_text, error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to search YouTube",
        ) from exc

    total = len(results)
    if total == pagination.page_size:
        total = pagination.page_size * LIVE_SEARCH_COUNT_MULTIPLIER

    next_url, previous_url = page_links(total, pagination, request.url)
    return Page[VideoItem](results=results, count=total, next=next_url, previous=previous_url)
