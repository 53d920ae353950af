"""Low-level HTTP helpers for the YouTube Data API.

Separates network I/O and response normalization from the retry and
credential logic in :mod:`.client`.

Functions in this module are pure I/O or pure transformation helpers:
- :func:`make_api_request` — one GET against an API endpoint.
- :func:`search_videos` — one ``search.list`` call, returns raw items.
- :func:`normalize_search_item` — raw ``search.list`` item to ``VideoItem``.
- :func:`extract_error_reason` — extract ``reason`` from a YouTube error body.

Every failure surfaces as :class:`~video_feed.core.exceptions.SearchProviderError`;
deciding what a failure means for the API key is the caller's job.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from video_feed.core.exceptions import SearchProviderError
from video_feed.core.schemas.video import Thumbnails, VideoItem
from video_feed.youtube.config import (
    MAX_RESULTS_PER_SEARCH_PAGE,
    SEARCH_ENDPOINT,
    THUMBNAIL_VARIANTS,
    YOUTUBE_API_BASE_URL,
)

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def extract_error_reason(response: httpx.Response) -> str:
    """Extract the ``reason`` field from a YouTube API error response body.

    Args:
        response: The :class:`httpx.Response` containing the error body.

    Returns:
        The ``reason`` string (e.g. ``"quotaExceeded"``), or ``"unknown"``
        if the body cannot be parsed.
    """
    try:
        body = response.json()
        errors = body.get("error", {}).get("errors", [])
        if errors:
            return errors[0].get("reason", "unknown")
    except (ValueError, AttributeError):
        pass
    return "unknown"


def format_rfc3339(value: datetime) -> str:
    """Format a datetime as the RFC 3339 UTC string ``search.list`` expects."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_published_at(raw: Any) -> datetime:
    """Parse a ``snippet.publishedAt`` value.

    Returns the Unix epoch (UTC) when the value is missing or unparsable.
    """
    if not isinstance(raw, str) or not raw:
        return EPOCH
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


async def make_api_request(
    client: httpx.AsyncClient,
    endpoint: str,
    params: dict[str, Any],
) -> dict[str, Any]:
    """Make a YouTube Data API v3 GET request.

    Args:
        client: Shared :class:`httpx.AsyncClient`.
        endpoint: API endpoint path segment (e.g. ``"search"``).
        params: Query parameter dict.  Must include ``key``.

    Returns:
        Parsed JSON response dict.

    Raises:
        SearchProviderError: On a non-2xx status, a transport error or
            timeout, or a body that is not a JSON object.
    """
    url = f"{YOUTUBE_API_BASE_URL}/{endpoint}"
    try:
        response = await client.get(url, params=params)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as exc:
        status_code = exc.response.status_code
        reason = extract_error_reason(exc.response)
        raise SearchProviderError(
            f"youtube: HTTP {status_code} (reason={reason}) on endpoint '{endpoint}'",
            status_code=status_code,
            reason=reason,
        ) from exc
    except httpx.RequestError as exc:
        raise SearchProviderError(
            f"youtube: connection error on endpoint '{endpoint}': {exc!r}",
        ) from exc
    except ValueError as exc:
        raise SearchProviderError(
            f"youtube: undecodable response body on endpoint '{endpoint}'",
            status_code=response.status_code,
        ) from exc

    if not isinstance(data, dict):
        raise SearchProviderError(
            f"youtube: unexpected response shape on endpoint '{endpoint}'",
            status_code=response.status_code,
        )
    return data


async def search_videos(
    client: httpx.AsyncClient,
    api_key: str,
    term: str,
    max_results: int,
    order: str,
    published_after: datetime | None = None,
    region_code: str | None = None,
    relevance_language: str | None = None,
    safe_search: str | None = None,
) -> list[dict[str, Any]]:
    """Fetch one page of ``search.list`` results for ``term``.

    Args:
        client: Shared HTTP client.
        api_key: YouTube Data API v3 key.
        term: Search query string.
        max_results: Number of results to request (clamped to 1–50).
        order: ``search.list`` ordering mode (``date``, ``title``, ``relevance``).
        published_after: Only return videos published after this instant.
        region_code: ``regionCode`` pass-through, omitted when empty.
        relevance_language: ``relevanceLanguage`` pass-through, omitted when empty.
        safe_search: ``safeSearch`` pass-through, omitted when empty.

    Returns:
        The raw ``items`` list of the response.

    Raises:
        SearchProviderError: On any API or transport failure.
    """
    params: dict[str, Any] = {
        "q": term,
        "part": "snippet",
        "type": "video",
        "order": order,
        "maxResults": max(1, min(max_results, MAX_RESULTS_PER_SEARCH_PAGE)),
        "key": api_key,
    }
    if published_after is not None:
        params["publishedAfter"] = format_rfc3339(published_after)
    if region_code:
        params["regionCode"] = region_code
    if relevance_language:
        params["relevanceLanguage"] = relevance_language
    if safe_search:
        params["safeSearch"] = safe_search

    data = await make_api_request(client, SEARCH_ENDPOINT, params)
    items = data.get("items") or []
    return [item for item in items if isinstance(item, dict)]


def normalize_search_item(item: dict[str, Any], origin_query: str) -> VideoItem | None:
    """Convert one raw ``search.list`` item into a :class:`VideoItem`.

    Args:
        item: Raw item dict from the ``items`` array.
        origin_query: Topic query that produced the item.

    Returns:
        The normalized item, or ``None`` when the item carries no
        ``id.videoId`` (channel or playlist results).
    """
    id_block = item.get("id")
    video_id = id_block.get("videoId") if isinstance(id_block, dict) else None
    if not video_id:
        return None

    snippet = item.get("snippet") or {}
    raw_thumbs = snippet.get("thumbnails") or {}
    thumbs: dict[str, str] = {}
    for variant in THUMBNAIL_VARIANTS:
        entry = raw_thumbs.get(variant)
        thumbs[variant] = (entry.get("url") or "") if isinstance(entry, dict) else ""

    return VideoItem(
        external_id=video_id,
        title=snippet.get("title") or "",
        description=snippet.get("description") or "",
        published_at=parse_published_at(snippet.get("publishedAt")),
        channel_title=snippet.get("channelTitle") or "",
        channel_id=snippet.get("channelId") or "",
        origin_query=origin_query,
        thumbnails=Thumbnails(**thumbs),
    )


def normalize_search_items(items: list[dict[str, Any]], origin_query: str) -> list[VideoItem]:
    """Normalize a list of raw items, dropping those without a video ID."""
    videos: list[VideoItem] = []
    for item in items:
        video = normalize_search_item(item, origin_query)
        if video is None:
            logger.debug("youtube: dropping search item without videoId: %r", item.get("id"))
            continue
        videos.append(video)
    return videos
