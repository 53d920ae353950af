"""YouTube Data API constants and ordering modes.

The YouTube Data API v3 has a daily quota of 10,000 units per GCP project
and ``search.list`` costs 100 units per call, so a single key sustains about
100 topic queries a day.  Several keys (one per project) are configured and
rotated by the credential pool.

Quota unit costs (from the YouTube Data API v3 documentation):
- ``search.list``:        100 units per call
"""

from __future__ import annotations

YOUTUBE_API_BASE_URL: str = "https://www.googleapis.com/youtube/v3"
"""Base URL for all YouTube Data API v3 endpoints."""

SEARCH_ENDPOINT: str = "search"

MAX_RESULTS_PER_SEARCH_PAGE: int = 50
"""Maximum ``maxResults`` accepted by ``search.list``."""

ORDER_DATE: str = "date"
ORDER_TITLE: str = "title"
ORDER_RELEVANCE: str = "relevance"

LIVE_SEARCH_ORDER: dict[str, str] = {
    "latest": ORDER_DATE,
    "newest": ORDER_DATE,
    "oldest": ORDER_DATE,
    "title": ORDER_TITLE,
}
"""Read-API sort hints mapped to ``search.list`` ``order`` values.

``search.list`` has no ascending date order, so ``oldest`` still maps to
``date``.  Any hint not listed here maps to ``relevance``.
"""

THUMBNAIL_VARIANTS: tuple[str, ...] = ("default", "medium", "high")
