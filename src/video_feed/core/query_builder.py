"""Filter, sort and pagination building for the video read paths.

Both the plain listing (``GET /api/videos``) and the keyword search
(``GET /api/videos/search``) go through this module, so the two endpoints
paginate and order identically.  Everything here is pure: it builds
SQLAlchemy expressions and plain values and never touches a session.

Search semantics
----------------
``search_filter("cricket match")`` requires *every* whitespace-separated
term to appear, case-insensitively, as a substring of the title **or** the
description::

    (lower(title) LIKE '%cricket%' OR lower(description) LIKE '%cricket%')
    AND (lower(title) LIKE '%match%' OR lower(description) LIKE '%match%')

LIKE wildcards inside a term (``%``, ``_``) are escaped, so a term always
matches literally.

Malformed read-path input is never an error: unknown sort keys fall back to
``latest`` and unparsable page values fall back to their defaults.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

import sqlalchemy as sa
from sqlalchemy.sql.elements import ColumnElement

from video_feed.core.models.video import Video

DEFAULT_PAGE_SIZE: int = 12
MAX_PAGE_SIZE: int = 50
MAX_PAGE: int = (2**63 - 1) // MAX_PAGE_SIZE
"""Largest page served; keeps the OFFSET inside a signed 64-bit integer."""

SORT_LATEST = "latest"
SORT_OLDEST = "oldest"
SORT_TITLE = "title"
SORT_CHANNEL = "channel"

SORT_KEYS: frozenset[str] = frozenset({SORT_LATEST, SORT_OLDEST, SORT_TITLE, SORT_CHANNEL})
"""Sort keys accepted by the read API; anything else means ``latest``."""


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def list_filter() -> ColumnElement[bool]:
    """Return the unconditional filter used by the plain listing path."""
    return sa.true()


def search_filter(query_text: str | None) -> ColumnElement[bool]:
    """Build the keyword filter for ``query_text``.

    Args:
        query_text: Free text from the ``q`` query parameter.

    Returns:
        An AND of per-term ``title OR description`` substring matches, or
        :func:`list_filter` when the query is empty or whitespace only.
    """
    terms = (query_text or "").lower().split()
    if not terms:
        return list_filter()

    clauses = [
        sa.or_(
            Video.title.icontains(term, autoescape=True),
            Video.description.icontains(term, autoescape=True),
        )
        for term in terms
    ]
    if len(clauses) == 1:
        return clauses[0]
    return sa.and_(*clauses)


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------


def normalize_sort_key(sort_key: str | None) -> str:
    """Return ``sort_key`` if it is a known key, ``"latest"`` otherwise."""
    key = (sort_key or "").strip().lower()
    return key if key in SORT_KEYS else SORT_LATEST


def sort_spec(sort_key: str | None) -> list[Any]:
    """Map a sort key to ORDER BY clauses.

    - ``latest`` (default): newest first
    - ``oldest``: oldest first
    - ``title``: title A→Z
    - ``channel``: channel title A→Z, newest first within a channel

    Args:
        sort_key: Raw value of the ``sort`` query parameter.

    Returns:
        A list of SQLAlchemy ordering expressions for ``Select.order_by``.
    """
    key = normalize_sort_key(sort_key)
    if key == SORT_OLDEST:
        return [Video.published_at.asc()]
    if key == SORT_TITLE:
        return [Video.title.asc()]
    if key == SORT_CHANNEL:
        return [Video.channel_title.asc(), Video.published_at.desc()]
    return [Video.published_at.desc()]


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


def _parse_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


@dataclass(frozen=True)
class Pagination:
    """A validated page request.

    Attributes:
        page: One-based page number, at least 1.
        page_size: Rows per page, between 1 and :data:`MAX_PAGE_SIZE`.
    """

    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @classmethod
    def from_params(cls, page: Any = None, page_size: Any = None) -> Pagination:
        """Build a pagination from raw query-string values.

        ``page`` below 1 or unparsable becomes 1; above :data:`MAX_PAGE` it is
        capped, so a page past the end is simply empty.  ``page_size`` below 1
        or unparsable becomes :data:`DEFAULT_PAGE_SIZE`; above
        :data:`MAX_PAGE_SIZE` it is capped.
        """
        parsed_page = _parse_int(page)
        parsed_size = _parse_int(page_size)

        if parsed_page is None or parsed_page < 1:
            parsed_page = 1
        parsed_page = min(parsed_page, MAX_PAGE)
        if parsed_size is None or parsed_size < 1:
            parsed_size = DEFAULT_PAGE_SIZE
        parsed_size = min(parsed_size, MAX_PAGE_SIZE)
        return cls(page=parsed_page, page_size=parsed_size)

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size

    def total_pages(self, total: int) -> int:
        return math.ceil(total / self.page_size) if total > 0 else 0

    def has_next(self, total: int) -> bool:
        return self.page < self.total_pages(total)

    def has_previous(self) -> bool:
        return self.page > 1


def page_links(
    total: int,
    pagination: Pagination,
    base_url: Any,
) -> tuple[str | None, str | None]:
    """Return ``(next, previous)`` URLs for a page of ``total`` results.

    Args:
        total: Total number of matching rows.
        pagination: The page being served.
        base_url: The request URL (a Starlette ``URL``).  Every query
            parameter except ``page``/``page_size`` is preserved.

    Returns:
        Tuple of next and previous URL strings; each is ``None`` when there
        is no such page.
    """
    next_url: str | None = None
    previous_url: str | None = None
    if pagination.has_next(total):
        next_url = str(
            base_url.include_query_params(
                page=pagination.page + 1, page_size=pagination.page_size
            )
        )
    if pagination.has_previous():
        previous_url = str(
            base_url.include_query_params(
                page=pagination.page - 1, page_size=pagination.page_size
            )
        )
    return next_url, previous_url
