"""Pydantic schemas for videos and paginated responses.

``VideoItem`` is the normalized shape produced by the search client and
consumed by the ingestion loop.  ``VideoRead`` is a stored row as returned
by the read API.  ``Page`` is the ``{results, count, next, previous}``
envelope shared by every listing endpoint.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class Thumbnails(BaseModel):
    """Thumbnail URLs per size variant.  A missing variant is ``""``."""

    default: str = ""
    medium: str = ""
    high: str = ""


class VideoItem(BaseModel):
    """A video as returned by the provider, normalized and not yet stored.

    Attributes:
        external_id: YouTube video ID.
        title: Video title.
        description: Video description snippet.
        published_at: Publication time (tz-aware UTC).
        channel_title: Uploading channel's display name.
        channel_id: Uploading channel's ID.
        origin_query: Topic query that returned this video.
        thumbnails: Thumbnail URLs.
    """

    external_id: str
    title: str = ""
    description: str = ""
    published_at: datetime
    channel_title: str = ""
    channel_id: str = ""
    origin_query: str = ""
    thumbnails: Thumbnails = Thumbnails()


class VideoRead(VideoItem):
    """A stored video row.

    Attributes:
        id: Surrogate primary key.
        created_at: When the row was inserted.
        updated_at: Last modification time (equal to ``created_at``).
    """

    id: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Page(BaseModel, Generic[T]):
    """Paginated response envelope.

    Attributes:
        results: Items on the requested page.
        count: Total number of matching items across all pages.
        next: URL of the next page, or ``None`` on the last page.
        previous: URL of the previous page, or ``None`` on the first page.
    """

    results: list[T]
    count: int
    next: Optional[str] = None
    previous: Optional[str] = None
