"""Video ORM model.

One row per YouTube video discovered by the ingestion loop.  Rows are
inserted once and never updated or deleted by the application.

``external_id`` (the YouTube video ID) carries a unique index: the ingestion
loop checks for an existing row before inserting, and the constraint turns
any race between two writers into an insert failure rather than a duplicate.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from video_feed.core.models.base import Base, JSONVariant, TimestampMixin


class Video(TimestampMixin, Base):
    """A video returned by a topic query.

    Columns:
        id: Surrogate primary key.
        external_id: YouTube video ID, unique across the table.
        title / description: Searchable text.
        published_at: Publication time on YouTube; default sort key.
        channel_title / channel_id: Uploading channel.
        origin_query: Topic query that first discovered the video.
        thumbnails: ``{"default": url, "medium": url, "high": url}``.
    """

    __tablename__ = "videos"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    external_id: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    title: Mapped[str] = mapped_column(sa.String(500), nullable=False, default="")
    description: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")
    published_at: Mapped[datetime] = mapped_column(nullable=False)
    channel_title: Mapped[str] = mapped_column(sa.String(255), nullable=False, default="")
    channel_id: Mapped[str] = mapped_column(sa.String(64), nullable=False, default="")
    origin_query: Mapped[str] = mapped_column(sa.String(255), nullable=False, default="")
    thumbnails: Mapped[dict[str, Any]] = mapped_column(JSONVariant, nullable=False, default=dict)

    __table_args__ = (
        sa.Index("uq_videos_external_id", "external_id", unique=True),
        sa.Index("idx_videos_published_at", "published_at"),
    )

    def __repr__(self) -> str:
        return f"<Video external_id={self.external_id!r} published_at={self.published_at}>"


# Composite indexes serving ``sort=channel`` and per-topic newest-first reads.
sa.Index(
    "idx_videos_channel_title_published_at",
    Video.channel_title,
    Video.published_at.desc(),
)
sa.Index(
    "idx_videos_origin_query_published_at",
    Video.origin_query,
    Video.published_at.desc(),
)
