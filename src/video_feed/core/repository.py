"""Video storage access.

``VideoRepository`` is the only code that talks to the ``videos`` table.  It
exposes the small document-store style contract the ingestion loop and the
read API need (``count`` / ``find`` / ``find_one`` / ``insert``) on top of
SQLAlchemy, plus a few named helpers built from them.

Every SQLAlchemy failure is re-raised as
:class:`~video_feed.core.exceptions.StorageError` so callers can count or map
storage problems without importing SQLAlchemy.

Each method opens and closes its own session from the injected factory, so
one repository instance can be shared by the background poller and by
concurrent API requests.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from video_feed.core.exceptions import StorageError
from video_feed.core.models.video import Video
from video_feed.core.query_builder import (
    Pagination,
    list_filter,
    search_filter,
    sort_spec,
)
from video_feed.core.schemas.video import VideoItem

logger = structlog.get_logger(__name__)

SessionFactory = Callable[[], AsyncSession]


class VideoRepository:
    """Read and write access to stored videos.

    Args:
        session_factory: Zero-argument callable returning a new
            ``AsyncSession`` (an ``async_sessionmaker`` or
            :func:`video_feed.core.database.AsyncSessionLocal`).
        clock: Returns the current time; used for ``created_at`` /
            ``updated_at`` on insert.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or (lambda: datetime.now(UTC))

    # ------------------------------------------------------------------
    # Generic contract
    # ------------------------------------------------------------------

    async def count(self, where: ColumnElement[bool] | None = None) -> int:
        """Return the number of videos matching ``where``."""
        stmt = sa.select(sa.func.count()).select_from(Video)
        if where is not None:
            stmt = stmt.where(where)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return int(result.scalar_one())
        except SQLAlchemyError as exc:
            raise StorageError(f"count failed: {exc}") from exc

    async def find(
        self,
        where: ColumnElement[bool] | None = None,
        order_by: Sequence[Any] = (),
        skip: int = 0,
        limit: int | None = None,
    ) -> list[Video]:
        """Return videos matching ``where`` in the given order.

        Args:
            where: Filter expression; ``None`` matches everything.
            order_by: ORDER BY clauses, typically from
                :func:`~video_feed.core.query_builder.sort_spec`.
            skip: Rows to skip.
            limit: Maximum rows to return; ``None`` for no limit.
        """
        stmt = sa.select(Video)
        if where is not None:
            stmt = stmt.where(where)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if skip:
            stmt = stmt.offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise StorageError(f"find failed: {exc}") from exc

    async def find_one(
        self,
        where: ColumnElement[bool] | None = None,
        order_by: Sequence[Any] = (),
    ) -> Video | None:
        """Return the first video matching ``where``, or ``None``."""
        rows = await self.find(where, order_by=order_by, limit=1)
        return rows[0] if rows else None

    async def insert(self, item: VideoItem) -> Video:
        """Persist a new video.

        ``created_at`` and ``updated_at`` are both set to the current time.

        Raises:
            StorageError: If the write fails, including a unique-constraint
                violation on ``external_id``.
        """
        now = self._clock()
        video = Video(
            external_id=item.external_id,
            title=item.title,
            description=item.description,
            published_at=item.published_at,
            channel_title=item.channel_title,
            channel_id=item.channel_id,
            origin_query=item.origin_query,
            thumbnails=item.thumbnails.model_dump(),
            created_at=now,
            updated_at=now,
        )
        try:
            async with self._session_factory() as session:
                session.add(video)
                await session.commit()
        except IntegrityError as exc:
            raise StorageError(
                f"video {item.external_id} already stored", external_id=item.external_id
            ) from exc
        except SQLAlchemyError as exc:
            raise StorageError(
                f"insert failed for {item.external_id}: {exc}", external_id=item.external_id
            ) from exc
        return video

    # ------------------------------------------------------------------
    # Named helpers
    # ------------------------------------------------------------------

    async def get_by_external_id(self, external_id: str) -> Video | None:
        """Return the stored video with this YouTube ID, or ``None``."""
        return await self.find_one(Video.external_id == external_id)

    async def get_latest(self) -> Video | None:
        """Return the most recently published stored video, or ``None``."""
        return await self.find_one(order_by=sort_spec("latest"))

    async def list_page(
        self,
        query_text: str | None,
        sort_key: str | None,
        pagination: Pagination,
    ) -> tuple[list[Video], int]:
        """Return one page of videos and the total match count.

        Args:
            query_text: Keyword query; ``None`` or blank lists everything.
            sort_key: Raw sort key; unknown values sort by ``latest``.
            pagination: Validated page request.

        Returns:
            ``(rows, total)``.
        """
        where = search_filter(query_text) if query_text else list_filter()
        total = await self.count(where)
        rows = await self.find(
            where,
            order_by=sort_spec(sort_key),
            skip=pagination.skip,
            limit=pagination.limit,
        )
        logger.debug(
            "repository: list_page",
            query=query_text,
            sort=sort_key,
            page=pagination.page,
            page_size=pagination.page_size,
            total=total,
            returned=len(rows),
        )
        return rows, total

    async def ping(self) -> None:
        """Run ``SELECT 1``; raises :class:`StorageError` when unreachable."""
        try:
            async with self._session_factory() as session:
                await session.execute(sa.text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise StorageError(f"database unreachable: {exc}") from exc
