"""Background ingestion loop.

:class:`IngestionLoop` polls every configured topic on a fixed tick, drops
videos that are already stored and persists the rest.

State machine::

    IDLE ──► FETCHING ──► PERSISTING ──► IDLE ──► ... ──► STOPPED

One cycle:

1. Compute the watermark: ``published_at`` of the newest stored video minus
   a small slack, or ``now - lookback`` when nothing is stored yet.
2. Ask the search client for each topic's videos published after the
   watermark.  A failing topic is logged and skipped; the others still run.
3. Concatenate the results in topic order.
4. Store every video whose ``external_id`` is not stored yet.  Storage
   errors count against that one video and the cycle carries on.

The first cycle runs immediately.  :meth:`IngestionLoop.stop` is honoured
between cycles and never interrupts one that is in flight.
"""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Callable, Sequence
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any

import structlog

from video_feed.core.credential_pool import utcnow
from video_feed.core.exceptions import StorageError, VideoFeedError
from video_feed.core.repository import VideoRepository
from video_feed.core.schemas.video import VideoItem
from video_feed.youtube.client import SearchClient

logger = structlog.get_logger(__name__)

DEFAULT_INTERVAL_SECONDS: float = 10.0
DEFAULT_LOOKBACK = timedelta(hours=2)
DEFAULT_SLACK = timedelta(minutes=5)


class LoopState(str, enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    PERSISTING = "persisting"
    STOPPED = "stopped"


@dataclass
class CycleResult:
    """Outcome of one ingestion cycle.

    Attributes:
        published_after: Watermark the topics were queried with.
        fetched: Videos returned across all topics.
        stored: Videos newly persisted.
        skipped: Videos already stored.
        errors: Videos whose existence check or insert failed.
        failed_topics: Topics whose fetch failed.
    """

    published_after: datetime
    fetched: int = 0
    stored: int = 0
    skipped: int = 0
    errors: int = 0
    failed_topics: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["published_after"] = self.published_after.isoformat()
        return data


class IngestionLoop:
    """Poll topics on a fixed interval and persist new videos.

    Args:
        repository: Video storage.
        search_client: Client used for every topic fetch.
        topics: Ordered topic list.
        interval: Seconds between the start of two cycles.
        lookback: Watermark distance from now when the store is empty.
        slack: Subtracted from the newest stored ``published_at``.
        concurrent: Fetch the topics of one cycle concurrently.
        clock: Returns the current tz-aware UTC time.
    """

    def __init__(
        self,
        repository: VideoRepository,
        search_client: SearchClient,
        topics: Sequence[str],
        interval: float = DEFAULT_INTERVAL_SECONDS,
        lookback: timedelta = DEFAULT_LOOKBACK,
        slack: timedelta = DEFAULT_SLACK,
        concurrent: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._search = search_client
        self.topics = [t for t in (topic.strip() for topic in topics) if t]
        self._interval = interval
        self._lookback = lookback
        self._slack = slack
        self._concurrent = concurrent
        self._clock = clock
        self._stop_event = asyncio.Event()
        self._state = LoopState.IDLE
        self.last_result: CycleResult | None = None

    @property
    def state(self) -> LoopState:
        return self._state

    def stop(self) -> None:
        """Ask the loop to exit after the current cycle."""
        self._stop_event.set()

    # ------------------------------------------------------------------
    # One cycle
    # ------------------------------------------------------------------

    async def compute_watermark(self) -> datetime:
        """Return the lower ``published_at`` bound for the next fetch."""
        now = self._clock()
        try:
            latest = await self._repository.get_latest()
        except StorageError as exc:
            logger.warning(
                "ingestion: could not read latest video, using lookback window",
                error=str(exc),
            )
            latest = None
        if latest is None:
            return now - self._lookback
        return latest.published_at - self._slack

    async def _fetch_topic(self, topic: str, published_after: datetime) -> list[VideoItem] | None:
        try:
            return await self._search.fetch(topic, published_after)
        except VideoFeedError as exc:
            logger.warning("ingestion: topic fetch failed", topic=topic, error=str(exc))
        except Exception:
            logger.exception("ingestion: unexpected error fetching topic", topic=topic)
        return None

    async def _fetch_all(self, published_after: datetime) -> list[list[VideoItem] | None]:
        if self._concurrent:
            return list(
                await asyncio.gather(
                    *(self._fetch_topic(topic, published_after) for topic in self.topics)
                )
            )
        return [await self._fetch_topic(topic, published_after) for topic in self.topics]

    async def _persist(self, items: list[VideoItem], result: CycleResult) -> None:
        for item in items:
            try:
                if await self._repository.get_by_external_id(item.external_id) is not None:
                    result.skipped += 1
                    continue
                await self._repository.insert(item)
                result.stored += 1
            except StorageError as exc:
                result.errors += 1
                logger.warning(
                    "ingestion: failed to store video",
                    external_id=item.external_id,
                    error=str(exc),
                )

    async def run_cycle(self) -> CycleResult:
        """Run one fetch-and-persist pass over every topic."""
        published_after = await self.compute_watermark()
        result = CycleResult(published_after=published_after)

        self._state = LoopState.FETCHING
        try:
            batches = await self._fetch_all(published_after)

            items: list[VideoItem] = []
            for topic, batch in zip(self.topics, batches):
                if batch is None:
                    result.failed_topics.append(topic)
                    continue
                items.extend(batch)
            result.fetched = len(items)

            self._state = LoopState.PERSISTING
            await self._persist(items, result)
        finally:
            if self._state is not LoopState.STOPPED:
                self._state = LoopState.IDLE

        self.last_result = result
        self._log_cycle(result)
        return result

    def _log_cycle(self, result: CycleResult) -> None:
        if result.stored or result.errors or result.failed_topics:
            logger.info(
                "ingestion: cycle complete",
                **result.as_dict(),
                api_status=self._search.credential_pool.status().as_dict(),
            )
        else:
            logger.debug("ingestion: cycle complete", **result.as_dict())

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def run_forever(self) -> None:
        """Run cycles until :meth:`stop` is called.

        The first cycle starts immediately.  Each later cycle starts
        ``interval`` seconds after the previous one started, or right away
        if the previous one took longer.
        """
        loop = asyncio.get_running_loop()
        logger.info(
            "ingestion: poller started",
            topics=self.topics,
            interval=self._interval,
        )
        while not self._stop_event.is_set():
            started = loop.time()
            try:
                await self.run_cycle()
            except Exception:
                logger.exception("ingestion: cycle crashed")

            remaining = max(0.0, self._interval - (loop.time() - started))
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                pass

        self._state = LoopState.STOPPED
        logger.info("ingestion: poller stopped")
