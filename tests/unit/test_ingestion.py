"""Tests for the ingestion loop.

Tests cover:
- compute_watermark(): newest stored video minus slack, lookback when the
  store is empty or unreadable
- run_cycle() storing new videos from every topic in topic order
- A topic that fails on the first key succeeding after rotation, with the
  pool's active key moving (real SearchClient driven by respx)
- A topic that fails outright being recorded while the others still store
- Replaying a cycle never duplicating or rewriting stored rows
- Per-item storage errors counted without aborting the cycle
- Empty fetches, concurrent topic fetches and LoopState transitions
- run_forever(): immediate first cycle, stop() honoured between cycles,
  crashing cycles not killing the loop
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Any

import httpx
import pytest
import respx

from video_feed.core.credential_pool import CredentialPool
from video_feed.core.exceptions import CredentialsExhaustedError, StorageError
from video_feed.core.repository import VideoRepository
from video_feed.core.schemas.video import VideoItem
from video_feed.ingestion import IngestionLoop, LoopState
from video_feed.youtube.client import SearchClient
from video_feed.youtube.config import YOUTUBE_API_BASE_URL

from tests.conftest import T0, FakeClock, build_item


class _FakeSearch:
    """Stand-in search client returning canned results per topic."""

    def __init__(self, results: dict[str, Any] | None = None) -> None:
        self.results = results or {}
        self.credential_pool = CredentialPool(["AIza-fake"])
        self.calls: list[tuple[str, datetime]] = []

    async def fetch(self, topic: str, published_after: datetime) -> list[VideoItem]:
        self.calls.append((topic, published_after))
        outcome = self.results.get(topic, [])
        if isinstance(outcome, Exception):
            raise outcome
        return list(outcome)


def _loop(
    repository: VideoRepository,
    search: Any,
    clock: FakeClock,
    topics: list[str] | None = None,
    **kwargs: Any,
) -> IngestionLoop:
    return IngestionLoop(
        repository,
        search,
        topics or ["cricket", "football"],
        clock=clock,
        **kwargs,
    )


def _search_payload(*video_ids: str, published: str = "2026-03-01T11:59:00Z") -> dict[str, Any]:
    return {
        "items": [
            {
                "id": {"kind": "youtube#video", "videoId": video_id},
                "snippet": {
                    "publishedAt": published,
                    "channelId": "UC-test",
                    "title": f"Video {video_id}",
                    "description": "",
                    "channelTitle": "Test Channel",
                    "thumbnails": {"default": {"url": f"https://i.ytimg.com/vi/{video_id}/default.jpg"}},
                },
            }
            for video_id in video_ids
        ]
    }


# ---------------------------------------------------------------------------
# Watermark
# ---------------------------------------------------------------------------


class TestWatermark:
    @pytest.mark.asyncio
    async def test_empty_store_uses_lookback(
        self, repository: VideoRepository, clock: FakeClock
    ) -> None:
        loop = _loop(repository, _FakeSearch(), clock)
        assert await loop.compute_watermark() == T0 - timedelta(hours=2)

    @pytest.mark.asyncio
    async def test_newest_stored_minus_slack(
        self, repository: VideoRepository, clock: FakeClock
    ) -> None:
        await repository.insert(build_item("older", published_at=T0 - timedelta(hours=3)))
        await repository.insert(build_item("newest", published_at=T0 - timedelta(minutes=30)))
        loop = _loop(repository, _FakeSearch(), clock)
        assert await loop.compute_watermark() == T0 - timedelta(minutes=35)

    @pytest.mark.asyncio
    async def test_custom_lookback_and_slack(
        self, repository: VideoRepository, clock: FakeClock
    ) -> None:
        loop = _loop(
            repository,
            _FakeSearch(),
            clock,
            lookback=timedelta(hours=6),
            slack=timedelta(minutes=1),
        )
        assert await loop.compute_watermark() == T0 - timedelta(hours=6)
        await repository.insert(build_item("a", published_at=T0))
        assert await loop.compute_watermark() == T0 - timedelta(minutes=1)

    @pytest.mark.asyncio
    async def test_unreadable_store_falls_back_to_lookback(
        self, session_factory, clock: FakeClock
    ) -> None:
        class _BrokenLatest(VideoRepository):
            async def get_latest(self):
                raise StorageError("database unavailable")

        loop = _loop(_BrokenLatest(session_factory, clock=clock), _FakeSearch(), clock)
        assert await loop.compute_watermark() == T0 - timedelta(hours=2)


# ---------------------------------------------------------------------------
# run_cycle
# ---------------------------------------------------------------------------


class TestRunCycle:
    @pytest.mark.asyncio
    async def test_stores_videos_from_every_topic(
        self, repository: VideoRepository, clock: FakeClock
    ) -> None:
        search = _FakeSearch(
            {
                "cricket": [build_item("c1", origin_query="cricket")],
                "football": [
                    build_item("f1", origin_query="football"),
                    build_item("f2", origin_query="football"),
                ],
            }
        )
        loop = _loop(repository, search, clock)
        result = await loop.run_cycle()

        assert (result.fetched, result.stored, result.skipped, result.errors) == (3, 3, 0, 0)
        assert result.failed_topics == []
        assert [topic for topic, _ in search.calls] == ["cricket", "football"]
        assert all(after == T0 - timedelta(hours=2) for _, after in search.calls)
        assert await repository.count() == 3
        stored = await repository.get_by_external_id("f2")
        assert stored is not None
        assert stored.origin_query == "football"
        assert loop.last_result is result
        assert loop.state is LoopState.IDLE

    @pytest.mark.asyncio
    async def test_failing_topic_does_not_block_others(
        self, repository: VideoRepository, clock: FakeClock
    ) -> None:
        search = _FakeSearch(
            {
                "cricket": CredentialsExhaustedError(total=1, topic="cricket"),
                "football": [build_item("f1")],
            }
        )
        result = await _loop(repository, search, clock).run_cycle()
        assert result.failed_topics == ["cricket"]
        assert result.stored == 1
        assert await repository.get_by_external_id("f1") is not None

    @pytest.mark.asyncio
    async def test_unexpected_topic_error_is_contained(
        self, repository: VideoRepository, clock: FakeClock
    ) -> None:
        search = _FakeSearch({"cricket": RuntimeError("boom"), "football": [build_item("f1")]})
        result = await _loop(repository, search, clock).run_cycle()
        assert result.failed_topics == ["cricket"]
        assert result.stored == 1

    @pytest.mark.asyncio
    async def test_zero_results_is_a_normal_cycle(
        self, repository: VideoRepository, clock: FakeClock
    ) -> None:
        result = await _loop(repository, _FakeSearch(), clock).run_cycle()
        assert (result.fetched, result.stored, result.errors) == (0, 0, 0)
        assert result.failed_topics == []

    @pytest.mark.asyncio
    async def test_replay_does_not_duplicate_or_rewrite(
        self, repository: VideoRepository, clock: FakeClock
    ) -> None:
        search = _FakeSearch({"cricket": [build_item("c1", title="Original")]})
        loop = _loop(repository, search, clock, topics=["cricket"])
        await loop.run_cycle()
        first = await repository.get_by_external_id("c1")

        clock.advance(seconds=10)
        search.results["cricket"] = [build_item("c1", title="Edited upstream")]
        result = await loop.run_cycle()

        assert (result.stored, result.skipped) == (0, 1)
        assert await repository.count() == 1
        again = await repository.get_by_external_id("c1")
        assert again is not None and first is not None
        assert again.title == "Original"
        assert again.updated_at == first.updated_at

    @pytest.mark.asyncio
    async def test_same_video_under_two_topics_stored_once(
        self, repository: VideoRepository, clock: FakeClock
    ) -> None:
        search = _FakeSearch(
            {
                "cricket": [build_item("shared", origin_query="cricket")],
                "football": [build_item("shared", origin_query="football")],
            }
        )
        result = await _loop(repository, search, clock).run_cycle()
        assert (result.fetched, result.stored, result.skipped) == (2, 1, 1)
        row = await repository.get_by_external_id("shared")
        assert row is not None
        assert row.origin_query == "cricket"

    @pytest.mark.asyncio
    async def test_per_item_storage_error_is_counted(
        self, session_factory, clock: FakeClock
    ) -> None:
        class _FlakyInsert(VideoRepository):
            async def insert(self, item: VideoItem):
                if item.external_id == "bad":
                    raise StorageError("write failed", item.external_id)
                return await super().insert(item)

        repository = _FlakyInsert(session_factory, clock=clock)
        search = _FakeSearch({"cricket": [build_item("ok-1"), build_item("bad"), build_item("ok-2")]})
        result = await _loop(repository, search, clock, topics=["cricket"]).run_cycle()

        assert (result.stored, result.errors) == (2, 1)
        assert await repository.count() == 2

    @pytest.mark.asyncio
    async def test_concurrent_fetches_keep_topic_order(
        self, repository: VideoRepository, clock: FakeClock
    ) -> None:
        class _SlowFirst(_FakeSearch):
            async def fetch(self, topic: str, published_after: datetime) -> list[VideoItem]:
                if topic == "cricket":
                    await asyncio.sleep(0.01)
                return await super().fetch(topic, published_after)

        # The first topic finishes last but its copy of the shared video must
        # still be the one stored.
        search = _SlowFirst(
            {
                "cricket": [build_item("shared", origin_query="cricket"), build_item("c1")],
                "football": [build_item("shared", origin_query="football")],
                "music": [],
            }
        )
        loop = _loop(
            repository, search, clock, topics=["cricket", "football", "music"], concurrent=True
        )
        result = await loop.run_cycle()

        assert [topic for topic, _ in search.calls][-1] == "cricket"
        assert (result.fetched, result.stored, result.skipped) == (3, 2, 1)
        row = await repository.get_by_external_id("shared")
        assert row is not None
        assert row.origin_query == "cricket"

    def test_blank_topics_are_dropped(self, repository: VideoRepository, clock: FakeClock) -> None:
        loop = _loop(repository, _FakeSearch(), clock, topics=[" cricket ", "", "  "])
        assert loop.topics == ["cricket"]

    @pytest.mark.asyncio
    async def test_as_dict_is_serializable(
        self, repository: VideoRepository, clock: FakeClock
    ) -> None:
        result = await _loop(repository, _FakeSearch(), clock).run_cycle()
        data = result.as_dict()
        assert data["published_after"] == (T0 - timedelta(hours=2)).isoformat()
        assert data["failed_topics"] == []


# ---------------------------------------------------------------------------
# Rotation through the real search client
# ---------------------------------------------------------------------------


class TestRotationDuringCycle:
    @pytest.mark.asyncio
    async def test_topic_recovers_on_next_key(
        self, repository: VideoRepository, clock: FakeClock
    ) -> None:
        pool = CredentialPool(["AIza-one", "AIza-two"], clock=clock)

        def handler(request: httpx.Request) -> httpx.Response:
            params = request.url.params
            if params["key"] == "AIza-one":
                return httpx.Response(
                    403, json={"error": {"code": 403, "errors": [{"reason": "quotaExceeded"}]}}
                )
            if params["q"] == "cricket":
                return httpx.Response(200, json=_search_payload("c1", "c2"))
            return httpx.Response(200, json=_search_payload("f1"))

        with respx.mock(base_url=YOUTUBE_API_BASE_URL) as mock:
            route = mock.get("/search").mock(side_effect=handler)
            async with httpx.AsyncClient() as http:
                search = SearchClient(pool, http_client=http)
                result = await _loop(repository, search, clock).run_cycle()

        assert result.failed_topics == []
        assert result.stored == 3
        assert route.call_count == 3
        assert pool.current().index == 1
        assert pool.status().exhausted == 1
        for external_id in ("c1", "c2", "f1"):
            assert await repository.get_by_external_id(external_id) is not None

    @pytest.mark.asyncio
    async def test_all_keys_exhausted_fails_every_topic(
        self, repository: VideoRepository, clock: FakeClock
    ) -> None:
        pool = CredentialPool(["AIza-one", "AIza-two"], clock=clock)
        with respx.mock(base_url=YOUTUBE_API_BASE_URL) as mock:
            mock.get("/search").mock(return_value=httpx.Response(500, text="backend error"))
            async with httpx.AsyncClient() as http:
                search = SearchClient(pool, http_client=http)
                result = await _loop(repository, search, clock).run_cycle()

        assert result.failed_topics == ["cricket", "football"]
        assert result.stored == 0
        assert pool.status().usable == 0


# ---------------------------------------------------------------------------
# run_forever / stop
# ---------------------------------------------------------------------------


class TestRunForever:
    @pytest.mark.asyncio
    async def test_stop_before_start_runs_no_cycle(
        self, repository: VideoRepository, clock: FakeClock
    ) -> None:
        search = _FakeSearch()
        loop = _loop(repository, search, clock, interval=0.01)
        loop.stop()
        await asyncio.wait_for(loop.run_forever(), timeout=2)
        assert search.calls == []
        assert loop.state is LoopState.STOPPED

    @pytest.mark.asyncio
    async def test_first_cycle_is_immediate_and_stop_ends_loop(
        self, repository: VideoRepository, clock: FakeClock
    ) -> None:
        loop_ref: list[IngestionLoop] = []

        class _StopAfterFirst(_FakeSearch):
            async def fetch(self, topic: str, published_after: datetime) -> list[VideoItem]:
                loop_ref[0].stop()
                return await super().fetch(topic, published_after)

        search = _StopAfterFirst({"cricket": [build_item("c1")]})
        # A long interval proves stop() wakes the wait early.
        loop = _loop(repository, search, clock, topics=["cricket"], interval=60)
        loop_ref.append(loop)

        await asyncio.wait_for(loop.run_forever(), timeout=2)

        assert len(search.calls) == 1
        assert await repository.count() == 1
        assert loop.state is LoopState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_while_waiting(self, repository: VideoRepository, clock: FakeClock) -> None:
        search = _FakeSearch()
        loop = _loop(repository, search, clock, interval=60)
        task = asyncio.create_task(loop.run_forever())
        for _ in range(50):
            if loop.last_result is not None:
                break
            await asyncio.sleep(0.01)
        loop.stop()
        await asyncio.wait_for(task, timeout=2)
        assert loop.state is LoopState.STOPPED
        assert len(search.calls) == 2

    @pytest.mark.asyncio
    async def test_crashing_cycle_does_not_kill_loop(
        self, session_factory, clock: FakeClock
    ) -> None:
        attempts: list[int] = []
        loop_ref: list[IngestionLoop] = []

        class _CrashOnce(VideoRepository):
            async def get_by_external_id(self, external_id: str):
                attempts.append(1)
                if len(attempts) == 1:
                    raise RuntimeError("unexpected")
                loop_ref[0].stop()
                return await super().get_by_external_id(external_id)

        repository = _CrashOnce(session_factory, clock=clock)
        search = _FakeSearch({"cricket": [build_item("c1")]})
        loop = _loop(repository, search, clock, topics=["cricket"], interval=0.01)
        loop_ref.append(loop)

        await asyncio.wait_for(loop.run_forever(), timeout=2)

        assert len(search.calls) == 2
        assert loop.state is LoopState.STOPPED
