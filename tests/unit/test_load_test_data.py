"""Tests for the scripts/load_test_data.py seeding script.

Tests cover:
- build_sample_videos() spacing publish times one hour apart before ``now``
- load_test_data() inserting every sample once and skipping stored ones
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from scripts.load_test_data import build_sample_videos, load_test_data
from tests.conftest import T0, build_item
from video_feed.core.query_builder import Pagination
from video_feed.core.repository import VideoRepository


class TestBuildSampleVideos:
    def test_published_one_hour_apart(self) -> None:
        videos = build_sample_videos(T0)
        assert [v.published_at for v in videos] == [
            T0 - timedelta(hours=h) for h in range(1, len(videos) + 1)
        ]

    def test_external_ids_are_unique(self) -> None:
        ids = [v.external_id for v in build_sample_videos(T0)]
        assert len(ids) == len(set(ids)) == 4


class TestLoadTestData:
    @pytest.mark.asyncio
    async def test_inserts_every_sample(self, repository: VideoRepository) -> None:
        assert await load_test_data(repository, now=T0) == 4

        rows, total = await repository.list_page("cricket", "latest", Pagination())
        assert total == 3
        assert [r.external_id for r in rows] == [
            "test_cricket_1",
            "test_cricket_2",
            "test_tutorial_1",
        ]

    @pytest.mark.asyncio
    async def test_rerun_inserts_nothing(self, repository: VideoRepository) -> None:
        await load_test_data(repository, now=T0)
        assert await load_test_data(repository, now=T0) == 0
        assert await repository.count() == 4

    @pytest.mark.asyncio
    async def test_already_stored_sample_is_skipped(self, repository: VideoRepository) -> None:
        await repository.insert(build_item("test_football_1", title="Kept as is"))

        assert await load_test_data(repository, now=T0) == 3
        row = await repository.get_by_external_id("test_football_1")
        assert row is not None
        assert row.title == "Kept as is"
