"""Route tests for the health endpoints.

Tests cover:
- GET /health liveness
- GET /api/health: ok with a reachable database and no API keys, degraded
  on database failure or with every key cooling down, poller state and last
  cycle reporting
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from httpx import AsyncClient

from video_feed.api.dependencies import get_ingestion_loop, get_repository, get_search_client
from video_feed.core.credential_pool import CredentialPool
from video_feed.core.exceptions import StorageError
from video_feed.ingestion import CycleResult, LoopState

from tests.conftest import T0


def _search_client(pool: CredentialPool) -> MagicMock:
    search_client = MagicMock()
    search_client.credential_pool = pool
    return search_client


class TestLiveness:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient) -> None:
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestSystemHealth:
    @pytest.mark.asyncio
    async def test_ok_without_keys(self, client: AsyncClient) -> None:
        body = (await client.get("/api/health")).json()
        assert body["status"] == "ok"
        assert body["database"] == "ok"
        assert body["api_status"] is None
        assert body["poller"] is None
        assert "version" in body
        assert "timestamp" in body

    @pytest.mark.asyncio
    async def test_reports_pool_snapshot(self, app: FastAPI, client: AsyncClient) -> None:
        pool = CredentialPool(["AIza-one", "AIza-two"])
        pool.mark_exhausted(0)
        pool.rotate()
        app.dependency_overrides[get_search_client] = lambda: _search_client(pool)

        body = (await client.get("/api/health")).json()
        assert body["status"] == "ok"
        assert body["api_status"] == {"total": 2, "usable": 1, "exhausted": 1, "active_index": 1}
        assert "AIza-one" not in str(body)

    @pytest.mark.asyncio
    async def test_all_keys_cooling_is_degraded(self, app: FastAPI, client: AsyncClient) -> None:
        pool = CredentialPool(["AIza-one"])
        pool.mark_exhausted(0)
        app.dependency_overrides[get_search_client] = lambda: _search_client(pool)

        response = await client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    @pytest.mark.asyncio
    async def test_database_failure_is_degraded(self, app: FastAPI, client: AsyncClient) -> None:
        broken = MagicMock()
        broken.ping = AsyncMock(side_effect=StorageError("connection refused"))
        app.dependency_overrides[get_repository] = lambda: broken

        response = await client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "degraded"
        assert body["database"] == "error"

    @pytest.mark.asyncio
    async def test_poller_state_and_last_cycle(self, app: FastAPI, client: AsyncClient) -> None:
        loop = MagicMock()
        loop.state = LoopState.IDLE
        loop.last_result = CycleResult(
            published_after=T0 - timedelta(minutes=5), fetched=4, stored=3, skipped=1
        )
        app.dependency_overrides[get_ingestion_loop] = lambda: loop

        poller = (await client.get("/api/health")).json()["poller"]
        assert poller["state"] == "idle"
        assert poller["last_cycle"]["stored"] == 3
        assert poller["last_cycle"]["published_after"] == (T0 - timedelta(minutes=5)).isoformat()
