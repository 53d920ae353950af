"""Fixtures for route tests.

``app`` is a fresh application whose collaborators are injected through
``dependency_overrides``; the lifespan never runs, so no poller starts and
no real database is touched.  Tests that need a different repository or a
search client replace the overrides themselves.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from video_feed.api.dependencies import get_ingestion_loop, get_repository, get_search_client
from video_feed.api.main import create_app
from video_feed.core.repository import VideoRepository


@pytest.fixture
def app(repository: VideoRepository) -> FastAPI:
    application = create_app()
    application.dependency_overrides[get_repository] = lambda: repository
    application.dependency_overrides[get_search_client] = lambda: None
    application.dependency_overrides[get_ingestion_loop] = lambda: None
    return application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
    ) as ac:
        yield ac
