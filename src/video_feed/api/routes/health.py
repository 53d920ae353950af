"""Health check route handlers.

``GET /api/health``
    Database reachability (``SELECT 1``), a snapshot of the API key pool and
    the state of the in-process poller.  Always returns HTTP 200; the
    ``status`` field distinguishes ``"ok"`` from ``"degraded"``.

These endpoints are diagnostic: they must never raise HTTP 5xx errors.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from video_feed import __version__
from video_feed.api.dependencies import get_ingestion_loop, get_repository, get_search_client
from video_feed.core.exceptions import StorageError
from video_feed.core.repository import VideoRepository
from video_feed.ingestion.poller import IngestionLoop
from video_feed.youtube.client import SearchClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])


async def _check_database(repository: VideoRepository) -> str:
    """Return ``"ok"`` if the database answers ``SELECT 1``, ``"error"`` otherwise."""
    try:
        await repository.ping()
        return "ok"
    except StorageError:
        logger.exception("Health check: database unreachable")
        return "error"


@router.get("/api/health", include_in_schema=True)
async def system_health(
    repository: VideoRepository = Depends(get_repository),
    search_client: Optional[SearchClient] = Depends(get_search_client),
    ingestion_loop: Optional[IngestionLoop] = Depends(get_ingestion_loop),
) -> JSONResponse:
    """Return database, API key and poller health.

    ``status`` is ``"degraded"`` when the database is unreachable or no API
    key is currently usable.

    Returns:
        JSON with keys: ``status``, ``version``, ``database``,
        ``api_status``, ``poller``, ``timestamp``.
    """
    db_status = await _check_database(repository)

    api_status = None
    if search_client is not None:
        api_status = search_client.credential_pool.status().as_dict()

    poller = None
    if ingestion_loop is not None:
        poller = {"state": ingestion_loop.state.value}
        if ingestion_loop.last_result is not None:
            poller["last_cycle"] = ingestion_loop.last_result.as_dict()

    healthy = db_status == "ok" and (api_status is None or api_status["usable"] > 0)
    payload = {
        "status": "ok" if healthy else "degraded",
        "version": __version__,
        "database": db_status,
        "api_status": api_status,
        "poller": poller,
        "timestamp": datetime.now(UTC).isoformat(),
    }
    logger.info("system_health_check", extra={"health": payload})
    return JSONResponse(payload)
