"""FastAPI application factory and entry point.

Creates the application instance, registers middleware, mounts the route
routers and, through the lifespan, wires the repository, the YouTube search
client and the background ingestion loop onto ``app.state``.

Usage::

    # Development server (from project root)
    uvicorn video_feed.api.main:app --reload

    # Production
    gunicorn video_feed.api.main:app -k uvicorn.workers.UvicornWorker
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Callable

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from video_feed import __version__
from video_feed.config.settings import get_settings
from video_feed.core.database import AsyncSessionLocal, dispose_engine
from video_feed.core.logging_config import configure_logging, request_id_var
from video_feed.core.repository import VideoRepository
from video_feed.ingestion.bootstrap import build_ingestion_loop, build_search_client

configure_logging("INFO")

logger = structlog.get_logger(__name__)

POLLER_SHUTDOWN_GRACE_SECONDS: float = 30.0


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Build shared collaborators on startup and tear them down on shutdown.

    Without API keys the read API still serves stored videos; live search
    answers 503 and no poller is started.
    """
    settings = get_settings()
    application.state.repository = VideoRepository(AsyncSessionLocal)
    application.state.search_client = None
    application.state.ingestion_loop = None
    poller_task: asyncio.Task[None] | None = None

    if settings.youtube_api_keys:
        search_client = build_search_client(settings)
        application.state.search_client = search_client
        if settings.run_poller_in_api:
            ingestion_loop = build_ingestion_loop(
                settings, application.state.repository, search_client
            )
            application.state.ingestion_loop = ingestion_loop
            poller_task = asyncio.create_task(ingestion_loop.run_forever(), name="ingestion-loop")
    else:
        logger.warning("application_startup: no YOUTUBE_API_KEYS configured, ingestion disabled")

    logger.info(
        "application_startup",
        app_name=settings.app_name,
        debug=settings.debug,
        log_level=settings.log_level,
        poller=poller_task is not None,
    )
    try:
        yield
    finally:
        if poller_task is not None:
            application.state.ingestion_loop.stop()
            try:
                await asyncio.wait_for(poller_task, timeout=POLLER_SHUTDOWN_GRACE_SECONDS)
            except asyncio.TimeoutError:
                logger.warning("application_shutdown: poller did not stop in time, cancelling")
        if application.state.search_client is not None:
            await application.state.search_client.aclose()
        await dispose_engine()
        logger.info("application_shutdown")


def create_app() -> FastAPI:
    """Build and configure the FastAPI application.

    Separated from the module-level ``app`` singleton so that tests can
    call ``create_app()`` with a patched settings environment before the
    singleton is created.

    Returns:
        A fully configured ``FastAPI`` instance.
    """
    settings = get_settings()

    # Re-apply logging configuration with the correct level from settings.
    configure_logging(settings.log_level)

    application = FastAPI(
        title=settings.app_name,
        description="Continuously ingested YouTube videos with paginated listing and search.",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
        redirect_slashes=False,
    )

    # ---- Middleware --------------------------------------------------------

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.middleware("http")
    async def request_logging_middleware(
        request: Request, call_next: Callable
    ) -> Response:
        """Log every incoming request and its response status + duration.

        Attaches a unique ``request_id`` to the structlog context so that all
        log lines emitted during a request can be correlated.
        """
        request_id = str(uuid.uuid4())
        request_id_var.set(request_id)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        start = time.perf_counter()
        response: Response | None = None
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("unhandled_exception", exc_info=exc)
            raise
        finally:
            elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = getattr(response, "status_code", 500)
            log_fn = logger.warning if status_code >= 400 else logger.info
            log_fn(
                "request_complete",
                status_code=status_code,
                elapsed_ms=elapsed_ms,
            )

        response.headers["X-Request-ID"] = request_id
        return response

    # ---- Routers -----------------------------------------------------------

    from video_feed.api.routes import health as health_routes  # noqa: PLC0415
    from video_feed.api.routes import videos as video_routes  # noqa: PLC0415

    application.include_router(health_routes.router)
    application.include_router(video_routes.router)

    @application.get("/health", tags=["system"], include_in_schema=True)
    async def health() -> JSONResponse:
        """Return a minimal process-level liveness status without any I/O.

        Deep checks (database, API keys, poller) are at ``/api/health``.
        """
        return JSONResponse({"status": "ok"})

    return application


app = create_app()
"""The FastAPI application instance.

This is the ASGI callable passed to Uvicorn / Gunicorn.
"""
