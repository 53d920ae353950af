"""YouTube search client with credential rotation.

:class:`SearchClient` is the only caller of the YouTube Data API.  It offers
two entry points:

- :meth:`SearchClient.fetch` — the ingestion path.  Newest-first query for
  one topic bounded by a watermark.  A failed call marks the key it used as
  exhausted, rotates the pool and retries with the next key.
- :meth:`SearchClient.search_live` — the interactive path behind
  ``/api/videos/youtube-search``.  One call with the active key, no
  watermark, no rotation.

Every provider failure (quota, other HTTP error, timeout, bad body) is
treated the same way by :meth:`fetch`.  The YouTube error ``reason`` is
logged so quota exhaustion can be told apart from other failures when
reading logs, but it does not change what happens to the key.
"""

from __future__ import annotations

from datetime import datetime
from types import TracebackType

import httpx
import structlog

from video_feed.core.credential_pool import CredentialPool
from video_feed.core.exceptions import CredentialsExhaustedError, SearchProviderError
from video_feed.core.schemas.video import VideoItem
from video_feed.youtube._client import normalize_search_items, search_videos
from video_feed.youtube.config import LIVE_SEARCH_ORDER, ORDER_DATE, ORDER_RELEVANCE

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS: float = 10.0


def live_search_order(order_hint: str | None) -> str:
    """Map a read-API sort hint to a ``search.list`` ``order`` value."""
    return LIVE_SEARCH_ORDER.get((order_hint or "").strip().lower(), ORDER_RELEVANCE)


class SearchClient:
    """Search ``search.list`` on behalf of the poller and the read API.

    Args:
        credential_pool: Pool of API keys shared with the health endpoint.
        max_results: ``maxResults`` for :meth:`fetch`.
        region_code: ``regionCode`` pass-through.
        relevance_language: ``relevanceLanguage`` pass-through.
        safe_search: ``safeSearch`` pass-through.
        timeout: Upper bound in seconds on one HTTP call.
        http_client: Optional injected :class:`httpx.AsyncClient`.  An
            injected client is not closed by :meth:`aclose`.
    """

    def __init__(
        self,
        credential_pool: CredentialPool,
        max_results: int = 50,
        region_code: str | None = None,
        relevance_language: str | None = None,
        safe_search: str | None = "moderate",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.credential_pool = credential_pool
        self._max_results = max_results
        self._region_code = region_code
        self._relevance_language = relevance_language
        self._safe_search = safe_search
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def __aenter__(self) -> SearchClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Ingestion path
    # ------------------------------------------------------------------

    async def fetch(self, topic: str, published_after: datetime) -> list[VideoItem]:
        """Return videos for ``topic`` published after ``published_after``.

        Tries at most one attempt per configured key.  After each failure the
        key used is marked exhausted and the pool rotates; the next attempt
        uses whatever key is then active.

        Args:
            topic: Search term.
            published_after: Watermark; only newer videos are requested.

        Returns:
            Normalized videos in provider order (newest first).

        Raises:
            CredentialsExhaustedError: When rotation finds no usable key.
        """
        pool = self.credential_pool
        for attempt in range(1, len(pool) + 1):
            credential = pool.current()
            try:
                raw_items = await search_videos(
                    self._http,
                    api_key=credential.api_key,
                    term=topic,
                    max_results=self._max_results,
                    order=ORDER_DATE,
                    published_after=published_after,
                    region_code=self._region_code,
                    relevance_language=self._relevance_language,
                    safe_search=self._safe_search,
                )
            except SearchProviderError as exc:
                logger.warning(
                    "youtube: fetch failed, rotating credential",
                    topic=topic,
                    key_index=credential.index,
                    attempt=attempt,
                    status_code=exc.status_code,
                    reason=exc.reason,
                    error=str(exc),
                )
                pool.mark_exhausted(credential.index)
                if not pool.rotate(expected_index=credential.index):
                    raise CredentialsExhaustedError(total=len(pool), topic=topic) from exc
                continue

            videos = normalize_search_items(raw_items, origin_query=topic)
            logger.debug(
                "youtube: fetch ok",
                topic=topic,
                key_index=credential.index,
                count=len(videos),
            )
            return videos

        raise CredentialsExhaustedError(total=len(pool), topic=topic)

    # ------------------------------------------------------------------
    # Interactive path
    # ------------------------------------------------------------------

    async def search_live(
        self,
        topic: str,
        max_results: int,
        order_hint: str | None = None,
    ) -> list[VideoItem]:
        """Run one ad-hoc search with the active key.

        Args:
            topic: Free-text query.
            max_results: Number of results to request (clamped to 1–50).
            order_hint: Read-API sort key; see :func:`live_search_order`.

        Raises:
            SearchProviderError: On any provider failure.  The key is not
                marked exhausted and the pool does not rotate.
        """
        credential = self.credential_pool.current()
        raw_items = await search_videos(
            self._http,
            api_key=credential.api_key,
            term=topic,
            max_results=max_results,
            order=live_search_order(order_hint),
            region_code=self._region_code,
            relevance_language=self._relevance_language,
            safe_search=self._safe_search,
        )
        return normalize_search_items(raw_items, origin_query=topic)
