"""Credential pool for rotating YouTube Data API keys.

Each GCP project key carries its own daily quota, so configuring several keys
multiplies the quota available to the poller.  The pool keeps the keys in
their configured order, tracks when each one last failed, and picks the next
usable key when the active one fails.

Cool-down
---------
A key that failed is skipped by rotation for ``cooldown`` (23 hours by
default, just under YouTube's daily quota reset).  The failure timestamp is
cleared lazily: only when rotation revisits the key after the window has
elapsed.

Concurrency
-----------
The pool is shared by overlapping topic fetches within one ingestion cycle
and by the health endpoint.  All state is guarded by one reader/writer lock:
``current()`` and ``status()`` are readers, ``mark_exhausted()`` and
``rotate()`` are writers.  None of the methods block on I/O, so calling them
from async code is safe.

Usage::

    pool = CredentialPool(settings.youtube_api_keys)
    cred = pool.current()
    try:
        ...  # call the API with cred.api_key
    except SearchProviderError:
        pool.mark_exhausted(cred.index)
        if not pool.rotate(expected_index=cred.index):
            raise CredentialsExhaustedError(total=len(pool))
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from video_feed.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN: timedelta = timedelta(hours=23)
"""Default time a failed key is skipped by rotation."""


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(tz=UTC)


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Credential:
    """Snapshot of one configured API key.

    Attributes:
        index: Zero-based position in the configured key list.
        api_key: The secret key value (excluded from ``repr``).
        exhausted_at: When the key last failed, or ``None``.
    """

    index: int
    api_key: str = field(repr=False)
    exhausted_at: datetime | None = None


@dataclass(frozen=True)
class PoolStatus:
    """Observability snapshot of the pool.  Not used for decisions."""

    total: int
    usable: int
    exhausted: int
    active_index: int

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Reader/writer lock
# ---------------------------------------------------------------------------


class _ReadWriteLock:
    """Many concurrent readers or one writer; writers are not starved.

    A waiting writer blocks new readers from entering, so a steady stream of
    ``status()`` calls cannot hold off a rotation indefinitely.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


# ---------------------------------------------------------------------------
# CredentialPool
# ---------------------------------------------------------------------------


class CredentialPool:
    """Ordered set of API keys with per-key cool-down tracking.

    Args:
        api_keys: Keys in rotation order.  Must not be empty.
        cooldown: How long a failed key is skipped by rotation.
        clock: Callable returning the current tz-aware time.  Injected in
            tests to move time forward without sleeping.

    Raises:
        ConfigurationError: If ``api_keys`` is empty.
    """

    def __init__(
        self,
        api_keys: Sequence[str],
        cooldown: timedelta = DEFAULT_COOLDOWN,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        keys = [key for key in api_keys if key]
        if not keys:
            raise ConfigurationError(
                "At least one YouTube API key is required. Set YOUTUBE_API_KEYS."
            )
        self._keys: tuple[str, ...] = tuple(keys)
        self._cooldown = cooldown
        self._clock = clock
        self._active = 0
        self._exhausted_at: dict[int, datetime] = {}
        self._lock = _ReadWriteLock()
        logger.info("credential pool initialised with %d API keys", len(self._keys))

    def __len__(self) -> int:
        return len(self._keys)

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def current(self) -> Credential:
        """Return the credential at the active index."""
        with self._lock.read():
            index = self._active
            return Credential(
                index=index,
                api_key=self._keys[index],
                exhausted_at=self._exhausted_at.get(index),
            )

    def status(self) -> PoolStatus:
        """Return total, usable and exhausted counts plus the active index.

        A key whose cool-down has elapsed counts as usable even if its
        failure timestamp has not been cleared yet.
        """
        with self._lock.read():
            now = self._clock()
            exhausted = sum(
                1 for failed_at in self._exhausted_at.values()
                if not self._cooled_down(failed_at, now)
            )
            return PoolStatus(
                total=len(self._keys),
                usable=len(self._keys) - exhausted,
                exhausted=exhausted,
                active_index=self._active,
            )

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    def mark_exhausted(self, index: int) -> None:
        """Record that the key at ``index`` failed just now.

        Args:
            index: Position of the failed key.

        Raises:
            IndexError: If ``index`` is outside the configured key list.
        """
        if not 0 <= index < len(self._keys):
            raise IndexError(f"credential index {index} out of range")
        with self._lock.write():
            self._exhausted_at[index] = self._clock()
        logger.warning(
            "API key %d marked as exhausted (skipped for %s)",
            index + 1,
            self._cooldown,
        )

    def rotate(self, expected_index: int | None = None) -> bool:
        """Advance the active index to the next usable key.

        Scans forward circularly from the active index, skipping keys still
        cooling down and clearing failure timestamps whose window elapsed.

        Args:
            expected_index: The index the caller was using when its request
                failed.  If the active index has already moved away from it
                to a usable key (a concurrent fetch rotated first), no further
                rotation happens and ``True`` is returned.

        Returns:
            ``True`` if the active key is now a different, usable key;
            ``False`` if no other usable key exists, in which case the active
            index is left unchanged.
        """
        with self._lock.write():
            now = self._clock()
            original = self._active

            if (
                expected_index is not None
                and original != expected_index
                and self._is_usable(original, now)
            ):
                return True

            total = len(self._keys)
            for step in range(1, total + 1):
                candidate = (original + step) % total
                failed_at = self._exhausted_at.get(candidate)
                if failed_at is not None:
                    if not self._cooled_down(failed_at, now):
                        logger.info(
                            "skipping API key %d (cool-down ends in %s)",
                            candidate + 1,
                            self._cooldown - (now - failed_at),
                        )
                        continue
                    del self._exhausted_at[candidate]
                    logger.info("API key %d cool-down elapsed, trying again", candidate + 1)

                if candidate == original:
                    break
                self._active = candidate
                logger.info("rotated to API key %d", candidate + 1)
                return True

            logger.error("all %d API keys are exhausted; waiting for quota reset", total)
            return False

    # ------------------------------------------------------------------
    # Helpers (callers hold the lock)
    # ------------------------------------------------------------------

    def _cooled_down(self, failed_at: datetime, now: datetime) -> bool:
        return now - failed_at >= self._cooldown

    def _is_usable(self, index: int, now: datetime) -> bool:
        failed_at = self._exhausted_at.get(index)
        return failed_at is None or self._cooled_down(failed_at, now)
