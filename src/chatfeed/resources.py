"""Deduplicating, negatively-cached, concurrency-bounded fetch cache.

``fetch(key)`` goes to the network at most once at a time per key, and at
most ``concurrency`` times at a time overall; extra requests wait their turn
in arrival order.  A fetcher returns the resource, or ``None`` when the
server confirms it does not exist.  Confirmed absences are remembered for
``negative_ttl`` seconds (checked lazily on lookup).  Exceptions are never
cached; every caller waiting on the failed fetch sees the exception.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

log = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class _Absent:
    """Marker returned by ``ResourceCache.get`` for a cached not-found."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()


@dataclass
class CacheStats:
    cached: int
    negatively_cached: int
    pending: int
    queued: int
    active: int


class ResourceCache(Generic[K, V]):
    def __init__(
        self,
        fetcher: Callable[[K], Awaitable[V | None]],
        *,
        concurrency: int = 3,
        negative_ttl: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._fetcher = fetcher
        self.concurrency = concurrency
        self.negative_ttl = negative_ttl
        self._clock = clock
        self._values: dict[K, V] = {}
        # key -> clock reading when the not-found was recorded
        self._absent: dict[K, float] = {}
        self._pending: dict[K, asyncio.Task[V | None]] = {}
        self._slots = asyncio.Semaphore(concurrency)
        self._queued = 0
        self._active = 0

    def _is_negatively_cached(self, key: K) -> bool:
        cached_at = self._absent.get(key)
        if cached_at is None:
            return False
        if self._clock() - cached_at > self.negative_ttl:
            del self._absent[key]
            return False
        return True

    def get(self, key: K) -> V | _Absent | None:
        """Cached value, ``ABSENT`` for a live not-found entry, or None if unknown."""
        if key in self._values:
            return self._values[key]
        if self._is_negatively_cached(key):
            return ABSENT
        return None

    async def fetch(self, key: K) -> V | None:
        """Return the resource for *key*, or None if it does not exist."""
        cached = self.get(key)
        if cached is ABSENT:
            return None
        if cached is not None:
            return cached

        task = self._pending.get(key)
        if task is None:
            task = asyncio.create_task(self._load(key))
            self._pending[key] = task
            task.add_done_callback(lambda t: self._forget_pending(key, t))
        # A caller giving up must not cancel the fetch for everyone else.
        return await asyncio.shield(task)

    def _forget_pending(self, key: K, task: asyncio.Task[V | None]) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        if not task.cancelled() and task.exception() is not None:
            log.debug("Fetch for %r failed: %s", key, task.exception())

    async def _load(self, key: K) -> V | None:
        self._queued += 1
        try:
            await self._slots.acquire()
        finally:
            self._queued -= 1
        self._active += 1
        try:
            value = await self._fetcher(key)
        finally:
            self._active -= 1
            self._slots.release()

        if value is None:
            self._absent[key] = self._clock()
        else:
            self._values[key] = value
            self._absent.pop(key, None)
        return value

    def clear(self) -> None:
        """Drop both caches; in-flight fetches still complete and repopulate."""
        self._values.clear()
        self._absent.clear()

    def stats(self) -> CacheStats:
        return CacheStats(
            cached=len(self._values),
            negatively_cached=len(self._absent),
            pending=len(self._pending),
            queued=self._queued,
            active=self._active,
        )
