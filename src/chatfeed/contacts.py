"""Contact photo lookups on top of ``ResourceCache``."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING
from urllib.parse import quote

from chatfeed.config import config
from chatfeed.errors import ServerError
from chatfeed.resources import ABSENT, CacheStats, ResourceCache

if TYPE_CHECKING:
    from chatfeed.http import HTTPClient

log = logging.getLogger(__name__)


def photo_path(handle: str) -> str:
    return f"/contacts/{quote(handle, safe='')}/photo"


class ContactPhotos:
    """Resolves contact handles to photo URLs, remembering handles without one.

    A 404 from the backend is cached as "no photo" for the negative TTL.
    Transport failures and other server errors propagate and are retried on
    the next call.
    """

    def __init__(
        self,
        http: HTTPClient,
        *,
        concurrency: int | None = None,
        negative_ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._http = http
        self._cache: ResourceCache[str, str] = ResourceCache(
            self._lookup,
            concurrency=concurrency or config.photos.concurrency,
            negative_ttl=negative_ttl if negative_ttl is not None else config.photos.negative_ttl_s,
            clock=clock,
        )

    def photo_url(self, handle: str) -> str:
        """URL of the photo for *handle*, without checking that it exists."""
        return f"{self._http.base_url}{photo_path(handle)}"

    def cached(self, handle: str) -> str | None:
        """Known URL, or None when absent or not looked up yet."""
        hit = self._cache.get(handle)
        return None if hit is ABSENT else hit

    def has_no_photo(self, handle: str) -> bool:
        return self._cache.get(handle) is ABSENT

    async def fetch(self, handle: str) -> str | None:
        return await self._cache.fetch(handle)

    async def _lookup(self, handle: str) -> str | None:
        try:
            await self._http.get(photo_path(handle))
        except ServerError as e:
            if e.is_not_found:
                log.debug("No photo for %s", handle)
                return None
            raise
        return self.photo_url(handle)

    def clear(self) -> None:
        self._cache.clear()

    def stats(self) -> CacheStats:
        return self._cache.stats()
