"""Thin async HTTP client for the local messaging backend."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from chatfeed.config import config
from chatfeed.errors import NetworkError, ServerError

log = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Pull the backend's ``{"error": "..."}`` text out of a failed response."""
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or "request failed"
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, str) and err:
            return err
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return response.reason_phrase or "request failed"


class HTTPClient:
    """Wraps ``httpx.AsyncClient``; maps failures onto the chatfeed error types."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or config.server.api_base).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else config.server.request_timeout,
            transport=transport,
        )

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            log.warning("%s %s failed: %s", method, path, e)
            raise NetworkError(f"{method} {path}: {e}") from e
        if response.status_code >= 400:
            raise ServerError(response.status_code, _error_message(response))
        return response

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", path, **kwargs)

    async def close(self) -> None:
        await self._client.aclose()
