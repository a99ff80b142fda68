"""Message history and send endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import ValidationError

from chatfeed.errors import ProtocolError
from chatfeed.models.base import FeedModel
from chatfeed.models.messages import MessagesPage, SendResult

if TYPE_CHECKING:
    import httpx

    from chatfeed.http import HTTPClient

M = TypeVar("M", bound=FeedModel)


def _decode(r: httpx.Response, model: type[M]) -> M:
    try:
        return model.model_validate(r.json())
    except (ValueError, ValidationError) as e:
        raise ProtocolError(f"unexpected {model.__name__} body from {r.request.url.path}") from e


class MessagesAPI:
    def __init__(self, http: HTTPClient) -> None:
        self._http = http

    async def fetch_messages(self, chat_id: int, limit: int = 50, offset: int = 0) -> MessagesPage:
        r = await self._http.get(
            f"/chats/{chat_id}/messages", params={"limit": limit, "offset": offset}
        )
        return _decode(r, MessagesPage)

    async def send(
        self,
        handle: str,
        text: str,
        *,
        is_group: bool = False,
        chat_identifier: str | None = None,
    ) -> SendResult:
        payload: dict[str, Any] = {
            "handle": handle,
            "text": text,
            "is_group": is_group,
            "chat_identifier": chat_identifier,
        }
        r = await self._http.post("/send", json=payload)
        return _decode(r, SendResult)

    async def send_attachment(
        self,
        handle: str,
        file_path: str,
        *,
        text: str | None = None,
        is_group: bool = False,
        chat_identifier: str | None = None,
    ) -> SendResult:
        payload: dict[str, Any] = {
            "handle": handle,
            "file_path": file_path,
            "is_group": is_group,
            "chat_identifier": chat_identifier,
        }
        if text is not None:
            payload["text"] = text
        r = await self._http.post("/send-attachment", json=payload)
        return _decode(r, SendResult)
