"""Realtime channel frames.

Inbound frames are JSON objects tagged by ``type``; ``parse_frame`` turns one
into the matching model, or a bare ``Frame`` for types this client does not
know.  Outbound frames are built with the plain-dict constructors at the
bottom of the module.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from chatfeed.errors import ProtocolError
from chatfeed.models.base import FeedModel
from chatfeed.models.messages import Message


class Frame(FeedModel):
    type: str
    raw: dict[str, Any] = {}


class MessagesUpdate(Frame):
    chat_id: int
    messages: list[Message]
    total: int
    timestamp: int = 0


class DbChanged(Frame):
    timestamp: int = 0


class ErrorFrame(Frame):
    message: str


_FRAME_TYPES: dict[str, type[Frame]] = {
    "messages_update": MessagesUpdate,
    "db_changed": DbChanged,
    "error": ErrorFrame,
}


def parse_frame(raw: Any) -> Frame:
    """Decode one inbound frame.

    Raises ProtocolError when the payload is not a tagged object or a known
    type is missing required fields.  Unknown types are returned as ``Frame``.
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("type"), str):
        raise ProtocolError("frame is not a tagged object")
    cls = _FRAME_TYPES.get(raw["type"], Frame)
    try:
        return cls.model_validate({**raw, "raw": raw})
    except ValidationError as e:
        raise ProtocolError(f"invalid {raw['type']} frame: {e.error_count()} error(s)") from e


# --- Client -> server ---

def subscribe(chat_id: int) -> dict[str, Any]:
    return {"type": "subscribe", "chat_id": chat_id}


def unsubscribe() -> dict[str, Any]:
    return {"type": "unsubscribe"}
