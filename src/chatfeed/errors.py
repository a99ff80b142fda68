"""Exception hierarchy shared by the REST, feed and realtime layers."""

from __future__ import annotations


class ChatFeedError(Exception):
    """Base class for every error raised by chatfeed."""


class NetworkError(ChatFeedError):
    """The transport failed before a response arrived (connect, DNS, timeout)."""


class ServerError(ChatFeedError):
    """The backend answered but refused: non-2xx status or ``ok=false`` body."""

    def __init__(self, status: int | None, message: str) -> None:
        self.status = status
        self.message = message
        prefix = f"{status} " if status is not None else ""
        super().__init__(f"{prefix}{message}")

    @property
    def is_not_found(self) -> bool:
        return self.status == 404


class ProtocolError(ChatFeedError):
    """A payload could not be decoded into the expected shape."""


class StateError(ChatFeedError):
    """The operation is not valid for the current local state."""
