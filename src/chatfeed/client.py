"""One object that wires the feed, the realtime channel and the photo cache together."""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from typing import Any

from chatfeed.api.messages import MessagesAPI
from chatfeed.config import config, to_ws_url
from chatfeed.contacts import ContactPhotos
from chatfeed.errors import StateError
from chatfeed.feed.optimistic import OptimisticWriteTracker
from chatfeed.feed.pages import FeedView
from chatfeed.feed.store import PageStore, ViewListener
from chatfeed.gateway import ConnectionState, RealtimeChannel
from chatfeed.http import HTTPClient
from chatfeed.models.chats import Chat
from chatfeed.models.events import DbChanged, ErrorFrame, Frame, MessagesUpdate
from chatfeed.models.messages import Message

log = logging.getLogger(__name__)

Callback = Callable[[], Coroutine[Any, Any, None]]
ErrorCallback = Callable[[str], Coroutine[Any, Any, None]]


class ChatFeedClient:
    """Usage::

        async with ChatFeedClient() as client:
            client.add_view_listener(lambda chat_id, view: render(view.messages))
            await client.select_chat(chat)
            await client.send_text("on my way")
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        http: HTTPClient | None = None,
        channel: RealtimeChannel | None = None,
        page_size: int | None = None,
    ) -> None:
        self.http = http or HTTPClient(base_url)
        self.messages_api = MessagesAPI(self.http)
        self.store = PageStore(self.messages_api, page_size=page_size)
        self.writes = OptimisticWriteTracker(self.store, self.messages_api)
        if channel is None:
            ws_url = to_ws_url(base_url, config.server.ws_path) if base_url else None
            channel = RealtimeChannel(ws_url)
        self.channel = channel
        self.photos = ContactPhotos(self.http)
        self.selected_chat: Chat | None = None
        self._chats_changed: list[Callback] = []
        self._server_errors: list[ErrorCallback] = []

        self.channel.add_handler("messages_update", self._on_messages_update)
        self.channel.add_handler("db_changed", self._on_db_changed)
        self.channel.add_handler("error", self._on_error)

    # --- Lifecycle ---

    async def start(self) -> None:
        self.channel.start()

    async def close(self) -> None:
        await self.channel.close()
        await self.http.close()

    async def __aenter__(self) -> ChatFeedClient:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # --- Callbacks ---

    def add_view_listener(self, listener: ViewListener) -> None:
        self.store.add_listener(listener)

    def on_chats_changed(self, callback: Callback) -> Callback:
        """Register a callback for ``db_changed`` (e.g. to refresh the chat list)."""
        self._chats_changed.append(callback)
        return callback

    def on_server_error(self, callback: ErrorCallback) -> ErrorCallback:
        self._server_errors.append(callback)
        return callback

    @property
    def connection_state(self) -> ConnectionState:
        return self.channel.state

    # --- Chat operations ---

    async def select_chat(self, chat: Chat) -> FeedView:
        """Show *chat*: load (or reuse) its history and subscribe to its updates."""
        self.selected_chat = chat
        log.debug("Selecting chat %d", chat.id)
        try:
            return await self.store.load_initial(chat.id)
        finally:
            # Pushed batches can still fill the view if the history load failed.
            await self.channel.subscribe(chat.id)

    def view(self, chat_id: int | None = None) -> FeedView | None:
        if chat_id is None:
            if self.selected_chat is None:
                return None
            chat_id = self.selected_chat.id
        return self.store.get(chat_id)

    async def load_older(self) -> FeedView | None:
        if self.selected_chat is None:
            return None
        return await self.store.load_older(self.selected_chat.id)

    async def send_text(self, text: str) -> Message:
        return await self.writes.send_text(self._require_chat(), text)

    async def send_attachment(self, file_path: str, text: str | None = None) -> FeedView:
        return await self.writes.send_attachment(self._require_chat(), file_path, text)

    def _require_chat(self) -> Chat:
        if self.selected_chat is None:
            raise StateError("no chat selected")
        return self.selected_chat

    # --- Frame handlers ---

    async def _on_messages_update(self, frame: Frame) -> None:
        assert isinstance(frame, MessagesUpdate)
        self.store.apply_update(frame.chat_id, frame.messages, frame.total)

    async def _on_db_changed(self, frame: Frame) -> None:
        assert isinstance(frame, DbChanged)
        for callback in list(self._chats_changed):
            await callback()

    async def _on_error(self, frame: Frame) -> None:
        assert isinstance(frame, ErrorFrame)
        for callback in list(self._server_errors):
            await callback(frame.message)
