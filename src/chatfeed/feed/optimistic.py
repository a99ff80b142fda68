"""Speculative local writes shown before the server confirms them.

A placeholder gets a wall-clock millisecond id, which is what marks it as
unconfirmed (see ``is_optimistic``).  It disappears in one of three ways:
the next pushed batch supersedes it through the merge rule, the send fails
and it is rolled back, or the chat is replaced wholesale from the server.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from chatfeed.config import config
from chatfeed.errors import ServerError, StateError
from chatfeed.feed.pages import FeedView
from chatfeed.feed.reconcile import is_optimistic
from chatfeed.models.messages import Message

if TYPE_CHECKING:
    from chatfeed.api.messages import MessagesAPI
    from chatfeed.feed.store import PageStore
    from chatfeed.models.chats import Chat

log = logging.getLogger(__name__)


class OptimisticWriteTracker:
    def __init__(
        self,
        store: PageStore,
        api: MessagesAPI,
        *,
        clock: Callable[[], float] = time.time,
        threshold: int | None = None,
    ) -> None:
        self._store = store
        self._api = api
        self._clock = clock
        self.threshold = threshold if threshold is not None else config.feed.optimistic_id_threshold
        self._last_temp_id = 0

    def next_temp_id(self) -> int:
        """A fresh placeholder id: current epoch ms, strictly increasing."""
        temp_id = max(int(self._clock() * 1000), self._last_temp_id + 1, self.threshold)
        self._last_temp_id = temp_id
        return temp_id

    def pending(self, chat_id: int) -> list[int]:
        """Ids of placeholders in *chat_id* that no push has superseded yet."""
        return [m.id for m in self._store.messages(chat_id) if is_optimistic(m, self.threshold)]

    # --- View transitions ---

    def add_optimistic(self, chat_id: int, message: Message) -> FeedView:
        if not is_optimistic(message, self.threshold):
            raise ValueError(f"message id {message.id} is below the optimistic id range")
        view = self._store.get(chat_id)
        base = view.messages if view is not None else []
        if any(m.id == message.id for m in base):
            raise ValueError(f"message id {message.id} is already in chat {chat_id}")
        # With nothing cached the count of loaded messages is the best guess.
        total = (view.total if view is not None and view.pages else len(base)) + 1
        has_more = view.oldest_has_more if view is not None else None
        log.debug("Adding placeholder %d to chat %d", message.id, chat_id)
        return self._store.rebuild(chat_id, [*base, message], total, has_more)

    def rollback_optimistic(self, chat_id: int, temp_id: int) -> bool:
        """Withdraw placeholder *temp_id*. Returns False if it was already gone."""
        view = self._store.get(chat_id)
        if view is None:
            return False
        base = view.messages
        remaining = [m for m in base if m.id != temp_id]
        if len(remaining) == len(base):
            return False
        total = max(0, view.total - 1)
        log.debug("Rolling back placeholder %d in chat %d", temp_id, chat_id)
        self._store.rebuild(chat_id, remaining, total, view.oldest_has_more)
        return True

    def replace_from_server(
        self, chat_id: int, messages: Sequence[Message], total: int, has_more: bool
    ) -> FeedView:
        return self._store.replace(chat_id, messages, total, has_more)

    # --- Send flows ---

    async def send_text(self, chat: Chat, text: str) -> Message:
        """Show *text* immediately, then send it; roll back if the send fails.

        Returns the placeholder.  On success it stays in the view until the
        realtime channel delivers the confirmed batch.
        """
        body = text.strip()
        if not body:
            raise ValueError("cannot send an empty message")
        if chat.is_group and not chat.chat_identifier:
            raise StateError(f"group chat {chat.id} has no chat identifier")

        temp_id = self.next_temp_id()
        placeholder = Message(
            id=temp_id,
            text=body,
            time=temp_id,
            is_from_me=True,
            handle=chat.primary_handle,
        )
        self.add_optimistic(chat.id, placeholder)
        try:
            result = await self._api.send(
                chat.primary_handle,
                body,
                is_group=chat.is_group,
                chat_identifier=chat.chat_identifier,
            )
        except BaseException:
            # cancellation included
            self.rollback_optimistic(chat.id, temp_id)
            raise
        if not result.ok:
            self.rollback_optimistic(chat.id, temp_id)
            raise ServerError(None, result.error or "Failed to send message")
        return placeholder

    async def send_attachment(
        self, chat: Chat, file_path: str, text: str | None = None
    ) -> FeedView:
        """Send a file, then reload the newest page since no push confirms it."""
        if chat.is_group and not chat.chat_identifier:
            raise StateError(f"group chat {chat.id} has no chat identifier")
        caption = text.strip() if text else None
        result = await self._api.send_attachment(
            chat.primary_handle,
            file_path,
            text=caption or None,
            is_group=chat.is_group,
            chat_identifier=chat.chat_identifier,
        )
        if not result.ok:
            raise ServerError(None, result.error or "Failed to send attachment")
        page = await self._api.fetch_messages(chat.id, self._store.page_size, 0)
        return self.replace_from_server(chat.id, page.messages, page.total, page.has_more)
