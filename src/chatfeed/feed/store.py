"""Per-chat page cache backed by the history endpoint.

One ``FeedView`` per chat id.  Views are replaced, never edited in place, so
a listener that kept a reference to an old view keeps a consistent snapshot.
Every asynchronous result is folded into whatever view is current when the
response lands, not the one that existed when the request was sent.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from chatfeed.config import config
from chatfeed.feed.pages import FeedView, build_pages
from chatfeed.feed.reconcile import merge
from chatfeed.models.messages import Message

if TYPE_CHECKING:
    from chatfeed.api.messages import MessagesAPI

log = logging.getLogger(__name__)

ViewListener = Callable[[int, FeedView], None]


class PageStore:
    def __init__(self, api: MessagesAPI, *, page_size: int | None = None) -> None:
        self._api = api
        self.page_size = page_size or config.feed.page_size
        self._views: dict[int, FeedView] = {}
        self._listeners: list[ViewListener] = []
        # chat ids with a load_older request in flight
        self._loading_older: set[int] = set()

    # --- Access ---

    def get(self, chat_id: int) -> FeedView | None:
        return self._views.get(chat_id)

    def is_loading_older(self, chat_id: int) -> bool:
        return chat_id in self._loading_older

    def messages(self, chat_id: int) -> list[Message]:
        view = self._views.get(chat_id)
        return view.messages if view is not None else []

    def add_listener(self, listener: ViewListener) -> None:
        """Register a callback invoked with ``(chat_id, view)`` after every change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: ViewListener) -> None:
        self._listeners.remove(listener)

    def forget(self, chat_id: int) -> None:
        self._views.pop(chat_id, None)

    def clear(self) -> None:
        self._views.clear()

    def _publish(self, view: FeedView) -> FeedView:
        self._views[view.chat_id] = view
        for listener in list(self._listeners):
            try:
                listener(view.chat_id, view)
            except Exception:
                log.exception("View listener failed for chat %d", view.chat_id)
        return view

    # --- Server round trips ---

    async def load_initial(self, chat_id: int, *, force: bool = False) -> FeedView:
        """Load the newest page of *chat_id*, reusing an already-loaded view."""
        existing = self._views.get(chat_id)
        if existing is not None and not force:
            return existing
        page = await self._api.fetch_messages(chat_id, self.page_size, 0)
        log.debug("Loaded %d/%d messages for chat %d", len(page.messages), page.total, chat_id)

        current = self._views.get(chat_id)
        if current is not None and current is not existing:
            # Changed while in flight: the current view is the newer batch.
            merged = merge(page.messages, current.messages)
            total = max(page.total, current.total, len(merged))
            # has_more belongs to whichever side holds the oldest message
            has_more = page.has_more if len(merged) > current.count else current.oldest_has_more
            return self.rebuild(chat_id, merged, total, has_more)
        return self._publish(FeedView(chat_id=chat_id, pages=[page], cursors=[0]))

    async def load_older(self, chat_id: int) -> FeedView | None:
        """Fetch the page preceding everything loaded so far.

        Returns None without a request when the chat is not loaded, the
        oldest page says there is nothing more, or a load is already running.
        """
        view = self._views.get(chat_id)
        if view is None or not view.has_more or chat_id in self._loading_older:
            return None
        offset = view.count
        self._loading_older.add(chat_id)
        try:
            page = await self._api.fetch_messages(chat_id, self.page_size, offset)
        finally:
            self._loading_older.discard(chat_id)

        current = self._views.get(chat_id)
        if current is None:
            log.debug("Chat %d was dropped while loading older messages", chat_id)
            return None
        known = {m.id for m in current.messages}
        older = [m for m in page.messages if m.id not in known]
        page = page.model_copy(update={"messages": older})
        # The fetched total is the most recent one the server reported.
        newer = [p.model_copy(update={"total": page.total}) for p in current.pages]
        return self._publish(FeedView(
            chat_id=chat_id,
            pages=[*newer, page],
            cursors=[*current.cursors, offset],
        ))

    # --- Local re-windowing ---

    def rebuild(
        self,
        chat_id: int,
        messages: Sequence[Message],
        total: int,
        has_more: bool | None = None,
    ) -> FeedView:
        """Replace the view for *chat_id* with *messages* re-cut into pages."""
        pages, cursors = build_pages(messages, total, self.page_size, has_more)
        return self._publish(FeedView(chat_id=chat_id, pages=pages, cursors=cursors))

    def apply_update(self, chat_id: int, incoming: Sequence[Message], total: int) -> FeedView:
        """Fold a pushed batch (the server's current tail) into the cached view."""
        view = self._views.get(chat_id)
        base = view.messages if view is not None else []
        merged = merge(base, incoming)
        has_more = view.oldest_has_more if view is not None else None
        return self.rebuild(chat_id, merged, total, has_more)

    def replace(
        self, chat_id: int, messages: Sequence[Message], total: int, has_more: bool
    ) -> FeedView:
        """Wholesale replacement, bypassing the merge rule."""
        return self.rebuild(chat_id, messages, total, has_more)
