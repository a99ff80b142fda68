"""Offset-addressed pages over one chat's flattened history."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from chatfeed.models.messages import Message, MessagesPage


def build_pages(
    messages: Sequence[Message],
    total: int,
    page_size: int,
    has_more: bool | None = None,
) -> tuple[list[MessagesPage], list[int]]:
    """Re-window an ascending message list into pages, newest page first.

    Chunks are cut from the tail backward.  Only the oldest chunk carries a
    real ``has_more``; the newer ones are provisional groupings and always
    report ``True``.  Returns ``(pages, cursors)`` where each cursor is the
    number of messages that precede the page in load order.
    """
    if page_size < 1:
        raise ValueError("page_size must be positive")
    oldest_has_more = has_more if has_more is not None else total > len(messages)
    if not messages:
        # An empty chat still keeps its total and has_more.
        return [MessagesPage(messages=[], total=total, has_more=oldest_has_more)], [0]
    pages: list[MessagesPage] = []
    cursors: list[int] = []
    end = len(messages)
    offset = 0
    while end > 0:
        start = max(0, end - page_size)
        chunk = list(messages[start:end])
        pages.append(MessagesPage(
            messages=chunk,
            total=total,
            has_more=oldest_has_more if start == 0 else True,
        ))
        cursors.append(offset)
        offset += len(chunk)
        end = start
    return pages, cursors


def flatten(pages: Sequence[MessagesPage]) -> list[Message]:
    """Ascending message list from newest-first pages."""
    return [m for page in reversed(pages) for m in page.messages]


@dataclass
class FeedView:
    """Cached history for one chat as the paging UI sees it."""

    chat_id: int
    pages: list[MessagesPage] = field(default_factory=list)
    cursors: list[int] = field(default_factory=list)

    @property
    def messages(self) -> list[Message]:
        return flatten(self.pages)

    @property
    def total(self) -> int:
        """Server total as of the latest fetch or push; every page carries it."""
        return self.pages[0].total if self.pages else 0

    @property
    def has_more(self) -> bool:
        return self.pages[-1].has_more if self.pages else False

    @property
    def oldest_has_more(self) -> bool | None:
        """``has_more`` to carry into a rebuild, or None when nothing is cached."""
        return self.pages[-1].has_more if self.pages else None

    @property
    def count(self) -> int:
        return sum(len(p.messages) for p in self.pages)
