"""Message feed: paging, reconciliation and optimistic writes."""

from chatfeed.feed.optimistic import OptimisticWriteTracker
from chatfeed.feed.pages import FeedView, build_pages, flatten
from chatfeed.feed.reconcile import is_optimistic, merge
from chatfeed.feed.store import PageStore

__all__ = [
    "FeedView",
    "OptimisticWriteTracker",
    "PageStore",
    "build_pages",
    "flatten",
    "is_optimistic",
    "merge",
]
