"""Local message-feed cache for a desktop messaging client."""

from chatfeed.client import ChatFeedClient
from chatfeed.contacts import ContactPhotos
from chatfeed.errors import ChatFeedError, NetworkError, ProtocolError, ServerError, StateError
from chatfeed.feed import FeedView, OptimisticWriteTracker, PageStore, merge
from chatfeed.gateway import Backoff, ConnectionState, RealtimeChannel
from chatfeed.resources import ABSENT, ResourceCache

__all__ = [
    "ABSENT",
    "Backoff",
    "ChatFeedClient",
    "ChatFeedError",
    "ConnectionState",
    "ContactPhotos",
    "FeedView",
    "NetworkError",
    "OptimisticWriteTracker",
    "PageStore",
    "ProtocolError",
    "RealtimeChannel",
    "ResourceCache",
    "ServerError",
    "StateError",
    "merge",
]
