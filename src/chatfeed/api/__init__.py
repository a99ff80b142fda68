"""REST collaborators of the feed layer."""

from chatfeed.api.messages import MessagesAPI

__all__ = ["MessagesAPI"]
