"""Wire models for the history API and the realtime channel."""

from chatfeed.models.base import FeedModel
from chatfeed.models.chats import Chat
from chatfeed.models.messages import Attachment, Message, MessagesPage, Reaction, SendResult

__all__ = ["FeedModel", "Chat", "Attachment", "Message", "MessagesPage", "Reaction", "SendResult"]
