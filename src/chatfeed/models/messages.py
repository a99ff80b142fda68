from chatfeed.models.base import FeedModel


class Reaction(FeedModel):
    emoji: str
    is_from_me: bool = False


class Attachment(FeedModel):
    id: int
    filename: str | None = None
    mime_type: str | None = None
    transfer_name: str | None = None
    total_bytes: int = 0


class Message(FeedModel):
    id: int
    guid: str | None = None
    text: str | None = None
    time: int  # epoch ms
    is_from_me: bool = False
    handle: str | None = None
    contact_name: str | None = None
    reactions: list[Reaction] = []
    attachments: list[Attachment] = []


class MessagesPage(FeedModel):
    messages: list[Message]
    total: int
    has_more: bool


class SendResult(FeedModel):
    ok: bool
    error: str | None = None
