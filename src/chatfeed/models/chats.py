from chatfeed.models.base import FeedModel


class Chat(FeedModel):
    id: int
    display_name: str = ""
    is_group: bool = False
    handles: list[str] = []
    chat_identifier: str | None = None

    @property
    def primary_handle(self) -> str:
        return self.handles[0] if self.handles else ""
