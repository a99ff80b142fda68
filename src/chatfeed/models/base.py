from pydantic import BaseModel, ConfigDict


class FeedModel(BaseModel):
    """Base for wire models: tolerate fields newer backends add."""

    model_config = ConfigDict(extra="ignore")
