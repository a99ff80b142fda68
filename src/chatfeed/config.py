"""Client configuration.

Uses pydantic-settings ``BaseSettings`` sub-configs grouped under a top-level
``ClientConfig``.  Every value can be overridden via env vars using the
per-section prefix (e.g. ``CHATFEED_FEED_PAGE_SIZE=100``); otherwise the
field defaults apply.

Call ``reload_config()`` after changing the environment to rebuild the
in-memory singleton.
"""

from __future__ import annotations

from pydantic import BaseModel
from pydantic_settings import BaseSettings


def to_ws_url(api_base: str, ws_path: str) -> str:
    """Derive the WebSocket URL from the REST base URL."""
    base = api_base.replace("https://", "wss://").replace("http://", "ws://")
    return base.rstrip("/") + ws_path


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------

class ServerConfig(BaseSettings):
    model_config = {"env_prefix": "CHATFEED_SERVER_"}

    api_base: str = "http://127.0.0.1:3883"
    ws_path: str = "/ws"
    request_timeout: float = 30.0

    @property
    def ws_url(self) -> str:
        return to_ws_url(self.api_base, self.ws_path)


class FeedConfig(BaseSettings):
    model_config = {"env_prefix": "CHATFEED_FEED_"}

    page_size: int = 50
    # Local ids are wall-clock milliseconds; server ids stay far below this.
    optimistic_id_threshold: int = 1_700_000_000_000


class RealtimeConfig(BaseSettings):
    model_config = {"env_prefix": "CHATFEED_REALTIME_"}

    initial_retry_ms: int = 1000
    max_retry_ms: int = 30_000
    retry_multiplier: float = 2.0


class PhotosConfig(BaseSettings):
    model_config = {"env_prefix": "CHATFEED_PHOTOS_"}

    concurrency: int = 3
    negative_ttl_s: float = 600.0  # 10 minutes


class LogConfig(BaseSettings):
    model_config = {"env_prefix": "CHATFEED_LOG_"}

    level: str = "INFO"
    format: str = "json"


# ---------------------------------------------------------------------------
# Top-level ClientConfig
# ---------------------------------------------------------------------------

_SECTIONS: dict[str, type[BaseSettings]] = {
    "server": ServerConfig,
    "feed": FeedConfig,
    "realtime": RealtimeConfig,
    "photos": PhotosConfig,
    "log": LogConfig,
}


class ClientConfig(BaseModel):
    server: ServerConfig = ServerConfig()
    feed: FeedConfig = FeedConfig()
    realtime: RealtimeConfig = RealtimeConfig()
    photos: PhotosConfig = PhotosConfig()
    log: LogConfig = LogConfig()


# Module-level singleton
config = ClientConfig()


def _reload_section(section_name: str) -> None:
    """Rebuild a single sub-config from env + defaults."""
    setattr(config, section_name, _SECTIONS[section_name]())


def reload_config() -> None:
    """Rebuild all sub-configs from the current environment."""
    for section_name in _SECTIONS:
        _reload_section(section_name)
