"""Root logger setup for the CLI and embedding applications."""

from __future__ import annotations

import json
import logging

from chatfeed.config import config


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        d = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            d["exception"] = self.formatException(record.exc_info)
        return json.dumps(d)


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure structured JSON logging (or plain text for dev)."""
    log_format = log_format or config.log.format
    root = logging.getLogger()
    root.setLevel((level or config.log.level).upper())
    # Remove existing handlers
    for h in root.handlers[:]:
        root.removeHandler(h)
    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)
