"""Logging configuration for the feed relay service."""

import json
import logging
import sys

from feedrelay.config import Settings

SNIPPET_LENGTH = 200


class JsonFormatter(logging.Formatter):
    """JSON formatter for production logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        base = {
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
        }
        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(base)


def payload_snippet(payload: object, length: int = SNIPPET_LENGTH) -> str:
    """Return a short, single-line preview of a raw payload for diagnostics."""
    text = payload if isinstance(payload, str) else repr(payload)
    text = " ".join(text.split())
    if len(text) > length:
        return text[:length] + "..."
    return text


def setup_logging(settings: Settings) -> None:
    """Configure logging based on environment."""
    handler = logging.StreamHandler(sys.stdout)

    if settings.env == "prod":
        handler.setFormatter(JsonFormatter())
    else:
        # Pretty format for development
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(settings.log_level.upper())
