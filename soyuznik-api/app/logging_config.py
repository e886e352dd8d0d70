"""Structured logging for the Soyuznik API.

Records are written to stdout as one JSON object per line. Extra fields go
under ``context``; a ``chat_id`` found there is also lifted to the top level so
log search can filter by chat.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

LOGGER_PREFIX = "soyuznik"
MAX_LOGGED_BODY_CHARS = 4000

NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            log_data["context"] = context
            if "chat_id" in context:
                log_data["chat_id"] = str(context["chat_id"])

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


def truncate_body(raw: bytes, limit: int = MAX_LOGGED_BODY_CHARS) -> str:
    """Decode a request body for logging, cut to ``limit`` characters."""
    text = raw.decode("utf-8", errors="replace")
    if len(text) > limit:
        return f"{text[:limit]}... [{len(text) - limit} more chars]"
    return text


class ChatLoggerAdapter(logging.LoggerAdapter):
    """Tags every record with the chat it belongs to.

    Call sites may pass ``context={...}``; it is merged over the adapter's
    own fields.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = kwargs.pop("context", None)
        if context or self.extra:
            kwargs["extra"] = {"context": {**self.extra, **(context or {})}}
        return msg, kwargs
