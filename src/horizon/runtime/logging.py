"""Structured JSON logging for the broadcast runtime and CLI."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Dict, Iterable

import orjson


# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}

# Third-party loggers that log every request/packet at INFO or DEBUG.
_NOISY_LOGGERS = ("httpx", "httpcore", "asyncio_mqtt", "paho")


class JsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra`` fields are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_ATTRS or key.startswith("_"):
                continue
            payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        if record.stack_info:
            payload["stack"] = record.stack_info

        return orjson.dumps(payload, default=repr).decode()


def configure_logging(
    level: str = "INFO",
    *,
    name: str = "horizon",
    quiet: Iterable[str] = _NOISY_LOGGERS,
) -> logging.Logger:
    """Install the JSON formatter on the root logger and return ``name``'s logger.

    Loggers listed in ``quiet`` are held at WARNING unless ``level`` is DEBUG.
    """
    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
    root.setLevel(level.upper())

    if root.level > logging.DEBUG:
        for noisy in quiet:
            logging.getLogger(noisy).setLevel(logging.WARNING)

    return logging.getLogger(name)


__all__ = ["JsonFormatter", "configure_logging"]
