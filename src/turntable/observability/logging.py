"""Structured JSON event logging for turntable runs."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
import json
import logging
from pathlib import Path
from typing import Any, TextIO

ROOT_LOGGER = "turntable"

# attributes every LogRecord carries; anything else came from ``extra``
_RECORD_ATTRS = frozenset(
    logging.LogRecord(ROOT_LOGGER, logging.INFO, __file__, 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    return str(value)


class _JsonFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, event, then the event's fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": getattr(record, "event", record.getMessage()),
        }
        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key in payload or key.startswith("_"):
                continue
            payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True, default=_jsonable)


def configure_logging(level: str = "WARNING", stream: TextIO | None = None) -> logging.Logger:
    """Attach the JSON handler to the turntable logger once; later calls only change the level."""

    logger = logging.getLogger(ROOT_LOGGER)
    if not any(getattr(handler, "_turntable", False) for handler in logger.handlers):
        handler = logging.StreamHandler(stream)
        handler.setFormatter(_JsonFormatter())
        handler._turntable = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
        logger.propagate = False
    logger.setLevel(level.upper())
    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    return logging.getLogger(name)


def log_event(
    logger: logging.Logger,
    event: str,
    *,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """Emit ``event`` with ``fields`` as top-level JSON keys."""

    logger.log(level, event, extra={"event": event, **fields})
