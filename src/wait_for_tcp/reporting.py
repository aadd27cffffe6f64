"""Structured event reporting and line rendering."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Mapping, Optional, Protocol

EVENTS_LOGGER = "wait-for-tcp.events"


class Level(str, Enum):
    INFO = "info"
    WARN = "warn"


class Reporter(Protocol):
    """Receives probe events; rendering is left to the implementation."""

    def report(self, level: Level, message: str, fields: Mapping[str, Any]) -> None:
        ...


_LOGGING_LEVELS = {
    Level.INFO: logging.INFO,
    Level.WARN: logging.WARNING,
}

_LEVEL_NAMES = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "error",
}


class LoggingReporter:
    """Forward probe events to a :mod:`logging` logger.

    Event fields travel on the record as ``record.fields`` so that formatters
    can render them as separate keys.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger(EVENTS_LOGGER)

    def report(self, level: Level, message: str, fields: Mapping[str, Any]) -> None:
        self._logger.log(_LOGGING_LEVELS[Level(level)], message, extra={"fields": dict(fields)})


def _timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="seconds").replace("+00:00", "Z")


def _level_name(record: logging.LogRecord) -> str:
    return _LEVEL_NAMES.get(record.levelno, record.levelname.lower())


def _record_fields(record: logging.LogRecord) -> Mapping[str, Any]:
    fields = getattr(record, "fields", None)
    return fields if isinstance(fields, Mapping) else {}


def _logfmt_value(value: Any) -> str:
    text = str(value)
    if not text or any(ch in text for ch in ' ="\\') or not text.isprintable():
        return json.dumps(text, ensure_ascii=False)
    return text


class LogfmtFormatter(logging.Formatter):
    """Render logfmt lines: ``ts=... level=info msg="..." key=value``.

    Levels are lower-case (``info``, ``warn``) and the timestamp key is
    ``ts``; this is not the ``time=``/``level=INFO`` layout of Go's slog.
    """

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            f"ts={_timestamp(record)}",
            f"level={_level_name(record)}",
            f"msg={json.dumps(record.getMessage(), ensure_ascii=False)}",
        ]
        for key, value in _record_fields(record).items():
            parts.append(f"{key}={_logfmt_value(value)}")
        if record.exc_info:
            parts.append(f"exc={_logfmt_value(self.formatException(record.exc_info))}")
        return " ".join(parts)


class JsonFormatter(logging.Formatter):
    """Render one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": _timestamp(record),
            "level": _level_name(record),
            "msg": record.getMessage(),
        }
        for key, value in _record_fields(record).items():
            payload.setdefault(key, value)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)
