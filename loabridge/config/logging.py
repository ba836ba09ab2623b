"""Logging setup for loa-bridge.

Records are written to stderr as one JSON object per line. Set
``LOABRIDGE_LOG_PLAIN=1`` for classic text lines while debugging at a
terminal.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from logging.config import dictConfig
from typing import Any, Final

import msgspec

from ..common import parse_bool
from ..const import ENV_LOG_PLAIN
from .settings import BridgeConfig

PLAIN_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_LOG_KEYS: Final[frozenset[str]] = frozenset(vars(logging.makeLogRecord({}))) | {
    "asctime",
    "message",
    "taskName",
}


def _serialise_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        # Frames as [C0 2F ...], never decoded as text.
        return "[" + bytes(value).hex(" ").upper() + "]"
    return str(value)


class StructuredLogFormatter(logging.Formatter):
    """JSON line formatter; logger names lose the ``loabridge.`` prefix."""

    PREFIX = "loabridge."

    def _short_name(self, name: str) -> str:
        return name[len(self.PREFIX) :] if name.startswith(self.PREFIX) else name

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "ts": timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": self._short_name(record.name),
            "message": record.getMessage(),
        }

        extras = {
            key: _serialise_value(value)
            for key, value in vars(record).items()
            if key not in _RESERVED_LOG_KEYS and not key.startswith("_")
        }
        if extras:
            payload["extra"] = extras
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return msgspec.json.encode(payload).decode("utf-8")


def _logging_dict(level_name: str, formatter: str) -> dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {"()": StructuredLogFormatter},
            "plain": {"format": PLAIN_FORMAT},
        },
        "handlers": {
            "loabridge": {
                "class": "logging.StreamHandler",
                "level": level_name,
                "formatter": formatter,
            }
        },
        "root": {"level": level_name, "handlers": ["loabridge"]},
    }


def configure_logging(config: BridgeConfig | None = None) -> None:
    """Install the bridge log handler on the root logger.

    ``config.debug_logging`` selects DEBUG, which includes frame hexdumps.
    """
    level_name = "DEBUG" if config is not None and config.debug_logging else "INFO"
    formatter = "plain" if parse_bool(os.environ.get(ENV_LOG_PLAIN)) else "structured"
    dictConfig(_logging_dict(level_name, formatter))
    logging.getLogger("loabridge").info("Logging configured at level %s (%s)", level_name, formatter)


__all__ = ["StructuredLogFormatter", "configure_logging"]
