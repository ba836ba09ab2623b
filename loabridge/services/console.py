"""Device console: where diagnostic output from the board ends up.

The Lua firmware reports through ``/log/<severity>`` messages and, before
the protocol is up or when a script calls ``print()``, through plain text
that does not decode as a message. Both are written to the
``loabridge.device`` logger.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any

import msgspec

logger = logging.getLogger("loabridge.device")

_TRAILING_BREAKS = ("\r\n", "\n", "\r")


class Severity(StrEnum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"
    DUMP = "dump"


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def _with_detail(text: str, detail: Any) -> str:
    detail_text = _as_text(detail)
    return f"{text} ({detail_text})" if detail_text else text


class DeviceConsole:
    """Log collaborator for device output."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._logger = log or logger
        self._dispatch: dict[str, Callable[..., None]] = {
            Severity.INFO: self.info,
            Severity.WARNING: self.warning,
            Severity.ERROR: self.error,
            Severity.SUCCESS: self.success,
            Severity.DUMP: self.dump,
        }

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def print(self, text: Any) -> None:
        """Plain device output. One trailing line break is dropped."""
        rendered = _as_text(text)
        for suffix in _TRAILING_BREAKS:
            if rendered.endswith(suffix):
                rendered = rendered[: -len(suffix)]
                break
        self._logger.info("%s", rendered)

    def info(self, text: Any, detail: Any = None) -> None:
        self._logger.info("%s", _with_detail(_as_text(text), detail))

    def warning(self, text: Any, detail: Any = None) -> None:
        self._logger.warning("%s", _with_detail(_as_text(text), detail))

    def error(self, text: Any, detail: Any = None) -> None:
        self._logger.error("%s", _with_detail(_as_text(text), detail))

    def success(self, text: Any, detail: Any = None) -> None:
        rendered = _as_text(text)
        detail_text = _as_text(detail)
        if detail_text:
            rendered = f"{rendered} {detail_text}"
        self._logger.info("%s", rendered, extra={"outcome": Severity.SUCCESS.value})

    def dump(self, text: Any) -> None:
        """Log a Lua value the device serialised as JSON."""
        raw = _as_text(text)
        try:
            value = msgspec.json.decode(raw)
        except msgspec.DecodeError:
            self.warning(f"Dump from lua isn't valid JSON: {raw!r}")
            return
        self._logger.info("%s", msgspec.json.encode(value).decode("utf-8"))

    def log(self, level: str, text: Any) -> bool:
        """Route *text* to the handler for *level*.

        Returns ``False`` (after a warning) when *level* is not a known
        severity.
        """
        handler = self._dispatch.get(level)
        if handler is None:
            self._logger.warning("Unknown device log level %r: %s", level, _as_text(text))
            return False
        handler(text)
        return True


__all__ = ["DeviceConsole", "Severity"]
