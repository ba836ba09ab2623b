"""Utility helpers shared across loa-bridge packages."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Final

_TRUE_STRINGS: Final[frozenset[str]] = frozenset({"1", "yes", "on", "true", "enable", "enabled"})


def parse_bool(value: object) -> bool:
    """Parse a boolean value safely from various types."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if value is None:
        return False
    s = str(value).lower().strip()
    return s in _TRUE_STRINGS


def parse_int(value: object, default: int) -> int:
    """Parse an integer value safely, handling floats and strings."""
    try:
        return int(float(value))  # type: ignore[arg-type]
    except (ValueError, TypeError):
        return default


def parse_float(value: object, default: float) -> float:
    """Parse a float value safely."""
    try:
        return float(value)  # type: ignore[arg-type]
    except (ValueError, TypeError):
        return default


def as_args(args: Any) -> tuple[Any, ...]:
    """Normalise a single argument or a list/tuple of arguments to a tuple."""
    if args is None:
        return ()
    if isinstance(args, (list, tuple)):
        return tuple(args)
    return (args,)


def to_posix_path(path: str) -> str:
    return path.replace("\\", "/")


def log_hexdump(logger_instance: logging.Logger, level: int, label: str, data: bytes) -> None:
    """Log binary data in hexadecimal format.

    Format: [HEXDUMP] %s: %s
    """
    if not logger_instance.isEnabledFor(level):
        return

    hex_str = data.hex(" ").upper()
    logger_instance.log(level, "[HEXDUMP] %s: %s", label, hex_str)


def describe_args(args: Sequence[Any], limit: int = 32) -> str:
    """Render message arguments for log lines without dumping whole blobs."""
    rendered: list[str] = []
    for value in args:
        if isinstance(value, (bytes, bytearray, memoryview)):
            rendered.append(f"<{len(value)} bytes>")
            continue
        text = repr(value)
        if len(text) > limit:
            text = text[: limit - 3] + "..."
        rendered.append(text)
    return ", ".join(rendered)


__all__: Final[tuple[str, ...]] = (
    "as_args",
    "describe_args",
    "log_hexdump",
    "parse_bool",
    "parse_float",
    "parse_int",
    "to_posix_path",
)
