"""Shared constants for loa-bridge components."""

from __future__ import annotations

from typing import Final

DEFAULT_SERIAL_PORT: Final[str] = "/dev/ttyACM0"
DEFAULT_SERIAL_BAUD: Final[int] = 9600
DEFAULT_RESPONSE_TIMEOUT: Final[float] = 1.0
DEFAULT_FRAMING: Final[str] = "slip"
DEFAULT_OPEN_RETRIES: Final[int] = 1
DEFAULT_RECONNECT_DELAY: Final[float] = 1.0
DEFAULT_DEBUG_LOGGING: Final[bool] = False

MIN_RESPONSE_TIMEOUT: Final[float] = 0.01
MIN_SERIAL_BAUD: Final[int] = 300

ENV_PREFIX: Final[str] = "LOABRIDGE_"
ENV_LOG_PLAIN: Final[str] = "LOABRIDGE_LOG_PLAIN"

__all__ = [
    "DEFAULT_DEBUG_LOGGING",
    "DEFAULT_FRAMING",
    "DEFAULT_OPEN_RETRIES",
    "DEFAULT_RECONNECT_DELAY",
    "DEFAULT_RESPONSE_TIMEOUT",
    "DEFAULT_SERIAL_BAUD",
    "DEFAULT_SERIAL_PORT",
    "ENV_LOG_PLAIN",
    "ENV_PREFIX",
    "MIN_RESPONSE_TIMEOUT",
    "MIN_SERIAL_BAUD",
]
