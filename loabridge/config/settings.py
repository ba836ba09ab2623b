"""Settings loader for the Lua-on-Arduino bridge.

Configuration comes from three layers, later ones winning: the
:class:`BridgeConfig` field defaults, ``LOABRIDGE_*`` environment variables
(``LOABRIDGE_SERIAL_PORT``, ``LOABRIDGE_RESPONSE_TIMEOUT``, ...) and an
explicit mapping passed by the caller.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Any

import msgspec

from ..common import parse_bool, parse_float, parse_int
from ..const import (
    DEFAULT_DEBUG_LOGGING,
    DEFAULT_FRAMING,
    DEFAULT_OPEN_RETRIES,
    DEFAULT_RECONNECT_DELAY,
    DEFAULT_RESPONSE_TIMEOUT,
    DEFAULT_SERIAL_BAUD,
    DEFAULT_SERIAL_PORT,
    ENV_PREFIX,
    MIN_RESPONSE_TIMEOUT,
    MIN_SERIAL_BAUD,
)
from ..protocol.framing import FRAMING_NAMES

logger = logging.getLogger("loabridge.config")


class BridgeConfig(msgspec.Struct, kw_only=True):
    """Strongly typed configuration for one bridge."""

    serial_port: str = DEFAULT_SERIAL_PORT
    serial_baud: int = DEFAULT_SERIAL_BAUD
    response_timeout: float = DEFAULT_RESPONSE_TIMEOUT
    framing: str = DEFAULT_FRAMING
    open_retries: int = DEFAULT_OPEN_RETRIES
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY
    debug_logging: bool = DEFAULT_DEBUG_LOGGING

    def __post_init__(self) -> None:
        self.serial_port = self.serial_port.strip()
        if not self.serial_port:
            raise ValueError("serial_port must not be empty")
        if self.serial_baud < MIN_SERIAL_BAUD:
            raise ValueError(f"serial_baud must be at least {MIN_SERIAL_BAUD}")
        if self.response_timeout < MIN_RESPONSE_TIMEOUT:
            raise ValueError(f"response_timeout must be at least {MIN_RESPONSE_TIMEOUT}s")
        self.open_retries = self._require_positive("open_retries", self.open_retries)
        if self.reconnect_delay < 0:
            raise ValueError("reconnect_delay must not be negative")
        framing = self.framing.strip().lower()
        if framing not in FRAMING_NAMES:
            raise ValueError(f"framing must be one of {', '.join(FRAMING_NAMES)}")
        self.framing = framing

    @staticmethod
    def _require_positive(name: str, value: int) -> int:
        if value <= 0:
            raise ValueError(f"{name} must be a positive integer")
        return value


def get_default_config() -> dict[str, Any]:
    """Default configuration values, derived from the ``BridgeConfig`` fields."""
    return {fi.name: fi.default for fi in msgspec.structs.fields(BridgeConfig)}


def _parse_env_value(default: Any, value: str) -> Any:
    # bool before int: bool is an int subclass
    if isinstance(default, bool):
        return parse_bool(value)
    if isinstance(default, int):
        return parse_int(value, default)
    if isinstance(default, float):
        return parse_float(value, default)
    return value.strip()


def _load_env_overrides(defaults: Mapping[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for name, default in defaults.items():
        value = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if value is None:
            continue
        overrides[name] = _parse_env_value(default, value)
    return overrides


def load_bridge_config(
    raw: Mapping[str, Any] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> BridgeConfig:
    """Build a :class:`BridgeConfig` from defaults, environment and *raw*.

    Raises:
        ValueError: A value cannot be converted or fails validation.
    """
    defaults = get_default_config()
    merged: dict[str, Any] = dict(defaults)
    merged.update(_load_env_overrides(defaults, os.environ if environ is None else environ))
    if raw:
        unknown = sorted(set(raw) - set(defaults))
        if unknown:
            logger.warning("Ignoring unknown configuration keys: %s", ", ".join(unknown))
        merged.update({key: value for key, value in raw.items() if key in defaults})

    try:
        return msgspec.convert(merged, BridgeConfig, strict=False)
    except msgspec.ValidationError as exc:
        raise ValueError(f"invalid bridge configuration: {exc}") from exc


__all__ = ["BridgeConfig", "get_default_config", "load_bridge_config"]
