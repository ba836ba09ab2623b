"""Lua-on-Arduino bridge package initialisation."""

__version__ = "0.3.0"

from .errors import (
    BridgeError,
    MalformedMessage,
    RequestFailure,
    RequestTimeout,
    TransportError,
)
from .services.bridge import Bridge
from .services.device import LuaDevice

__all__ = [
    "Bridge",
    "BridgeError",
    "LuaDevice",
    "MalformedMessage",
    "RequestFailure",
    "RequestTimeout",
    "TransportError",
    "__version__",
]
