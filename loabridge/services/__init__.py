"""Bridge services: correlation, receive mode, device console and client."""

from .bridge import Bridge
from .console import DeviceConsole, Severity
from .correlator import MessageIdAllocator, PendingRequest, RequestCorrelator
from .device import LuaDevice
from .receive_mode import ReceiveMode, ReceiveModeMachine

__all__ = [
    "Bridge",
    "DeviceConsole",
    "LuaDevice",
    "MessageIdAllocator",
    "PendingRequest",
    "ReceiveMode",
    "ReceiveModeMachine",
    "RequestCorrelator",
    "Severity",
]
