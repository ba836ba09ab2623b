"""Transports that carry the framed byte stream."""

from .base import CloseCallback, DataCallback, Transport
from .serial import SerialProtocol, SerialTransport

__all__ = [
    "CloseCallback",
    "DataCallback",
    "SerialProtocol",
    "SerialTransport",
    "Transport",
]
