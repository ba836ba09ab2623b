"""Protocol helper utilities for loa-bridge."""

from . import framing, message, patterns, protocol
from .framing import CobsFramer, Framer, SlipFramer, create_framer
from .message import Message, decode_message, encode_message
from .patterns import PathPattern
from .protocol import Address, Outcome, TypeTag

__all__ = [
    "Address",
    "CobsFramer",
    "Framer",
    "Message",
    "Outcome",
    "PathPattern",
    "SlipFramer",
    "TypeTag",
    "create_framer",
    "decode_message",
    "encode_message",
    "framing",
    "message",
    "patterns",
    "protocol",
]
