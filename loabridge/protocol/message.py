"""Structured message codec (OSC 1.0 binary layout).

Message layout on the wire (before framing):

    [address string] [type tag string] [argument 0] ... [argument N]

- Strings are UTF-8, NUL-terminated and zero-padded to a multiple of 4 bytes.
- The type tag string starts with ``,`` followed by one tag character per
  argument (see :class:`~loabridge.protocol.protocol.TypeTag`).
- Numbers are fixed-width big-endian; blobs carry an int32 length prefix and
  are zero-padded to a multiple of 4 bytes. ``T``/``F``/``N`` carry no data.

Example:
    >>> raw = encode_message("/response/success", [7, True])
    >>> decode_message(raw)
    Message(address='/response/success', args=(7, True))
"""

from __future__ import annotations

import io
from typing import Any, Final

import msgspec
from construct import Aligned, ConstructError, CString, GreedyBytes, Prefixed  # type: ignore

from ..errors import MalformedMessage
from . import protocol
from .protocol import TypeTag

OSC_STRING: Final = Aligned(protocol.OSC_ALIGNMENT, CString("utf8"))
OSC_BLOB: Final = Aligned(protocol.OSC_ALIGNMENT, Prefixed(protocol.BLOB_SIZE_STRUCT, GreedyBytes))

_FLOAT32_MAX: Final[float] = 3.4028234663852886e38

_FIXED_WIDTH: Final[dict[str, Any]] = {
    TypeTag.INT32: protocol.INT32_STRUCT,
    TypeTag.INT64: protocol.INT64_STRUCT,
    TypeTag.FLOAT32: protocol.FLOAT32_STRUCT,
    TypeTag.FLOAT64: protocol.FLOAT64_STRUCT,
}

_CONSTANTS: Final[dict[str, Any]] = {
    TypeTag.TRUE: True,
    TypeTag.FALSE: False,
    TypeTag.NIL: None,
}


class Message(msgspec.Struct, frozen=True):
    """An address plus an ordered sequence of typed arguments.

    Attributes:
        address: OSC address, always starting with ``/``.
        args: Argument values (int, float, str, bool, bytes or None).
    """

    address: str
    args: tuple[Any, ...] = ()

    @property
    def message_id(self) -> int | None:
        """The correlation id carried as first argument, if any."""
        if not self.args:
            return None
        first = self.args[0]
        if isinstance(first, bool) or not isinstance(first, int):
            return None
        return first

    def to_bytes(self) -> bytes:
        return encode_message(self.address, self.args)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Message":
        return decode_message(data)


def _encode_string(value: str) -> bytes:
    if "\x00" in value:
        raise ValueError("strings may not contain NUL characters")
    return OSC_STRING.build(value)


def _encode_value(value: Any) -> tuple[str, bytes]:
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return (TypeTag.TRUE if value else TypeTag.FALSE), b""
    if value is None:
        return TypeTag.NIL, b""
    if isinstance(value, int):
        if protocol.INT32_MIN <= value <= protocol.INT32_MAX:
            return TypeTag.INT32, protocol.INT32_STRUCT.build(value)
        if protocol.INT64_MIN <= value <= protocol.INT64_MAX:
            return TypeTag.INT64, protocol.INT64_STRUCT.build(value)
        raise OverflowError(f"integer {value} does not fit in 64 bits")
    if isinstance(value, float):
        if abs(value) > _FLOAT32_MAX and value not in (float("inf"), float("-inf")):
            return TypeTag.FLOAT64, protocol.FLOAT64_STRUCT.build(value)
        return TypeTag.FLOAT32, protocol.FLOAT32_STRUCT.build(value)
    if isinstance(value, str):
        return TypeTag.STRING, _encode_string(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return TypeTag.BLOB, OSC_BLOB.build(bytes(value))
    raise TypeError(f"unsupported argument type {type(value).__name__}")


def encode_message(address: str, args: Any = ()) -> bytes:
    """Serialise *address* and *args* into an OSC message buffer."""
    if not address.startswith(protocol.OSC_ADDRESS_PREFIX):
        raise ValueError(f"address must start with {protocol.OSC_ADDRESS_PREFIX!r}: {address!r}")

    tags = [protocol.OSC_TYPETAG_PREFIX]
    encoded_args: list[bytes] = []
    for value in args:
        tag, chunk = _encode_value(value)
        tags.append(tag)
        encoded_args.append(chunk)

    return _encode_string(address) + _encode_string("".join(tags)) + b"".join(encoded_args)


def _decode_value(tag: str, stream: io.BytesIO) -> Any:
    if tag in _CONSTANTS:
        return _CONSTANTS[tag]
    fixed = _FIXED_WIDTH.get(tag)
    if fixed is not None:
        return fixed.parse_stream(stream)
    if tag == TypeTag.STRING:
        return OSC_STRING.parse_stream(stream)
    if tag == TypeTag.BLOB:
        return bytes(OSC_BLOB.parse_stream(stream))
    raise MalformedMessage(f"unknown type tag {tag!r}")


def decode_message(data: bytes) -> Message:
    """Parse an OSC message buffer.

    Raises:
        MalformedMessage: The buffer does not hold exactly one well-formed
            message.
    """
    if not data:
        raise MalformedMessage("empty packet")

    stream = io.BytesIO(data)
    try:
        address = OSC_STRING.parse_stream(stream)
        if not address.startswith(protocol.OSC_ADDRESS_PREFIX):
            raise MalformedMessage(f"invalid address {address[:32]!r}")

        if stream.tell() == len(data):
            return Message(address=address)

        type_tags = OSC_STRING.parse_stream(stream)
        if not type_tags.startswith(protocol.OSC_TYPETAG_PREFIX):
            raise MalformedMessage(f"invalid type tag string {type_tags[:32]!r}")

        args = tuple(_decode_value(tag, stream) for tag in type_tags[1:])
    except (ConstructError, UnicodeDecodeError) as exc:
        raise MalformedMessage(f"message structure error: {exc}") from exc

    trailing = len(data) - stream.tell()
    if trailing:
        raise MalformedMessage(f"{trailing} unexpected trailing bytes")

    return Message(address=address, args=args)


__all__ = [
    "Message",
    "OSC_BLOB",
    "OSC_STRING",
    "decode_message",
    "encode_message",
]
