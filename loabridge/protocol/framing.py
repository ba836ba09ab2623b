"""Stream framing codecs for the serial link.

A framer turns outgoing payloads into delimited byte sequences and splits
the incoming byte stream back into packets. Two schemes are supported:

- SLIP (RFC 1055), the default spoken by the Lua-on-Arduino firmware. The
  ``END`` byte (0xC0) separates frames and is escaped inside payloads.
- COBS with a ``0x00`` delimiter, for firmware built with COBS framing.

Decoders are incremental: :meth:`Framer.decode` may be fed arbitrary
slices of the stream and yields one packet per completed frame, keeping
partial frames buffered between calls. No size limit is enforced here.

Example:
    >>> framer = SlipFramer()
    >>> wire = framer.encode(b"\\xc0payload")
    >>> list(SlipFramer().decode(wire))
    [b'\\xc0payload']
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from typing import Final

from cobs import cobs

from . import protocol

logger = logging.getLogger("loabridge.framing")

FramingErrorCallback = Callable[[str], None]

_SLIP_ESCAPES: Final[dict[int, bytes]] = {
    protocol.SLIP_END: bytes([protocol.SLIP_ESC, protocol.SLIP_ESC_END]),
    protocol.SLIP_ESC: bytes([protocol.SLIP_ESC, protocol.SLIP_ESC_ESC]),
}
_SLIP_UNESCAPES: Final[dict[int, int]] = {
    protocol.SLIP_ESC_END: protocol.SLIP_END,
    protocol.SLIP_ESC_ESC: protocol.SLIP_ESC,
}


class Framer(ABC):
    """Incremental encoder/decoder for one delimiting scheme."""

    name: str = ""

    def __init__(self, on_error: FramingErrorCallback | None = None) -> None:
        self._on_error = on_error
        self._buffer = bytearray()

    @abstractmethod
    def encode(self, payload: bytes) -> bytes:
        """Return *payload* delimited and escaped for the wire."""

    @abstractmethod
    def decode(self, data: bytes) -> Iterator[bytes]:
        """Consume *data* and yield every packet it completes.

        The generator must be exhausted for the decoder state to stay
        consistent with the bytes that were fed.
        """

    @property
    def buffered(self) -> int:
        """Number of bytes of the current, incomplete frame."""
        return len(self._buffer)

    def reset(self) -> None:
        """Drop any partial frame (used when the transport closes)."""
        if self._buffer:
            logger.debug("Dropping %d bytes of partial frame", len(self._buffer))
        self._buffer.clear()

    def _report(self, reason: str) -> None:
        logger.debug("Framing error: %s", reason)
        if self._on_error is not None:
            self._on_error(reason)


class SlipFramer(Framer):
    """SLIP framing with a leading and trailing ``END`` byte per frame.

    Every frame reads ``END payload END``: an ``END`` seen between frames
    opens one and the next ``END`` closes it, so an empty payload still
    yields one (empty) packet. Data bytes seen between frames open a frame
    implicitly, for senders that omit the leading ``END``.
    """

    name = "slip"

    def __init__(self, on_error: FramingErrorCallback | None = None) -> None:
        super().__init__(on_error)
        self._in_frame = False
        self._escaped = False
        self._discarding = False

    def encode(self, payload: bytes) -> bytes:
        # The firmware expects the leading END as well as the trailing one.
        encoded = bytearray([protocol.SLIP_END])
        for byte in payload:
            escape = _SLIP_ESCAPES.get(byte)
            if escape is None:
                encoded.append(byte)
            else:
                encoded.extend(escape)
        encoded.append(protocol.SLIP_END)
        return bytes(encoded)

    def decode(self, data: bytes) -> Iterator[bytes]:
        for byte in data:
            if byte == protocol.SLIP_END:
                if not self._in_frame:
                    self._in_frame = True
                    continue
                if self._escaped:
                    self._report("frame ended inside an escape sequence")
                    self._discarding = True
                if self._discarding:
                    self._clear()
                    continue
                packet = bytes(self._buffer)
                self._clear()
                yield packet
                continue

            self._in_frame = True
            if self._discarding:
                continue

            if self._escaped:
                self._escaped = False
                unescaped = _SLIP_UNESCAPES.get(byte)
                if unescaped is None:
                    self._report(f"invalid escape sequence 0x{protocol.SLIP_ESC:02X} 0x{byte:02X}")
                    self._discarding = True
                    continue
                self._buffer.append(unescaped)
                continue

            if byte == protocol.SLIP_ESC:
                self._escaped = True
                continue

            self._buffer.append(byte)

    def reset(self) -> None:
        super().reset()
        self._clear()

    def _clear(self) -> None:
        self._buffer.clear()
        self._in_frame = False
        self._escaped = False
        self._discarding = False


class CobsFramer(Framer):
    """COBS framing terminated by a ``0x00`` delimiter."""

    name = "cobs"

    def encode(self, payload: bytes) -> bytes:
        return cobs.encode(payload) + protocol.COBS_DELIMITER

    def decode(self, data: bytes) -> Iterator[bytes]:
        delimiter = protocol.COBS_DELIMITER[0]
        for byte in data:
            if byte != delimiter:
                self._buffer.append(byte)
                continue
            if not self._buffer:
                continue
            encoded_packet = bytes(self._buffer)
            self._buffer.clear()
            try:
                packet = cobs.decode(encoded_packet)
            except cobs.DecodeError as exc:
                self._report(f"COBS decode failed: {exc}")
                continue
            yield packet


_FRAMERS: Final[dict[str, type[Framer]]] = {
    SlipFramer.name: SlipFramer,
    CobsFramer.name: CobsFramer,
}

FRAMING_NAMES: Final[tuple[str, ...]] = tuple(_FRAMERS)


def create_framer(name: str, on_error: FramingErrorCallback | None = None) -> Framer:
    """Return a fresh framer for the scheme called *name*."""
    try:
        framer_cls = _FRAMERS[name.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown framing {name!r}; expected one of {', '.join(FRAMING_NAMES)}") from None
    return framer_cls(on_error)


__all__ = [
    "CobsFramer",
    "FRAMING_NAMES",
    "Framer",
    "FramingErrorCallback",
    "SlipFramer",
    "create_framer",
]
