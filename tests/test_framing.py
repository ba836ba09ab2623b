"""Tests for the SLIP and COBS stream framers."""

from __future__ import annotations

import pytest

from loabridge.protocol import protocol
from loabridge.protocol.framing import CobsFramer, SlipFramer, create_framer

END = bytes([protocol.SLIP_END])
ESC = bytes([protocol.SLIP_ESC])


def test_slip_encode_escapes_reserved_bytes() -> None:
    payload = b"a" + END + b"b" + ESC + b"c"
    encoded = SlipFramer().encode(payload)

    assert encoded[0] == protocol.SLIP_END
    assert encoded[-1] == protocol.SLIP_END
    assert END not in encoded[1:-1]
    assert encoded == END + b"a\xdb\xdcb\xdb\xddc" + END


def test_slip_roundtrip_of_reserved_bytes() -> None:
    payload = bytes(range(256)) + END * 3 + ESC * 3
    assert list(SlipFramer().decode(SlipFramer().encode(payload))) == [payload]


def test_slip_decode_across_chunk_boundaries() -> None:
    wire = SlipFramer().encode(b"first\xc0") + SlipFramer().encode(b"second")
    framer = SlipFramer()

    packets: list[bytes] = []
    for index in range(len(wire)):
        packets.extend(framer.decode(wire[index : index + 1]))

    assert packets == [b"first\xc0", b"second"]
    assert framer.buffered == 0


def test_slip_partial_frame_yields_nothing_until_end() -> None:
    framer = SlipFramer()
    assert list(framer.decode(END + b"abc")) == []
    assert framer.buffered == 3
    assert list(framer.decode(b"def" + END)) == [b"abcdef"]


def test_slip_empty_payload_roundtrips() -> None:
    encoded = SlipFramer().encode(b"")

    assert encoded == END * 2
    assert list(SlipFramer().decode(encoded)) == [b""]


def test_slip_each_frame_yields_one_packet_even_when_empty() -> None:
    framer = SlipFramer()
    wire = SlipFramer().encode(b"a") + SlipFramer().encode(b"") + SlipFramer().encode(b"b")

    assert list(framer.decode(wire)) == [b"a", b"", b"b"]
    assert framer.buffered == 0


def test_slip_accepts_frames_without_leading_end() -> None:
    framer = SlipFramer()
    assert list(framer.decode(b"x" + END + END + b"y" + END)) == [b"x", b"y"]


def test_slip_invalid_escape_discards_only_current_frame() -> None:
    errors: list[str] = []
    framer = SlipFramer(on_error=errors.append)

    wire = END + b"bad" + ESC + b"\x01rest" + END + b"good" + END
    assert list(framer.decode(wire)) == [b"good"]
    assert len(errors) == 1
    assert "invalid escape" in errors[0]


def test_slip_escape_followed_by_end_is_an_error() -> None:
    errors: list[str] = []
    framer = SlipFramer(on_error=errors.append)

    assert list(framer.decode(b"abc" + ESC + END + b"ok" + END)) == [b"ok"]
    assert errors == ["frame ended inside an escape sequence"]


def test_reset_drops_partial_frame() -> None:
    framer = SlipFramer()
    list(framer.decode(b"partial" + ESC))
    framer.reset()

    assert framer.buffered == 0
    assert list(framer.decode(b"next" + END)) == [b"next"]


def test_cobs_roundtrip_with_zero_bytes() -> None:
    payload = b"\x00\x01\x00\x02"
    encoded = CobsFramer().encode(payload)

    assert encoded.endswith(b"\x00")
    assert b"\x00" not in encoded[:-1]
    assert list(CobsFramer().decode(encoded)) == [payload]


def test_cobs_bad_frame_is_reported_and_skipped() -> None:
    errors: list[str] = []
    framer = CobsFramer(on_error=errors.append)

    wire = b"\x05ab\x00" + CobsFramer().encode(b"ok")
    assert list(framer.decode(wire)) == [b"ok"]
    assert len(errors) == 1


def test_create_framer_by_name() -> None:
    assert isinstance(create_framer("slip"), SlipFramer)
    assert isinstance(create_framer(" COBS "), CobsFramer)
    with pytest.raises(ValueError, match="Unknown framing"):
        create_framer("hdlc")
