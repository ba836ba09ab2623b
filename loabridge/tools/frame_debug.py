"""Frame inspection utility for loa-bridge developers.

``encode`` builds a message the way the bridge sends it and prints the
message bytes and the framed wire bytes. ``decode`` splits a captured hex
byte stream into frames and prints what the bridge would make of each one.

    loabridge-frame-debug encode /read-file 0 lua/main.lua
    loabridge-frame-debug decode "C0 2F 6C 6F 67 ... C0"
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from typing import Any

from ..common import describe_args
from ..const import DEFAULT_FRAMING
from ..errors import MalformedMessage
from ..protocol.framing import FRAMING_NAMES, create_framer
from ..protocol.message import decode_message, encode_message

_TRUE_LITERALS = frozenset({"true", "T"})
_FALSE_LITERALS = frozenset({"false", "F"})


@dataclass(slots=True)
class FrameDebugSnapshot:
    address: str
    args: tuple[Any, ...]
    framing: str
    message_length: int
    frame_length: int
    message_hex: str
    frame_hex: str

    def render(self) -> str:
        return (
            "[FrameDebug] --- Snapshot ---\n"
            f"address={self.address}\n"
            f"args=[{describe_args(self.args)}]\n"
            f"framing={self.framing}\n"
            f"message_len={self.message_length}\n"
            f"frame_len={self.frame_length}\n"
            f"message={self.message_hex}\n"
            f"frame={self.frame_hex}"
        )


def _hex_with_spacing(data: bytes) -> str:
    return " ".join(f"{byte:02X}" for byte in data)


def _parse_argument(text: str) -> Any:
    """Interpret a command-line argument as int, float, bool or string."""
    if text in _TRUE_LITERALS:
        return True
    if text in _FALSE_LITERALS:
        return False
    try:
        return int(text, 0)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text


def _parse_hex(hex_string: str) -> bytes:
    compact = "".join(hex_string.split())
    if compact.startswith("0x") or compact.startswith("0X"):
        compact = compact[2:]
    if len(compact) % 2:
        raise ValueError("hex input must contain an even number of digits")
    try:
        return bytes.fromhex(compact)
    except ValueError as exc:
        raise ValueError(f"Invalid hex '{hex_string}': {exc}") from exc


def build_snapshot(address: str, args: tuple[Any, ...], framing: str = DEFAULT_FRAMING) -> FrameDebugSnapshot:
    message = encode_message(address, args)
    frame = create_framer(framing).encode(message)
    return FrameDebugSnapshot(
        address=address,
        args=args,
        framing=framing,
        message_length=len(message),
        frame_length=len(frame),
        message_hex=_hex_with_spacing(message),
        frame_hex=_hex_with_spacing(frame),
    )


def describe_stream(data: bytes, framing: str = DEFAULT_FRAMING) -> list[str]:
    """Return one line per frame found in *data*."""
    errors: list[str] = []
    framer = create_framer(framing, on_error=errors.append)
    lines: list[str] = []
    for index, packet in enumerate(framer.decode(data)):
        if not packet:
            lines.append(f"[{index}] empty frame")
            continue
        try:
            message = decode_message(packet)
        except MalformedMessage as exc:
            text = packet.decode("utf-8", errors="replace")
            lines.append(f"[{index}] text {text!r} ({exc})")
            continue
        lines.append(f"[{index}] {message.address} [{describe_args(message.args)}]")
    lines.extend(f"framing error: {reason}" for reason in errors)
    if framer.buffered:
        lines.append(f"incomplete frame: {framer.buffered} bytes buffered")
    return lines


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Build and inspect Lua-on-Arduino bridge frames.")
    parser.add_argument(
        "--framing",
        choices=FRAMING_NAMES,
        default=DEFAULT_FRAMING,
        help=f"Framing scheme (default: {DEFAULT_FRAMING}).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    encode_parser = subparsers.add_parser("encode", help="Encode a message and print its frame.")
    encode_parser.add_argument("address", help="Message address, e.g. /read-file.")
    encode_parser.add_argument(
        "args",
        nargs="*",
        help="Arguments; parsed as int, float, true/false, or kept as strings.",
    )

    decode_parser = subparsers.add_parser("decode", help="Split a hex byte stream into frames.")
    decode_parser.add_argument("hex", help="Captured bytes as hex (spaces allowed).")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    if args.command == "encode":
        values = tuple(_parse_argument(text) for text in args.args)
        try:
            snapshot = build_snapshot(args.address, values, args.framing)
        except (ValueError, TypeError, OverflowError) as exc:
            parser.error(str(exc))
            return 2
        print(snapshot.render())
        return 0

    try:
        data = _parse_hex(args.hex)
    except ValueError as exc:
        parser.error(str(exc))
        return 2
    lines = describe_stream(data, args.framing)
    if not lines:
        print("[FrameDebug] No frames found")
        return 1
    for line in lines:
        print(line)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
