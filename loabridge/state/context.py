"""Per-bridge counters for link observability."""

from __future__ import annotations

import time
from typing import Any

import msgspec


class BridgeStats(msgspec.Struct):
    """Serial link and request counters owned by one :class:`Bridge`.

    Simple counters with monotonic increments only; :meth:`as_dict` gives a
    snapshot suitable for logging.
    """

    bytes_sent: int = 0
    bytes_received: int = 0
    frames_sent: int = 0
    frames_received: int = 0
    raw_frames_received: int = 0
    messages_received: int = 0
    malformed_messages: int = 0
    framing_errors: int = 0
    requests_sent: int = 0
    responses_matched: int = 0
    request_failures: int = 0
    request_timeouts: int = 0
    late_responses: int = 0
    disconnects: int = 0
    last_tx_unix: float = 0.0
    last_rx_unix: float = 0.0

    def record_tx(self, nbytes: int) -> None:
        self.bytes_sent += nbytes
        self.frames_sent += 1
        self.last_tx_unix = time.time()

    def record_rx_bytes(self, nbytes: int) -> None:
        self.bytes_received += nbytes
        self.last_rx_unix = time.time()

    def record_frame(self, *, raw: bool) -> None:
        self.frames_received += 1
        if raw:
            self.raw_frames_received += 1

    def record_message(self) -> None:
        self.messages_received += 1

    def record_malformed_message(self) -> None:
        self.malformed_messages += 1

    def record_framing_error(self, reason: str = "") -> None:
        self.framing_errors += 1

    def record_request_event(self, event: str) -> None:
        """Record a correlator event.

        Valid events: 'sent', 'matched', 'failure', 'timeout', 'late'.
        """
        if event == "sent":
            self.requests_sent += 1
        elif event == "matched":
            self.responses_matched += 1
        elif event == "failure":
            self.request_failures += 1
        elif event == "timeout":
            self.request_timeouts += 1
        elif event == "late":
            self.late_responses += 1

    def record_disconnect(self) -> None:
        self.disconnects += 1

    def as_dict(self) -> dict[str, Any]:
        return msgspec.structs.asdict(self)


__all__ = ["BridgeStats"]
