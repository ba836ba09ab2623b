"""Error taxonomy for loa-bridge."""

from __future__ import annotations

from typing import Any


class BridgeError(Exception):
    """Base error for loa-bridge."""


class TransportError(BridgeError):
    """Raised when opening, writing to or closing the transport fails."""


class RequestTimeout(BridgeError, TimeoutError):
    """Raised when no matching response arrives before the deadline."""

    def __init__(self, message_id: int, timeout: float) -> None:
        super().__init__(f"response timeout for request {message_id} after {timeout:.3f}s")
        self.message_id = message_id
        self.timeout = timeout


class MalformedMessage(BridgeError, ValueError):
    """Raised when a packet cannot be decoded as a structured message."""


class RequestFailure(BridgeError):
    """Raised when the device explicitly answers a request with a failure outcome.

    Attributes:
        message_id: Id of the failed request.
        outcome: Outcome segment of the response address (e.g. ``"error"``).
        detail: Device-supplied payload describing the failure.
    """

    def __init__(self, message_id: int, outcome: str, detail: Any = None) -> None:
        text = f"request {message_id} failed ({outcome})"
        if detail not in (None, "", b""):
            text = f"{text}: {detail!r}" if isinstance(detail, bytes) else f"{text}: {detail}"
        super().__init__(text)
        self.message_id = message_id
        self.outcome = outcome
        self.detail = detail


__all__ = [
    "BridgeError",
    "MalformedMessage",
    "RequestFailure",
    "RequestTimeout",
    "TransportError",
]
