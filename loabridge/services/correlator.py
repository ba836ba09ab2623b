"""Request/response correlation on top of one-way framed messages.

Every outgoing message carries a 16-bit id as its first argument. A request
registers a :class:`PendingRequest` for that id; the device answers on
``/response/:outcome`` (payload inline) or ``/raw/response/:outcome``
(payload in the next raw frame) with the same id as first argument.

Each pending entry owns an explicit state machine::

    pending -> awaiting_raw -> resolved | rejected | timed_out
    pending -> resolved | rejected | timed_out

Leaving ``pending`` or ``awaiting_raw`` always cancels the entry's timer,
so a response and a timeout can never both settle the same request. A
response that arrives after the entry settled finds no live entry and is
ignored.

Ids wrap to 0 after 65535. A wrapped id that collides with a request still
pending expires the old entry before the new one is registered.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from transitions import Machine

from ..common import as_args, describe_args
from ..const import DEFAULT_RESPONSE_TIMEOUT
from ..errors import RequestFailure, RequestTimeout, TransportError
from ..protocol import protocol
from ..protocol.message import Message, encode_message
from ..protocol.protocol import Address, Outcome
from ..router.emitter import Handler, PatternRouter

logger = logging.getLogger("loabridge.correlator")

PayloadSender = Callable[[bytes], None]

REQUEST_STATE_PENDING = "pending"
REQUEST_STATE_AWAITING_RAW = "awaiting_raw"
REQUEST_STATE_RESOLVED = "resolved"
REQUEST_STATE_REJECTED = "rejected"
REQUEST_STATE_TIMED_OUT = "timed_out"

_LIVE_STATES = frozenset({REQUEST_STATE_PENDING, REQUEST_STATE_AWAITING_RAW})


class MessageIdAllocator:
    """16-bit message id counter: 0, 1, ..., 65535, 0, ..."""

    def __init__(self) -> None:
        self._last: int | None = None

    def next(self) -> int:
        if self._last is None or self._last >= protocol.MESSAGE_ID_MAX:
            self._last = protocol.MESSAGE_ID_MIN
        else:
            self._last += 1
        return self._last


@dataclass(eq=False)
class PendingRequest:
    """Book-keeping for one request in flight."""

    message_id: int
    address: str
    future: asyncio.Future[Any]
    timeout: float = DEFAULT_RESPONSE_TIMEOUT
    created_at: float = field(default_factory=time.monotonic)
    timeout_handle: asyncio.TimerHandle | None = None
    raw_outcome: str | None = None
    raw_listener: Handler | None = None
    fsm_state: str = REQUEST_STATE_PENDING
    _machine: Any = None

    def __post_init__(self) -> None:
        self._machine = Machine(
            model=self,
            states=[
                REQUEST_STATE_PENDING,
                REQUEST_STATE_AWAITING_RAW,
                REQUEST_STATE_RESOLVED,
                REQUEST_STATE_REJECTED,
                REQUEST_STATE_TIMED_OUT,
            ],
            initial=REQUEST_STATE_PENDING,
            model_attribute="fsm_state",
            auto_transitions=False,
            ignore_invalid_triggers=True,
        )
        live = [REQUEST_STATE_PENDING, REQUEST_STATE_AWAITING_RAW]
        self._machine.add_transition(
            "expect_raw", REQUEST_STATE_PENDING, REQUEST_STATE_AWAITING_RAW, before="cancel_timer"
        )
        self._machine.add_transition("succeed", live, REQUEST_STATE_RESOLVED, before="cancel_timer")
        self._machine.add_transition("fail", live, REQUEST_STATE_REJECTED, before="cancel_timer")
        self._machine.add_transition("expire", live, REQUEST_STATE_TIMED_OUT, before="cancel_timer")

    if TYPE_CHECKING:

        def trigger(self, event: str, *args: Any, **kwargs: Any) -> bool:
            """FSM trigger placeholder."""
            ...

    @property
    def settled(self) -> bool:
        return self.fsm_state not in _LIVE_STATES

    @property
    def age(self) -> float:
        return time.monotonic() - self.created_at

    def cancel_timer(self) -> None:
        if self.timeout_handle is not None:
            self.timeout_handle.cancel()
            self.timeout_handle = None


class RequestCorrelator:
    """Assigns message ids and matches responses to waiting callers."""

    def __init__(
        self,
        router: PatternRouter,
        *,
        timeout: float = DEFAULT_RESPONSE_TIMEOUT,
        sender: PayloadSender | None = None,
        metrics_callback: Callable[[str], None] | None = None,
    ) -> None:
        self._router = router
        self._timeout = timeout
        self._sender = sender
        self._metrics_callback = metrics_callback
        self._ids = MessageIdAllocator()
        self._pending: dict[int, PendingRequest] = {}

        router.on(Address.RESPONSE, self._on_response)
        router.on(Address.RAW_RESPONSE, self._on_raw_response)

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, message_id: int) -> bool:
        pending = self._pending.get(message_id)
        return pending is not None and not pending.settled

    def send(self, address: str, args: Any = ()) -> int:
        """Transmit *address* with a fresh id prepended to *args*; return the id."""
        message_id = self._ids.next()
        self._transmit(address, message_id, as_args(args))
        return message_id

    async def request(
        self,
        address: str,
        args: Any = (),
        *,
        raw: bytes | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send a request and wait for the correlated response.

        When *raw* is given it is transmitted as its own frame right after
        the structured message.

        Raises:
            RequestFailure: The device answered with a failure outcome.
            RequestTimeout: No response arrived in time.
            TransportError: The message could not be written or the link
                closed while waiting.
        """
        message_id = self._ids.next()
        pending = self.track(message_id, address, timeout=timeout)
        try:
            self._transmit(address, message_id, as_args(args))
            if raw is not None:
                self._write(bytes(raw))
        except BaseException:
            self.discard(message_id)
            raise
        self._emit_metric("sent")
        return await self.wait(pending)

    def track(self, message_id: int, address: str = "", *, timeout: float | None = None) -> PendingRequest:
        """Register a pending entry for *message_id* and arm its timer."""
        loop = asyncio.get_running_loop()
        existing = self._pending.get(message_id)
        if existing is not None and not existing.settled:
            logger.warning(
                "Message id %d wrapped onto a request still pending for %.3fs; expiring it",
                message_id,
                existing.age,
            )
            self._expire(existing)

        effective_timeout = self._timeout if timeout is None else timeout
        pending = PendingRequest(
            message_id=message_id,
            address=address,
            future=loop.create_future(),
            timeout=effective_timeout,
        )
        pending.timeout_handle = loop.call_later(effective_timeout, self._expire, pending)
        self._pending[message_id] = pending
        return pending

    async def wait(self, pending: PendingRequest) -> Any:
        try:
            return await pending.future
        except asyncio.CancelledError:
            if not pending.settled:
                logger.debug("Request %d abandoned by caller", pending.message_id)
                pending.trigger("fail")
                self._finish(pending)
            raise

    def discard(self, message_id: int) -> None:
        """Drop the entry for *message_id* without settling its future."""
        pending = self._pending.get(message_id)
        if pending is None:
            return
        pending.trigger("fail")
        self._finish(pending)
        if not pending.future.done():
            pending.future.cancel()

    def reject_all(self, reason: str) -> int:
        """Reject every live request with :class:`TransportError`."""
        rejected = 0
        for pending in tuple(self._pending.values()):
            if pending.settled:
                continue
            pending.trigger("fail")
            self._finish(pending)
            if not pending.future.done():
                pending.future.set_exception(TransportError(f"{reason} (request {pending.message_id})"))
            rejected += 1
        if rejected:
            logger.debug("Rejected %d pending request(s): %s", rejected, reason)
        return rejected

    # --- internals ---

    def _write(self, payload: bytes) -> None:
        sender = self._sender
        if sender is None:
            raise TransportError("no transport attached")
        sender(payload)

    def _transmit(self, address: str, message_id: int, args: tuple[Any, ...]) -> None:
        payload = encode_message(address, (message_id, *args))
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("HOST > %s #%d [%s]", address, message_id, describe_args(args))
        self._write(payload)

    def _emit_metric(self, event: str) -> None:
        if self._metrics_callback is None:
            return
        self._metrics_callback(event)

    def _finish(self, pending: PendingRequest) -> None:
        if self._pending.get(pending.message_id) is pending:
            del self._pending[pending.message_id]
        if pending.raw_listener is not None:
            self._router.off(Address.RAW_DATA, pending.raw_listener)
            pending.raw_listener = None

    def _expire(self, pending: PendingRequest) -> None:
        if pending.settled:
            return
        pending.trigger("expire")
        self._finish(pending)
        self._emit_metric("timeout")
        logger.debug("Request %d (%s) timed out after %.3fs", pending.message_id, pending.address, pending.timeout)
        if not pending.future.done():
            pending.future.set_exception(RequestTimeout(pending.message_id, pending.timeout))

    def _lookup(self, message: Message) -> PendingRequest | None:
        message_id = message.message_id
        if message_id is None:
            logger.debug("Ignoring %s without a message id", message.address)
            return None
        pending = self._pending.get(message_id)
        if pending is None or pending.fsm_state != REQUEST_STATE_PENDING:
            self._emit_metric("late")
            logger.debug("Ignoring orphaned response %s #%d", message.address, message_id)
            return None
        return pending

    def _settle(self, pending: PendingRequest, outcome: str, payload: Any) -> None:
        if outcome == Outcome.SUCCESS:
            pending.trigger("succeed")
            self._finish(pending)
            self._emit_metric("matched")
            if not pending.future.done():
                pending.future.set_result(payload)
            return

        pending.trigger("fail")
        self._finish(pending)
        self._emit_metric("failure")
        logger.debug("Request %d rejected by device (%s)", pending.message_id, outcome)
        if not pending.future.done():
            pending.future.set_exception(RequestFailure(pending.message_id, outcome, payload))

    def _on_response(self, message: Message, params: dict[str, str]) -> None:
        pending = self._lookup(message)
        if pending is None:
            return
        payload = message.args[1] if len(message.args) > 1 else None
        self._settle(pending, params.get("outcome", ""), payload)

    def _on_raw_response(self, message: Message, params: dict[str, str]) -> None:
        pending = self._lookup(message)
        if pending is None:
            return
        pending.trigger("expect_raw")
        pending.raw_outcome = params.get("outcome", "")
        loop = pending.future.get_loop()
        pending.timeout_handle = loop.call_later(pending.timeout, self._expire, pending)
        pending.raw_listener = self._router.once(
            Address.RAW_DATA,
            functools.partial(self._on_raw_data, pending),
        )

    def _on_raw_data(self, pending: PendingRequest, data: bytes, _params: dict[str, str]) -> None:
        if pending.fsm_state != REQUEST_STATE_AWAITING_RAW:
            return
        # The once-wrapper already removed itself.
        pending.raw_listener = None
        self._settle(pending, pending.raw_outcome or "", data)


__all__ = [
    "MessageIdAllocator",
    "PayloadSender",
    "PendingRequest",
    "REQUEST_STATE_AWAITING_RAW",
    "REQUEST_STATE_PENDING",
    "REQUEST_STATE_REJECTED",
    "REQUEST_STATE_RESOLVED",
    "REQUEST_STATE_TIMED_OUT",
    "RequestCorrelator",
]
