"""Bridge between the host and a Lua-on-Arduino board.

Incoming bytes flow ``transport -> framer -> receive mode -> codec ->
router``; outgoing messages take the reverse path through the correlator.
The bridge is itself a :class:`~loabridge.router.emitter.PatternRouter`, so
callers subscribe to device addresses directly on it::

    bridge = Bridge(load_bridge_config())
    bridge.on("/log/:level", handler)
    await bridge.connect()
    data = await bridge.send_request("/read-file", "lua/main.lua")

All callbacks run on the event loop thread that owns the transport. Only
one raw transfer may be in flight at a time: a raw capture covers exactly
the next packet, whoever it was meant for.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from ..common import describe_args, log_hexdump
from ..config.settings import BridgeConfig
from ..errors import MalformedMessage, TransportError
from ..protocol.framing import Framer, create_framer
from ..protocol.message import Message, decode_message
from ..protocol.protocol import Address
from ..router.emitter import PatternRouter
from ..state.context import BridgeStats
from ..transport.base import Transport
from ..transport.serial import SerialTransport
from .console import DeviceConsole
from .correlator import RequestCorrelator
from .receive_mode import ReceiveMode, ReceiveModeMachine

logger = logging.getLogger("loabridge.bridge")


class Bridge(PatternRouter):
    """Request/response bridge over one framed byte stream."""

    def __init__(
        self,
        config: BridgeConfig | None = None,
        *,
        transport: Transport | None = None,
        console: DeviceConsole | None = None,
        framer: Framer | None = None,
    ) -> None:
        super().__init__()
        self.config = config or BridgeConfig()
        self.stats = BridgeStats()
        self.console = console or DeviceConsole()
        self.transport = transport
        self.framer = framer or create_framer(self.config.framing, on_error=self.stats.record_framing_error)
        self.receive_mode = ReceiveModeMachine()
        self._closing = False
        self._waiters: dict[asyncio.Future[Any], Callable[[BaseException], None]] = {}

        # Must be the first subscription: capture is armed before any other
        # handler sees a raw announcement.
        self.on(Address.RAW_ANY, self._arm_raw_capture)

        self.correlator = RequestCorrelator(
            self,
            timeout=self.config.response_timeout,
            sender=self.send_raw,
            metrics_callback=self.stats.record_request_event,
        )

    @property
    def is_connected(self) -> bool:
        return self.transport is not None and self.transport.is_open

    async def connect(self, port: str | None = None) -> None:
        """Open the transport (a serial port unless one was injected).

        Raises:
            TransportError: The transport could not be opened.
        """
        if self.transport is None:
            self.transport = SerialTransport(self.config, port)
        elif port is not None and isinstance(self.transport, SerialTransport):
            self.transport.port = port

        self._closing = False
        self.framer.reset()
        self.receive_mode.reset()
        await self.transport.open(self.feed, self.connection_lost)
        logger.info("Bridge connected (framing=%s).", self.framer.name or type(self.framer).__name__)

    async def close(self) -> None:
        """Close the transport and reject every request still waiting."""
        self._closing = True
        self.correlator.reject_all("bridge closed")
        self._reject_waiters(TransportError("bridge closed"))
        if self.transport is not None:
            await self.transport.close()
        self.framer.reset()
        self.receive_mode.reset()

    def connection_lost(self, exc: Exception | None) -> None:
        """Transport callback: the link went away."""
        rejected = self.correlator.reject_all("transport disconnected")
        self._reject_waiters(TransportError("transport disconnected"))
        self.framer.reset()
        self.receive_mode.reset()
        if self._closing and exc is None:
            logger.info("Bridge closed.")
            return
        self.stats.record_disconnect()
        logger.error("Serial link disconnected: %s (%d request(s) rejected)", exc or "closed by peer", rejected)
        self.console.error("disconnected", exc)

    # --- incoming ---

    def feed(self, data: bytes) -> None:
        """Process a chunk of bytes received from the transport."""
        self.stats.record_rx_bytes(len(data))
        for packet in self.framer.decode(data):
            self._handle_packet(packet)

    def _handle_packet(self, packet: bytes) -> None:
        if self.receive_mode.take() is ReceiveMode.RAW_CAPTURE:
            self.stats.record_frame(raw=True)
            log_hexdump(logger, logging.DEBUG, "DEVICE > raw", packet)
            self.emit(Address.RAW_DATA, packet)
            return

        if not packet:
            logger.debug("Ignoring empty frame")
            return

        self.stats.record_frame(raw=False)
        try:
            message = decode_message(packet)
        except MalformedMessage as exc:
            # Not a message: plain output from the Lua side (print()).
            self.stats.record_malformed_message()
            logger.debug("Treating undecodable packet as device output: %s", exc)
            self.console.print(packet)
            return

        self.stats.record_message()
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("DEVICE > %s [%s]", message.address, describe_args(message.args))
        self.emit(message.address, message)

    def _arm_raw_capture(self, _message: Message, _params: dict[str, str]) -> None:
        self.receive_mode.expect_raw()

    # --- outgoing ---

    def send_raw(self, data: bytes) -> None:
        """Frame and write *data* as-is.

        Raises:
            TransportError: The bridge is not connected or the write failed.
        """
        transport = self.transport
        if transport is None or not transport.is_open:
            raise TransportError("bridge is not connected")
        frame = self.framer.encode(bytes(data))
        transport.write(frame)
        self.stats.record_tx(len(frame))

    def send_message(self, address: str, args: Any = ()) -> int:
        """Send *address* with a fresh message id; return the id."""
        return self.correlator.send(address, args)

    async def send_request(self, address: str, args: Any = (), *, timeout: float | None = None) -> Any:
        """Send a message and wait for its response payload."""
        return await self.correlator.request(address, args, timeout=timeout)

    async def send_raw_request(
        self,
        address: str,
        args: Any,
        data: bytes,
        *,
        timeout: float | None = None,
    ) -> Any:
        """Send a message followed by a raw frame and wait for the response."""
        return await self.correlator.request(address, args, raw=data, timeout=timeout)

    def expect_message(self, pattern: str, timeout: float | None = None) -> asyncio.Future[tuple[Any, dict[str, str]]]:
        """Subscribe to *pattern* now; the future gets the next match.

        The subscription is in place before this returns, so a packet fed
        later in the same chunk is caught. The future fails with
        ``TimeoutError`` after *timeout* seconds (defaults to the configured
        response timeout) and with :class:`TransportError` when the link
        closes. Either way, or on cancellation, the subscription is removed.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[tuple[Any, dict[str, str]]] = loop.create_future()
        delay = self.config.response_timeout if timeout is None else timeout

        def _release() -> None:
            handle.cancel()
            self.off(pattern, listener)
            self._waiters.pop(future, None)

        def _resolve(payload: Any, params: dict[str, str]) -> None:
            _release()
            if not future.done():
                future.set_result((payload, params))

        def _reject(exc: BaseException) -> None:
            _release()
            if not future.done():
                future.set_exception(exc)

        def _on_done(done: asyncio.Future[Any]) -> None:
            if done.cancelled():
                _release()

        listener = self.once(pattern, _resolve)
        handle = loop.call_later(delay, lambda: _reject(TimeoutError(f"no {pattern} within {delay:.3f}s")))
        self._waiters[future] = _reject
        future.add_done_callback(_on_done)
        return future

    async def wait_for_message(self, pattern: str, timeout: float | None = None) -> tuple[Any, dict[str, str]]:
        """Wait for the next emit matching *pattern*.

        Raises:
            TimeoutError: Nothing matched within *timeout* seconds (defaults
                to the configured response timeout).
            TransportError: The link closed while waiting.
        """
        return await self.expect_message(pattern, timeout)

    async def wait_for_raw_data(self, timeout: float | None = None) -> bytes | None:
        """Wait for the next raw packet; ``None`` on timeout."""
        try:
            payload, _params = await self.wait_for_message(Address.RAW_DATA, timeout)
        except TimeoutError:
            return None
        return payload

    def _reject_waiters(self, exc: BaseException) -> None:
        for reject in tuple(self._waiters.values()):
            reject(exc)


__all__ = ["Bridge"]
