"""Serial transport built on pyserial-asyncio-fast.

The asyncio ``Protocol`` forwards every received chunk straight to the
bridge; framing happens one layer up so the same transport works for any
framer.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Final, cast

import tenacity

# pyserial-asyncio-fast is a hard dependency; no fallback to plain pyserial.
import serial_asyncio_fast  # type: ignore

from ..common import log_hexdump
from ..config.settings import BridgeConfig
from ..errors import TransportError
from .base import CloseCallback, DataCallback

logger = logging.getLogger("loabridge.serial")

CLOSE_TIMEOUT: Final[float] = 1.0


class SerialProtocol(asyncio.Protocol):
    """Hands raw serial chunks to the owner's callbacks."""

    def __init__(
        self,
        on_data: DataCallback,
        on_close: CloseCallback,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self._on_data = on_data
        self._on_close = on_close
        self.loop = loop
        self.transport: asyncio.Transport | None = None
        self.connected_future: asyncio.Future[None] = loop.create_future()
        self.closed_future: asyncio.Future[None] = loop.create_future()

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = cast(asyncio.Transport, transport)
        logger.info("Serial transport established.")
        if not self.connected_future.done():
            self.connected_future.set_result(None)

    def data_received(self, data: bytes) -> None:
        log_hexdump(logger, logging.DEBUG, "DEVICE >", data)
        self._on_data(data)

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None:
            logger.warning("Serial connection lost: %s", exc)
        self.transport = None
        if not self.connected_future.done():
            self.connected_future.set_exception(exc or ConnectionError("Closed"))
        if not self.closed_future.done():
            self.closed_future.set_result(None)
        self._on_close(exc)


class SerialTransport:
    """Owns one serial port connection."""

    def __init__(self, config: BridgeConfig, port: str | None = None) -> None:
        self.config = config
        self.port = port or config.serial_port
        self.baudrate = config.serial_baud
        self.protocol: SerialProtocol | None = None
        self._transport: asyncio.Transport | None = None

    @property
    def is_open(self) -> bool:
        return self._transport is not None and not self._transport.is_closing()

    def _before_sleep_log(self, retry_state: tenacity.RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Opening %s failed (attempt %d): %s; retrying in %.1fs",
            self.port,
            retry_state.attempt_number,
            exc,
            self.config.reconnect_delay,
        )

    async def open(self, on_data: DataCallback, on_close: CloseCallback) -> None:
        """Open the port, retrying ``config.open_retries`` times on ``OSError``.

        Raises:
            TransportError: The port could not be opened.
        """
        if self.is_open:
            raise TransportError(f"{self.port} is already open")

        loop = asyncio.get_running_loop()
        retryer = tenacity.AsyncRetrying(
            stop=tenacity.stop_after_attempt(max(1, self.config.open_retries)),
            wait=tenacity.wait_fixed(self.config.reconnect_delay),
            retry=tenacity.retry_if_exception_type(OSError),
            before_sleep=self._before_sleep_log,
            reraise=True,
        )

        try:
            async for attempt in retryer:
                with attempt:
                    await self._connect(loop, on_data, on_close)
        except OSError as exc:
            raise TransportError(f"cannot open {self.port}: {exc}") from exc

    async def _connect(
        self,
        loop: asyncio.AbstractEventLoop,
        on_data: DataCallback,
        on_close: CloseCallback,
    ) -> None:
        logger.info("Connecting to %s at %d baud...", self.port, self.baudrate)
        protocol_factory = functools.partial(SerialProtocol, on_data, on_close, loop)
        transport, proto = await serial_asyncio_fast.create_serial_connection(
            loop, protocol_factory, self.port, baudrate=self.baudrate
        )
        self.protocol = cast(SerialProtocol, proto)
        await self.protocol.connected_future
        self._transport = cast(asyncio.Transport, transport)

    def write(self, data: bytes) -> None:
        transport = self._transport
        if transport is None or transport.is_closing():
            raise TransportError("serial port is not open")
        try:
            transport.write(data)
        except OSError as exc:
            raise TransportError(f"write to {self.port} failed: {exc}") from exc
        log_hexdump(logger, logging.DEBUG, "HOST >", data)

    async def close(self) -> None:
        transport = self._transport
        proto = self.protocol
        self._transport = None
        if transport is None:
            return
        if not transport.is_closing():
            transport.close()
        if proto is None:
            return
        try:
            await asyncio.wait_for(asyncio.shield(proto.closed_future), CLOSE_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("Serial port %s did not report closure within %.1fs", self.port, CLOSE_TIMEOUT)
        finally:
            self.protocol = None


__all__ = ["SerialProtocol", "SerialTransport"]
