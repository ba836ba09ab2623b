"""Tests for loabridge.transport.serial."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from loabridge.config.settings import BridgeConfig
from loabridge.errors import TransportError
from loabridge.transport import serial


class _FakeSerialTransport:
    def __init__(self, protocol: serial.SerialProtocol) -> None:
        self.protocol = protocol
        self.writes: list[bytes] = []
        self._closing = False

    def write(self, data: bytes) -> None:
        self.writes.append(data)

    def is_closing(self) -> bool:
        return self._closing

    def close(self) -> None:
        self._closing = True
        self.protocol.loop.call_soon(self.protocol.connection_lost, None)


class _SerialFactory:
    """Stand-in for serial_asyncio_fast.create_serial_connection."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.calls: list[tuple[str, int]] = []
        self.transport: _FakeSerialTransport | None = None

    async def __call__(self, loop: asyncio.AbstractEventLoop, factory: Any, port: str, baudrate: int) -> Any:
        self.calls.append((port, baudrate))
        if len(self.calls) <= self.failures:
            raise OSError(2, "No such file or directory")
        proto = factory()
        self.transport = _FakeSerialTransport(proto)
        proto.connection_made(self.transport)
        return self.transport, proto


def _config(**overrides: Any) -> BridgeConfig:
    values: dict[str, Any] = {"serial_port": "/dev/ttyACM0", "reconnect_delay": 0.0}
    values.update(overrides)
    return BridgeConfig(**values)


def test_open_write_receive_close(monkeypatch: pytest.MonkeyPatch) -> None:
    factory = _SerialFactory()
    monkeypatch.setattr(serial.serial_asyncio_fast, "create_serial_connection", factory)

    received: list[bytes] = []
    closed: list[Exception | None] = []

    async def _run() -> None:
        transport = serial.SerialTransport(_config(serial_baud=115200), port="/dev/ttyUSB1")
        await transport.open(received.append, closed.append)
        assert transport.is_open

        transport.write(b"\xc0abc\xc0")
        assert factory.transport is not None
        assert factory.transport.writes == [b"\xc0abc\xc0"]

        factory.transport.protocol.data_received(b"chunk")
        await transport.close()
        assert not transport.is_open

        with pytest.raises(TransportError):
            transport.write(b"late")

    asyncio.run(_run())
    assert factory.calls == [("/dev/ttyUSB1", 115200)]
    assert received == [b"chunk"]
    assert closed == [None]


def test_open_retries_on_os_error(monkeypatch: pytest.MonkeyPatch) -> None:
    factory = _SerialFactory(failures=2)
    monkeypatch.setattr(serial.serial_asyncio_fast, "create_serial_connection", factory)

    async def _run() -> None:
        transport = serial.SerialTransport(_config(open_retries=3))
        await transport.open(lambda data: None, lambda exc: None)
        assert transport.is_open

    asyncio.run(_run())
    assert len(factory.calls) == 3


def test_open_gives_up_with_transport_error(monkeypatch: pytest.MonkeyPatch) -> None:
    factory = _SerialFactory(failures=10)
    monkeypatch.setattr(serial.serial_asyncio_fast, "create_serial_connection", factory)

    async def _run() -> None:
        transport = serial.SerialTransport(_config(open_retries=2))
        with pytest.raises(TransportError, match="cannot open /dev/ttyACM0"):
            await transport.open(lambda data: None, lambda exc: None)
        assert not transport.is_open

    asyncio.run(_run())
    assert len(factory.calls) == 2


def test_connection_lost_reports_error() -> None:
    closed: list[Exception | None] = []

    async def _run() -> None:
        loop = asyncio.get_running_loop()
        proto = serial.SerialProtocol(lambda data: None, closed.append, loop)
        error = OSError("unplugged")
        proto.connection_lost(error)
        assert proto.closed_future.done()
        with pytest.raises(OSError):
            await proto.connected_future

    asyncio.run(_run())
    assert len(closed) == 1
    assert isinstance(closed[0], OSError)
