"""Tests for the LuaDevice client and device log routing."""

from __future__ import annotations

import asyncio
import logging

import pytest

from loabridge.config.settings import BridgeConfig
from loabridge.errors import TransportError
from loabridge.protocol.message import Message
from loabridge.services.bridge import Bridge
from loabridge.services.device import LuaDevice

from mocks import FakeTransport, device_frame, raw_frame


@pytest.fixture()
def device(bridge: Bridge) -> LuaDevice:
    return LuaDevice(bridge=bridge)


async def _answer(transport: FakeTransport, *frames: bytes) -> None:
    await asyncio.sleep(0)
    for frame in frames:
        transport.receive(frame)


def _device_log(caplog: pytest.LogCaptureFixture) -> list[tuple[int, str]]:
    return [(record.levelno, record.getMessage()) for record in caplog.records if record.name == "loabridge.device"]


def test_write_file_sends_dirname_basename_and_raw_content(
    device: LuaDevice,
    fake_transport: FakeTransport,
) -> None:
    async def _run() -> bool:
        await device.connect()
        task = asyncio.create_task(device.write_file("lua\\test.lua", b"print(1)"))
        await _answer(fake_transport, device_frame("/response/success", 0, True))
        return await task

    assert asyncio.run(_run()) is True
    packets = fake_transport.sent_packets()
    assert packets[1] == b"print(1)"
    assert fake_transport.sent_messages()[0] == Message("/write-file", (0, "lua", "test.lua"))


def test_write_file_in_root_directory_uses_dot(device: LuaDevice, fake_transport: FakeTransport) -> None:
    async def _run() -> bool:
        await device.connect()
        task = asyncio.create_task(device.write_file("boot.lua", "x = 1"))
        await _answer(fake_transport, device_frame("/response/success", 0, True))
        return await task

    assert asyncio.run(_run()) is True
    assert fake_transport.sent_messages()[0].args == (0, ".", "boot.lua")


def test_write_file_failure_returns_false(
    device: LuaDevice,
    fake_transport: FakeTransport,
    caplog: pytest.LogCaptureFixture,
) -> None:
    async def _run() -> bool:
        await device.connect()
        task = asyncio.create_task(device.write_file("lua/a.lua", b"x"))
        await _answer(fake_transport, device_frame("/response/error", 0, "sd card full"))
        return await task

    with caplog.at_level(logging.INFO, logger="loabridge.device"):
        assert asyncio.run(_run()) is False
    assert (logging.ERROR, "Couldn't write file lua/a.lua (sd card full)") in _device_log(caplog)


def test_read_file_returns_raw_content(device: LuaDevice, fake_transport: FakeTransport) -> None:
    async def _run() -> bytes | None:
        await device.connect()
        task = asyncio.create_task(device.read_file("lua/main.lua"))
        await _answer(
            fake_transport,
            device_frame("/raw/response/success", 0),
            raw_frame(b"print('hello')"),
        )
        return await task

    assert asyncio.run(_run()) == b"print('hello')"
    assert fake_transport.sent_messages()[0] == Message("/read-file", (0, "lua/main.lua"))


def test_read_file_timeout_returns_none(device: LuaDevice, caplog: pytest.LogCaptureFixture) -> None:
    async def _run() -> bytes | None:
        await device.connect()
        return await device.read_file("slow.lua")

    with caplog.at_level(logging.ERROR, logger="loabridge.device"):
        assert asyncio.run(_run()) is None
    assert any("Error reading file slow.lua" in text for _, text in _device_log(caplog))


@pytest.mark.parametrize(
    ("method", "address"),
    [
        ("delete_file", "/delete-file"),
        ("create_directory", "/create-dir"),
        ("delete_directory", "/delete-dir"),
    ],
)
def test_simple_operations(device: LuaDevice, fake_transport: FakeTransport, method: str, address: str) -> None:
    async def _run() -> bool:
        await device.connect()
        task = asyncio.create_task(getattr(device, method)("lua/thing"))
        await _answer(fake_transport, device_frame("/response/success", 0))
        return await task

    assert asyncio.run(_run()) is True
    assert fake_transport.sent_messages() == [Message(address, (0, "lua/thing"))]


def test_simple_operation_failure_returns_false(device: LuaDevice, fake_transport: FakeTransport) -> None:
    async def _run() -> bool:
        await device.connect()
        task = asyncio.create_task(device.delete_file("nope.lua"))
        await _answer(fake_transport, device_frame("/response/error", 0))
        return await task

    assert asyncio.run(_run()) is False


def test_list_directory_decodes_json(device: LuaDevice, fake_transport: FakeTransport) -> None:
    async def _run() -> list | None:
        await device.connect()
        task = asyncio.create_task(device.list_directory("lua"))
        await _answer(fake_transport, device_frame("/response/success", 0, '["a.lua", "lib"]'))
        return await task

    assert asyncio.run(_run()) == ["a.lua", "lib"]


def test_list_directory_invalid_json_returns_none(device: LuaDevice, fake_transport: FakeTransport) -> None:
    async def _run() -> list | None:
        await device.connect()
        task = asyncio.create_task(device.list_directory("lua"))
        await _answer(fake_transport, device_frame("/response/success", 0, "{not json"))
        return await task

    assert asyncio.run(_run()) is None


def test_log_messages_are_routed_to_console(
    device: LuaDevice,
    fake_transport: FakeTransport,
    caplog: pytest.LogCaptureFixture,
) -> None:
    async def _run() -> None:
        await device.connect()
        fake_transport.receive(device_frame("/log/warning", "low memory"))
        fake_transport.receive(device_frame("/log/error", "crashed"))
        fake_transport.receive(device_frame("/raw/log/info") + raw_frame(b"multi\nline"))
        fake_transport.receive(device_frame("/log/bogus", "???"))
        await asyncio.sleep(0)

    with caplog.at_level(logging.INFO, logger="loabridge.device"):
        asyncio.run(_run())

    log = _device_log(caplog)
    assert (logging.WARNING, "low memory") in log
    assert (logging.ERROR, "crashed") in log
    assert (logging.INFO, "multi\nline") in log
    assert any(level == logging.WARNING and "Unknown device log level 'bogus'" in text for level, text in log)


def test_raw_log_waiting_for_text_is_dropped_on_disconnect(
    device: LuaDevice,
    fake_transport: FakeTransport,
    caplog: pytest.LogCaptureFixture,
) -> None:
    async def _run() -> bytes | None:
        await device.connect()
        fake_transport.receive(device_frame("/raw/log/info"))
        assert device.bridge.listener_count("/raw-data") == 1

        fake_transport.drop(OSError("device unplugged"))
        assert device.bridge.listener_count("/raw-data") == 0

        await device.connect()
        task = asyncio.create_task(device.read_file("lua/main.lua"))
        await _answer(fake_transport, device_frame("/raw/response/success", 0) + raw_frame(b"FILE CONTENTS"))
        result = await task
        await asyncio.sleep(0)
        return result

    with caplog.at_level(logging.INFO, logger="loabridge.device"):
        assert asyncio.run(_run()) == b"FILE CONTENTS"

    assert all("FILE CONTENTS" not in text for _level, text in _device_log(caplog))


def test_raw_log_waiting_for_text_times_out(device: LuaDevice, fake_transport: FakeTransport) -> None:
    async def _run() -> None:
        await device.connect()
        fake_transport.receive(device_frame("/raw/log/warning"))
        await asyncio.sleep(device.bridge.config.response_timeout + 0.05)
        assert device.bridge.listener_count("/raw-data") == 0

    asyncio.run(_run())


def test_read_empty_file_consumes_raw_capture(
    device: LuaDevice,
    fake_transport: FakeTransport,
    caplog: pytest.LogCaptureFixture,
) -> None:
    async def _run() -> bytes | None:
        await device.connect()
        task = asyncio.create_task(device.read_file("empty.lua"))
        await _answer(
            fake_transport,
            device_frame("/raw/response/success", 0) + raw_frame(b"") + device_frame("/log/info", "next"),
        )
        return await task

    with caplog.at_level(logging.INFO, logger="loabridge.device"):
        assert asyncio.run(_run()) == b""

    assert (logging.INFO, "next") in _device_log(caplog)


def test_connect_reports_failure() -> None:
    transport = FakeTransport(open_error=TransportError("cannot open /dev/ttyACM9"))
    device = LuaDevice(BridgeConfig(), bridge=Bridge(transport=transport))

    assert asyncio.run(device.connect("/dev/ttyACM9")) is False


def test_device_builds_its_own_bridge() -> None:
    device = LuaDevice(BridgeConfig(serial_port="/dev/ttyUSB0", response_timeout=0.5))

    assert device.bridge.config.serial_port == "/dev/ttyUSB0"
    assert device.bridge.console is device.console
    assert device.bridge.correlator.timeout == 0.5
