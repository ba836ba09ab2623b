"""Pytest configuration for loa-bridge tests."""

from __future__ import annotations

import logging

import pytest

from loabridge.config.settings import BridgeConfig
from loabridge.services.bridge import Bridge
from loabridge.services.console import DeviceConsole

from mocks import FakeTransport


@pytest.fixture(autouse=True)
def reset_logging_handlers():
    """Close and remove all logging handlers after each test to prevent ResourceWarnings."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        try:
            handler.close()
        except (OSError, RuntimeError):
            pass
        root.removeHandler(handler)


@pytest.fixture()
def bridge_config() -> BridgeConfig:
    return BridgeConfig(serial_port="/dev/null", response_timeout=0.2, reconnect_delay=0.0)


@pytest.fixture()
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def bridge(bridge_config: BridgeConfig, fake_transport: FakeTransport) -> Bridge:
    return Bridge(bridge_config, transport=fake_transport, console=DeviceConsole())
