"""Tests for shared helpers and bridge counters."""

from __future__ import annotations

import logging

import pytest

from loabridge.common import (
    as_args,
    describe_args,
    log_hexdump,
    parse_bool,
    parse_float,
    parse_int,
    to_posix_path,
)
from loabridge.state.context import BridgeStats


def test_parse_helpers() -> None:
    assert parse_bool("Yes") is True
    assert parse_bool("0") is False
    assert parse_bool(None) is False
    assert parse_int("42.7", 0) == 42
    assert parse_int("x", 5) == 5
    assert parse_float("0.25", 1.0) == 0.25
    assert parse_float(None, 1.0) == 1.0


def test_as_args_wraps_single_values() -> None:
    assert as_args(None) == ()
    assert as_args("a.lua") == ("a.lua",)
    assert as_args(["lua", "a.lua"]) == ("lua", "a.lua")
    assert as_args(b"blob") == (b"blob",)


def test_to_posix_path() -> None:
    assert to_posix_path("lua\\lib\\a.lua") == "lua/lib/a.lua"


def test_describe_args_hides_blob_content() -> None:
    assert describe_args([1, b"\x00" * 100, "x" * 50]) == "1, <100 bytes>, " + repr("x" * 50)[:29] + "..."


def test_log_hexdump(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("test.hexdump")
    with caplog.at_level(logging.DEBUG, logger="test.hexdump"):
        log_hexdump(logger, logging.DEBUG, "HOST >", b"\xc0\x01")
    assert caplog.records[-1].getMessage() == "[HEXDUMP] HOST >: C0 01"


def test_bridge_stats_counters() -> None:
    stats = BridgeStats()
    stats.record_tx(10)
    stats.record_rx_bytes(4)
    stats.record_frame(raw=True)
    stats.record_frame(raw=False)
    for event in ("sent", "matched", "failure", "timeout", "late", "unknown"):
        stats.record_request_event(event)

    snapshot = stats.as_dict()
    assert snapshot["bytes_sent"] == 10
    assert snapshot["frames_sent"] == 1
    assert snapshot["frames_received"] == 2
    assert snapshot["raw_frames_received"] == 1
    assert snapshot["requests_sent"] == 1
    assert snapshot["late_responses"] == 1
    assert snapshot["last_tx_unix"] > 0
