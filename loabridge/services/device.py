"""High-level client for the Lua-on-Arduino firmware.

Wraps a :class:`~loabridge.services.bridge.Bridge` with the SD card
operations the firmware implements and routes device log messages to the
console. Operations never raise for device-side or link failures: they log
through the console and return ``None``/``False`` instead.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import posixpath
from typing import Any

import msgspec

from ..common import to_posix_path
from ..config.settings import BridgeConfig
from ..errors import RequestFailure, RequestTimeout, TransportError
from ..protocol.message import Message
from ..protocol.protocol import Address
from .bridge import Bridge
from .console import DeviceConsole

logger = logging.getLogger("loabridge.lua")

_REQUEST_ERRORS = (RequestFailure, RequestTimeout, TransportError)


def _describe(exc: BaseException) -> str:
    if isinstance(exc, RequestFailure) and exc.detail not in (None, "", b""):
        detail = exc.detail
        if isinstance(detail, (bytes, bytearray)):
            return bytes(detail).decode("utf-8", errors="replace")
        return str(detail)
    return str(exc)


class LuaDevice:
    """File system access and log routing for one board."""

    def __init__(
        self,
        config: BridgeConfig | None = None,
        *,
        bridge: Bridge | None = None,
        console: DeviceConsole | None = None,
    ) -> None:
        if bridge is not None:
            self.config = config or bridge.config
            self.console = console or bridge.console
            self.bridge = bridge
        else:
            self.config = config or BridgeConfig()
            self.console = console or DeviceConsole()
            self.bridge = Bridge(self.config, console=self.console)

        self.bridge.on(Address.LOG, self._on_log)
        self.bridge.on(Address.RAW_LOG, self._on_raw_log)

    async def connect(self, port: str | None = None) -> bool:
        try:
            await self.bridge.connect(port)
        except TransportError as exc:
            self.console.error(str(exc))
            return False
        self.console.success("connected")
        return True

    async def close(self) -> None:
        await self.bridge.close()

    async def read_file(self, name: str) -> bytes | None:
        path = to_posix_path(name)
        try:
            data = await self.bridge.send_request(Address.READ_FILE, path)
        except _REQUEST_ERRORS as exc:
            self.console.error(f"Error reading file {path}", _describe(exc))
            return None
        if data is None:
            return b""
        if isinstance(data, str):
            return data.encode("utf-8")
        return bytes(data)

    async def write_file(self, name: str, data: bytes | bytearray | memoryview | str) -> bool:
        """Write *data* to *name* on the SD card.

        The file name goes in the message as ``[dirname, basename]``; the
        content follows as a raw frame.
        """
        path = to_posix_path(name)
        content = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        args = [posixpath.dirname(path) or ".", posixpath.basename(path)]
        try:
            result = await self.bridge.send_raw_request(Address.WRITE_FILE, args, content)
        except _REQUEST_ERRORS as exc:
            self.console.error(f"Couldn't write file {path}", _describe(exc))
            return False
        if not result:
            self.console.warning(f"Device did not confirm writing {path}")
            return False
        self.console.success("write file", path)
        return True

    async def delete_file(self, name: str) -> bool:
        return await self._simple_request(Address.DELETE_FILE, name, "delete file", "Couldn't delete file")

    async def create_directory(self, name: str) -> bool:
        return await self._simple_request(
            Address.CREATE_DIR, name, "create directory", "Couldn't create directory"
        )

    async def delete_directory(self, name: str) -> bool:
        return await self._simple_request(
            Address.DELETE_DIR, name, "delete directory", "Couldn't delete directory"
        )

    async def list_directory(self, name: str) -> list[Any] | None:
        path = to_posix_path(name)
        try:
            listing = await self.bridge.send_request(Address.LIST_DIR, path)
        except _REQUEST_ERRORS as exc:
            self.console.error(f"Couldn't list directory {path}", _describe(exc))
            return None

        if listing is None:
            return []
        if isinstance(listing, (str, bytes, bytearray)):
            try:
                listing = msgspec.json.decode(listing)
            except msgspec.DecodeError:
                self.console.error(f"Invalid directory listing for {path}", listing)
                return None
        if not isinstance(listing, list):
            self.console.error(f"Unexpected directory listing for {path}", repr(listing))
            return None
        return listing

    async def _simple_request(self, address: str, name: str, success_text: str, failure_text: str) -> bool:
        path = to_posix_path(name)
        try:
            await self.bridge.send_request(address, path)
        except _REQUEST_ERRORS as exc:
            self.console.error(f"{failure_text} {path}", _describe(exc))
            return False
        self.console.success(success_text, path)
        return True

    # --- device log routing ---

    def _on_log(self, message: Message, params: dict[str, str]) -> None:
        text = message.args[0] if message.args else ""
        self.console.log(params.get("level", ""), text)

    def _on_raw_log(self, _message: Message, params: dict[str, str]) -> None:
        # The text is in the next packet, delivered as /raw-data.
        pending = self.bridge.expect_message(Address.RAW_DATA)
        pending.add_done_callback(functools.partial(self._log_raw, params.get("level", "")))

    def _log_raw(self, level: str, pending: asyncio.Future[tuple[Any, dict[str, str]]]) -> None:
        if pending.cancelled():
            return
        exc = pending.exception()
        if exc is not None:
            logger.debug("Dropping %s log line without text: %s", level or "unlabelled", exc)
            return
        data, _params = pending.result()
        self.console.log(level, data)


__all__ = ["LuaDevice"]
