"""Transport collaborator interface."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

DataCallback = Callable[[bytes], None]
CloseCallback = Callable[[Exception | None], None]


@runtime_checkable
class Transport(Protocol):
    """A bidirectional byte stream the bridge can own.

    ``open`` must not return before the link is usable. Once open, incoming
    chunks are delivered to *on_data* in arrival order and *on_close* is
    called exactly once when the link goes away, with the causing error or
    ``None`` for an orderly close.
    """

    @property
    def is_open(self) -> bool: ...

    async def open(self, on_data: DataCallback, on_close: CloseCallback) -> None: ...

    def write(self, data: bytes) -> None: ...

    async def close(self) -> None: ...


__all__ = ["CloseCallback", "DataCallback", "Transport"]
