"""Runtime state containers for loa-bridge."""

from .context import BridgeStats

__all__ = ["BridgeStats"]
