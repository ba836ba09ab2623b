"""Configuration helpers for the Lua-on-Arduino bridge."""

from . import logging, settings  # noqa: F401
from .settings import BridgeConfig, get_default_config, load_bridge_config

__all__ = ["BridgeConfig", "get_default_config", "load_bridge_config"]
