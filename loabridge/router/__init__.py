"""Router components for loa-bridge."""

from .emitter import Handler, PatternRouter, Subscription

__all__ = [
    "Handler",
    "PatternRouter",
    "Subscription",
]
