"""Publish/subscribe router keyed by address patterns."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import msgspec

from ..protocol.patterns import PathPattern

logger = logging.getLogger("loabridge.router")

Handler = Callable[[Any, dict[str, str]], Any]

_HANDLER_ERRORS = (OSError, ValueError, TypeError, AttributeError, KeyError, IndexError, RuntimeError)


def _handlers_factory() -> list[Handler]:
    return []


class Subscription(msgspec.Struct):
    """All handlers registered for one pattern string."""

    pattern: str
    matcher: PathPattern
    handlers: list[Handler] = msgspec.field(default_factory=_handlers_factory)


class _OnceHandler:
    """Removes itself from the router before forwarding the first call."""

    __slots__ = ("router", "pattern", "handler")

    def __init__(self, router: "PatternRouter", pattern: str, handler: Handler) -> None:
        self.router = router
        self.pattern = pattern
        self.handler = handler

    def __call__(self, payload: Any, params: dict[str, str]) -> Any:
        self.router.off(self.pattern, self)
        return self.handler(payload, params)


class PatternRouter:
    """Event emitter that uses slash-separated address patterns as event names.

    Every registered pattern is tested on each :meth:`emit`; all handlers of
    all matching subscriptions run, subscriptions in registration order and
    handlers in the order they were added.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}

    def on(self, pattern: str, handler: Handler) -> None:
        """Add *handler* for addresses matching *pattern*."""
        subscription = self._subscriptions.get(pattern)
        if subscription is None:
            subscription = Subscription(pattern=pattern, matcher=PathPattern.compile(pattern))
            self._subscriptions[pattern] = subscription
        subscription.handlers.append(handler)

    def off(self, pattern: str, handler: Handler) -> bool:
        """Remove the first registration of *handler* for *pattern*.

        The subscription record itself stays registered even when its last
        handler is removed; use :meth:`unregister` to drop it.
        """
        subscription = self._subscriptions.get(pattern)
        if subscription is None:
            return False
        try:
            subscription.handlers.remove(handler)
        except ValueError:
            return False
        return True

    def once(self, pattern: str, handler: Handler) -> Handler:
        """Add *handler* for a single invocation.

        Returns the registered wrapper so callers can :meth:`off` it before
        it fires.
        """
        wrapper = _OnceHandler(self, pattern, handler)
        self.on(pattern, wrapper)
        return wrapper

    def unregister(self, pattern: str) -> bool:
        return self._subscriptions.pop(pattern, None) is not None

    def subscriptions(self) -> tuple[Subscription, ...]:
        return tuple(self._subscriptions.values())

    def listener_count(self, pattern: str) -> int:
        subscription = self._subscriptions.get(pattern)
        return len(subscription.handlers) if subscription is not None else 0

    def emit(self, address: str, payload: Any = None) -> int:
        """Dispatch *payload* to every handler whose pattern matches *address*.

        Returns the number of handlers invoked.
        """
        invoked = 0
        for subscription in tuple(self._subscriptions.values()):
            if not subscription.handlers:
                continue
            result = subscription.matcher.match(address)
            if result is False:
                continue
            params: dict[str, str] = result if isinstance(result, dict) else {}
            for handler in tuple(subscription.handlers):
                invoked += 1
                try:
                    handler(payload, dict(params))
                except _HANDLER_ERRORS as exc:
                    logger.critical(
                        "Exception in handler for %s (pattern %s): %s",
                        address,
                        subscription.pattern,
                        exc,
                        exc_info=True,
                    )
        return invoked


__all__ = ["Handler", "PatternRouter", "Subscription"]
