"""Two-state receive mode for the incoming packet stream.

In ``structured`` mode every packet is decoded as a message. Any message
whose address lives under ``/raw/`` arms ``raw_capture``: the *next* packet
is handed over verbatim and the machine drops back to ``structured``
whatever that packet contains.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from transitions import Machine

logger = logging.getLogger("loabridge.receive_mode")


class ReceiveMode(StrEnum):
    STRUCTURED = "structured"
    RAW_CAPTURE = "raw_capture"


class ReceiveModeMachine:
    """Decides how the next incoming packet is interpreted."""

    def __init__(self) -> None:
        self.fsm_state: str = ReceiveMode.STRUCTURED.value
        self.machine = Machine(
            model=self,
            states=[mode.value for mode in ReceiveMode],
            initial=ReceiveMode.STRUCTURED.value,
            model_attribute="fsm_state",
            auto_transitions=False,
            ignore_invalid_triggers=True,
        )
        self.machine.add_transition(
            "arm",
            [ReceiveMode.STRUCTURED.value, ReceiveMode.RAW_CAPTURE.value],
            ReceiveMode.RAW_CAPTURE.value,
        )
        self.machine.add_transition("release", ReceiveMode.RAW_CAPTURE.value, ReceiveMode.STRUCTURED.value)
        self.machine.add_transition(
            "clear",
            [ReceiveMode.STRUCTURED.value, ReceiveMode.RAW_CAPTURE.value],
            ReceiveMode.STRUCTURED.value,
        )

    if TYPE_CHECKING:

        def trigger(self, event: str, *args: Any, **kwargs: Any) -> bool:
            """FSM trigger placeholder."""
            ...

    @property
    def mode(self) -> ReceiveMode:
        return ReceiveMode(self.fsm_state)

    @property
    def capturing(self) -> bool:
        return self.fsm_state == ReceiveMode.RAW_CAPTURE.value

    def expect_raw(self) -> None:
        """Deliver the next packet verbatim."""
        if self.capturing:
            logger.debug("Raw capture already armed")
        self.trigger("arm")

    def take(self) -> ReceiveMode:
        """Return the mode for the packet being processed and consume it.

        A raw capture covers exactly one packet, so the machine is back in
        ``structured`` by the time the caller handles that packet.
        """
        current = self.mode
        if current is ReceiveMode.RAW_CAPTURE:
            self.trigger("release")
        return current

    def reset(self) -> None:
        self.trigger("clear")


__all__ = ["ReceiveMode", "ReceiveModeMachine"]
