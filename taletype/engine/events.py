"""Engine events.

Inbound messages are dataclasses handed to SessionEngine.dispatch; results
of oracle calls carry the generation of the play-through that issued them.
Outbound notifications go through a blinker-backed EventBus that the stats
tracker and quest ledger subscribe to.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional

from blinker import Signal


class EventBus:
    """Simple event bus leveraging blinker Signal objects."""

    def __init__(self):
        self._signals: Dict[str, Signal] = {}

    def subscribe(self, name: str, fn: Callable) -> None:
        sig = self._signals.setdefault(name, Signal(name))
        # Strong reference so bound methods of unreferenced subscribers stay connected.
        sig.connect(fn, weak=False)

    def emit(self, name: str, **payload) -> None:
        sig = self._signals.get(name)
        if sig:
            sig.send(self, **payload)


# ============================================================================
# OUTBOUND NOTIFICATIONS
# ============================================================================
EVENT_GAME_STARTED = "game_started"            # payload: session
EVENT_SEGMENT_READY = "segment_ready"          # payload: session, first=bool
EVENT_TYPING_STARTED = "typing_started"        # payload: session
EVENT_SEGMENT_COMPLETED = "segment_completed"  # payload: session, segment
EVENT_GAME_OVER = "game_over"                  # payload: session


# ============================================================================
# INBOUND MESSAGES
# ============================================================================


@dataclass(frozen=True)
class StartGame:
    """Explicit restart: resets the session and requests the first segment."""


@dataclass(frozen=True)
class InputChanged:
    """The input field now holds value."""

    value: str


@dataclass(frozen=True)
class SegmentLoaded:
    generation: int
    text: str


@dataclass(frozen=True)
class SegmentFailed:
    generation: int
    error: str


@dataclass(frozen=True)
class SceneRefreshed:
    generation: int
    image_url: Optional[str]
