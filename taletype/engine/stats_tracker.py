"""Live typing statistics.

WPM uses the standard five-characters-per-word convention over the time
since the first keystroke of the current segment. Accuracy is the share of
keystrokes that matched. Both are always finite and non-negative; degenerate
inputs (nothing typed, no elapsed time) produce wpm 0 and accuracy 100.

The tracker refreshes session.stats every interval while the player is
typing, and once more when a segment completes or the game ends.
"""

import asyncio
import math
import time
from typing import Callable, Optional

import structlog

from taletype.core.config import game_config
from taletype.domain.models.session import GameSession, Phase
from taletype.domain.models.stats import StatsSnapshot
from taletype.engine.events import (
    EVENT_GAME_OVER,
    EVENT_GAME_STARTED,
    EVENT_SEGMENT_COMPLETED,
    EVENT_TYPING_STARTED,
    EventBus,
)

log = structlog.get_logger(__name__)


def compute_snapshot(
    chars_typed: int,
    mistakes: int,
    elapsed_seconds: Optional[float],
    chars_per_word: int = 5,
) -> StatsSnapshot:
    """Derive a stats snapshot from cumulative counters.

    Args:
        chars_typed: Cumulative forward keystrokes
        mistakes: Cumulative mismatched keystrokes
        elapsed_seconds: Time since the timer started, None if not running
        chars_per_word: Characters counted as one word

    Returns:
        StatsSnapshot with wpm >= 0 and accuracy in [0, 100]
    """
    chars_typed = max(chars_typed, 0)
    mistakes = min(max(mistakes, 0), chars_typed)

    accuracy = 100.0
    if chars_typed > 0:
        accuracy = 100.0 * (chars_typed - mistakes) / chars_typed
    if not math.isfinite(accuracy):
        accuracy = 100.0
    accuracy = min(max(accuracy, 0.0), 100.0)

    wpm = 0.0
    if elapsed_seconds is not None and elapsed_seconds > 0:
        wpm = (chars_typed / chars_per_word) / (elapsed_seconds / 60.0)
    if not math.isfinite(wpm) or wpm < 0:
        wpm = 0.0

    return StatsSnapshot(
        wpm=wpm, accuracy=accuracy, chars_typed=chars_typed, mistakes=mistakes
    )


class StatsTracker:
    """Owns the segment timer and writes session.stats."""

    def __init__(
        self,
        interval_seconds: Optional[float] = None,
        chars_per_word: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.interval_seconds = interval_seconds or game_config.stats.interval_seconds
        self.chars_per_word = chars_per_word or game_config.stats.chars_per_word
        self.clock = clock
        self._ticker: Optional[asyncio.Task] = None

    def attach(self, bus: EventBus) -> None:
        bus.subscribe(EVENT_GAME_STARTED, self._on_game_started)
        bus.subscribe(EVENT_TYPING_STARTED, self._on_typing_started)
        bus.subscribe(EVENT_SEGMENT_COMPLETED, self._on_segment_finished)
        bus.subscribe(EVENT_GAME_OVER, self._on_segment_finished)

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def start_timer(self, session: GameSession) -> None:
        if session.timer_started_at is None:
            session.timer_started_at = self.clock()
            log.debug("timer_started")

    def reset_timer(self, session: GameSession) -> None:
        session.timer_started_at = None

    def elapsed(self, session: GameSession) -> Optional[float]:
        if session.timer_started_at is None:
            return None
        return self.clock() - session.timer_started_at

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def refresh(self, session: GameSession) -> StatsSnapshot:
        session.stats = compute_snapshot(
            session.chars_typed,
            session.mistakes,
            self.elapsed(session),
            self.chars_per_word,
        )
        return session.stats

    @property
    def is_ticking(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    def start_ticker(self, session: GameSession) -> None:
        if self.is_ticking:
            return
        self._ticker = asyncio.ensure_future(self._tick(session))

    def stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    async def _tick(self, session: GameSession) -> None:
        while session.phase == Phase.TYPING:
            await asyncio.sleep(self.interval_seconds)
            if session.phase != Phase.TYPING:
                break
            self.refresh(session)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_game_started(self, sender, session: GameSession, **_) -> None:
        self.stop_ticker()

    def _on_typing_started(self, sender, session: GameSession, **_) -> None:
        self.start_ticker(session)

    def _on_segment_finished(self, sender, session: GameSession, **_) -> None:
        self.stop_ticker()
        self.refresh(session)
