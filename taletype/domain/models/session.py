"""Game session domain models.

This module defines the single mutable record for one play-through and the
phase enum that drives the session engine.

Core Models:
    - Phase: Game state machine states
    - GameSession: Mutable state owned by the SessionEngine

Phase Transitions:
    idle -> loading -> ready -> typing -> segment_complete -> loading ...
    any active phase -> game_over (lives reach 0)
    idle / game_over -> loading (explicit restart)
    loading -> idle (segment generation failed)

Field ownership:
    - SessionEngine writes phase, text, lives, streak, history, counters
    - StatsTracker writes stats
    - QuestLedger awards score and points_notice through an engine callback
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from taletype.domain.models.quest import PointsNotice
from taletype.domain.models.stats import StatsSnapshot
from taletype.domain.models.story import BlankContext, StorySegment


class Phase(str, Enum):
    """Game state machine phases.

    SEGMENT_COMPLETE only holds while completion is being processed; callers
    of the engine observe LOADING right after a segment is finished.
    """

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    TYPING = "typing"
    SEGMENT_COMPLETE = "segment_complete"
    GAME_OVER = "game_over"


class GameSession(BaseModel):
    """Mutable state for one play-through.

    Replaced wholesale on restart; the generation token identifies which
    play-through an asynchronous result belongs to.
    """

    generation: int = 0
    phase: Phase = Phase.IDLE

    # Current segment
    target_text: str = ""
    typed_text: str = ""
    blank: Optional[BlankContext] = None
    filled_word: Optional[str] = None
    timer_started_at: Optional[float] = Field(
        default=None, description="Monotonic time of the segment's first keystroke"
    )

    # Progression
    lives: int = Field(default=3, ge=0, le=5)
    flawless_streak: int = Field(default=0, ge=0)
    score: int = Field(default=0, ge=0)

    # Cumulative counters (mistakes <= chars_typed)
    chars_typed: int = Field(default=0, ge=0)
    mistakes: int = Field(default=0, ge=0)
    mistakes_at_segment_start: int = Field(default=0, ge=0)

    history: List[StorySegment] = Field(default_factory=list)
    stats: StatsSnapshot = Field(default_factory=StatsSnapshot)

    # Presentation hand-offs
    message: Optional[str] = None
    image_url: Optional[str] = None
    image_loading: bool = False
    points_notice: Optional[PointsNotice] = None

    @property
    def mistakes_this_segment(self) -> int:
        return self.mistakes - self.mistakes_at_segment_start

    @property
    def history_text(self) -> str:
        """Full typed story so far, segments joined by single spaces."""
        return " ".join(segment.typed_text for segment in self.history)
