"""
API request/response schemas.

Pydantic models for API validation and serialization.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from taletype.domain.models.quest import PointsNotice, Quest
from taletype.domain.models.session import Phase
from taletype.domain.models.stats import StatsSnapshot
from taletype.domain.models.story import StorySegment
from taletype.engine.matcher import CharState


# ============ INPUT SCHEMAS ============


class InputRequest(BaseModel):
    """Full current value of the input field."""

    value: str = Field(..., max_length=5000, description="Candidate input value")


class TypeRequest(BaseModel):
    """Characters appended to the input field, applied one at a time."""

    text: str = Field(..., min_length=1, max_length=5000)


# ============ STATE SCHEMAS ============


class GameStateResponse(BaseModel):
    """Snapshot of the play-through for rendering."""

    generation: int
    phase: Phase
    target_text: str
    typed_text: str
    char_states: List[CharState] = Field(default_factory=list)
    blank_open: bool = False
    filled_word: Optional[str] = None

    lives: int
    max_lives: int
    flawless_streak: int
    score: int
    segments_completed: int = 0

    stats: StatsSnapshot
    quests: List[Quest] = Field(default_factory=list)
    quest_evaluation_pending: bool = False

    message: Optional[str] = None
    image_url: Optional[str] = None
    image_loading: bool = False
    points_notice: Optional[PointsNotice] = None


class HistoryResponse(BaseModel):
    """Finished segments of the current play-through."""

    segments: List[StorySegment]
    text: str
    total: int
