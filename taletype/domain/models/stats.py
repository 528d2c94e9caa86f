"""Typing statistics snapshot."""

from pydantic import BaseModel, Field


class StatsSnapshot(BaseModel):
    """Derived live statistics.

    Always a pure function of the cumulative counters and elapsed time;
    never persisted on its own.
    """

    wpm: float = Field(default=0.0, ge=0.0)
    accuracy: float = Field(default=100.0, ge=0.0, le=100.0)
    chars_typed: int = Field(default=0, ge=0)
    mistakes: int = Field(default=0, ge=0)
