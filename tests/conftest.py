"""
Shared test fixtures.

Oracles are replaced with small fakes or AsyncMocks; engine timing is made
fast through a test GameConfig and a controllable clock.
"""

import asyncio
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from taletype.core.config import GameConfig, QuestsConfig, StatsConfig
from taletype.core.exceptions import StoryGenerationError
from taletype.domain.models.quest import QuestStub, QuestVerdict
from taletype.engine.session_engine import SessionEngine


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStoryOracle:
    """Story oracle returning scripted segments.

    The text for each call is chosen when the call is made, so a call that
    is held back by `gate` still returns the segment it was issued for.
    """

    def __init__(self, segments: Optional[List[str]] = None):
        self.segments = list(segments or [])
        self.calls = []
        self.gate: Optional[asyncio.Event] = None
        self.error: Optional[Exception] = None

    async def next_segment(self, history, wants_blank):
        self.calls.append((list(history), wants_blank))
        text = self.segments.pop(0) if self.segments else "The story goes on."
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return text


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fast_config():
    """Game config with short delays so background work settles quickly."""
    return GameConfig(
        stats=StatsConfig(interval_seconds=0.01),
        quests=QuestsConfig(settle_delay_seconds=0.01),
    )


@pytest.fixture
def story_oracle():
    return FakeStoryOracle(["The cat sat.", "It purred.", "Then it slept."])


@pytest.fixture
def quest_oracle():
    """Quest oracle mock: two opening quests, empty verdicts by default."""
    oracle = AsyncMock()
    oracle.initial_quests = AsyncMock(
        return_value=[
            QuestStub(description="🐟 Find a fish", reward_points=10),
            QuestStub(description="🌙 Wait for night", reward_points=5),
        ]
    )
    oracle.evaluate_quests = AsyncMock(return_value=QuestVerdict())
    oracle.replacement_quest = AsyncMock(
        return_value=QuestStub(description="🔑 Steal a key", reward_points=15)
    )
    return oracle


@pytest.fixture
def scene_oracle():
    oracle = AsyncMock()
    oracle.refresh_scene = AsyncMock(return_value="data:image/png;base64,abc")
    oracle.reset = MagicMock()
    return oracle


@pytest.fixture
async def engine(story_oracle, quest_oracle, scene_oracle, fast_config, clock):
    """Session engine wired to fake oracles."""
    engine = SessionEngine(
        story=story_oracle,
        quests=quest_oracle,
        scene=scene_oracle,
        config=fast_config,
        clock=clock,
    )
    yield engine
    await engine.shutdown()


@pytest.fixture
async def started_engine(engine):
    """Engine with the first segment loaded and opening quests active."""
    engine.start()
    await engine.settle()
    return engine


@pytest.fixture
def failing_story_oracle():
    oracle = FakeStoryOracle()
    oracle.error = StoryGenerationError("Segment generation failed: boom")
    return oracle
