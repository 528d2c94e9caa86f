"""Domain models package."""

from .session import GameSession, Phase
from .story import StorySegment, BlankContext
from .quest import Quest, QuestStub, QuestState, QuestVerdict, PointsNotice
from .stats import StatsSnapshot
from .scene import SceneEntity, SceneEntities

__all__ = [
    "GameSession",
    "Phase",
    "StorySegment",
    "BlankContext",
    "Quest",
    "QuestStub",
    "QuestState",
    "QuestVerdict",
    "PointsNotice",
    "StatsSnapshot",
    "SceneEntity",
    "SceneEntities",
]
