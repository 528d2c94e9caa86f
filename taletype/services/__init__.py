# noqa
from taletype.services.story_service import StoryService
from taletype.services.quest_service import QuestService
from taletype.services.scene_service import SceneService

__all__ = ["StoryService", "QuestService", "SceneService"]
