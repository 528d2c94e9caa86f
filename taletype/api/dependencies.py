"""Dependency injection for API routes."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
import structlog

from taletype.core.config import game_config
from taletype.core.exceptions import ConfigurationError
from taletype.engine.session_engine import SessionEngine
from taletype.llm.client import (
    get_quest_llm_client,
    get_scene_llm_client,
    get_story_llm_client,
)
from taletype.llm.image_client import get_image_client
from taletype.services import QuestService, SceneService, StoryService

log = structlog.get_logger(__name__)


@lru_cache(maxsize=1)
def get_game_engine() -> SessionEngine:
    """Process-wide session engine.

    Built once with the LLM-backed oracles for each role and reused by every
    request; a restart is a StartGame event, not a new engine.

    Raises:
        ConfigurationError: If a provider is unknown or its API key is missing
    """
    try:
        story_llm = get_story_llm_client()
        quest_llm = get_quest_llm_client()
        scene_llm = get_scene_llm_client()
        image_client = get_image_client()
    except ValueError as e:
        log.error("game_engine_unavailable", error=str(e))
        raise ConfigurationError(str(e)) from e

    story = StoryService(story_llm, blank_marker=game_config.story.blank_marker)
    quests = QuestService(quest_llm, initial_count=game_config.quests.initial_count)
    scene = SceneService(scene_llm, image_client)
    return SessionEngine(story=story, quests=quests, scene=scene, config=game_config)


# Type aliases for dependency injection
GameEngineDep = Annotated[SessionEngine, Depends(get_game_engine)]
