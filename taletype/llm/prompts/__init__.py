# noqa
from taletype.llm.prompts.story import (
    get_story_system_prompt,
    get_story_user_prompt,
    format_segment,
)
from taletype.llm.prompts.quests import (
    parse_initial_quests_response,
    parse_evaluation_response,
    parse_replacement_response,
)
from taletype.llm.prompts.scene import parse_entity_update_response

__all__ = [
    "get_story_system_prompt",
    "get_story_user_prompt",
    "format_segment",
    "parse_initial_quests_response",
    "parse_evaluation_response",
    "parse_replacement_response",
    "parse_entity_update_response",
]
