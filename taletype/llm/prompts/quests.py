"""
Prompts and response parsers for quests.

Covers three calls:
- Initial quests for a new story
- Verdicts (completed / failed) for the active quests
- One replacement quest, avoiding duplicates of the current list

All responses are JSON objects; parsers validate them with the domain
models and raise LLMResponseParseError on anything malformed.
"""

from typing import List, Sequence

import pydantic

from taletype.core.exceptions import LLMResponseParseError
from taletype.domain.models.quest import Quest, QuestStub, QuestVerdict
from taletype.llm.prompts.json_payload import parse_json_object

QUEST_STYLE_RULES = """Each quest description must be very short (1-7 words) and start with an emoji.
For each quest, provide a description and a point value between 5 and 20.
Quests must be challenging: not the next logical step ("enter the room") but something different ("avoid the room").
Quests must be varied and may pull the story in wildly different directions, even changing its tone.
Quests must be tangible and clear: not "Find the source of the silence" but "Grab someone by the neck"."""


def get_quest_system_prompt() -> str:
    return (
        "You design and judge side quests for an interactive story game. "
        "Always answer with a single JSON object."
    )


def get_initial_quests_prompt(segment_text: str, count: int = 3) -> str:
    return (
        f"Based on the beginning of this story, generate {count} creative quests.\n"
        f"{QUEST_STYLE_RULES}\n\n"
        f'Story:\n"{segment_text}"\n\n'
        'Return {"quests": [{"description": string, "points": integer}, ...]} '
        f"with exactly {count} quests."
    )


def get_evaluation_prompt(history_text: str, active_quests: Sequence[Quest]) -> str:
    quest_lines = "\n".join(f"- ID {q.id}: {q.description}" for q in active_quests)
    return (
        "Based on the story provided, determine which quests are completed and "
        "which are failed.\n"
        "- A quest is COMPLETED if the last sentence of the story explicitly "
        "states it has happened.\n"
        "- A quest is FAILED if the last sentence of the story without a doubt "
        "makes it impossible or irrelevant.\n\n"
        f'Story:\n"{history_text}"\n\n'
        f"Active Quests (with their IDs):\n{quest_lines}\n\n"
        'Return {"completedQuestIds": [integer, ...], "failedQuestIds": '
        "[integer, ...]}. A quest id may appear in at most one list."
    )


def get_replacement_prompt(history_text: str, current_quests: Sequence[Quest]) -> str:
    existing = "\n".join(f"- {q.description}" for q in current_quests) or "- (none)"
    return (
        "Based on the story so far, generate ONE new, creative quest.\n"
        f"{QUEST_STYLE_RULES}\n"
        "Avoid generating quests similar to the ones already listed.\n\n"
        f'Story:\n"{history_text}"\n\n'
        f"Existing Quests:\n{existing}\n\n"
        'Return {"description": string, "points": integer}.'
    )


def parse_initial_quests_response(response_text: str) -> List[QuestStub]:
    """
    Parse the initial quest list.

    Raises:
        LLMResponseParseError: If the payload is not a quest list
    """
    data = parse_json_object(response_text)
    raw_quests = data.get("quests")
    if not isinstance(raw_quests, list):
        raise LLMResponseParseError("Initial quests response has no 'quests' list")
    try:
        return [QuestStub.model_validate(item) for item in raw_quests]
    except pydantic.ValidationError as e:
        raise LLMResponseParseError(f"Malformed quest in response: {e}") from e


def parse_evaluation_response(response_text: str) -> QuestVerdict:
    """
    Parse quest verdicts.

    Raises:
        LLMResponseParseError: If the id lists are malformed
    """
    data = parse_json_object(response_text)
    try:
        return QuestVerdict.model_validate(data)
    except pydantic.ValidationError as e:
        raise LLMResponseParseError(f"Malformed quest verdict: {e}") from e


def parse_replacement_response(response_text: str) -> QuestStub:
    """
    Parse a single replacement quest.

    Raises:
        LLMResponseParseError: If description or points are missing
    """
    data = parse_json_object(response_text)
    try:
        return QuestStub.model_validate(data)
    except pydantic.ValidationError as e:
        raise LLMResponseParseError(f"Malformed replacement quest: {e}") from e
