"""
Prompts for the illustration pipeline.

Two text calls feed the image model:
1. Entity update: keep a running list of characters and locations, flagging
   the ones present in the last two sentences
2. Image prompt: describe one scene from the latest segment and the
   present entities
"""

import json

import pydantic

from taletype.core.exceptions import LLMResponseParseError
from taletype.domain.models.scene import SceneEntities
from taletype.llm.prompts.json_payload import parse_json_object

FALLBACK_IMAGE_PROMPT = "A mysterious scene from a story, digital painting."

IMAGE_STYLE = (
    "dramatic cinematic lighting, fantasy art, digital painting, hyperdetailed, "
    "epic composition"
)


def _entities_json(entities: SceneEntities, attr: str) -> str:
    return json.dumps([e.model_dump() for e in getattr(entities, attr)])


def get_entity_update_prompt(history_text: str, known: SceneEntities) -> str:
    return (
        "Analyze the story to identify all characters and locations.\n"
        "- Update descriptions for existing entities if new details are revealed.\n"
        "- Add any new entities discovered.\n"
        "- Keep existing descriptions if no new information is available.\n"
        "- For each entity, give a detailed physical description suitable for "
        "an image generation prompt.\n"
        "- Set 'is_present' to true if the entity is mentioned or physically "
        "present in the LAST TWO sentences of the story, otherwise false.\n\n"
        f'Story so far:\n"{history_text}"\n\n'
        f"Existing Characters:\n{_entities_json(known, 'characters')}\n\n"
        f"Existing Locations:\n{_entities_json(known, 'locations')}\n\n"
        'Return {"characters": [{"name", "description", "is_present"}], '
        '"locations": [...]} containing every entity identified so far.'
    )


def get_image_prompt_request(latest_segment: str, present: SceneEntities) -> str:
    locations = "\n".join(f"{loc.name}: {loc.description}" for loc in present.locations)
    return (
        "Based on the latest story action and the described entities, create a "
        "visually rich prompt for an image generation model.\n"
        '- Focus on the action in the "Latest Story Segment".\n'
        "- Only include characters and locations that are currently present.\n"
        "- Describe a single, coherent scene from the perspective of an observer.\n"
        "- Write a comma-separated list of descriptive phrases, main subject "
        "first, then setting and atmosphere.\n"
        f'- End with a style descriptor, like: "{IMAGE_STYLE}".\n\n'
        f'Latest Story Segment:\n"{latest_segment}"\n\n'
        f"Present Characters:\n{_entities_json(present, 'characters')}\n\n"
        f"Present Location(s):\n{locations}\n\n"
        "Return only the prompt string."
    )


def parse_entity_update_response(response_text: str) -> SceneEntities:
    """
    Parse the updated entity lists.

    Raises:
        LLMResponseParseError: If the payload does not describe entities
    """
    data = parse_json_object(response_text)
    try:
        return SceneEntities.model_validate(
            {
                "characters": data.get("characters") or [],
                "locations": data.get("locations") or [],
            }
        )
    except pydantic.ValidationError as e:
        raise LLMResponseParseError(f"Malformed scene entities: {e}") from e
