"""Scene illustration service.

Pipeline per refresh:
1. Update the tracked characters and locations from the story
2. Keep the entities present in the last two sentences
3. Ask the scene LLM for an image prompt built around the latest segment
4. Generate the image

No image is produced when nothing is present. Any failure leaves the
previous image in place (returns None).
"""

from typing import Optional

import structlog

from taletype.core.exceptions import SceneOracleError
from taletype.domain.models.scene import SceneEntities
from taletype.llm.client import LLMClient
from taletype.llm.image_client import ImageClient
from taletype.llm.prompts.scene import (
    FALLBACK_IMAGE_PROMPT,
    get_entity_update_prompt,
    get_image_prompt_request,
    parse_entity_update_response,
)

log = structlog.get_logger(__name__)


class SceneService:
    """Derives an illustration from the evolving story.

    Tracked entities belong to one play-through; reset() starts over and
    discards results of refreshes issued before it.
    """

    def __init__(self, llm_client: LLMClient, image_client: ImageClient):
        self.llm = llm_client
        self.images = image_client
        self.entities = SceneEntities()
        self._generation = 0

    def reset(self) -> None:
        self.entities = SceneEntities()
        self._generation += 1

    async def refresh_scene(
        self, history_text: str, latest_segment: str
    ) -> Optional[str]:
        """Produce an image for the current scene.

        Args:
            history_text: Full typed story
            latest_segment: Most recently typed segment

        Returns:
            Image data URL, or None when nothing new should be shown
        """
        if not history_text:
            return None

        generation = self._generation
        try:
            entities = await self._update_entities(history_text)
            if generation != self._generation:
                log.info("scene_refresh_superseded")
                return None
            self.entities = entities

            present = entities.present()
            if present.is_empty:
                log.info("scene_refresh_skipped", reason="no_present_entities")
                return None

            image_prompt = await self._image_prompt(latest_segment, present)
            if not image_prompt:
                return None

            return await self._generate_image(image_prompt)
        except SceneOracleError as e:
            log.error("scene_refresh_failed", error=e.message)
            return None

    async def _generate_image(self, image_prompt: str) -> Optional[str]:
        try:
            return await self.images.generate(image_prompt)
        except Exception as e:
            raise SceneOracleError(f"Image generation failed: {e}") from e

    async def _update_entities(self, history_text: str) -> SceneEntities:
        try:
            response = await self.llm.complete(
                prompt=get_entity_update_prompt(history_text, self.entities),
                json_mode=True,
            )
            return parse_entity_update_response(response.content)
        except Exception as e:
            log.warning("scene_entity_update_failed", error=str(e))
            return self.entities

    async def _image_prompt(self, latest_segment: str, present: SceneEntities) -> str:
        try:
            response = await self.llm.complete(
                prompt=get_image_prompt_request(latest_segment, present)
            )
            return response.content.strip()
        except Exception as e:
            log.warning("scene_image_prompt_failed", error=str(e))
            return FALLBACK_IMAGE_PROMPT
