"""Story segment generation service.

Produces the next sentence of the story with the story LLM client, choosing
the prompt variant (opening, blank reward, typo-weaving, plain continuation)
from the finished history.
"""

from typing import Optional, Sequence

import structlog

from taletype.core.config import game_config
from taletype.core.exceptions import StoryGenerationError
from taletype.domain.models.story import StorySegment
from taletype.llm.client import LLMClient
from taletype.llm.prompts.story import (
    format_segment,
    get_story_system_prompt,
    get_story_user_prompt,
)

log = structlog.get_logger(__name__)


class StoryService:
    """Service for generating story segments using LLM."""

    def __init__(self, llm_client: LLMClient, blank_marker: Optional[str] = None):
        """Initialize story service.

        Args:
            llm_client: LLM client for segment generation
            blank_marker: Placeholder the model uses for blanks
                (defaults to game_config.story.blank_marker)
        """
        self.llm = llm_client
        self.blank_marker = blank_marker or game_config.story.blank_marker

        log.info("story_service_initialized", blank_marker=self.blank_marker)

    async def next_segment(
        self, history: Sequence[StorySegment], wants_blank: bool
    ) -> str:
        """Generate the next story segment.

        Args:
            history: Finished segments, oldest first
            wants_blank: Ask for one noun left blank (flawless reward)

        Returns:
            Cleaned segment text

        Raises:
            StoryGenerationError: If the LLM call fails or returns nothing usable
        """
        log.info(
            "generating_segment",
            history_length=len(history),
            wants_blank=wants_blank,
        )

        prompt = get_story_user_prompt(
            history, wants_blank=wants_blank, blank_marker=self.blank_marker
        )

        try:
            response = await self.llm.complete(
                prompt=prompt,
                system=get_story_system_prompt(),
            )
        except Exception as e:
            log.error("segment_generation_failed", error=str(e))
            raise StoryGenerationError(f"Segment generation failed: {e}") from e

        segment = format_segment(response.content)
        if not segment:
            log.error("segment_generation_empty", raw_length=len(response.content))
            raise StoryGenerationError("Segment generation returned empty text")

        log.info(
            "segment_generated",
            segment_length=len(segment),
            has_blank=self.blank_marker in segment,
            latency_ms=response.latency_ms,
        )
        return segment
