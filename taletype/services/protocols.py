"""
Oracle protocol definitions (interfaces).

The session engine depends only on these structural contracts, so tests and
alternative backends can stand in for the LLM-backed services.
"""

from typing import List, Optional, Protocol, Sequence

from taletype.domain.models.quest import Quest, QuestStub, QuestVerdict
from taletype.domain.models.story import StorySegment


class IStoryOracle(Protocol):
    """
    Protocol for story segment generation.
    """

    async def next_segment(
        self, history: Sequence[StorySegment], wants_blank: bool
    ) -> str:
        """
        Produce the next segment of the story.

        Args:
            history: Finished segments, oldest first
            wants_blank: Request the fill-in-the-blank reward variant

        Returns:
            Segment text (may contain one blank marker)

        Raises:
            StoryGenerationError: If no usable segment could be produced
        """
        ...


class IQuestOracle(Protocol):
    """
    Protocol for quest generation and judgement.

    Implementations never raise: failures come back as the documented
    fallbacks (empty list, empty verdict, None).
    """

    async def initial_quests(self, segment_text: str) -> List[QuestStub]:
        """Quests for a new story; [] on failure."""
        ...

    async def evaluate_quests(
        self, history_text: str, active_quests: Sequence[Quest]
    ) -> QuestVerdict:
        """Completed/failed ids for the active quests; empty verdict on failure."""
        ...

    async def replacement_quest(
        self, history_text: str, current_quests: Sequence[Quest]
    ) -> Optional[QuestStub]:
        """One fresh quest not duplicating current ones; None on failure."""
        ...


class ISceneOracle(Protocol):
    """
    Protocol for scene illustration.
    """

    async def refresh_scene(
        self, history_text: str, latest_segment: str
    ) -> Optional[str]:
        """
        Derive an image for the current scene.

        Returns:
            Opaque image reference, or None to keep the previous image
        """
        ...

    def reset(self) -> None:
        """Forget anything tracked for the previous play-through."""
        ...
