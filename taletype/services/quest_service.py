"""Quest generation and judgement service.

Wraps the quest LLM client for the three quest calls. Every call recovers
locally: failures and malformed payloads are logged and replaced by the
documented fallback (no quests, no verdict, no replacement).
"""

from typing import Callable, List, Optional, Sequence, TypeVar

import structlog

from taletype.core.config import game_config
from taletype.core.exceptions import QuestOracleError
from taletype.domain.models.quest import Quest, QuestStub, QuestVerdict
from taletype.llm.client import LLMClient
from taletype.llm.prompts.quests import (
    get_evaluation_prompt,
    get_initial_quests_prompt,
    get_quest_system_prompt,
    get_replacement_prompt,
    parse_evaluation_response,
    parse_initial_quests_response,
    parse_replacement_response,
)

log = structlog.get_logger(__name__)

T = TypeVar("T")


class QuestService:
    """Service for quest oracle calls."""

    def __init__(self, llm_client: LLMClient, initial_count: Optional[int] = None):
        self.llm = llm_client
        self.initial_count = (
            initial_count
            if initial_count is not None
            else game_config.quests.initial_count
        )

    async def _ask(self, call: str, prompt: str, parse: Callable[[str], T]) -> T:
        """Run one JSON quest call.

        Raises:
            QuestOracleError: If the LLM call fails or the payload is malformed
        """
        try:
            response = await self.llm.complete(
                prompt=prompt,
                system=get_quest_system_prompt(),
                json_mode=True,
            )
            return parse(response.content)
        except Exception as e:
            raise QuestOracleError(f"Quest call '{call}' failed: {e}") from e

    async def initial_quests(self, segment_text: str) -> List[QuestStub]:
        """Generate the opening quests for a story.

        Args:
            segment_text: First segment of the story

        Returns:
            Quest stubs, or [] on any failure
        """
        if self.initial_count == 0:
            return []

        try:
            stubs = await self._ask(
                "initial_quests",
                get_initial_quests_prompt(segment_text, self.initial_count),
                parse_initial_quests_response,
            )
        except QuestOracleError as e:
            log.error("initial_quests_failed", error=e.message)
            return []

        log.info("initial_quests_generated", count=len(stubs))
        return stubs[: self.initial_count]

    async def evaluate_quests(
        self, history_text: str, active_quests: Sequence[Quest]
    ) -> QuestVerdict:
        """Judge active quests against the story so far.

        Args:
            history_text: Full typed story
            active_quests: Quests currently in the active state

        Returns:
            QuestVerdict restricted to the given quest ids; empty on failure
            or when there is nothing to judge (no request is made then)
        """
        if not active_quests:
            return QuestVerdict()

        try:
            verdict = await self._ask(
                "evaluate_quests",
                get_evaluation_prompt(history_text, active_quests),
                parse_evaluation_response,
            )
        except QuestOracleError as e:
            log.error("quest_evaluation_failed", error=e.message)
            return QuestVerdict()

        known = {q.id for q in active_quests}
        unknown = (set(verdict.completed_ids) | set(verdict.failed_ids)) - known
        if unknown:
            log.warning("quest_verdict_unknown_ids", ids=sorted(unknown))

        verdict = QuestVerdict(
            completed_ids=[qid for qid in verdict.completed_ids if qid in known],
            failed_ids=[qid for qid in verdict.failed_ids if qid in known],
        )
        log.info(
            "quests_evaluated",
            completed=verdict.completed_ids,
            failed=verdict.failed_ids,
        )
        return verdict

    async def replacement_quest(
        self, history_text: str, current_quests: Sequence[Quest]
    ) -> Optional[QuestStub]:
        """Generate one quest to take a finished quest's slot.

        Args:
            history_text: Full typed story
            current_quests: Full current quest list, used to avoid duplicates

        Returns:
            Quest stub, or None on failure
        """
        try:
            stub = await self._ask(
                "replacement_quest",
                get_replacement_prompt(history_text, current_quests),
                parse_replacement_response,
            )
        except QuestOracleError as e:
            log.error("replacement_quest_failed", error=e.message)
            return None

        log.info("replacement_quest_generated", description=stub.description)
        return stub
