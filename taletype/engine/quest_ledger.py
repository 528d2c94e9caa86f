"""Quest ledger: quest collection, lifecycle and score awards.

Lifecycle:
    new --(settle delay)--> active --(verdict)--> completed | failed --> replaced

Evaluation is single-flight: a segment completion that arrives while a
round is still pending is skipped, not queued. Each finished quest is
replaced independently; a missing replacement simply drops the quest.

reset() starts a new play-through. Results of calls issued before the reset
are discarded when they arrive.
"""

import asyncio
import itertools
from typing import Callable, Iterable, List, Optional, Sequence
from uuid import uuid4

import structlog

from taletype.core.config import game_config
from taletype.domain.models.quest import (
    PointsNotice,
    Quest,
    QuestState,
    QuestStub,
    QuestVerdict,
)
from taletype.domain.models.session import GameSession
from taletype.domain.models.story import StorySegment
from taletype.engine.events import (
    EVENT_GAME_STARTED,
    EVENT_SEGMENT_COMPLETED,
    EVENT_SEGMENT_READY,
    EventBus,
)
from taletype.engine.tasks import BackgroundTasks
from taletype.services.protocols import IQuestOracle

log = structlog.get_logger(__name__)


class QuestLedger:
    """Owns the quest list for the current play-through."""

    def __init__(
        self,
        oracle: IQuestOracle,
        award: Callable[[PointsNotice], None],
        tasks: Optional[BackgroundTasks] = None,
        settle_delay: Optional[float] = None,
    ):
        """
        Args:
            oracle: Quest generation/judgement collaborator
            award: Called with a PointsNotice whenever quests are completed
            tasks: Task tracker for background work (own tracker if None)
            settle_delay: Seconds before a new quest becomes active
        """
        self.oracle = oracle
        self._award = award
        self.tasks = tasks or BackgroundTasks()
        self.settle_delay = (
            settle_delay
            if settle_delay is not None
            else game_config.quests.settle_delay_seconds
        )
        self.quests: List[Quest] = []
        self._ids = itertools.count(1)
        self._generation = 0
        self._evaluating: Optional[int] = None

    def attach(self, bus: EventBus) -> None:
        bus.subscribe(EVENT_GAME_STARTED, self._on_game_started)
        bus.subscribe(EVENT_SEGMENT_READY, self._on_segment_ready)
        bus.subscribe(EVENT_SEGMENT_COMPLETED, self._on_segment_completed)

    @property
    def is_evaluating(self) -> bool:
        return self._evaluating == self._generation

    def active_quests(self) -> List[Quest]:
        return [q for q in self.quests if q.state == QuestState.ACTIVE]

    def reset(self) -> None:
        """Drop all quests; ids keep counting so none is ever reused."""
        self.quests = []
        self._generation += 1
        self._evaluating = None

    # ------------------------------------------------------------------
    # Adding quests
    # ------------------------------------------------------------------

    def add_stubs(self, stubs: Iterable[QuestStub]) -> List[Quest]:
        """Add oracle-generated quests in the new state and schedule promotion."""
        added = [
            Quest(
                id=next(self._ids),
                description=stub.description,
                reward_points=stub.reward_points,
            )
            for stub in stubs
        ]
        if not added:
            return []

        self.quests.extend(added)
        self.tasks.spawn(
            self._promote_later([q.id for q in added], self._generation),
            name="quest_promotion",
        )
        log.info("quests_added", ids=[q.id for q in added])
        return added

    async def _promote_later(self, quest_ids: Sequence[int], generation: int) -> None:
        await asyncio.sleep(self.settle_delay)
        if generation != self._generation:
            return
        for quest in self.quests:
            if quest.id in quest_ids and quest.state == QuestState.NEW:
                quest.state = QuestState.ACTIVE

    async def seed(self, segment_text: str) -> List[Quest]:
        """Request the initial quests for a new story."""
        generation = self._generation
        try:
            stubs = await self.oracle.initial_quests(segment_text)
        except Exception as e:
            log.error("initial_quests_failed", error=str(e))
            stubs = []

        if generation != self._generation:
            log.info("stale_quests_dropped", call="initial_quests")
            return []
        return self.add_stubs(stubs)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def evaluate(self, history_text: str) -> bool:
        """Run one evaluation round.

        Args:
            history_text: Full typed story so far

        Returns:
            True if a round was issued, False if it was skipped
        """
        if self.is_evaluating:
            log.info("quest_evaluation_skipped", reason="in_flight")
            return False

        active = self.active_quests()
        if not active:
            return False

        generation = self._generation
        self._evaluating = generation
        try:
            try:
                verdict = await self.oracle.evaluate_quests(history_text, active)
            except Exception as e:
                log.error("quest_evaluation_failed", error=str(e))
                verdict = QuestVerdict()

            if generation != self._generation:
                log.info("stale_quests_dropped", call="evaluate_quests")
                return True
            self._apply_verdict(verdict, history_text)
        finally:
            if self._evaluating == generation:
                self._evaluating = None
        return True

    def _apply_verdict(self, verdict: QuestVerdict, history_text: str) -> None:
        completed = set(verdict.completed_ids)
        failed = set(verdict.failed_ids) - completed

        points = 0
        finished: List[int] = []
        for quest in self.quests:
            if quest.state != QuestState.ACTIVE:
                continue
            if quest.id in completed:
                quest.state = QuestState.COMPLETED
                points += quest.reward_points
                finished.append(quest.id)
            elif quest.id in failed:
                quest.state = QuestState.FAILED
                finished.append(quest.id)

        if not finished:
            return

        log.info("quests_finished", ids=finished, points=points)

        if points > 0:
            self._award(PointsNotice(points=points, token=uuid4().hex))

        current = [q.model_copy() for q in self.quests]
        for quest_id in finished:
            self.tasks.spawn(
                self._replace(quest_id, history_text, current, self._generation),
                name=f"quest_replacement_{quest_id}",
            )

    async def _replace(
        self,
        quest_id: int,
        history_text: str,
        current: Sequence[Quest],
        generation: int,
    ) -> None:
        try:
            stub = await self.oracle.replacement_quest(history_text, current)
        except Exception as e:
            log.error("replacement_quest_failed", quest_id=quest_id, error=str(e))
            stub = None

        if generation != self._generation:
            log.info("stale_quests_dropped", call="replacement_quest")
            return

        self.quests = [q for q in self.quests if q.id != quest_id]
        if stub is None:
            log.info("quest_dropped", quest_id=quest_id)
            return
        self.add_stubs([stub])

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_game_started(self, sender, session: GameSession, **_) -> None:
        self.reset()

    def _on_segment_ready(self, sender, session: GameSession, first: bool, **_) -> None:
        if first:
            self.tasks.spawn(self.seed(session.target_text), name="initial_quests")

    def _on_segment_completed(
        self, sender, session: GameSession, segment: StorySegment, **_
    ) -> None:
        self.tasks.spawn(self.evaluate(session.history_text), name="quest_evaluation")
