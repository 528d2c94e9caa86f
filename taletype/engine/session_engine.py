"""Session engine: the game state machine.

Phases:
    idle -> loading -> ready -> typing -> segment_complete -> loading ...
    game_over when lives reach 0; idle again only through restart or a
    failed segment request.

All state changes go through dispatch(). Oracle calls run as background
tasks and report back with events carrying the generation of the
play-through that issued them; events from an older generation are dropped,
so a restart never sees results meant for the previous game.

On segment completion the engine appends history first, then concurrently
asks the quest ledger to evaluate, the scene oracle to refresh the image and
the story oracle for the next segment.

segment_complete is transient: it lasts for the synchronous completion step,
so segment_completed subscribers see it, but the phase is already loading
by the time dispatch() returns.
"""

import time
from typing import Callable, Optional

import structlog

from taletype.core.config import GameConfig, game_config
from taletype.core.exceptions import (
    GameNotStartedError,
    GameOverError,
    InputRejectedError,
)
from taletype.core.logging import bind_context
from taletype.domain.models.quest import PointsNotice
from taletype.domain.models.session import GameSession, Phase
from taletype.domain.models.story import StorySegment
from taletype.engine.blank_fill import BlankFillResolver
from taletype.engine.events import (
    EVENT_GAME_OVER,
    EVENT_GAME_STARTED,
    EVENT_SEGMENT_COMPLETED,
    EVENT_SEGMENT_READY,
    EVENT_TYPING_STARTED,
    EventBus,
    InputChanged,
    SceneRefreshed,
    SegmentFailed,
    SegmentLoaded,
    StartGame,
)
from taletype.engine.matcher import match_input
from taletype.engine.quest_ledger import QuestLedger
from taletype.engine.stats_tracker import StatsTracker
from taletype.engine.tasks import BackgroundTasks
from taletype.services.protocols import IQuestOracle, ISceneOracle, IStoryOracle

log = structlog.get_logger(__name__)

TYPING_PHASES = (Phase.READY, Phase.TYPING)


class SessionEngine:
    """Runs one play-through at a time.

    The engine owns the GameSession record. Only the engine writes phase,
    text, lives, streak and history; the stats tracker writes snapshots; the
    quest ledger owns the quest list and awards score through a callback.
    """

    def __init__(
        self,
        story: IStoryOracle,
        quests: IQuestOracle,
        scene: Optional[ISceneOracle] = None,
        config: Optional[GameConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the engine.

        Args:
            story: Story segment oracle
            quests: Quest oracle
            scene: Scene oracle; no illustrations when None
            config: Game tuning (defaults to config/game_config.yaml)
            clock: Monotonic clock used for the segment timer
        """
        self.config = config or game_config
        self.story = story
        self.scene = scene

        self.bus = EventBus()
        self.tasks = BackgroundTasks()
        self.session = GameSession(lives=self.config.lives.initial)

        self.resolver = BlankFillResolver(self.config.story.blank_marker)
        self.stats = StatsTracker(
            interval_seconds=self.config.stats.interval_seconds,
            chars_per_word=self.config.stats.chars_per_word,
            clock=clock,
        )
        self.ledger = QuestLedger(
            quests,
            award=self._award_points,
            tasks=self.tasks,
            settle_delay=self.config.quests.settle_delay_seconds,
        )
        self.stats.attach(self.bus)
        self.ledger.attach(self.bus)

        self._handlers = {
            StartGame: self._on_start,
            InputChanged: self._on_input,
            SegmentLoaded: self._on_segment_loaded,
            SegmentFailed: self._on_segment_failed,
            SceneRefreshed: self._on_scene_refreshed,
        }

    @property
    def phase(self) -> Phase:
        return self.session.phase

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def dispatch(self, event) -> GameSession:
        """Apply one event to the state machine.

        Raises:
            TypeError: For an unknown event type
            GameError: For input the current phase cannot accept
        """
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unknown engine event: {type(event).__name__}")

        generation = getattr(event, "generation", None)
        if generation is not None and generation != self.session.generation:
            log.info(
                "stale_event_dropped",
                event=type(event).__name__,
                event_generation=generation,
                current_generation=self.session.generation,
            )
            return self.session

        handler(event)
        return self.session

    def start(self) -> GameSession:
        """Start (or restart) a play-through."""
        return self.dispatch(StartGame())

    def handle_input(self, value: str) -> GameSession:
        """Apply the full current value of the input field."""
        return self.dispatch(InputChanged(value))

    def type_text(self, text: str) -> GameSession:
        """Type characters one at a time, stopping when typing is no longer possible.

        The first character goes through the normal phase checks, so typing
        into an idle or finished game raises like handle_input does.
        """
        for i, char in enumerate(text):
            if i and self.session.phase not in TYPING_PHASES:
                break
            self.handle_input(self.session.typed_text + char)
        return self.session

    async def settle(self) -> None:
        """Wait for every outstanding oracle call and follow-up to finish."""
        await self.tasks.drain()

    async def shutdown(self) -> None:
        self.stats.stop_ticker()
        await self.settle()

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _on_start(self, event: StartGame) -> None:
        generation = self.session.generation + 1
        self.session = GameSession(generation=generation, lives=self.config.lives.initial)
        bind_context(game_generation=generation)
        log.info("game_started", lives=self.session.lives)

        if self.scene is not None:
            self.scene.reset()
        self.bus.emit(EVENT_GAME_STARTED, session=self.session)
        self._request_segment(wants_blank=False)

    def _request_segment(self, wants_blank: bool) -> None:
        s = self.session
        s.phase = Phase.LOADING
        s.target_text = ""
        s.typed_text = ""
        s.blank = None
        s.filled_word = None
        s.message = None
        s.mistakes_at_segment_start = s.mistakes
        self.stats.reset_timer(s)

        self.tasks.spawn(
            self._load_segment(s.generation, list(s.history), wants_blank),
            name="next_segment",
        )

    async def _load_segment(self, generation: int, history, wants_blank: bool) -> None:
        try:
            text = await self.story.next_segment(history, wants_blank)
        except Exception as e:
            log.error("segment_request_failed", error=str(e))
            self.dispatch(SegmentFailed(generation=generation, error=str(e)))
            return
        self.dispatch(SegmentLoaded(generation=generation, text=text))

    def _on_segment_loaded(self, event: SegmentLoaded) -> None:
        s = self.session
        if s.phase != Phase.LOADING:
            log.info("segment_ignored", phase=s.phase.value)
            return

        first = not s.history
        s.target_text = event.text
        s.blank = self.resolver.open(event.text)
        s.phase = Phase.READY
        log.info(
            "segment_ready",
            segment_number=len(s.history) + 1,
            length=len(event.text),
            has_blank=s.blank is not None,
        )
        self.bus.emit(EVENT_SEGMENT_READY, session=s, first=first)

    def _on_segment_failed(self, event: SegmentFailed) -> None:
        s = self.session
        if s.phase != Phase.LOADING:
            return
        s.target_text = self.config.story.fallback_text
        s.message = self.config.story.fallback_text
        s.phase = Phase.IDLE
        log.warning("segment_unavailable", error=event.error)

    def _on_scene_refreshed(self, event: SceneRefreshed) -> None:
        s = self.session
        s.image_loading = False
        if event.image_url:
            s.image_url = event.image_url

    def _on_input(self, event: InputChanged) -> None:
        s = self.session
        if s.phase == Phase.GAME_OVER:
            raise GameOverError("No lives left. Start a new game.")
        if s.phase == Phase.IDLE:
            raise GameNotStartedError("No segment to type. Start a new game.")
        if s.phase not in TYPING_PHASES:
            log.debug("input_ignored", phase=s.phase.value)
            return

        value = event.value
        if len(value) < len(s.typed_text):
            raise InputRejectedError("Deleting typed text is not allowed.")
        if not value.startswith(s.typed_text):
            raise InputRejectedError("Typed text cannot be changed.")
        if not value:
            return

        if s.phase == Phase.READY:
            s.phase = Phase.TYPING
            self.stats.start_timer(s)
            self.bus.emit(EVENT_TYPING_STARTED, session=s)

        target = s.target_text
        if s.blank is not None:
            resolution = self.resolver.apply(s.blank, target, value)
            target, value = resolution.target, resolution.typed
            s.target_text = target
            if resolution.resolved:
                s.filled_word = resolution.filled_word
                s.blank = None

        result = match_input(target, s.typed_text, value)

        if result.overflow:
            if s.blank is not None:
                log.debug("input_ignored", reason="blank_open")
                return
            s.typed_text = result.typed
            self._complete_segment()
            return

        if result.forward:
            s.chars_typed += 1
            if not result.correct:
                s.mistakes += 1
                s.lives = max(0, s.lives - 1)
                log.info("mistake", position=len(value) - 1, lives=s.lives)

        s.typed_text = result.typed

        if s.lives == 0:
            self._game_over()
            return

        if result.completed and s.blank is None:
            self._complete_segment()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _complete_segment(self) -> None:
        s = self.session
        s.phase = Phase.SEGMENT_COMPLETE

        flawless = s.mistakes_this_segment == 0
        if flawless:
            s.flawless_streak += 1
            bonus_every = self.config.lives.streak_for_bonus
            if s.flawless_streak % bonus_every == 0 and s.lives < self.config.lives.max:
                s.lives = min(self.config.lives.max, s.lives + 1)
                log.info("life_gained", streak=s.flawless_streak, lives=s.lives)
        else:
            s.flawless_streak = 0

        segment = StorySegment(
            target_text=s.target_text,
            typed_text=s.typed_text,
            filled_word=s.filled_word,
        )
        s.history.append(segment)
        log.info(
            "segment_completed",
            segment_number=len(s.history),
            flawless=flawless,
            mistakes=s.mistakes_this_segment,
            streak=s.flawless_streak,
        )

        self.bus.emit(EVENT_SEGMENT_COMPLETED, session=s, segment=segment)

        if self.scene is not None:
            s.image_loading = True
            self.tasks.spawn(
                self._refresh_scene(s.generation, s.history_text, segment.typed_text),
                name="scene_refresh",
            )

        self._request_segment(wants_blank=flawless and not segment.had_typos)

    async def _refresh_scene(
        self, generation: int, history_text: str, latest_segment: str
    ) -> None:
        try:
            image_url = await self.scene.refresh_scene(history_text, latest_segment)
        except Exception as e:
            log.error("scene_refresh_failed", error=str(e))
            image_url = None
        self.dispatch(SceneRefreshed(generation=generation, image_url=image_url))

    def _game_over(self) -> None:
        s = self.session
        s.phase = Phase.GAME_OVER
        log.info(
            "game_over",
            segments=len(s.history),
            score=s.score,
            chars_typed=s.chars_typed,
            mistakes=s.mistakes,
        )
        self.bus.emit(EVENT_GAME_OVER, session=s)

    def _award_points(self, notice: PointsNotice) -> None:
        self.session.score += notice.points
        self.session.points_notice = notice
        log.info("points_awarded", points=notice.points, score=self.session.score)
