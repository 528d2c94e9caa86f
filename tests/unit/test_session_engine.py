"""Tests for the session engine state machine.

Oracles are fakes from conftest; background work is awaited with
engine.settle().
"""

import asyncio

import pytest

from taletype.core.exceptions import (
    GameNotStartedError,
    GameOverError,
    InputRejectedError,
)
from taletype.domain.models.quest import QuestState, QuestVerdict
from taletype.domain.models.session import Phase
from taletype.engine.events import EVENT_SEGMENT_COMPLETED
from taletype.engine.session_engine import SessionEngine


# ============ STARTING ============


class TestStart:
    """Tests for starting and restarting a play-through."""

    @pytest.mark.asyncio
    async def test_start_enters_loading(self, engine):
        """start() resets the session and waits for the first segment."""
        session = engine.start()

        assert session.phase == Phase.LOADING
        assert session.generation == 1
        assert session.lives == 3
        assert session.history == []

    @pytest.mark.asyncio
    async def test_first_segment_makes_game_ready(self, engine, story_oracle):
        """The loaded segment becomes the target; no blank was requested."""
        engine.start()
        await engine.settle()

        assert engine.phase == Phase.READY
        assert engine.session.target_text == "The cat sat."
        assert engine.session.typed_text == ""
        assert story_oracle.calls == [([], False)]

    @pytest.mark.asyncio
    async def test_opening_quests_seeded_after_first_segment(
        self, started_engine, quest_oracle
    ):
        """Initial quests are requested with the first segment and become active."""
        quest_oracle.initial_quests.assert_awaited_once_with("The cat sat.")

        quests = started_engine.ledger.quests
        assert [q.id for q in quests] == [1, 2]
        assert all(q.state == QuestState.ACTIVE for q in quests)

    @pytest.mark.asyncio
    async def test_start_resets_scene(self, engine, scene_oracle):
        engine.start()
        scene_oracle.reset.assert_called_once()

    @pytest.mark.asyncio
    async def test_failed_segment_shows_fallback_and_goes_idle(
        self, failing_story_oracle, quest_oracle, fast_config, clock
    ):
        """A failed story call shows the fallback text and returns to idle."""
        engine = SessionEngine(
            story=failing_story_oracle,
            quests=quest_oracle,
            config=fast_config,
            clock=clock,
        )
        engine.start()
        await engine.settle()

        fallback = fast_config.story.fallback_text
        assert engine.phase == Phase.IDLE
        assert engine.session.message == fallback
        assert engine.session.target_text == fallback
        quest_oracle.initial_quests.assert_not_awaited()

        with pytest.raises(GameNotStartedError):
            engine.handle_input("T")

    @pytest.mark.asyncio
    async def test_input_before_start_raises(self, engine):
        with pytest.raises(GameNotStartedError):
            engine.handle_input("T")

    @pytest.mark.asyncio
    async def test_input_while_loading_is_ignored(self, engine):
        engine.start()
        session = engine.handle_input("T")

        assert session.phase == Phase.LOADING
        assert session.typed_text == ""
        assert session.chars_typed == 0

    @pytest.mark.asyncio
    async def test_unknown_event_raises(self, engine):
        with pytest.raises(TypeError, match="Unknown engine event"):
            engine.dispatch(object())


# ============ KEYSTROKES ============


class TestKeystrokes:
    """Tests for per-keystroke scoring."""

    @pytest.mark.asyncio
    async def test_first_keystroke_starts_typing(self, started_engine, clock):
        session = started_engine.handle_input("T")

        assert session.phase == Phase.TYPING
        assert session.timer_started_at == clock.now
        assert session.chars_typed == 1
        assert session.mistakes == 0

    @pytest.mark.asyncio
    async def test_mismatch_costs_a_life(self, started_engine):
        session = started_engine.type_text("Thx")

        assert session.typed_text == "Thx"
        assert session.chars_typed == 3
        assert session.mistakes == 1
        assert session.lives == 2

    @pytest.mark.asyncio
    async def test_paste_counts_as_one_keystroke(self, started_engine):
        """Only the last character of a forward step is compared."""
        session = started_engine.handle_input("Thx cat")

        assert session.chars_typed == 1
        assert session.mistakes == 0
        assert session.typed_text == "Thx cat"

    @pytest.mark.asyncio
    async def test_deletion_is_rejected(self, started_engine):
        started_engine.type_text("The")

        with pytest.raises(InputRejectedError):
            started_engine.handle_input("Th")

        assert started_engine.session.typed_text == "The"
        assert started_engine.session.chars_typed == 3

    @pytest.mark.asyncio
    async def test_rewriting_typed_text_is_rejected(self, started_engine):
        started_engine.type_text("Thx")

        with pytest.raises(InputRejectedError):
            started_engine.handle_input("The")

        assert started_engine.session.typed_text == "Thx"

    @pytest.mark.asyncio
    async def test_overflow_clamps_and_completes(self, started_engine):
        """A value longer than the target finishes the segment immediately."""
        session = started_engine.handle_input("The cat sat. And more")

        assert len(session.history) == 1
        assert session.history[0].typed_text == "The cat sat."
        # Overflow is not scored as a keystroke
        assert session.chars_typed == 0
        assert session.mistakes == 0

    @pytest.mark.asyncio
    async def test_typed_length_never_exceeds_target(self, started_engine):
        session = started_engine.session
        for value in ["T", "Th", "Thq", "Thq ", "Thq c"]:
            started_engine.handle_input(value)
            assert len(session.typed_text) <= len(session.target_text)
            assert session.mistakes <= session.chars_typed


# ============ COMPLETION ============


class TestSegmentCompletion:
    """Tests for finishing a segment."""

    @pytest.mark.asyncio
    async def test_completion_subscribers_see_segment_complete(self, started_engine):
        seen = []

        def on_completed(sender, session, segment, **_):
            seen.append(session.phase)
            # Input during completion is ignored, not scored.
            started_engine.handle_input(session.typed_text + "x")
            seen.append(session.chars_typed)

        started_engine.bus.subscribe(EVENT_SEGMENT_COMPLETED, on_completed)

        session = started_engine.type_text("The cat sat.")

        assert seen == [Phase.SEGMENT_COMPLETE, len("The cat sat.")]
        assert session.phase == Phase.LOADING

    @pytest.mark.asyncio
    async def test_flawless_segment(self, started_engine, story_oracle):
        session = started_engine.type_text("The cat sat.")

        assert session.phase == Phase.LOADING
        assert session.flawless_streak == 1
        assert len(session.history) == 1
        segment = session.history[0]
        assert segment.target_text == "The cat sat."
        assert segment.typed_text == "The cat sat."
        assert not segment.had_typos

        await started_engine.settle()

        assert started_engine.phase == Phase.READY
        assert started_engine.session.target_text == "It purred."
        history, wants_blank = story_oracle.calls[1]
        assert len(history) == 1
        assert wants_blank is True

    @pytest.mark.asyncio
    async def test_segment_with_typos(self, started_engine, story_oracle):
        started_engine.type_text("Thx")
        session = started_engine.type_text(" cat sat.")

        assert session.flawless_streak == 0
        assert session.history[0].typed_text == "Thx cat sat."
        assert session.history[0].had_typos

        await started_engine.settle()
        _, wants_blank = story_oracle.calls[1]
        assert wants_blank is False

    @pytest.mark.asyncio
    async def test_new_segment_resets_typed_text_and_timer(self, started_engine):
        started_engine.type_text("The cat sat.")
        await started_engine.settle()

        session = started_engine.session
        assert session.typed_text == ""
        assert session.timer_started_at is None
        assert session.mistakes_this_segment == 0
        # Counters are cumulative across segments
        assert session.chars_typed == 12

    @pytest.mark.asyncio
    async def test_stats_refreshed_at_completion(self, started_engine, clock):
        started_engine.type_text("The cat sat")
        clock.advance(12)
        session = started_engine.type_text(".")

        assert session.stats.chars_typed == 12
        assert session.stats.accuracy == 100.0
        # 12 chars = 2.4 words in 0.2 minutes
        assert session.stats.wpm == pytest.approx(12.0)

    @pytest.mark.asyncio
    async def test_scene_refreshed_after_completion(self, started_engine, scene_oracle):
        session = started_engine.type_text("The cat sat.")
        assert session.image_loading

        await started_engine.settle()

        scene_oracle.refresh_scene.assert_awaited_once_with(
            "The cat sat.", "The cat sat."
        )
        assert started_engine.session.image_url == "data:image/png;base64,abc"
        assert not started_engine.session.image_loading

    @pytest.mark.asyncio
    async def test_scene_failure_keeps_previous_image(self, started_engine, scene_oracle):
        started_engine.session.image_url = "data:image/png;base64,old"
        scene_oracle.refresh_scene.side_effect = RuntimeError("boom")

        started_engine.type_text("The cat sat.")
        await started_engine.settle()

        assert started_engine.session.image_url == "data:image/png;base64,old"
        assert not started_engine.session.image_loading


# ============ LIVES AND STREAK ============


class TestLivesAndStreak:
    """Tests for lives, game over and the flawless streak bonus."""

    @pytest.mark.asyncio
    async def test_every_third_flawless_segment_grants_a_life(
        self, engine, story_oracle
    ):
        story_oracle.segments = ["Go."] * 9
        engine.start()
        await engine.settle()

        lives_after = []
        for _ in range(9):
            engine.type_text(engine.session.target_text)
            lives_after.append(engine.session.lives)
            await engine.settle()

        assert lives_after == [3, 3, 4, 4, 4, 5, 5, 5, 5]
        assert engine.session.flawless_streak == 9

    @pytest.mark.asyncio
    async def test_mistake_resets_streak(self, engine, story_oracle):
        story_oracle.segments = ["Go.", "Go.", "Go.", "Go."]
        engine.start()
        await engine.settle()

        engine.type_text("Go.")
        await engine.settle()
        engine.type_text("Gx.")
        await engine.settle()

        assert engine.session.flawless_streak == 0
        assert engine.session.lives == 2

    @pytest.mark.asyncio
    async def test_last_life_lost_ends_game(self, started_engine):
        started_engine.session.lives = 1

        session = started_engine.handle_input("X")

        assert session.lives == 0
        assert session.phase == Phase.GAME_OVER

    @pytest.mark.asyncio
    async def test_game_over_wins_over_completion(self, started_engine):
        """A mismatch on the final character ends the game, not the segment."""
        started_engine.session.lives = 1
        started_engine.type_text("The cat sat")

        session = started_engine.handle_input("The cat sat!")

        assert session.phase == Phase.GAME_OVER
        assert session.history == []

    @pytest.mark.asyncio
    async def test_input_after_game_over_raises(self, started_engine):
        started_engine.session.lives = 1
        started_engine.handle_input("X")

        with pytest.raises(GameOverError):
            started_engine.handle_input("XY")

    @pytest.mark.asyncio
    async def test_restart_after_game_over(self, started_engine):
        started_engine.session.lives = 1
        started_engine.handle_input("X")

        session = started_engine.start()

        assert session.phase == Phase.LOADING
        assert session.lives == 3
        assert session.mistakes == 0
        assert session.generation == 2


# ============ BLANKS ============


class TestBlankSegments:
    """Tests for fill-in-the-blank segments driven through the engine."""

    @pytest.mark.asyncio
    async def test_space_terminated_blank(self, engine, story_oracle):
        story_oracle.segments = ["I saw a ___ today."]
        engine.start()
        await engine.settle()
        assert engine.session.blank is not None

        session = engine.type_text("I saw a dragon ")

        assert session.blank is None
        assert session.filled_word == "dragon"
        assert session.target_text == "I saw a dragon today."
        assert session.typed_text == "I saw a dragon "

        session = engine.type_text("today.")

        segment = session.history[0]
        assert segment.target_text == "I saw a dragon today."
        assert segment.filled_word == "dragon"
        assert not segment.had_typos
        assert session.mistakes == 0
        assert session.chars_typed == len("I saw a dragon today.")

    @pytest.mark.asyncio
    async def test_punctuation_terminated_blank(self, engine, story_oracle):
        story_oracle.segments = ["I saw a ___, and ran."]
        engine.start()
        await engine.settle()

        session = engine.type_text("I saw a dragon,")

        assert session.filled_word == "dragon"
        assert session.target_text == "I saw a dragon, and ran."

        session = engine.type_text(" and ran.")
        assert session.history[0].target_text == "I saw a dragon, and ran."
        assert session.mistakes == 0

    @pytest.mark.asyncio
    async def test_lone_terminator_costs_a_life(self, engine, story_oracle):
        story_oracle.segments = ["I saw a ___, and ran."]
        engine.start()
        await engine.settle()

        session = engine.type_text("I saw a ,")

        assert session.blank is not None
        assert session.target_text == "I saw a ___, and ran."
        assert session.mistakes == 1
        assert session.lives == 2
        assert session.filled_word is None

    @pytest.mark.asyncio
    async def test_space_before_punctuation_is_swallowed(self, engine, story_oracle):
        story_oracle.segments = ["Look, a ___."]
        engine.start()
        await engine.settle()

        session = engine.type_text("Look, a cat ")
        assert session.typed_text == "Look, a cat"
        assert session.target_text == "Look, a cat."

        session = engine.type_text(".")
        assert session.history[0].typed_text == "Look, a cat."
        assert session.mistakes == 0

    @pytest.mark.asyncio
    async def test_open_blank_blocks_completion(self, engine, story_oracle):
        """A blank at the very end stays open until the word is terminated."""
        story_oracle.segments = ["Behold the ___"]
        engine.start()
        await engine.settle()

        session = engine.type_text("Behold the cat")
        assert session.phase == Phase.TYPING
        assert session.history == []

        session = engine.type_text(" ")
        assert session.history[0].target_text == "Behold the cat"
        assert session.history[0].filled_word == "cat"

    @pytest.mark.asyncio
    async def test_second_marker_is_literal(self, engine, story_oracle):
        story_oracle.segments = ["A ___ and ___."]
        engine.start()
        await engine.settle()

        session = engine.type_text("A fox ")
        assert session.target_text == "A fox and ___."

        session = engine.type_text("and ___.")
        assert session.history[0].typed_text == "A fox and ___."
        assert session.mistakes == 0


# ============ QUESTS AND SCORE ============


class TestQuestsThroughEngine:
    """Tests for quest evaluation triggered by segment completion."""

    @pytest.mark.asyncio
    async def test_completed_quest_awards_points(self, started_engine, quest_oracle):
        quest_oracle.evaluate_quests.return_value = QuestVerdict(completed_ids=[1])

        started_engine.type_text("The cat sat.")
        await started_engine.settle()

        session = started_engine.session
        assert session.score == 10
        assert session.points_notice.points == 10

        history_text, active = quest_oracle.evaluate_quests.await_args.args
        assert history_text == "The cat sat."
        assert [q.id for q in active] == [1, 2]

        ids = [q.id for q in started_engine.ledger.quests]
        assert ids == [2, 3]

    @pytest.mark.asyncio
    async def test_no_evaluation_without_active_quests(
        self, started_engine, quest_oracle
    ):
        started_engine.ledger.quests = []

        started_engine.type_text("The cat sat.")
        await started_engine.settle()

        quest_oracle.evaluate_quests.assert_not_awaited()


# ============ STALE RESULTS ============


class TestRestartMidFlight:
    """Results of calls issued before a restart never reach the new session."""

    @pytest.mark.asyncio
    async def test_stale_segment_is_dropped(self, engine, story_oracle, quest_oracle):
        story_oracle.gate = asyncio.Event()

        engine.start()
        engine.start()
        story_oracle.gate.set()
        await engine.settle()

        session = engine.session
        assert session.generation == 2
        assert session.phase == Phase.READY
        # The second call was issued for generation 2
        assert session.target_text == "It purred."
        quest_oracle.initial_quests.assert_awaited_once_with("It purred.")

    @pytest.mark.asyncio
    async def test_stale_quest_verdict_is_dropped(self, started_engine, quest_oracle):
        gate = asyncio.Event()

        async def slow_verdict(history_text, active):
            await gate.wait()
            return QuestVerdict(completed_ids=[1, 2])

        quest_oracle.evaluate_quests.side_effect = slow_verdict

        started_engine.type_text("The cat sat.")
        await asyncio.sleep(0)
        started_engine.start()
        gate.set()
        await started_engine.settle()

        session = started_engine.session
        assert session.score == 0
        assert session.points_notice is None
        assert all(q.id > 2 for q in started_engine.ledger.quests)

    @pytest.mark.asyncio
    async def test_stale_scene_is_dropped(self, started_engine, scene_oracle):
        gate = asyncio.Event()

        async def slow_scene(history_text, latest_segment):
            await gate.wait()
            return "data:image/png;base64,stale"

        scene_oracle.refresh_scene.side_effect = slow_scene

        started_engine.type_text("The cat sat.")
        started_engine.start()
        gate.set()
        await started_engine.settle()

        assert started_engine.session.image_url is None
