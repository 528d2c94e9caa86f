"""
Game API routes.

One process-wide play-through: start or restart it, feed input, read state.
Oracle calls run in the background; clients poll GET /game for results.
"""

from fastapi import APIRouter
import structlog

from taletype.api.dependencies import GameEngineDep
from taletype.api.schemas import (
    GameStateResponse,
    HistoryResponse,
    InputRequest,
    TypeRequest,
)
from taletype.engine.matcher import classify
from taletype.engine.session_engine import SessionEngine

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/game", tags=["game"])


def _state_response(engine: SessionEngine) -> GameStateResponse:
    s = engine.session
    return GameStateResponse(
        generation=s.generation,
        phase=s.phase,
        target_text=s.target_text,
        typed_text=s.typed_text,
        char_states=classify(s.target_text, s.typed_text),
        blank_open=s.blank is not None,
        filled_word=s.filled_word,
        lives=s.lives,
        max_lives=engine.config.lives.max,
        flawless_streak=s.flawless_streak,
        score=s.score,
        segments_completed=len(s.history),
        stats=s.stats,
        quests=list(engine.ledger.quests),
        quest_evaluation_pending=engine.ledger.is_evaluating,
        message=s.message,
        image_url=s.image_url,
        image_loading=s.image_loading,
        points_notice=s.points_notice,
    )


@router.post("/start", response_model=GameStateResponse)
async def start_game(engine: GameEngineDep):
    """Start a new play-through, abandoning the current one.

    Returns immediately in the loading phase; the first segment arrives
    in the background.
    """
    engine.start()
    log.info("game_start_requested", generation=engine.session.generation)
    return _state_response(engine)


@router.get("", response_model=GameStateResponse)
async def get_game_state(engine: GameEngineDep):
    """Current state, stats and quests."""
    return _state_response(engine)


@router.post("/input", response_model=GameStateResponse)
async def submit_input(request: InputRequest, engine: GameEngineDep):
    """Apply the full current value of the input field.

    Raises:
        GameNotStartedError: No segment to type (409)
        GameOverError: No lives left (409)
        InputRejectedError: Value is shorter than the typed text (400)
    """
    engine.handle_input(request.value)
    return _state_response(engine)


@router.post("/type", response_model=GameStateResponse)
async def type_text(request: TypeRequest, engine: GameEngineDep):
    """Append characters one keystroke at a time.

    Typing stops early when the segment completes or the game ends.
    """
    engine.type_text(request.text)
    return _state_response(engine)


@router.get("/history", response_model=HistoryResponse)
async def get_history(engine: GameEngineDep):
    """Finished segments of the current play-through."""
    s = engine.session
    return HistoryResponse(
        segments=list(s.history), text=s.history_text, total=len(s.history)
    )
