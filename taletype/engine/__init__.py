# noqa
from taletype.engine.session_engine import SessionEngine
from taletype.engine.quest_ledger import QuestLedger
from taletype.engine.stats_tracker import StatsTracker, compute_snapshot
from taletype.engine.blank_fill import BlankFillResolver
from taletype.engine.matcher import CharState, classify, match_input

__all__ = [
    "SessionEngine",
    "QuestLedger",
    "StatsTracker",
    "compute_snapshot",
    "BlankFillResolver",
    "CharState",
    "classify",
    "match_input",
]
