"""Character matching between typed input and the target text.

Pure functions: no session state, no I/O.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List


class CharState(str, Enum):
    """Display classification of one target character."""

    CORRECT = "correct"
    INCORRECT = "incorrect"
    CURRENT = "current"
    PENDING = "pending"


def classify(target: str, typed: str) -> List[CharState]:
    """Classify every position of target against what has been typed.

    Args:
        target: Effective target text
        typed: Typed text (never longer than target in practice)

    Returns:
        One CharState per target character
    """
    states = []
    for i, char in enumerate(target):
        if i < len(typed):
            states.append(CharState.CORRECT if typed[i] == char else CharState.INCORRECT)
        elif i == len(typed):
            states.append(CharState.CURRENT)
        else:
            states.append(CharState.PENDING)
    return states


@dataclass(frozen=True)
class MatchResult:
    """Outcome of matching one candidate input value.

    Attributes:
        typed: Typed text to keep (clamped to target on overflow)
        forward: Candidate is longer than the previous typed text
        correct: The newly added character matches the target
        completed: Typed text now covers the whole target
        overflow: Candidate was longer than the target
    """

    typed: str
    forward: bool
    correct: bool
    completed: bool
    overflow: bool = False


def match_input(target: str, previous: str, candidate: str) -> MatchResult:
    """Match a candidate input value against the target.

    A longer-than-target candidate is clamped to the target and finishes the
    segment immediately; it is not scored as a keystroke. Otherwise a longer
    candidate is one forward keystroke and only its last character is
    compared.

    Args:
        target: Effective target text
        previous: Typed text before this keystroke
        candidate: New input value

    Returns:
        MatchResult
    """
    if len(candidate) > len(target):
        return MatchResult(
            typed=target, forward=False, correct=True, completed=True, overflow=True
        )

    forward = len(candidate) > len(previous)
    correct = True
    if forward:
        correct = candidate[-1] == target[len(candidate) - 1]

    return MatchResult(
        typed=candidate,
        forward=forward,
        correct=correct,
        completed=len(candidate) == len(target),
    )
