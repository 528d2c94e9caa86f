"""
Custom exception hierarchy for TaleType.

All application exceptions inherit from TaleTypeError.
"""


class TaleTypeError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(TaleTypeError):
    """Invalid or missing configuration."""

    pass


# =============================================================================
# LLM Errors
# =============================================================================


class LLMError(TaleTypeError):
    """Base for LLM-related errors."""

    pass


class LLMTimeoutError(LLMError):
    """LLM call timed out."""

    pass


class LLMRateLimitError(LLMError):
    """LLM rate limit exceeded."""

    pass


class LLMResponseParseError(LLMError):
    """Failed to parse LLM response."""

    pass


# =============================================================================
# Oracle Errors
# =============================================================================


class OracleError(TaleTypeError):
    """A content collaborator failed or returned an unusable payload."""

    pass


class StoryGenerationError(OracleError):
    """The next story segment could not be produced."""

    pass


class QuestOracleError(OracleError):
    """Quest generation or judgement failed."""

    pass


class SceneOracleError(OracleError):
    """Scene tracking or image generation failed."""

    pass


# =============================================================================
# Game Errors
# =============================================================================


class GameError(TaleTypeError):
    """Game-state related error."""

    pass


class GameNotStartedError(GameError):
    """Input arrived before a play-through was started."""

    pass


class GameOverError(GameError):
    """Attempted to type after the player ran out of lives."""

    pass


class InputRejectedError(GameError):
    """Candidate input violates the input boundary (e.g. deletion)."""

    pass

