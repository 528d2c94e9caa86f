"""
Application settings management.

Settings are loaded from environment variables with .env file support.
Game tuning (lives, stats cadence, quest staging) comes from a YAML file.
All configuration is validated using Pydantic.
"""

from pathlib import Path
from typing import Optional

import pydantic
import yaml
from pydantic import BaseModel, Field, field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict

from taletype.core.exceptions import ConfigurationError

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """
    Application settings loaded from environment.

    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # ==========================================================================
    # Paths
    # ==========================================================================

    config_dir: Path = Field(
        default=Path("config"),
        description="Directory containing YAML configuration files",
    )

    # ==========================================================================
    # LLM Configuration
    # ==========================================================================
    #
    # Three text roles plus one image role:
    # - story: next story segment
    # - quest: initial quests, verdicts, replacements
    # - scene: entity tracking and image prompt writing
    #
    # Defaults are defined in taletype/llm/client.py. Set environment variables
    # below only to override defaults (e.g., LLM_STORY_PROVIDER=anthropic)

    llm_story_provider: Optional[str] = Field(
        default=None, description="Override story LLM provider (default: gemini)"
    )
    llm_quest_provider: Optional[str] = Field(
        default=None, description="Override quest LLM provider (default: gemini)"
    )
    llm_scene_provider: Optional[str] = Field(
        default=None, description="Override scene LLM provider (default: gemini)"
    )
    image_provider: Optional[str] = Field(
        default=None, description="Override image provider (default: gemini)"
    )

    # API Keys (required for providers you use)
    gemini_api_key: Optional[str] = Field(default=None, description="Gemini API key")
    anthropic_api_key: Optional[str] = Field(
        default=None, description="Anthropic API key"
    )
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")

    # ==========================================================================
    # Server Configuration
    # ==========================================================================

    host: str = Field(default="127.0.0.1", description="Server host address")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")


# ============================================================================
# Game Configuration (from YAML)
# ============================================================================


class LivesConfig(BaseModel):
    """Lives and flawless-streak rules."""

    initial: int = Field(default=3, ge=1, le=5, description="Lives at game start")
    max: int = Field(default=5, ge=1, le=5, description="Upper bound on lives")
    streak_for_bonus: int = Field(
        default=3,
        ge=1,
        description="Every N-th consecutive flawless segment grants one life",
    )

    @field_validator("max")
    @classmethod
    def max_not_below_initial(cls, v: int, info: ValidationInfo) -> int:
        """Reject a cap that is lower than the starting lives."""
        initial = info.data.get("initial")
        if initial is not None and v < initial:
            raise ValueError(f"lives.max ({v}) must be >= lives.initial ({initial})")
        return v


class StatsConfig(BaseModel):
    """Live statistics cadence."""

    interval_seconds: float = Field(
        default=1.0, gt=0, description="Seconds between stats refreshes while typing"
    )
    chars_per_word: int = Field(
        default=5, ge=1, description="Characters per word for WPM"
    )


class QuestsConfig(BaseModel):
    """Quest staging."""

    initial_count: int = Field(
        default=3, ge=0, le=10, description="Quests requested for a new story"
    )
    settle_delay_seconds: float = Field(
        default=0.1, gt=0, description="Delay before a new quest becomes active"
    )


class StoryConfig(BaseModel):
    """Story segment handling."""

    blank_marker: str = Field(
        default="___", min_length=1, description="Placeholder marking a blank"
    )
    fallback_text: str = Field(
        default=(
            "The old machine sputtered and died. "
            "The story ends here... for now. (API Error)"
        ),
        description="Shown in place of a segment when generation fails",
    )


class GameConfig(BaseModel):
    """
    Complete game configuration loaded from game_config.yaml.

    Every section has defaults, so an empty or missing file is valid.
    """

    lives: LivesConfig = Field(default_factory=LivesConfig)
    stats: StatsConfig = Field(default_factory=StatsConfig)
    quests: QuestsConfig = Field(default_factory=QuestsConfig)
    story: StoryConfig = Field(default_factory=StoryConfig)


def load_game_config(config_path: Optional[Path] = None) -> GameConfig:
    """
    Load game configuration from YAML file.

    Args:
        config_path: Path to game_config.yaml. If None, uses
            settings.config_dir; a relative directory that does not exist
            under the working directory is looked up next to the package.

    Returns:
        GameConfig with validated settings

    Raises:
        ConfigurationError: If the file is not valid YAML or fails validation
    """
    if config_path is None:
        config_dir = settings.config_dir
        if not config_dir.is_absolute() and not config_dir.exists():
            config_dir = PROJECT_ROOT / config_dir
        config_path = config_dir / "game_config.yaml"

    config_path = Path(config_path).resolve()

    if not config_path.exists():
        return GameConfig()

    try:
        with open(str(config_path)) as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if not config_data:
        return GameConfig()

    try:
        return GameConfig(**config_data)
    except pydantic.ValidationError as e:
        raise ConfigurationError(f"Invalid game config in {config_path}: {e}") from e


# Global settings instance
settings = Settings()

# Global game config instance
game_config = load_game_config()
