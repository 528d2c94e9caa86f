"""Scene entity models used by the illustration pipeline."""

from typing import List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class SceneEntity(BaseModel):
    """A character or location tracked across the story.

    is_present marks entities active in the last couple of sentences; only
    those make it into the image prompt.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str = ""
    is_present: bool = Field(
        default=False, validation_alias=AliasChoices("is_present", "isPresent")
    )


class SceneEntities(BaseModel):
    """All characters and locations identified so far."""

    characters: List[SceneEntity] = Field(default_factory=list)
    locations: List[SceneEntity] = Field(default_factory=list)

    def present(self) -> "SceneEntities":
        return SceneEntities(
            characters=[c for c in self.characters if c.is_present],
            locations=[loc for loc in self.locations if loc.is_present],
        )

    @property
    def is_empty(self) -> bool:
        return not self.characters and not self.locations
