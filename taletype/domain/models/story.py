"""Story domain models.

Core Models:
    - StorySegment: One finished, immutable unit of typed story
    - BlankContext: Transient split of a segment around its single blank

History is the ordered list of StorySegment values for the current
play-through. It is append-only and cleared only on restart.
"""

from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class StorySegment(BaseModel):
    """A finished story segment.

    Attributes:
        - target_text: Final prompt, including the resolved blank word if any
        - typed_text: What the player actually typed (may contain typos)
        - filled_word: Word supplied for the blank, None if there was no blank
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    target_text: str
    typed_text: str
    filled_word: Optional[str] = None

    @property
    def had_typos(self) -> bool:
        """True when the typed text differs from the prompt."""
        return self.typed_text != self.target_text


class BlankContext(BaseModel):
    """Open fill-in-the-blank state for the current segment.

    Exists only while the segment's original text contains a blank marker
    that has not yet been resolved.
    """

    start: int = Field(ge=0, description="Offset of the marker in the original text")
    text_before: str
    text_after: str
