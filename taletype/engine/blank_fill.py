"""Fill-in-the-blank resolution.

A segment may contain one blank marker (default "___"). While the blank is
open the player types a word of their choice in its place; the target text
grows with what they type, so nothing typed inside the blank counts as a
mistake. The blank resolves when the word is terminated:

- by a space: the trimmed word is spliced in. If the text after the blank
  starts with punctuation the space is swallowed so the player types the
  punctuation next; otherwise one space is kept.
- by the character that follows the blank (usually punctuation): everything
  before it is the word and the typed character stays. A terminator with
  nothing before it leaves the blank open and is scored against the marker.

Only the first marker counts; any later marker is literal text.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from taletype.domain.models.story import BlankContext

log = structlog.get_logger(__name__)

PUNCTUATION = ".,!?;:"


@dataclass(frozen=True)
class BlankResolution:
    """Effective target/typed pair for one keystroke.

    Attributes:
        target: Effective target text
        typed: Effective typed value
        filled_word: Set when this keystroke resolved the blank
        blank: The still-open blank, None once resolved
    """

    target: str
    typed: str
    filled_word: Optional[str] = None
    blank: Optional[BlankContext] = None

    @property
    def resolved(self) -> bool:
        return self.filled_word is not None


class BlankFillResolver:
    """Finds and resolves the blank in a segment."""

    def __init__(self, marker: str = "___"):
        self.marker = marker

    def open(self, text: str) -> Optional[BlankContext]:
        """Return the blank context for text, or None if it has no marker."""
        start = text.find(self.marker)
        if start == -1:
            return None
        return BlankContext(
            start=start,
            text_before=text[:start],
            text_after=text[start + len(self.marker) :],
        )

    def apply(
        self, blank: BlankContext, current_target: str, candidate: str
    ) -> BlankResolution:
        """Resolve or extend the blank for a candidate input value.

        Args:
            blank: Open blank context
            current_target: Target text before this keystroke
            candidate: New input value

        Returns:
            BlankResolution with the effective target and typed value
        """
        if len(candidate) <= blank.start:
            return BlankResolution(target=current_target, typed=candidate, blank=blank)

        tail = candidate[blank.start :]
        before, after = blank.text_before, blank.text_after

        # A word cannot start with whitespace; the space is matched as typed.
        if tail[0].isspace():
            return BlankResolution(target=current_target, typed=candidate, blank=blank)

        if tail.endswith(" ") and tail.strip():
            word = tail.strip()
            separator = "" if after and after[0] in PUNCTUATION else " "
            log.info("blank_resolved", word=word, terminator="space")
            return BlankResolution(
                target=before + word + after,
                typed=before + word + separator,
                filled_word=word,
            )

        if " " not in tail and after and tail.endswith(after[0]):
            word = tail[:-1]
            if not word:
                # Terminator with no word: scored against the marker as typed.
                return BlankResolution(
                    target=current_target, typed=candidate, blank=blank
                )
            log.info("blank_resolved", word=word, terminator=after[0])
            return BlankResolution(
                target=before + word + after,
                typed=candidate,
                filled_word=word,
            )

        if " " not in tail:
            return BlankResolution(
                target=before + tail + after, typed=candidate, blank=blank
            )

        return BlankResolution(target=current_target, typed=candidate, blank=blank)
