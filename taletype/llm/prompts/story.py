"""
Prompts for story segment generation.

Four variants, picked from the finished history:
- Opening: no history yet
- Blank: last segment was flawless, reward with a fill-in-the-blank
- Typos: last segment was typed with mistakes, weave them into the story
- Continue: plain continuation
"""

from typing import Sequence

from taletype.domain.models.story import StorySegment

STORY_SYSTEM_PROMPT = (
    "You are co-writing an interactive story with a player who types every "
    "sentence you produce. Write vivid, concrete prose. Return only the "
    "requested sentence, with no quotes, labels or commentary."
)

SEGMENT_LENGTH = "5-15 words"


def get_story_system_prompt() -> str:
    return STORY_SYSTEM_PROMPT


def get_story_user_prompt(
    history: Sequence[StorySegment],
    wants_blank: bool,
    blank_marker: str = "___",
) -> str:
    """
    Build the user prompt for the next segment.

    Args:
        history: Finished segments, oldest first
        wants_blank: Ask for one noun to be left blank
        blank_marker: Placeholder the model must use for the blank

    Returns:
        User prompt string
    """
    if not history:
        return f"Write the first sentence of a new story ({SEGMENT_LENGTH})."

    full_story = " ".join(segment.typed_text for segment in history)
    last = history[-1]

    if wants_blank:
        return (
            "Continue the following story. For the next sentence, leave one "
            f'important noun blank using "{blank_marker}" as a placeholder. '
            f"Use the placeholder exactly once.\n\n"
            f'Story so far:\n"{full_story}"\n\n'
            f"Generate the next short sentence ({SEGMENT_LENGTH}) with one blank "
            "noun. Return only the sentence."
        )

    if last.had_typos:
        return (
            "Continue the following story. The last sentence was typed by a "
            "user and contains typos. Creatively incorporate the typos into the "
            "story's continuation by interpreting them as meaningful.\n\n"
            f'Story so far:\n"{full_story}"\n\n'
            f'User\'s last sentence (with typos):\n"{last.typed_text}"\n\n'
            f"Generate the next short sentence ({SEGMENT_LENGTH}) of the story. "
            "Return only the sentence."
        )

    return (
        "Continue the following story.\n\n"
        f'Story so far:\n"{full_story}"\n\n'
        f"Generate the next short sentence ({SEGMENT_LENGTH}). "
        "Return only the sentence."
    )


def format_segment(raw_segment: str) -> str:
    """
    Clean up a generated segment.

    Strips whitespace and one pair of wrapping quotes, and collapses
    line breaks so the segment types as a single line.

    Args:
        raw_segment: Raw LLM output

    Returns:
        Cleaned segment text (may be empty)
    """
    segment = raw_segment.strip()

    for quote in ('"', "'", "“"):
        closing = "”" if quote == "“" else quote
        if len(segment) >= 2 and segment.startswith(quote) and segment.endswith(closing):
            segment = segment[1:-1].strip()
            break

    return " ".join(segment.split())
