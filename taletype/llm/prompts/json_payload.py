"""Helpers for decoding JSON payloads returned by the LLM."""

import json
from typing import Any, Dict

from taletype.core.exceptions import LLMResponseParseError


def strip_markdown_fences(text: str) -> str:
    """Strip markdown code fences from LLM response."""
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def parse_json_object(response_text: str) -> Dict[str, Any]:
    """
    Decode an LLM response that should be a single JSON object.

    Args:
        response_text: Raw LLM response

    Returns:
        Parsed dict

    Raises:
        LLMResponseParseError: If the text is not a JSON object
    """
    text = strip_markdown_fences(response_text)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise LLMResponseParseError(f"Invalid JSON in LLM response: {e}") from e

    if not isinstance(data, dict):
        raise LLMResponseParseError(
            f"LLM response must be a JSON object, got {type(data).__name__}"
        )
    return data
