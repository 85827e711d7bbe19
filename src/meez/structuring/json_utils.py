"""Helpers for reading JSON out of model responses."""

import json
import re

_FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?```\s*$", re.DOTALL)


def strip_markdown_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` block, if present."""
    stripped = text.strip()
    match = _FENCE_RE.match(stripped)
    return match.group(1).strip() if match else stripped


def parse_json_object(text: str) -> dict:
    """
    Parse a JSON object from model output.

    Tries the fence-stripped text first, then the span from the first
    ``{`` to the last ``}`` (models sometimes add a sentence around it).

    Raises:
        ValueError: no JSON object could be parsed
    """
    cleaned = strip_markdown_fences(text)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as first_error:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise ValueError(f"No JSON object in response: {first_error}") from first_error
        try:
            parsed = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in response: {e}") from e

    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
