"""
Structured response extraction for LLM output.

Generators often wrap the JSON they were asked for in prose or code fences.
This module recovers the payload by slicing from the first opening bracket
to the last matching closing bracket and parsing that substring:

1. First '{' .. last '}' -> object
2. First '[' .. last ']' -> array
3. Otherwise MalformedGeneratedOutput with the raw text attached

The object slice is tried first unless the text opens with an array
(the first '[' precedes the first '{'), in which case the order flips so
a serialized ``[{...}]`` comes back as the list rather than its element.

No repair is attempted. A substring that is not valid JSON is a hard
failure so grading logic never receives guessed data; callers regenerate.
"""
from __future__ import annotations

import json
from typing import Any

from loguru import logger

from learncore.core.exceptions import MalformedGeneratedOutput

JSONValue = Any

OBJECT_BRACKETS = ("{", "}")
ARRAY_BRACKETS = ("[", "]")


def _slice_between(text: str, opening: str, closing: str) -> str | None:
    start = text.find(opening)
    end = text.rfind(closing)
    if start == -1 or end == -1 or end < start:
        return None
    return text[start:end + 1]


def _attempt_order(text: str) -> tuple[tuple[str, str], ...]:
    array_start = text.find("[")
    object_start = text.find("{")
    if array_start != -1 and (object_start == -1 or array_start < object_start):
        return ARRAY_BRACKETS, OBJECT_BRACKETS
    return OBJECT_BRACKETS, ARRAY_BRACKETS


def extract_structured(text: str) -> JSONValue:
    """
    Recover one JSON object or array from free-form generated text.

    Args:
        text: Raw generator output

    Returns:
        The parsed JSON value (dict or list)

    Raises:
        MalformedGeneratedOutput: If neither slice parses as JSON
    """
    last_error: json.JSONDecodeError | None = None

    for opening, closing in _attempt_order(text):
        candidate = _slice_between(text, opening, closing)
        if candidate is None:
            continue
        try:
            return json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = e
            logger.debug(f"JSON parse of {opening}...{closing} slice failed: {e}")

    logger.warning(f"Could not recover JSON from generated output ({len(text)} chars)")
    raise MalformedGeneratedOutput(text) from last_error


def extract_object(text: str) -> dict:
    """Like extract_structured, but the payload must be a JSON object."""
    value = extract_structured(text)
    if not isinstance(value, dict):
        raise MalformedGeneratedOutput(text, reason=f"Expected a JSON object, got {type(value).__name__}")
    return value


def extract_list(text: str) -> list:
    """
    Like extract_structured, but the payload must be a list.

    An object whose only list value is the payload (e.g. ``{"questions": [...]}``)
    is unwrapped, matching how quiz generators usually answer.
    """
    value = extract_structured(text)
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        lists = [v for v in value.values() if isinstance(v, list)]
        if len(lists) == 1:
            return lists[0]
    raise MalformedGeneratedOutput(text, reason="Expected a JSON array")
