"""
JSON Extraction
===============

Models are asked for JSON and mostly send it - wrapped in ```json fences,
preceded by a sentence of prose, or followed by a note. This module digs
the first JSON object out of that text.

    >>> extract_json_object('Sure!\\n```json\\n{"flag": "no_change"}\\n```')
    {'flag': 'no_change'}
"""

import json
import re
from typing import Any, Optional

_OPENING_FENCE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?")
_CLOSING_FENCE = re.compile(r"\n?\s*```\s*$")


def strip_code_fences(text: str) -> str:
    """Remove a leading ``` / ```json fence and a trailing ``` fence."""
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = _OPENING_FENCE.sub("", stripped, count=1)
        stripped = _CLOSING_FENCE.sub("", stripped, count=1)
    return stripped.strip()


def find_balanced_object(text: str) -> Optional[str]:
    """
    Return the first balanced {...} substring, or None.

    Braces inside string literals don't count, and backslash escapes inside
    strings are honoured.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def extract_json_object(text: Optional[str]) -> Optional[dict[str, Any]]:
    """
    Strip fences, locate the first balanced object and parse it.

    Returns:
        The parsed dict, or None if there's no object or it isn't valid JSON
    """
    if not text:
        return None
    candidate = find_balanced_object(strip_code_fences(text))
    if candidate is None:
        return None
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None
