"""
Robust JSON parsing for model replies.

Models wrap JSON in prose, code fences and smart quotes; these strategies
recover the payload in increasing order of invasiveness.
"""

import json
import re
from typing import Any

from genui.errors import JSONParseError


def parse_json_robust(text: str) -> Any:
    """
    Parse JSON with multiple repair strategies.

    Args:
        text: Raw text that should contain JSON

    Returns:
        Parsed JSON value

    Raises:
        JSONParseError: If all parsing attempts fail
    """
    if not text or not text.strip():
        raise JSONParseError("Model returned empty content")

    # Strategy 1: Direct parse
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # Strategy 2: Extract JSON from markdown code blocks
    repaired = extract_json_block(text)
    try:
        return json.loads(repaired)
    except json.JSONDecodeError:
        pass

    # Strategy 3: Find JSON object boundaries
    repaired = extract_json_boundaries(repaired)
    try:
        return json.loads(repaired)
    except json.JSONDecodeError:
        pass

    # Strategy 4: Repair common issues
    repaired = repair_json(repaired)
    try:
        return json.loads(repaired)
    except json.JSONDecodeError as e:
        raise JSONParseError(
            f"Failed to parse JSON from model response. Error: {e}\n"
            f"Response preview: {text[:500]}..."
        ) from e


def extract_json_block(text: str) -> str:
    """Extract JSON from markdown code blocks."""
    matches = re.findall(r"```(?:json)?\s*\n?(.*?)\n?```", text, re.DOTALL)
    if matches:
        return matches[0].strip()
    return text


def extract_json_boundaries(text: str) -> str:
    """Extract content between the first opening and last closing brace or bracket."""
    for open_char, close_char in (("{", "}"), ("[", "]")):
        first = text.find(open_char)
        last = text.rfind(close_char)
        if first != -1 and last > first:
            return text[first:last + 1]
    return text


def repair_json(text: str) -> str:
    """Apply common JSON repairs."""
    repaired = text

    # Smart quotes
    repaired = repaired.replace("“", '"').replace("”", '"')
    repaired = repaired.replace("‘", "'").replace("’", "'")

    # Trailing commas before } or ]
    repaired = re.sub(r",\s*([}\]])", r"\1", repaired)

    # Control characters except \n, \r, \t
    repaired = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f]", "", repaired)

    # Python literals some models emit
    repaired = re.sub(r"\bNone\b", "null", repaired)
    repaired = re.sub(r"\bTrue\b", "true", repaired)
    repaired = re.sub(r"\bFalse\b", "false", repaired)

    return repaired
