"""
Recover a JSON object from free-form model output.

Tiers, in order:
1. parse the text as-is
2. strip markdown code fences and parse the fenced body
3. take the first balanced ``{...}`` block (string-aware brace counting)
4. greedy ``{...}`` regex as the last resort

Reasoning blocks (``<think>...</think>``) are removed before any tier runs.
"""
import json
import re
from typing import Any, Dict, Optional

from appforge.core.exceptions import JSONExtractionError

THINK_PATTERN = re.compile(r"<think(?:ing)?>[\s\S]*?</think(?:ing)?>", re.IGNORECASE)
FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)```")
GREEDY_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


def strip_reasoning(text: str) -> str:
    return THINK_PATTERN.sub("", text).strip()


def _loads_object(candidate: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def find_balanced_object(text: str, start: int = 0) -> Optional[str]:
    """
    Return the first complete ``{...}`` block at or after ``start``.

    Braces inside JSON string literals are ignored.
    """
    begin = text.find("{", start)
    if begin == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(begin, len(text)):
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
                return text[begin:index + 1]
    return None


def _brace_counts(text: str) -> str:
    return f"{text.count('{')} opening vs {text.count('}')} closing braces"


def extract_json(text: Optional[str]) -> Dict[str, Any]:
    """
    Extract the JSON object embedded in ``text``.

    Raises:
        JSONExtractionError: when every tier fails
    """
    if not text or not text.strip():
        raise JSONExtractionError("Empty response", raw_content=text or "")

    cleaned = strip_reasoning(text)

    # Tier 1: as-is
    parsed = _loads_object(cleaned)
    if parsed is not None:
        return parsed

    # Tier 2: fenced block
    for match in FENCE_PATTERN.finditer(cleaned):
        parsed = _loads_object(match.group(1).strip())
        if parsed is not None:
            return parsed

    # Tier 3: first balanced object
    position = 0
    while True:
        block = find_balanced_object(cleaned, position)
        if block is None:
            break
        parsed = _loads_object(block)
        if parsed is not None:
            return parsed
        position = cleaned.find("{", position) + 1

    # Tier 4: greedy regex
    match = GREEDY_OBJECT_PATTERN.search(cleaned)
    if match:
        parsed = _loads_object(match.group(0))
        if parsed is not None:
            return parsed

    if "{" not in cleaned:
        raise JSONExtractionError("No JSON object found in response", raw_content=text)
    if cleaned.count("{") > cleaned.count("}"):
        raise JSONExtractionError(
            f"Response appears truncated ({_brace_counts(cleaned)})", raw_content=text
        )
    raise JSONExtractionError("Invalid JSON structure in response", raw_content=text)
