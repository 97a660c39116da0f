import json
import re
from typing import Any, Dict, Optional

from signdesk.utils.logging import get_logger

LOGGER = get_logger(__name__)

_LEADING_FENCE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"\s*```$")


def strip_code_fences(text: str) -> str:
    """Remove a leading ```/```json marker and a trailing ``` marker.

    Models are told not to use markdown, but sometimes do anyway.
    """
    cleaned_text = text.strip()
    cleaned_text = _LEADING_FENCE.sub("", cleaned_text)
    cleaned_text = _TRAILING_FENCE.sub("", cleaned_text)
    return cleaned_text.strip()


def extract_json_object(text: str) -> Optional[str]:
    """Return the substring from the first ``{`` to the last ``}``.

    Greedy: commentary before and after the object is tolerated, but text
    holding several separate objects is mis-extracted.

    Returns:
        The candidate JSON text, or None when there is no brace pair
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        return None
    return text[start:end + 1]


def parse_json_object(text: str) -> Dict[str, Any]:
    """Parse a single JSON object out of free-form model output.

    Raises:
        ValueError: If no object can be located or the top level is not an object
        json.JSONDecodeError: If the located text is not valid JSON
    """
    if not text:
        raise ValueError("Empty response text")

    candidate = extract_json_object(strip_code_fences(text))
    if candidate is None:
        raise ValueError("No JSON object found in response")

    parsed = json.loads(candidate)
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
