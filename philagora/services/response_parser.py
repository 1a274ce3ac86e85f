"""
Response Parser Module

Turns raw model output into JSON. Models are asked for bare JSON but often
wrap it in markdown fences or emit small syntax slips, so parsing is a
two-step affair: try as-is, then try once more after a light repair.

This module knows nothing about content types; shape checks live in
generation_service.
"""

import json
import re
from typing import Any

from philagora.utils.exceptions import ResponseParseError
from philagora.utils.logger import get_logger

logger = get_logger(__name__)

_LEADING_FENCE = re.compile(r'^```(?:json)?\s*', re.IGNORECASE)
_TRAILING_FENCE = re.compile(r'```\s*$')

# "a"], ["b" -> "a", "b"
_SPLIT_ARRAY = re.compile(r'"\s*\]\s*,\s*\[\s*"')
# {"a": 1,} -> {"a": 1}
_TRAILING_COMMA = re.compile(r',\s*([}\]])')


def strip_code_fences(text: str) -> str:
    """Remove a leading ``` or ```json fence and a trailing ``` fence."""
    cleaned = text.strip()
    cleaned = _LEADING_FENCE.sub('', cleaned)
    cleaned = _TRAILING_FENCE.sub('', cleaned)
    return cleaned.strip()


def repair_json(text: str) -> str:
    """
    Fix the two malformations models produce most often.

    1. An array split into two, e.g. ["a"], ["b"], is rejoined into ["a", "b"].
    2. A trailing comma before a closing brace or bracket is dropped.

    Args:
        text: JSON-ish text, already stripped of code fences.

    Returns:
        str: The repaired text. It may still be invalid JSON.
    """
    repaired = _SPLIT_ARRAY.sub('", "', text)
    repaired = _TRAILING_COMMA.sub(r'\1', repaired)
    return repaired


def parse_json_response(raw_text: str) -> Any:
    """
    Parse model output as JSON, repairing it once if needed.

    Args:
        raw_text: Text exactly as returned by the model.

    Returns:
        The decoded JSON value.

    Raises:
        ResponseParseError: If the text is not valid JSON even after repair.
            The original text is kept on the exception.
    """
    if raw_text is None:
        raise ResponseParseError("Model returned no text", raw_output="")

    cleaned = strip_code_fences(raw_text)

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    repaired = repair_json(cleaned)
    try:
        result = json.loads(repaired)
        logger.debug("Model output parsed after JSON repair")
        return result
    except json.JSONDecodeError as e:
        logger.warning(f"Could not parse model output as JSON: {e}")
        raise ResponseParseError(f"Failed to parse model output as JSON: {e}", raw_output=raw_text) from e
