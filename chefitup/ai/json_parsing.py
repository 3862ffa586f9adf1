"""
Parsing of LLM text into validated objects.

Models often wrap JSON in markdown fences even when told not to, so fences
are stripped before json.loads. Nothing here raises: every failure becomes a
ParseError.
"""

import json
import logging
import re
from typing import Type, Union

from pydantic import BaseModel, TypeAdapter, ValidationError

from .results import Ok, ParseError

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```[\w-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")


def strip_code_fences(text: str) -> str:
    """
    Remove a leading markdown fence (optionally tagged, e.g. ```json) and a
    trailing fence.

    Text without a leading fence is only trimmed.
    """
    cleaned = (text or "").strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN.sub("", cleaned, count=1)
        cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)
    return cleaned.strip()


def parse_json_response(text: str, schema: Union[Type[BaseModel], TypeAdapter]) -> Union[Ok, ParseError]:
    """
    Parse and validate LLM output.

    Args:
        text: Raw LLM response text
        schema: Pydantic model class or TypeAdapter to validate against

    Returns:
        Ok with the validated value, or ParseError describing what went wrong
    """
    cleaned = strip_code_fences(text)
    if not cleaned:
        return ParseError("LLM returned an empty response", raw=text or "")

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse LLM response as JSON: {e}")
        logger.debug(f"Raw response: {text[:500]}")
        return ParseError(f"Invalid JSON: {e}", raw=text)

    try:
        if isinstance(schema, TypeAdapter):
            value = schema.validate_python(data)
        else:
            value = schema.model_validate(data)
    except ValidationError as e:
        logger.warning(f"LLM response failed validation: {e.error_count()} error(s)")
        return ParseError(f"Response did not match schema: {e}", raw=text)

    return Ok(value)
