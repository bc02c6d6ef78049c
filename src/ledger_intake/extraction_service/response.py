"""
Pure parsing of extraction-service replies.

The service is asked for a single JSON object, but models wrap it in
markdown fences, return prose, or return nothing. None of that is an error
at this layer: the caller gets ParseFailure and builds a low-confidence
record from it.
"""

import json
import logging
from typing import Union

from ..normalizer import fields_from_response
from ..schemas import ExtractedFields, ParseFailure

logger = logging.getLogger(__name__)


def strip_code_fences(content: str) -> str:
    """Remove a surrounding ```json ... ``` (or bare ```) block."""
    content = content.strip()
    if content.startswith("```json"):
        content = content[7:]
    elif content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


def parse_extraction_response(raw: str) -> Union[ExtractedFields, ParseFailure]:
    """
    Parse a raw reply into typed fields.

    Args:
        raw: Reply text exactly as the service returned it

    Returns:
        ExtractedFields when the reply is a JSON object, ParseFailure otherwise
    """
    try:
        if not raw or not raw.strip():
            return ParseFailure(reason="Empty response", response_text=raw or "")

        data = json.loads(strip_code_fences(raw))
        if not isinstance(data, dict):
            return ParseFailure(
                reason=f"Expected a JSON object, got {type(data).__name__}",
                response_text=raw,
            )
        return fields_from_response(data)

    except Exception as e:
        # Anything the model sends back must degrade, never propagate
        logger.warning("Failed to parse extraction response: %s", e)
        return ParseFailure(reason=str(e) or type(e).__name__, response_text=raw or "")
