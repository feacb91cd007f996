# app/services/normalizer.py
import json
import logging
import re
from typing import Any, Dict

from app.exceptions import ParseFailure
from app.models.plant_record import PlantRecord

logger = logging.getLogger(__name__)

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


def extract_json_payload(text: str) -> str:
    """
    Cut the candidate JSON object out of a model reply.

    Code fences are removed, then everything from the first "{" to the last "}"
    is taken. This is a greedy span, not a JSON-aware scan: braces in prose
    around the object end up inside the candidate.
    """
    cleaned = CODE_FENCE_PATTERN.sub("", text or "").strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end < start:
        raise ParseFailure("No JSON object found in AI response", raw_text=text or "")
    return cleaned[start:end + 1]


def parse_model_response(text: str) -> Dict[str, Any]:
    """Parse the JSON object embedded in a model reply."""
    try:
        payload = extract_json_payload(text)
        parsed = json.loads(payload)
    except ParseFailure as e:
        logger.error(f"Parsing error: {e.details}")
        logger.error(f"Original response: {text!r}")
        raise
    except json.JSONDecodeError as e:
        logger.error(f"Parsing error: {e}")
        logger.error(f"Original response: {text!r}")
        raise ParseFailure("Failed to parse AI response", raw_text=text) from e

    if not isinstance(parsed, dict):
        raise ParseFailure("AI response is not a JSON object", raw_text=text)
    return parsed


def normalize_model_response(text: str) -> PlantRecord:
    """Turn a raw model reply into a PlantRecord with every field present."""
    return PlantRecord.model_validate(parse_model_response(text))
