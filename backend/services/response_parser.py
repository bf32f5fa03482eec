"""Turn raw LLM output into validated skill guesses."""

import json
import logging
import re

from pydantic import ValidationError as SchemaError

from models.schemas.extraction import LLMSkillGuess
from services.errors import ParseError

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence if present."""
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()
    return text


def load_json_payload(raw: str):
    """Decode the JSON document inside `raw`.

    Falls back to the outermost {...} block when the model wrapped its
    answer in prose.
    """
    if raw is None or not raw.strip():
        raise ParseError("Empty response from backend", raw_response=raw)

    text = strip_code_fences(raw)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    match = _JSON_OBJECT.search(text)
    if match:
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON in backend response: {e}", raw_response=raw) from e
    raise ParseError("Backend response contains no JSON object", raw_response=raw)


def parse_skill_response(raw: str) -> list[LLMSkillGuess]:
    """Parse `{"skills": [...]}` (or a bare list) into skill guesses.

    Records that fail validation are skipped; a payload of the wrong shape
    raises ParseError.
    """
    payload = load_json_payload(raw)

    if isinstance(payload, dict):
        records = payload.get("skills", [])
    elif isinstance(payload, list):
        records = payload
    else:
        raise ParseError("Unexpected JSON payload type", raw_response=raw)

    if not isinstance(records, list):
        raise ParseError('"skills" is not a list', raw_response=raw)

    guesses: list[LLMSkillGuess] = []
    for record in records:
        if not isinstance(record, dict):
            continue
        try:
            guesses.append(LLMSkillGuess.model_validate(record))
        except SchemaError as e:
            logger.debug("Skipping malformed skill record %r: %s", record, e)
    return guesses
