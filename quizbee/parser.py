# quizbee/parser.py
import json
import logging
import re
from typing import Any, List

from pydantic import ValidationError

from quizbee.errors import ParseFailure, ShapeFailure
from quizbee.schemas import Question

logger = logging.getLogger(__name__)

JSON_FENCE_RE = re.compile(r"```json\s*([\s\S]*?)```", re.IGNORECASE)


def parse_model_json(text: str) -> Any:
    """
    Parse model output as JSON: the whole text first, then the first ```json fenced block.
    Raises ParseFailure when neither works.
    """
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        pass

    match = JSON_FENCE_RE.search(text or "")
    if match is None:
        raise ParseFailure("Model output is not JSON and has no ```json block")
    try:
        return json.loads(match.group(1))
    except json.JSONDecodeError as json_err:
        logger.debug("Fenced block did not decode: %s", match.group(1))
        raise ParseFailure(f"Invalid JSON inside ```json block: {json_err}") from json_err


def coerce_questions(items: List[Any]) -> List[Question]:
    """Validate raw items into Questions, dropping the structurally invalid ones."""
    questions: List[Question] = []
    for position, item in enumerate(items):
        try:
            questions.append(Question.model_validate(item))
        except ValidationError:
            logger.warning("Dropping malformed question at position %d: %r", position, item)
    return questions


def parse_question_array(text: str) -> List[Question]:
    parsed = parse_model_json(text)
    if not isinstance(parsed, list):
        raise ShapeFailure(parsed)
    return coerce_questions(parsed)
