from __future__ import annotations
import json
import logging
import time
from typing import Any, List

import markdown
import nh3

from .schemas import QuizQuestion, StudyPlan

logger = logging.getLogger(__name__)


class ExtractionError(Exception):
    """Model text could not be turned into a structured record."""

    kind = "extraction_error"


class NoJsonFound(ExtractionError):
    kind = "no_json_found"


class MalformedJson(ExtractionError):
    kind = "malformed_json"


def extract_json_span(text: str) -> Any:
    """
    Parse the JSON payload embedded in an LLM response.

    The payload is taken greedily from the first ``{`` to the last ``}``
    of the whole text, so prose, markdown fences or commentary around a
    single object are tolerated. A response carrying two separate
    top-level objects yields an unparsable slice and is rejected.

    Args:
        text: Raw text response from the model

    Returns:
        The decoded JSON value

    Raises:
        NoJsonFound: The text has no ``{`` at all
        MalformedJson: The region is not valid JSON, including an object
            that opens but never closes
    """
    first = text.find("{")
    if first == -1:
        raise NoJsonFound("Model response did not contain a JSON object.")
    last = text.rfind("}")
    # an opening brace with no closing one after it is a truncated object
    candidate = text[first : last + 1] if last > first else text[first:]
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise MalformedJson(f"Model response JSON could not be parsed: {exc.msg}") from exc


def _new_plan_id() -> str:
    return f"sp-{time.time_ns() // 1_000_000}"


def _object_list(value: Any, what: str) -> List[dict]:
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise MalformedJson(f"{what} is not an array of objects.")
    return value


def extract_study_plan(text: str, subject: str, exam_date: str) -> StudyPlan:
    """
    Build a StudyPlan from a study-plan generation.

    ``subject`` and ``exam_date`` come from the original request and always
    override whatever the model echoed back. Topics are kept exactly as
    parsed; only their shape (an array of objects) is checked here.
    """
    data = extract_json_span(text)
    if not isinstance(data, dict):
        raise MalformedJson("Study plan payload is not a JSON object.")
    topics = _object_list(data.get("topics", []), "Study plan topics")
    plan = StudyPlan.model_validate({**data, "id": _new_plan_id(), "subject": subject, "examDate": exam_date, "topics": topics})
    logger.debug("Extracted study plan %s with %d topics", plan.id, len(plan.topics))
    return plan


def extract_quiz(text: str) -> List[QuizQuestion]:
    """Return the ``questions`` array of a quiz generation, untouched."""
    data = extract_json_span(text)
    questions = data.get("questions") if isinstance(data, dict) else None
    return _object_list(questions, "Quiz questions")


def render_markdown(text: str) -> str:
    # Script tags and inline handlers are stripped by nh3 after conversion
    html = markdown.markdown(text, extensions=["extra", "sane_lists"])
    return nh3.clean(html)
