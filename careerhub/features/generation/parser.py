"""
careerhub/features/generation/parser.py

Turn raw model output into a typed result.

Structural checks only: fences stripped, JSON decoded, required fields present
and non-empty, then coerced into the feature's result model. The content
itself is never judged.
"""

import json
import re
from typing import Any, Dict, Iterable, Tuple

from pydantic import BaseModel, ValidationError as PydanticValidationError

from careerhub.core.errors import IncompleteResponseError, MalformedResponseError
from careerhub.models.generation import RESULT_MODELS, FeatureKey

# Dotted paths address nested fields ("roadmap.phases").
REQUIRED_FIELDS: Dict[FeatureKey, Tuple[str, ...]] = {
    FeatureKey.ROADMAP: ("personality_summary", "roadmap.phases"),
    FeatureKey.CAREER_SUGGESTIONS: ("alternative_careers",),
    FeatureKey.INTERVIEW_FEEDBACK: (
        "overall_impression",
        "readiness_level",
        "top_strengths",
        "areas_for_improvement",
        "improvement_plan",
        "next_steps",
    ),
    FeatureKey.PRACTICE_QUESTIONS: ("questions",),
    FeatureKey.ACADEMIC_PLAN: ("study_focus", "assignments", "quizzes", "schedule"),
}

_FENCE_RE = re.compile(r"^```[a-zA-Z]*[ \t]*\r?\n?(.*?)\r?\n?```$", re.DOTALL)

_MISSING = object()


def strip_code_fences(raw_text: str) -> str:
    """Remove a surrounding ```json ... ``` (or bare ```) wrapper, if any."""
    text = (raw_text or "").strip()
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text


def _lookup(data: Dict[str, Any], path: str) -> Any:
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _is_empty(value: Any) -> bool:
    if value is None or value is _MISSING:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def parse_and_validate(raw_text: str, required_fields: Iterable[str]) -> Dict[str, Any]:
    """
    Decode model output and check required fields.

    Raises:
        MalformedResponseError: not JSON, or JSON that is not an object
        IncompleteResponseError: a required field is missing or empty
    """
    text = strip_code_fences(raw_text)
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise MalformedResponseError(f"Model output is not valid JSON: {e}")

    if not isinstance(data, dict):
        raise MalformedResponseError(f"Model output must be a JSON object, got {type(data).__name__}")

    for path in required_fields:
        value = _lookup(data, path)
        if value is _MISSING:
            raise IncompleteResponseError(f"Required field '{path}' is missing", field=path)
        if _is_empty(value):
            raise IncompleteResponseError(f"Required field '{path}' is empty", field=path)

    return data


def parse_result(feature_key: FeatureKey, raw_text: str) -> BaseModel:
    """Parse, check required fields and coerce into the feature's result model."""
    feature = FeatureKey.parse(feature_key)
    data = parse_and_validate(raw_text, REQUIRED_FIELDS[feature])
    data["feature_key"] = feature.value
    try:
        return RESULT_MODELS[feature].model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        path = ".".join(str(part) for part in first.get("loc", ()))
        raise IncompleteResponseError(
            f"Model output does not match the {feature.value} schema at '{path}': {first.get('msg')}",
            field=path or None,
        )


def render_result(result: BaseModel) -> str:
    """Serialize a result the way the provider is asked to return it."""
    return json.dumps(result.model_dump(mode="json", exclude={"feature_key"}), ensure_ascii=False)
