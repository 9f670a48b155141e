"""Structural validation of model output."""

import json

import pytest

from careerhub.core.errors import GenerationError, IncompleteResponseError, MalformedResponseError
from careerhub.features.generation.fallbacks import generate_fallback
from careerhub.features.generation.postprocess import finalize_result
from careerhub.features.generation.parser import (
    REQUIRED_FIELDS,
    parse_and_validate,
    parse_result,
    render_result,
    strip_code_fences,
)
from careerhub.models.generation import INPUT_MODELS, FeatureKey, RoadmapResult


def test_strip_code_fences_removes_json_fence():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'


def test_strip_code_fences_removes_bare_fence_and_whitespace():
    assert strip_code_fences('  ```\n{"a": 1}\n```  ') == '{"a": 1}'


def test_strip_code_fences_leaves_plain_text():
    assert strip_code_fences('{"a": 1}') == '{"a": 1}'


def test_fenced_json_parses_like_plain_json():
    plain = parse_and_validate('{"personality_summary": "x", "roadmap": {"phases": [1]}}', REQUIRED_FIELDS[FeatureKey.ROADMAP])
    fenced = parse_and_validate(
        '```json\n{"personality_summary": "x", "roadmap": {"phases": [1]}}\n```',
        REQUIRED_FIELDS[FeatureKey.ROADMAP],
    )
    assert plain == fenced


def test_non_json_is_malformed():
    with pytest.raises(MalformedResponseError):
        parse_and_validate("Sure! Here is your roadmap.", ["personality_summary"])


def test_json_array_is_malformed():
    with pytest.raises(MalformedResponseError) as exc:
        parse_and_validate("[1, 2, 3]", [])
    assert "list" in exc.value.message


def test_missing_required_field_is_incomplete():
    with pytest.raises(IncompleteResponseError) as exc:
        parse_and_validate('{"roadmap": {"phases": [1]}}', ["personality_summary", "roadmap.phases"])
    assert exc.value.field == "personality_summary"


def test_empty_nested_list_is_incomplete():
    raw = '```json\n{"personality_summary": "Curious", "roadmap": {"phases": []}}\n```'
    with pytest.raises(IncompleteResponseError) as exc:
        parse_and_validate(raw, REQUIRED_FIELDS[FeatureKey.ROADMAP])
    assert exc.value.field == "roadmap.phases"
    assert "empty" in exc.value.message


@pytest.mark.parametrize("value", ["", "   ", None, {}, []])
def test_blank_values_count_as_missing(value):
    raw = json.dumps({"overall_impression": value})
    with pytest.raises(IncompleteResponseError):
        parse_and_validate(raw, ["overall_impression"])


def test_zero_and_false_are_present():
    data = parse_and_validate('{"a": 0, "b": false}', ["a", "b"])
    assert data == {"a": 0, "b": False}


def test_parse_errors_are_generation_errors():
    assert issubclass(MalformedResponseError, GenerationError)
    assert issubclass(IncompleteResponseError, GenerationError)


def test_parse_result_returns_typed_variant(inputs):
    payload = INPUT_MODELS[FeatureKey.ROADMAP].model_validate(inputs["roadmap"])
    raw = render_result(generate_fallback(FeatureKey.ROADMAP, payload))

    result = parse_result("roadmap", raw)

    assert isinstance(result, RoadmapResult)
    assert result.feature_key == "roadmap"
    assert len(result.roadmap.phases) == 4


def test_parse_result_shape_mismatch_names_field():
    raw = json.dumps({
        "personality_summary": "Curious",
        "roadmap": {"phases": [{"timeline": "0-6 months"}]},
    })
    with pytest.raises(IncompleteResponseError) as exc:
        parse_result(FeatureKey.ROADMAP, raw)
    assert exc.value.field == "roadmap.phases.0.title"


@pytest.mark.parametrize("feature", list(FeatureKey))
def test_every_feature_has_required_fields(feature):
    assert REQUIRED_FIELDS[feature]


@pytest.mark.parametrize("feature", list(FeatureKey))
def test_fenced_rendering_parses_back_to_equal_result(feature, inputs):
    payload = INPUT_MODELS[feature].model_validate(inputs[feature.value])
    result = finalize_result(feature, generate_fallback(feature, payload), payload)

    parsed = parse_result(feature, "```json\n" + render_result(result) + "\n```")

    assert parsed == result
