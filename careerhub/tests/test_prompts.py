from datetime import date

import pytest

from careerhub.features.generation.prompts import (
    GENERATION_PARAMS,
    JSON_ONLY,
    build_prompt,
    system_prompt,
)
from careerhub.models.generation import INPUT_MODELS, FeatureKey


def _payload(inputs, feature: FeatureKey):
    return INPUT_MODELS[feature].model_validate(inputs[feature.value])


@pytest.mark.parametrize("feature", list(FeatureKey))
def test_prompt_is_deterministic(inputs, feature):
    payload = _payload(inputs, feature)
    assert build_prompt(feature, payload) == build_prompt(feature, payload)


@pytest.mark.parametrize("feature", list(FeatureKey))
def test_prompt_demands_bare_json(inputs, feature):
    assert JSON_ONLY in build_prompt(feature, _payload(inputs, feature))
    assert "JSON" in system_prompt(feature)


def test_roadmap_prompt_embeds_profile_and_local_guidance(inputs):
    prompt = build_prompt(FeatureKey.ROADMAP, _payload(inputs, FeatureKey.ROADMAP))
    assert "Dream Career: Software Engineer" in prompt
    assert "Strongest Subjects: Mathematics, Physics" in prompt
    assert "Focus Level: 7/10" in prompt
    assert "VETA" in prompt
    assert "Tanzanian Shilling" in prompt
    assert '"personality_summary"' in prompt


def test_career_prompt_uses_placeholder_for_missing_assessment(inputs):
    prompt = build_prompt("career-suggestions", _payload(inputs, FeatureKey.CAREER_SUGGESTIONS))
    assert "AI Recommended Path: Not yet assessed" in prompt
    assert "TZS 800,000" in prompt


def test_interview_prompt_lists_every_response(inputs):
    prompt = build_prompt(FeatureKey.INTERVIEW_FEEDBACK, _payload(inputs, FeatureKey.INTERVIEW_FEEDBACK))
    assert "**Question 1:** Tell me about yourself." in prompt
    assert "**Question 2:** Why banking?" in prompt
    assert "Total Questions: 2" in prompt
    assert "STAR method" in prompt
    assert "Foundational knowledge" in prompt


def test_practice_prompt_follows_question_type(inputs):
    data = dict(inputs["practice_questions"])
    mc = build_prompt(FeatureKey.PRACTICE_QUESTIONS, INPUT_MODELS[FeatureKey.PRACTICE_QUESTIONS].model_validate(data))
    data["question_type"] = "essay"
    essay = build_prompt(FeatureKey.PRACTICE_QUESTIONS, INPUT_MODELS[FeatureKey.PRACTICE_QUESTIONS].model_validate(data))

    assert "exactly 4 options" in mc
    assert '"options"' in mc
    assert '"options"' not in essay
    assert "NECTA" in essay
    assert "Generate 3 high-quality questions" in essay


def test_academic_prompt_uses_supplied_date_not_clock(inputs):
    prompt = build_prompt(FeatureKey.ACADEMIC_PLAN, _payload(inputs, FeatureKey.ACADEMIC_PLAN))
    # 2026-03-02 is a Monday; the schedule numbers Sunday as 0
    assert "Today is Monday, March 02, 2026." in prompt
    assert "Today's day of week number is 1" in prompt
    assert "Mathematics (topics: Algebra)" in prompt
    assert "Specific struggles: Running out of time in exams" in prompt


def test_academic_prompt_sunday_is_zero(inputs):
    data = dict(inputs["academic_plan"], today=date(2026, 3, 1))
    prompt = build_prompt(FeatureKey.ACADEMIC_PLAN, INPUT_MODELS[FeatureKey.ACADEMIC_PLAN].model_validate(data))
    assert "Today's day of week number is 0" in prompt


def test_generation_params_per_feature():
    assert GENERATION_PARAMS[FeatureKey.ROADMAP].max_tokens == 4000
    assert GENERATION_PARAMS[FeatureKey.CAREER_SUGGESTIONS].temperature == 0.8
    assert GENERATION_PARAMS[FeatureKey.INTERVIEW_FEEDBACK].json_mode is False
    assert GENERATION_PARAMS[FeatureKey.ACADEMIC_PLAN].top_p == 0.9
