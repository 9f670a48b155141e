"""
End-to-end generation scenarios against a fake provider endpoint.

Covers the gate, the AI commit path, every fallback trigger, the debit race
and storage failure rollback.
"""

import json
from datetime import date
from unittest.mock import patch

import httpx
import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from careerhub.core.database import entitlements, get_db_session
from careerhub.core.errors import InsufficientCreditsError, PersistenceError
from careerhub.core.metrics import (
    entitlement_rejections_total,
    fallback_served_total,
    generation_in_flight,
    generation_requests_total,
    provider_tokens_total,
)
from careerhub.features.artifacts.service import get_artifact, list_artifacts
from careerhub.features.credits.service import deduct_credits, get_balance, get_transactions
from careerhub.features.generation.pipeline import GenerationPipeline
from careerhub.models.generation import FeatureKey, GenerationRequest

AI_ROADMAP = {
    "personality_summary": "Analytical and persistent, with a clear pull towards building things.",
    "learning_style": "Kinesthetic learner who retains skills by building projects.",
    "strengths": ["Mathematics", "Logical reasoning", "Self-motivation"],
    "challenges": ["Limited access to mentors"],
    "recommended_path": "employment",
    "recommendation_reasoning": "Dar es Salaam's tech sector is hiring junior developers.",
    "roadmap": {
        "phases": [
            {
                "timeline": "0-6 months",
                "title": "Foundation Phase",
                "milestones": ["Finish an introductory Python course"],
                "estimated_cost_tzs": 250000,
                "resources": ["VETA Dar es Salaam"],
            }
        ],
        "total_estimated_duration": "3 years",
        "total_estimated_cost_tzs": 900000,
    },
}

AI_INTERVIEW = {
    "overall_impression": "Clear and confident answers with room for more specific examples.",
    "readiness_level": "developing",
    "top_strengths": [{"strength": "Composure", "examples": "Question 1", "impact": "Builds trust"}],
    "areas_for_improvement": [
        {"area": "STAR structure", "current_level": "Partial", "target_level": "Consistent", "priority": "high"}
    ],
    "improvement_plan": [
        {"focus_area": "STAR", "action_items": ["Write 3 stories"], "timeframe": "2 weeks", "success_metrics": "All answers structured"}
    ],
    "recommended_resources": [],
    "practice_questions": ["Describe a time you handled a discrepancy."],
    "next_steps": ["Rehearse answers aloud"],
}

PHOTOSYNTHESIS_QUESTION = {
    "question": "Which pigment absorbs light during photosynthesis?",
    "options": ["A) Chlorophyll", "B) Haemoglobin", "C) Keratin", "D) Melanin"],
    "correct_answer": "A) Chlorophyll",
    "explanation": "Chlorophyll in chloroplasts absorbs light energy.",
    "source_reference": "Paragraph 1",
}


def _practice_set(size: int) -> dict:
    return {
        "questions": [
            {**PHOTOSYNTHESIS_QUESTION, "source_reference": f"Paragraph {i + 1}"} for i in range(size)
        ]
    }


AI_PRACTICE = _practice_set(3)

AI_ACADEMIC = {
    "study_focus": {"summary": "Focus on algebra first.", "weekly_tips": ["Practise daily"], "priority_subject": "Mathematics"},
    "assignments": [
        {"title": "Algebra drill", "subject": "Mathematics", "description": "Exercise 3.2", "priority": "high", "days_until_due": 2}
    ],
    "quizzes": [
        {
            "title": "Moles quiz",
            "subject": "Chemistry",
            "questions": [{"question": "What is a mole?", "options": ["6.02e23 particles", "1 gram"], "correct_answer": "6.02e23 particles"}],
        }
    ],
    "schedule": [{"subject": "Mathematics", "title": "Algebra", "day_of_week": 1, "start_time": "16:00", "end_time": "17:30"}],
}


def _request(inputs, feature: str, user_id: str = "u1", **overrides) -> GenerationRequest:
    return GenerationRequest(
        feature_key=feature,
        principal_id=user_id,
        payload={**inputs[FeatureKey.parse(feature).value], **overrides},
    )


def _set_balance(user_id: str, amount: int) -> None:
    get_balance(user_id)
    with get_db_session() as session:
        session.execute(update(entitlements).where(entitlements.c.user_id == user_id).values(credits_available=amount))


def _usage_transactions(user_id: str):
    return [t for t in get_transactions(user_id) if t.transaction_type == "usage"]


def test_zero_credits_rejected_before_provider_call(inputs, make_client, chat_response):
    calls = []
    _set_balance("u1", 0)

    def handler(request):
        calls.append(request)
        return chat_response(AI_ROADMAP)

    with pytest.raises(InsufficientCreditsError) as exc:
        GenerationPipeline(make_client(handler)).run(_request(inputs, "roadmap"))

    assert calls == []
    assert exc.value.details["credits_required"] == 10
    assert exc.value.details["credits_available"] == 0
    assert exc.value.details["deficit"] == 10
    assert entitlement_rejections_total.value({"feature": "roadmap", "stage": "gate"}) == 1
    assert list_artifacts("u1") == []


def test_ai_success_debits_once_and_persists(inputs, make_client, chat_response):
    outcome = GenerationPipeline(make_client(lambda r: chat_response(AI_ROADMAP))).run(_request(inputs, "roadmap"))

    assert outcome.source == "ai"
    assert outcome.is_fallback is False
    assert outcome.result.personality_summary == AI_ROADMAP["personality_summary"]
    assert outcome.new_balance == 20
    assert outcome.tokens_used == 321
    assert get_balance("u1") == 20

    usage = _usage_transactions("u1")
    assert len(usage) == 1
    assert usage[0].amount == -10
    assert usage[0].id == outcome.transaction_id
    assert usage[0].reference_id == outcome.artifact_id
    assert usage[0].reference_table == "generated_artifacts"

    artifact = get_artifact("u1", "roadmap")
    assert artifact.id == outcome.artifact_id
    assert artifact.source == "ai"
    assert artifact.generation_status == "completed"
    assert artifact.tokens_used == 321
    assert artifact.payload["personality_summary"] == AI_ROADMAP["personality_summary"]

    assert generation_requests_total.value({"feature": "roadmap", "source": "ai"}) == 1
    assert provider_tokens_total.value({"feature": "roadmap"}) == 321
    assert generation_in_flight.value({"feature": "roadmap"}) == 0


def test_fenced_output_with_empty_phases_falls_back_without_debit(inputs, make_client, chat_response):
    broken = dict(AI_ROADMAP, roadmap={"phases": []})
    content = "```json\n" + json.dumps(broken) + "\n```"

    outcome = GenerationPipeline(make_client(lambda r: chat_response(content))).run(_request(inputs, "roadmap"))

    assert outcome.is_fallback is True
    assert outcome.source == "fallback"
    assert outcome.fallback_reason == "incomplete_response"
    assert outcome.transaction_id is None
    assert len(outcome.result.roadmap.phases) == 4
    assert get_balance("u1") == 30
    assert _usage_transactions("u1") == []

    artifact = get_artifact("u1", "roadmap")
    assert artifact.source == "fallback"
    assert artifact.generation_status == "failed"
    assert fallback_served_total.value({"feature": "roadmap", "reason": "incomplete_response"}) == 1


def test_non_json_output_falls_back(inputs, make_client, chat_response):
    outcome = GenerationPipeline(make_client(lambda r: chat_response("Here is your plan!"))).run(
        _request(inputs, "career_suggestions")
    )
    assert outcome.fallback_reason == "malformed_response"
    assert outcome.result.alternative_careers[0].title == "Software Developer"
    assert get_balance("u1") == 30


def test_network_error_then_success_debits_exactly_once(inputs, make_client, chat_response, sleeps):
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) == 1:
            raise httpx.ConnectError("connection reset", request=request)
        return chat_response(AI_ROADMAP)

    outcome = GenerationPipeline(make_client(handler)).run(_request(inputs, "roadmap"))

    assert len(attempts) == 2
    assert sleeps == [1.0]
    assert outcome.source == "ai"
    assert get_balance("u1") == 20
    assert len(_usage_transactions("u1")) == 1


def test_provider_outage_falls_back_after_retries(inputs, make_client, sleeps):
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(503, json={"error": {"message": "over capacity"}})

    outcome = GenerationPipeline(make_client(handler)).run(_request(inputs, "academic_plan"))

    assert len(attempts) == 3
    assert outcome.fallback_reason == "provider_error"
    # Fallback results are enriched like AI results
    assert outcome.result.assignments[0].due_date == date(2026, 3, 5)
    assert get_balance("u1") == 30


def test_missing_api_key_serves_fallback_without_network(inputs, make_client):
    def handler(request):
        raise AssertionError("provider must not be called")

    outcome = GenerationPipeline(make_client(handler, api_key=None)).run(_request(inputs, "interview_feedback"))

    assert outcome.is_fallback is True
    assert outcome.fallback_reason == "provider_error"
    assert outcome.result.score_averages.overall == 76


def test_concurrent_debit_loses_race_at_commit(inputs, make_client, chat_response):
    _set_balance("u1", 10)

    def handler(request):
        # Another request for the same principal commits while this one is in flight
        deduct_credits("u1", "roadmap")
        return chat_response(AI_ROADMAP)

    with pytest.raises(InsufficientCreditsError):
        GenerationPipeline(make_client(handler)).run(_request(inputs, "roadmap"))

    assert get_balance("u1") == 0
    assert len(_usage_transactions("u1")) == 1
    assert get_artifact("u1", "roadmap") is None
    assert entitlement_rejections_total.value({"feature": "roadmap", "stage": "commit"}) == 1
    assert generation_in_flight.value({"feature": "roadmap"}) == 0


def test_storage_failure_rolls_back_debit(inputs, make_client, chat_response):
    failure = OperationalError("INSERT INTO generated_artifacts", {}, Exception("disk I/O error"))

    with patch("careerhub.features.generation.ledger.save_artifact", side_effect=failure):
        with pytest.raises(PersistenceError) as exc:
            GenerationPipeline(make_client(lambda r: chat_response(AI_ROADMAP))).run(_request(inputs, "roadmap"))

    assert exc.value.status_code == 500
    assert get_balance("u1") == 30
    assert _usage_transactions("u1") == []


def test_practice_questions_cache_hit_is_free(inputs, make_client, chat_response):
    calls = []

    def handler(request):
        calls.append(request)
        return chat_response(AI_PRACTICE)

    pipeline = GenerationPipeline(make_client(handler))
    first = pipeline.run(_request(inputs, "practice_questions"))
    second = pipeline.run(_request(inputs, "practice-questions"))

    assert len(calls) == 1
    assert first.cached is False
    assert second.cached is True
    assert second.artifact_id == first.artifact_id
    assert second.result == first.result
    assert get_balance("u1") == 27
    assert len(_usage_transactions("u1")) == 1


def test_practice_questions_cache_keyed_by_settings(inputs, make_client, chat_response):
    calls = []

    def handler(request):
        calls.append(request)
        return chat_response(AI_PRACTICE)

    pipeline = GenerationPipeline(make_client(handler))
    pipeline.run(_request(inputs, "practice_questions"))
    pipeline.run(_request(inputs, "practice_questions", difficulty_level="hard"))

    assert len(calls) == 2
    assert get_balance("u1") == 24


def test_practice_questions_cache_serves_smaller_requests(inputs, make_client, chat_response):
    calls = []

    def handler(request):
        calls.append(request)
        return chat_response(_practice_set(10))

    pipeline = GenerationPipeline(make_client(handler))
    first = pipeline.run(_request(inputs, "practice_questions", count=10))
    second = pipeline.run(_request(inputs, "practice_questions", count=5))

    assert len(calls) == 1
    assert second.cached is True
    assert second.artifact_id == first.artifact_id
    assert second.result.questions == first.result.questions[:5]
    assert get_balance("u1") == 27


def test_practice_questions_short_cached_set_is_regenerated(inputs, make_client, chat_response):
    responses = iter([chat_response(_practice_set(1)), chat_response(_practice_set(10))])
    calls = []

    def handler(request):
        calls.append(request)
        return next(responses)

    pipeline = GenerationPipeline(make_client(handler))
    first = pipeline.run(_request(inputs, "practice_questions", count=10))
    second = pipeline.run(_request(inputs, "practice_questions", count=10))

    assert len(calls) == 2
    assert len(first.result.questions) == 1
    assert second.cached is False
    assert len(second.result.questions) == 10
    assert second.artifact_id == first.artifact_id
    assert get_balance("u1") == 24


def test_fallback_is_not_served_from_cache(inputs, make_client, chat_response):
    responses = iter([chat_response("not json"), chat_response(AI_PRACTICE)])

    pipeline = GenerationPipeline(make_client(lambda r: next(responses)))
    first = pipeline.run(_request(inputs, "practice_questions"))
    second = pipeline.run(_request(inputs, "practice_questions"))

    assert first.is_fallback is True
    assert second.is_fallback is False
    assert second.cached is False
    assert get_balance("u1") == 27


def test_interview_feedback_adds_local_score_averages(inputs, make_client, chat_response):
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return chat_response(AI_INTERVIEW)

    outcome = GenerationPipeline(make_client(handler)).run(_request(inputs, "interview_feedback"))

    assert "response_format" not in bodies[0]
    assert bodies[0]["temperature"] == 0.6
    assert outcome.result.score_averages.model_dump() == {
        "communication": 75,
        "content": 30,
        "structure": 70,
        "overall": 76,
    }
    stored = get_artifact("u1", "interview_feedback", "session:sess-1")
    assert stored.payload["score_averages"]["overall"] == 76


def test_academic_plan_due_dates_from_supplied_today(inputs, make_client, chat_response):
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return chat_response(AI_ACADEMIC)

    outcome = GenerationPipeline(make_client(handler)).run(_request(inputs, "academic_plan"))

    assert bodies[0]["top_p"] == 0.9
    assert bodies[0]["max_tokens"] == 4096
    assert outcome.result.assignments[0].due_date == date(2026, 3, 4)
    assert get_balance("u1") == 22


def test_regenerating_replaces_artifact_in_place(inputs, make_client, chat_response):
    pipeline = GenerationPipeline(make_client(lambda r: chat_response(AI_INTERVIEW)))
    first = pipeline.run(_request(inputs, "interview_feedback"))
    second = pipeline.run(_request(inputs, "interview_feedback"))

    assert first.artifact_id == second.artifact_id
    assert len(list_artifacts("u1", feature_key="interview_feedback")) == 1
    assert get_balance("u1") == 20
