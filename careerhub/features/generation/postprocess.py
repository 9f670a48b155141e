"""Local enrichment applied to every result, AI or fallback.

Values derived here come from the caller's input, never from the model.
"""

from datetime import timedelta

from pydantic import BaseModel

from careerhub.models.generation import (
    AcademicPlanInput,
    AcademicPlanResult,
    FeatureKey,
    InterviewFeedbackInput,
    InterviewFeedbackResult,
    ScoreAverages,
)


def _average(values) -> int:
    values = list(values)
    if not values:
        return 0
    return round(sum(values) / len(values))


def score_averages(data: InterviewFeedbackInput) -> ScoreAverages:
    """Rounded per-dimension averages; a missing sub-score counts as 0."""
    answers = data.responses
    return ScoreAverages(
        communication=_average(a.communication_score or 0 for a in answers),
        content=_average(a.content_score or 0 for a in answers),
        structure=_average(a.structure_score or 0 for a in answers),
        overall=_average(a.score for a in answers),
    )


def _with_score_averages(result: InterviewFeedbackResult, data: InterviewFeedbackInput) -> InterviewFeedbackResult:
    return result.model_copy(update={"score_averages": score_averages(data)})


def _with_due_dates(result: AcademicPlanResult, data: AcademicPlanInput) -> AcademicPlanResult:
    assignments = [
        a.model_copy(update={"due_date": data.today + timedelta(days=a.days_until_due)})
        for a in result.assignments
    ]
    return result.model_copy(update={"assignments": assignments})


def finalize_result(feature_key: FeatureKey, result: BaseModel, payload) -> BaseModel:
    feature = FeatureKey.parse(feature_key)
    if feature == FeatureKey.INTERVIEW_FEEDBACK:
        return _with_score_averages(result, payload)
    if feature == FeatureKey.ACADEMIC_PLAN:
        return _with_due_dates(result, payload)
    return result
