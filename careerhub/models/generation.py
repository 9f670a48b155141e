"""
careerhub/models/generation.py

Feature keys, per-feature inputs and the per-feature result variants.

Each feature has exactly one input model and one result model. Result models
carry a literal ``feature_key`` tag so ``GenerationResult`` is a discriminated
union rather than an untyped dict.
"""

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FeatureKey(str, Enum):
    ROADMAP = "roadmap"
    CAREER_SUGGESTIONS = "career_suggestions"
    INTERVIEW_FEEDBACK = "interview_feedback"
    PRACTICE_QUESTIONS = "practice_questions"
    ACADEMIC_PLAN = "academic_plan"

    @classmethod
    def parse(cls, value) -> "FeatureKey":
        """Accept enum members, snake_case keys and hyphenated URL slugs."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Unknown feature: {value!r}")
        normalized = value.strip().lower().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown feature: {value!r}")

    @property
    def slug(self) -> str:
        return self.value.replace("_", "-")


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

class _GenerationInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    def cache_key(self) -> str:
        """Artifact slot for this input. One slot per principal and feature by default."""
        return "default"


class RoadmapInput(_GenerationInput):
    education_level: str = Field(min_length=1)
    strongest_subjects: List[str] = Field(default_factory=list)
    industries_of_interest: List[str] = Field(default_factory=list)
    dream_career: str = Field(min_length=1)
    preferred_path: str = "employment"
    focus_level: int = Field(5, ge=0, le=10)
    time_management: int = Field(5, ge=0, le=10)
    study_support: List[str] = Field(default_factory=list)


class CareerSuggestionsInput(_GenerationInput):
    education_level: str = Field(min_length=1)
    strongest_subjects: List[str] = Field(default_factory=list)
    interests: List[str] = Field(default_factory=list)
    dream_career: str = Field(min_length=1)
    preferred_path: str = "employment"
    ai_recommended_path: str = ""


class InterviewAnswer(BaseModel):
    question_text: str = Field(min_length=1)
    question_type: str = "general"
    response_text: str = ""
    score: int = Field(0, ge=0, le=100)
    communication_score: Optional[int] = Field(None, ge=0, le=100)
    content_score: Optional[int] = Field(None, ge=0, le=100)
    structure_score: Optional[int] = Field(None, ge=0, le=100)


class InterviewFeedbackInput(_GenerationInput):
    session_id: Optional[str] = None
    position: str = Field(min_length=1)
    industry: str = Field(min_length=1)
    difficulty: Literal["entry", "intermediate", "senior"] = "entry"
    responses: List[InterviewAnswer] = Field(min_length=1)

    def cache_key(self) -> str:
        return f"session:{self.session_id}" if self.session_id else "default"


class PracticeQuestionsInput(_GenerationInput):
    material_id: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    material_text: str = Field(min_length=1)
    topics: List[str] = Field(default_factory=list)
    key_concepts: List[str] = Field(default_factory=list)
    difficulty_level: Literal["easy", "medium", "hard"] = "medium"
    question_type: Literal["multiple_choice", "short_answer", "essay"] = "multiple_choice"
    count: int = Field(10, ge=1, le=30)

    def cache_key(self) -> str:
        # count is not part of the key; a stored set serves any smaller request
        return f"{self.material_id}:{self.difficulty_level}:{self.question_type}"


class SubjectFocus(BaseModel):
    name: str = Field(min_length=1)
    topics: List[str] = Field(default_factory=list)


class AcademicPlanInput(_GenerationInput):
    education_level: str = Field(min_length=1)
    subjects: List[SubjectFocus] = Field(min_length=1)
    help_types: List[str] = Field(default_factory=list)
    specific_struggles: Optional[str] = None
    # Supplied by the caller so prompt text never depends on the clock
    today: date


GenerationInput = Union[
    RoadmapInput,
    CareerSuggestionsInput,
    InterviewFeedbackInput,
    PracticeQuestionsInput,
    AcademicPlanInput,
]

INPUT_MODELS: Dict[FeatureKey, Type[_GenerationInput]] = {
    FeatureKey.ROADMAP: RoadmapInput,
    FeatureKey.CAREER_SUGGESTIONS: CareerSuggestionsInput,
    FeatureKey.INTERVIEW_FEEDBACK: InterviewFeedbackInput,
    FeatureKey.PRACTICE_QUESTIONS: PracticeQuestionsInput,
    FeatureKey.ACADEMIC_PLAN: AcademicPlanInput,
}


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class RoadmapPhase(BaseModel):
    timeline: str
    title: str
    milestones: List[str] = Field(default_factory=list)
    estimated_cost_tzs: int = 0
    resources: List[str] = Field(default_factory=list)


class RoadmapPlan(BaseModel):
    phases: List[RoadmapPhase] = Field(min_length=1)
    total_estimated_duration: str = ""
    total_estimated_cost_tzs: int = 0


class RoadmapResult(BaseModel):
    feature_key: Literal["roadmap"] = "roadmap"
    personality_summary: str
    learning_style: str = ""
    strengths: List[str] = Field(default_factory=list)
    challenges: List[str] = Field(default_factory=list)
    recommended_path: str = ""
    recommendation_reasoning: str = ""
    roadmap: RoadmapPlan


class SalaryRange(BaseModel):
    entry: int = 0
    mid: int = 0
    senior: int = 0


class CareerSuggestion(BaseModel):
    title: str
    match: int = Field(0, ge=0, le=100)
    salary_range_tzs: SalaryRange = Field(default_factory=SalaryRange)
    growth_rate: str = ""
    location: str = ""
    description: str = ""
    skills: List[str] = Field(default_factory=list)
    education: str = ""
    experience: str = ""
    demand: str = ""
    reasoning: str = ""


class IndustryTrend(BaseModel):
    industry: str
    growth: str = ""
    hot_jobs: str = ""
    relevance: str = ""


class SkillRecommendation(BaseModel):
    skill: str
    demand: int = 0
    time_to_learn: str = ""
    priority: str = ""
    gap_reason: str = ""


class CareerSuggestionsResult(BaseModel):
    feature_key: Literal["career_suggestions"] = "career_suggestions"
    alternative_careers: List[CareerSuggestion] = Field(min_length=1)
    industry_trends: List[IndustryTrend] = Field(default_factory=list)
    skills_to_develop: List[SkillRecommendation] = Field(default_factory=list)
    overall_analysis: str = ""


class InterviewStrength(BaseModel):
    strength: str
    examples: str = ""
    impact: str = ""


class ImprovementArea(BaseModel):
    area: str
    current_level: str = ""
    target_level: str = ""
    priority: str = "medium"


class ImprovementStep(BaseModel):
    focus_area: str
    action_items: List[str] = Field(default_factory=list)
    timeframe: str = ""
    success_metrics: str = ""


class RecommendedResource(BaseModel):
    resource: str
    purpose: str = ""
    priority: str = "medium"


class ScoreAverages(BaseModel):
    communication: int
    content: int
    structure: int
    overall: int


class InterviewFeedbackResult(BaseModel):
    feature_key: Literal["interview_feedback"] = "interview_feedback"
    overall_impression: str
    readiness_level: str
    top_strengths: List[InterviewStrength] = Field(min_length=1)
    areas_for_improvement: List[ImprovementArea] = Field(min_length=1)
    improvement_plan: List[ImprovementStep] = Field(min_length=1)
    recommended_resources: List[RecommendedResource] = Field(default_factory=list)
    practice_questions: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(min_length=1)
    # Computed locally from the submitted answers, never by the model
    score_averages: Optional[ScoreAverages] = None


class PracticeQuestion(BaseModel):
    question: str
    options: Optional[List[str]] = None
    correct_answer: str
    explanation: str = ""
    source_reference: str = ""


class PracticeQuestionsResult(BaseModel):
    feature_key: Literal["practice_questions"] = "practice_questions"
    questions: List[PracticeQuestion] = Field(min_length=1)


class StudyFocus(BaseModel):
    summary: str
    weekly_tips: List[str] = Field(default_factory=list)
    priority_subject: str = ""


class Assignment(BaseModel):
    title: str
    subject: str
    description: str = ""
    priority: str = "medium"
    days_until_due: int = Field(7, ge=0)
    due_date: Optional[date] = None


class QuizQuestion(BaseModel):
    question: str
    type: str = "multiple_choice"
    options: List[str] = Field(default_factory=list)
    correct_answer: str
    explanation: str = ""


class Quiz(BaseModel):
    title: str
    subject: str
    description: str = ""
    time_limit_minutes: int = 15
    questions: List[QuizQuestion] = Field(default_factory=list)


class ScheduleBlock(BaseModel):
    subject: str
    title: str = ""
    day_of_week: int = Field(ge=0, le=6)
    start_time: str
    end_time: str


class AcademicPlanResult(BaseModel):
    feature_key: Literal["academic_plan"] = "academic_plan"
    study_focus: StudyFocus
    assignments: List[Assignment] = Field(min_length=1)
    quizzes: List[Quiz] = Field(min_length=1)
    schedule: List[ScheduleBlock] = Field(min_length=1)


GenerationResult = Annotated[
    Union[
        RoadmapResult,
        CareerSuggestionsResult,
        InterviewFeedbackResult,
        PracticeQuestionsResult,
        AcademicPlanResult,
    ],
    Field(discriminator="feature_key"),
]

RESULT_MODELS: Dict[FeatureKey, Type[BaseModel]] = {
    FeatureKey.ROADMAP: RoadmapResult,
    FeatureKey.CAREER_SUGGESTIONS: CareerSuggestionsResult,
    FeatureKey.INTERVIEW_FEEDBACK: InterviewFeedbackResult,
    FeatureKey.PRACTICE_QUESTIONS: PracticeQuestionsResult,
    FeatureKey.ACADEMIC_PLAN: AcademicPlanResult,
}


# ---------------------------------------------------------------------------
# Request / outcome
# ---------------------------------------------------------------------------

class GenerationRequest(BaseModel):
    """One generation call on behalf of a principal. Consumed once."""

    feature_key: FeatureKey
    principal_id: str = Field(min_length=1)
    payload: GenerationInput

    @model_validator(mode="before")
    @classmethod
    def _select_input_model(cls, data):
        if not isinstance(data, dict):
            return data
        feature = FeatureKey.parse(data.get("feature_key"))
        payload = data.get("payload")
        if isinstance(payload, dict):
            payload = INPUT_MODELS[feature].model_validate(payload)
        return {**data, "feature_key": feature, "payload": payload}

    @model_validator(mode="after")
    def _payload_matches_feature(self):
        expected = INPUT_MODELS[self.feature_key]
        if not isinstance(self.payload, expected):
            raise ValueError(f"payload for {self.feature_key.value} must be {expected.__name__}")
        return self


class GenerationOutcome(BaseModel):
    feature_key: FeatureKey
    result: GenerationResult
    source: Literal["ai", "fallback"]
    is_fallback: bool
    fallback_reason: Optional[str] = None
    artifact_id: Optional[str] = None
    transaction_id: Optional[str] = None
    new_balance: Optional[int] = None
    tokens_used: int = 0
    model: Optional[str] = None
    cached: bool = False


class ArtifactRecord(BaseModel):
    """A persisted generation result as stored in generated_artifacts."""

    id: str
    user_id: str
    feature_key: str
    cache_key: str
    payload: Dict[str, Any]
    source: str
    generation_status: str
    model: Optional[str] = None
    tokens_used: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
