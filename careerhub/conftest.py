# careerhub/conftest.py
import json
import os
from datetime import date

import httpx
import pytest

os.environ.setdefault("ENV", "test")
os.environ.setdefault("ADMIN_KEY", "test-admin-key")
os.environ.setdefault("AUTH_JWT_SECRET", "test-jwt-secret-careerhub-0123456789")
os.environ.setdefault("GROQ_API_KEY", "test-groq-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from careerhub.core.database import create_all_tables, dispose_engine, init_engine  # noqa: E402
from careerhub.core.metrics import METRICS  # noqa: E402
from careerhub.core.retry import RetryPolicy  # noqa: E402
from careerhub.features.credits.catalog import seed_catalog  # noqa: E402
from careerhub.features.generation.client import GenerationClient, ProviderConfig  # noqa: E402

PROVIDER_URL = "https://llm.test/openai/v1"


@pytest.fixture(scope="function", autouse=True)
def fresh_db():
    """Fresh in-memory SQLite database with the catalog seeded, per test."""
    init_engine("sqlite://")
    create_all_tables()
    seed_catalog()
    yield
    dispose_engine()


@pytest.fixture(scope="function", autouse=True)
def reset_metrics():
    METRICS.reset()
    yield


@pytest.fixture
def sleeps():
    """Records every backoff delay instead of sleeping."""
    return []


@pytest.fixture
def make_client(sleeps):
    """Build a GenerationClient whose provider endpoint is an httpx.MockTransport handler."""

    def _make(handler, *, max_retries: int = 2, api_key: str = "test-groq-key", base_delay: float = 1.0):
        config = ProviderConfig(
            api_key=api_key,
            base_url=PROVIDER_URL,
            model="llama-3.3-70b-versatile",
            timeout=5.0,
            max_retries=max_retries,
            backoff_base=base_delay,
        )
        policy = RetryPolicy(max_retries=max_retries, base_delay=base_delay, sleep=sleeps.append)
        return GenerationClient(config, transport=httpx.MockTransport(handler), retry_policy=policy)

    return _make


@pytest.fixture
def chat_response():
    """OpenAI-style chat completion response carrying ``content``."""

    def _response(content, *, total_tokens: int = 321, model: str = "llama-3.3-70b-versatile"):
        if not isinstance(content, str):
            content = json.dumps(content)
        return httpx.Response(
            200,
            json={
                "id": "chatcmpl-test",
                "model": model,
                "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
                "usage": {"prompt_tokens": 100, "completion_tokens": total_tokens - 100, "total_tokens": total_tokens},
            },
        )

    return _response


@pytest.fixture
def inputs():
    """One valid input payload per feature, keyed by feature value."""
    return {
        "roadmap": {
            "education_level": "Form 6 (ACSEE)",
            "strongest_subjects": ["Mathematics", "Physics"],
            "industries_of_interest": ["Technology & ICT"],
            "dream_career": "Software Engineer",
            "preferred_path": "employment",
            "focus_level": 7,
            "time_management": 6,
            "study_support": ["Online courses"],
        },
        "career_suggestions": {
            "education_level": "University Student",
            "strongest_subjects": ["Mathematics"],
            "interests": ["Technology & ICT", "Business & Finance"],
            "dream_career": "Data Scientist",
            "preferred_path": "employment",
        },
        "interview_feedback": {
            "session_id": "sess-1",
            "position": "Junior Accountant",
            "industry": "Banking",
            "difficulty": "entry",
            "responses": [
                {
                    "question_text": "Tell me about yourself.",
                    "question_type": "behavioral",
                    "response_text": "I studied accounting at IFM.",
                    "score": 70,
                    "communication_score": 80,
                    "content_score": 60,
                    "structure_score": 75,
                },
                {
                    "question_text": "Why banking?",
                    "question_type": "motivation",
                    "response_text": "Banking drives growth.",
                    "score": 81,
                    "communication_score": 70,
                    "content_score": None,
                    "structure_score": 64,
                },
            ],
        },
        "practice_questions": {
            "material_id": "mat-42",
            "subject": "Biology",
            "material_text": "Photosynthesis converts light energy into chemical energy.",
            "topics": ["Photosynthesis", "Respiration"],
            "key_concepts": ["chlorophyll"],
            "difficulty_level": "medium",
            "question_type": "multiple_choice",
            "count": 3,
        },
        "academic_plan": {
            "education_level": "Form 4 (CSEE)",
            "subjects": [
                {"name": "Mathematics", "topics": ["Algebra"]},
                {"name": "Chemistry", "topics": ["Mole concept"]},
            ],
            "help_types": ["Study schedule"],
            "specific_struggles": "Running out of time in exams",
            "today": date(2026, 3, 2).isoformat(),
        },
    }
