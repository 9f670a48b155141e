"""
careerhub/features/credits/catalog.py

Static credit catalog: per-feature costs and the subscription plan tiers.

Seeded into feature_costs / subscription_plans / plan_feature_limits at
startup. Seeding only inserts missing rows so operators can tune costs and
limits in the database without them being overwritten on restart.
"""

from typing import Dict, List

from sqlalchemy import insert, select

from careerhub.core.database import (
    feature_costs,
    get_db_session,
    plan_feature_limits,
    subscription_plans,
)
from careerhub.models.generation import FeatureKey

# Fixed cost per feature, independent of provider token usage.
FEATURE_COSTS: Dict[FeatureKey, int] = {
    FeatureKey.ROADMAP: 10,
    FeatureKey.CAREER_SUGGESTIONS: 5,
    FeatureKey.INTERVIEW_FEEDBACK: 5,
    FeatureKey.PRACTICE_QUESTIONS: 3,
    FeatureKey.ACADEMIC_PLAN: 8,
}

FEATURE_NAMES: Dict[FeatureKey, str] = {
    FeatureKey.ROADMAP: "AI Career Roadmap",
    FeatureKey.CAREER_SUGGESTIONS: "Career Suggestions",
    FeatureKey.INTERVIEW_FEEDBACK: "Interview Feedback",
    FeatureKey.PRACTICE_QUESTIONS: "Practice Questions",
    FeatureKey.ACADEMIC_PLAN: "Academic Plan",
}

# Monthly caps per plan; a missing feature (or None) means unlimited.
DEFAULT_PLANS: List[Dict] = [
    {
        "plan_key": "free",
        "name": "Free",
        "credits_monthly": 10,
        "credits_bonus_signup": 20,
        "credits_rollover_allowed": False,
        "price_monthly_tzs": 0,
        "is_default": True,
        "limits": {
            FeatureKey.ROADMAP: 1,
            FeatureKey.CAREER_SUGGESTIONS: 2,
            FeatureKey.INTERVIEW_FEEDBACK: 2,
            FeatureKey.ACADEMIC_PLAN: 1,
        },
    },
    {
        "plan_key": "student",
        "name": "Student",
        "credits_monthly": 100,
        "credits_bonus_signup": 0,
        "credits_rollover_allowed": False,
        "price_monthly_tzs": 5000,
        "is_default": False,
        "limits": {
            FeatureKey.ROADMAP: 2,
            FeatureKey.INTERVIEW_FEEDBACK: 5,
        },
    },
    {
        "plan_key": "pro",
        "name": "Pro",
        "credits_monthly": 500,
        "credits_bonus_signup": 0,
        "credits_rollover_allowed": True,
        "price_monthly_tzs": 15000,
        "is_default": False,
        "limits": {},
    },
]


def seed_catalog() -> None:
    """Insert any catalog rows missing from the database. Idempotent."""
    with get_db_session() as session:
        existing_costs = set(session.execute(select(feature_costs.c.feature_key)).scalars())
        for feature_key, cost in FEATURE_COSTS.items():
            if feature_key.value in existing_costs:
                continue
            session.execute(
                insert(feature_costs).values(
                    feature_key=feature_key.value,
                    feature_name=FEATURE_NAMES[feature_key],
                    credit_cost=cost,
                    enabled=True,
                )
            )

        existing_plans = set(session.execute(select(subscription_plans.c.plan_key)).scalars())
        for plan in DEFAULT_PLANS:
            if plan["plan_key"] in existing_plans:
                continue
            session.execute(
                insert(subscription_plans).values(
                    plan_key=plan["plan_key"],
                    name=plan["name"],
                    credits_monthly=plan["credits_monthly"],
                    credits_bonus_signup=plan["credits_bonus_signup"],
                    credits_rollover_allowed=plan["credits_rollover_allowed"],
                    price_monthly_tzs=plan["price_monthly_tzs"],
                    is_default=plan["is_default"],
                )
            )
            for feature_key, limit in plan["limits"].items():
                session.execute(
                    insert(plan_feature_limits).values(
                        plan_key=plan["plan_key"],
                        feature_key=feature_key.value,
                        monthly_limit=limit,
                    )
                )
