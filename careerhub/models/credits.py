"""
careerhub/models/credits.py

Credit ledger models: entitlement checks, debits, grants and plan tiers.
"""

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CreditCheck(BaseModel):
    """
    Result of the pre-flight entitlement check.

    Advisory only: the debit re-checks the balance atomically at commit time.
    """
    model_config = ConfigDict(frozen=True)

    can_use: bool
    reason: str
    credits_available: int
    credits_required: int
    usage_count: int = 0
    usage_limit: Optional[int] = None  # None = unlimited


class DeductionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    new_balance: int
    transaction_id: str
    amount: int = 0


class CreditGrant(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    amount: int
    new_balance: int
    transaction_id: str


class CreditTransaction(BaseModel):
    """Append-only ledger row. Negative amount = spend, positive = grant."""
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    feature_key: Optional[str] = None
    transaction_type: str
    amount: int
    balance_before: int
    balance_after: int
    reference_id: Optional[str] = None
    reference_table: Optional[str] = None
    description: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class SubscriptionPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    plan_key: str
    name: str
    credits_monthly: int
    credits_bonus_signup: int = 0
    credits_rollover_allowed: bool = False
    price_monthly_tzs: int = 0
    is_default: bool = False
    feature_limits: Dict[str, Optional[int]] = Field(default_factory=dict)


class Subscription(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    plan: SubscriptionPlan
    credits_available: int
    credits_used: int
    updated_at: Optional[datetime] = None


class MonthlyResetSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    users_reset: int
    credits_granted: int
    period_start: datetime


# Request bodies for the admin endpoints

GrantType = Literal["grant", "purchase", "refund", "bonus"]


class GrantCreditsRequest(BaseModel):
    user_id: str = Field(min_length=1)
    amount: int = Field(gt=0)
    transaction_type: GrantType = "grant"
    description: Optional[str] = None
    reference_id: Optional[str] = None


class AssignPlanRequest(BaseModel):
    user_id: str = Field(min_length=1)
    plan_key: str = Field(min_length=1)
