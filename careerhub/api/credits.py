"""
Credits API: balance, ledger history, pre-flight checks and subscription.

All routes act on the authenticated principal only.
"""
from typing import Dict

from fastapi import APIRouter, Depends, Query

from careerhub.core.auth import get_current_user_id
from careerhub.core.errors import NotFoundError
from careerhub.features.credits.service import (
    can_use_feature,
    get_balance,
    get_subscription,
    get_transactions,
)
from careerhub.models.generation import FeatureKey

router = APIRouter(prefix="/v1/credits", tags=["credits"])


@router.get("/balance")
def balance(user_id: str = Depends(get_current_user_id)) -> Dict:
    return {"success": True, "data": {"user_id": user_id, "credits_available": get_balance(user_id)}}


@router.get("/transactions")
def transactions(
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
) -> Dict:
    """Ledger history, newest first."""
    rows = get_transactions(user_id, limit=limit)
    return {"success": True, "data": [row.model_dump(mode="json") for row in rows]}


@router.get("/check/{feature}")
def check(feature: str, user_id: str = Depends(get_current_user_id)) -> Dict:
    """Read-only: would this feature be allowed right now?"""
    try:
        feature_key = FeatureKey.parse(feature)
    except ValueError:
        raise NotFoundError(f"Unknown feature: {feature}")
    result = can_use_feature(user_id, feature_key)
    return {"success": True, "data": result.model_dump(mode="json")}


@router.get("/subscription")
def subscription(user_id: str = Depends(get_current_user_id)) -> Dict:
    return {"success": True, "data": get_subscription(user_id).model_dump(mode="json")}
