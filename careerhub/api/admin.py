"""
Admin-only credit operations.
Requires X-Admin-Key header for all endpoints.
"""

import logging
from datetime import datetime
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query

from careerhub.core.auth import require_admin_key
from careerhub.features.credits.service import (
    add_credits,
    assign_plan,
    get_or_create_user,
    reset_monthly_credits,
)
from careerhub.models.credits import AssignPlanRequest, GrantCreditsRequest

logger = logging.getLogger("careerhub.admin")

router = APIRouter(prefix="/v1/admin", tags=["admin"])


@router.post("/credits/grant")
def grant_credits(body: GrantCreditsRequest, actor: str = Depends(require_admin_key)) -> Dict:
    """Add a positive amount to a principal's balance."""
    get_or_create_user(body.user_id)
    grant = add_credits(
        body.user_id,
        body.amount,
        transaction_type=body.transaction_type,
        description=body.description or f"Admin {body.transaction_type}",
        reference_id=body.reference_id,
        metadata={"actor": actor},
    )
    logger.info(
        "admin.credits_granted",
        extra={"user_id": body.user_id, "event_type": body.transaction_type, "status": "ok", "source": actor},
    )
    return {"success": True, "data": grant.model_dump(mode="json")}


@router.post("/plans/assign")
def assign(body: AssignPlanRequest, actor: str = Depends(require_admin_key)) -> Dict:
    get_or_create_user(body.user_id)
    subscription = assign_plan(body.user_id, body.plan_key)
    logger.info(
        "admin.plan_assigned",
        extra={"user_id": body.user_id, "event_type": "plan_assign", "status": "ok", "source": actor},
    )
    return {"success": True, "data": subscription.model_dump(mode="json")}


@router.post("/credits/monthly-reset")
def monthly_reset(
    now: Optional[datetime] = Query(None, description="Override the clock (tests, backfills)"),
    actor: str = Depends(require_admin_key),
) -> Dict:
    """Apply the monthly allowance to every principal not yet reset this period."""
    summary = reset_monthly_credits(now=now)
    logger.info(
        "admin.monthly_reset",
        extra={"event_type": "monthly_reset", "status": "ok", "source": actor},
    )
    return {"success": True, "data": summary.model_dump(mode="json")}
