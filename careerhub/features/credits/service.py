"""
careerhub/features/credits/service.py

Credit ledger and entitlement service.

Handles:
- Lazy entitlement records (default plan + signup credits on first sight)
- Pre-flight entitlement checks (can_use_feature, read-only)
- Atomic debits: one conditional UPDATE ... RETURNING, never read-then-write
- Grants, plan assignment and the monthly allowance reset

Functions that mutate balances accept an optional ``session`` so a caller can
fold them into a larger transaction (see generation/ledger.py). Without one
they open and commit their own.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import insert, select, update
from sqlalchemy.orm import Session

from careerhub.core.config import settings
from careerhub.core.database import (
    credit_transactions,
    entitlements,
    feature_costs,
    feature_usage,
    get_db_session,
    plan_feature_limits,
    subscription_plans,
    users,
)
from careerhub.core.errors import InsufficientCreditsError, NotFoundError, ValidationError
from careerhub.core.logging import log_event
from careerhub.core.metrics import credits_debited_total, credits_granted_total
from careerhub.models.credits import (
    CreditCheck,
    CreditGrant,
    CreditTransaction,
    DeductionResult,
    MonthlyResetSummary,
    Subscription,
    SubscriptionPlan,
)
from careerhub.models.generation import FeatureKey

MAX_TRANSACTIONS_PAGE = 200


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite returns naive datetimes even for timezone-aware columns
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def current_period(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Calendar-month allowance period (UTC) containing ``now``."""
    now = _as_utc(now) or _utcnow()
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def _feature_value(feature_key) -> str:
    try:
        return FeatureKey.parse(feature_key).value
    except ValueError as e:
        raise NotFoundError(str(e))


# ---------------------------------------------------------------------------
# Principals, plans, entitlement records
# ---------------------------------------------------------------------------

def _ensure_user(session: Session, user_id: str) -> None:
    exists = session.execute(select(users.c.user_id).where(users.c.user_id == user_id)).first()
    if exists is None:
        session.execute(insert(users).values(user_id=user_id, created_at=_utcnow()))


def get_or_create_user(user_id: str, session: Optional[Session] = None) -> None:
    """Upsert the principal into app_users."""
    if session is not None:
        _ensure_user(session, user_id)
        return
    with get_db_session() as own:
        _ensure_user(own, user_id)


def _load_plan(session: Session, plan_key: str) -> SubscriptionPlan:
    row = session.execute(
        select(subscription_plans).where(subscription_plans.c.plan_key == plan_key)
    ).first()
    if row is None:
        raise NotFoundError(f"Unknown plan: {plan_key}")

    limits = session.execute(
        select(plan_feature_limits.c.feature_key, plan_feature_limits.c.monthly_limit)
        .where(plan_feature_limits.c.plan_key == plan_key)
    ).all()

    return SubscriptionPlan(
        plan_key=row.plan_key,
        name=row.name,
        credits_monthly=row.credits_monthly,
        credits_bonus_signup=row.credits_bonus_signup,
        credits_rollover_allowed=bool(row.credits_rollover_allowed),
        price_monthly_tzs=row.price_monthly_tzs,
        is_default=bool(row.is_default),
        feature_limits={limit.feature_key: limit.monthly_limit for limit in limits},
    )


def _default_plan_key(session: Session) -> str:
    configured = settings.DEFAULT_PLAN_KEY
    if configured:
        found = session.execute(
            select(subscription_plans.c.plan_key).where(subscription_plans.c.plan_key == configured)
        ).first()
        if found is not None:
            return configured

    row = session.execute(
        select(subscription_plans.c.plan_key).where(subscription_plans.c.is_default.is_(True))
    ).first()
    if row is None:
        raise NotFoundError("No default subscription plan configured")
    return row.plan_key


def ensure_entitlement_record(session: Session, user_id: str, now: Optional[datetime] = None):
    """
    Fetch the principal's entitlement row, creating it on first sight.

    New records start on the default plan with its monthly allowance plus the
    signup bonus, recorded as a single signup_bonus transaction.
    """
    row = session.execute(select(entitlements).where(entitlements.c.user_id == user_id)).first()
    if row is not None:
        return row

    now = _as_utc(now) or _utcnow()
    _ensure_user(session, user_id)
    plan = _load_plan(session, _default_plan_key(session))
    opening = plan.credits_monthly + plan.credits_bonus_signup
    period_start, _ = current_period(now)

    session.execute(
        insert(entitlements).values(
            user_id=user_id,
            plan_key=plan.plan_key,
            credits_available=opening,
            credits_used=0,
            period_start=period_start,
            created_at=now,
            updated_at=now,
        )
    )
    if opening > 0:
        _append_transaction(
            session,
            user_id=user_id,
            transaction_type="signup_bonus",
            amount=opening,
            balance_before=0,
            balance_after=opening,
            description=f"Welcome credits on the {plan.name} plan",
            now=now,
        )

    log_event(
        "info",
        "credits.entitlement_created",
        user_id=user_id,
        event_type="entitlement_created",
        extra={"plan_key": plan.plan_key, "credits": opening},
    )
    return session.execute(select(entitlements).where(entitlements.c.user_id == user_id)).first()


def _append_transaction(
    session: Session,
    *,
    user_id: str,
    transaction_type: str,
    amount: int,
    balance_before: int,
    balance_after: int,
    feature_key: Optional[str] = None,
    reference_id: Optional[str] = None,
    reference_table: Optional[str] = None,
    description: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> str:
    transaction_id = str(uuid4())
    session.execute(
        insert(credit_transactions).values(
            id=transaction_id,
            user_id=user_id,
            feature_key=feature_key,
            transaction_type=transaction_type,
            amount=amount,
            balance_before=balance_before,
            balance_after=balance_after,
            reference_id=reference_id,
            reference_table=reference_table,
            description=description,
            metadata=metadata or {},
            created_at=now or _utcnow(),
        )
    )
    return transaction_id


# ---------------------------------------------------------------------------
# Costs and usage
# ---------------------------------------------------------------------------

def _feature_cost(session: Session, feature: str) -> Tuple[int, bool, str]:
    row = session.execute(select(feature_costs).where(feature_costs.c.feature_key == feature)).first()
    if row is None:
        raise NotFoundError(f"No credit cost configured for feature: {feature}")
    return row.credit_cost, bool(row.enabled), row.feature_name


def _usage_limit(session: Session, plan_key: str, feature: str) -> Optional[int]:
    row = session.execute(
        select(plan_feature_limits.c.monthly_limit)
        .where(plan_feature_limits.c.plan_key == plan_key)
        .where(plan_feature_limits.c.feature_key == feature)
    ).first()
    return row.monthly_limit if row is not None else None


def _usage_count(session: Session, user_id: str, feature: str, period_start: datetime) -> int:
    row = session.execute(
        select(feature_usage.c.usage_count, feature_usage.c.period_start)
        .where(feature_usage.c.user_id == user_id)
        .where(feature_usage.c.feature_key == feature)
    ).first()
    if row is None or _as_utc(row.period_start) < period_start:
        return 0
    return row.usage_count


def _increment_usage(
    session: Session,
    user_id: str,
    feature: str,
    usage_limit: Optional[int],
    now: datetime,
) -> Optional[int]:
    """Bump the period usage counter. Returns None if the cap is already reached."""
    period_start, period_end = current_period(now)
    row = session.execute(
        select(feature_usage.c.id, feature_usage.c.period_start)
        .where(feature_usage.c.user_id == user_id)
        .where(feature_usage.c.feature_key == feature)
    ).first()

    if row is None:
        if usage_limit is not None and usage_limit < 1:
            return None
        session.execute(
            insert(feature_usage).values(
                user_id=user_id,
                feature_key=feature,
                usage_count=1,
                period_start=period_start,
                period_end=period_end,
                last_used_at=now,
            )
        )
        return 1

    if _as_utc(row.period_start) < period_start:
        session.execute(
            update(feature_usage)
            .where(feature_usage.c.id == row.id)
            .values(usage_count=0, period_start=period_start, period_end=period_end)
        )

    stmt = update(feature_usage).where(feature_usage.c.id == row.id)
    if usage_limit is not None:
        stmt = stmt.where(feature_usage.c.usage_count < usage_limit)
    bumped = session.execute(
        stmt.values(usage_count=feature_usage.c.usage_count + 1, last_used_at=now)
        .returning(feature_usage.c.usage_count)
    ).first()
    return bumped[0] if bumped is not None else None


def _insufficient_reason(name: str, cost: int, available: int) -> str:
    return (
        f"Insufficient credits: {name} costs {cost} credits but only {available} "
        f"available ({cost - available} more needed)"
    )


def _limit_reason(name: str, usage_count: int, usage_limit: int) -> str:
    return f"Monthly limit reached: {name} used {usage_count} of {usage_limit} times this period"


# ---------------------------------------------------------------------------
# Entitlement gate
# ---------------------------------------------------------------------------

def can_use_feature(user_id: str, feature_key, now: Optional[datetime] = None) -> CreditCheck:
    """
    Pre-flight check: can this principal afford ``feature_key`` right now?

    Never mutates balances or usage. The only write is lazy creation of the
    entitlement record, which does not change the answer.
    """
    feature = _feature_value(feature_key)
    with get_db_session() as session:
        record = ensure_entitlement_record(session, user_id, now)
        cost, enabled, name = _feature_cost(session, feature)
        period_start, _ = current_period(now)
        usage_count = _usage_count(session, user_id, feature, period_start)
        usage_limit = _usage_limit(session, record.plan_key, feature)
        available = record.credits_available

    if not enabled:
        can_use, reason = False, f"{name} is currently disabled"
    elif available < cost:
        can_use, reason = False, _insufficient_reason(name, cost, available)
    elif usage_limit is not None and usage_count >= usage_limit:
        can_use, reason = False, _limit_reason(name, usage_count, usage_limit)
    else:
        can_use, reason = True, "OK"

    return CreditCheck(
        can_use=can_use,
        reason=reason,
        credits_available=available,
        credits_required=cost,
        usage_count=usage_count,
        usage_limit=usage_limit,
    )


# ---------------------------------------------------------------------------
# Debits and grants
# ---------------------------------------------------------------------------

def _deduct(
    session: Session,
    user_id: str,
    feature: str,
    reference_id: Optional[str],
    reference_table: Optional[str],
    metadata: Optional[Dict[str, Any]],
    now: datetime,
) -> Tuple[DeductionResult, int]:
    record = ensure_entitlement_record(session, user_id, now)
    cost, enabled, name = _feature_cost(session, feature)
    if not enabled:
        raise ValidationError(f"{name} is currently disabled")

    # Check and debit collapse into one statement; concurrent debits cannot both pass
    debited = session.execute(
        update(entitlements)
        .where(entitlements.c.user_id == user_id)
        .where(entitlements.c.credits_available >= cost)
        .values(
            credits_available=entitlements.c.credits_available - cost,
            credits_used=entitlements.c.credits_used + cost,
            updated_at=now,
        )
        .returning(entitlements.c.credits_available)
    ).first()

    if debited is None:
        available = session.execute(
            select(entitlements.c.credits_available).where(entitlements.c.user_id == user_id)
        ).scalar_one()
        raise InsufficientCreditsError(
            _insufficient_reason(name, cost, available),
            feature_key=feature,
            credits_required=cost,
            credits_available=available,
        )

    new_balance = debited[0]
    usage_limit = _usage_limit(session, record.plan_key, feature)
    if _increment_usage(session, user_id, feature, usage_limit, now) is None:
        raise InsufficientCreditsError(
            _limit_reason(name, usage_limit, usage_limit),
            feature_key=feature,
            credits_required=cost,
            credits_available=new_balance + cost,
            usage_count=usage_limit,
            usage_limit=usage_limit,
        )

    transaction_id = _append_transaction(
        session,
        user_id=user_id,
        feature_key=feature,
        transaction_type="usage",
        amount=-cost,
        balance_before=new_balance + cost,
        balance_after=new_balance,
        reference_id=reference_id,
        reference_table=reference_table,
        description=f"Used {name}",
        metadata=metadata,
        now=now,
    )
    return DeductionResult(success=True, new_balance=new_balance, transaction_id=transaction_id, amount=cost), cost


def deduct_credits(
    user_id: str,
    feature_key,
    reference_id: Optional[str] = None,
    reference_table: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    *,
    session: Optional[Session] = None,
    now: Optional[datetime] = None,
) -> DeductionResult:
    """
    Debit the feature's fixed cost exactly once.

    Raises InsufficientCreditsError if the balance (or the plan's monthly cap)
    no longer covers the cost at the moment of the debit. When ``session`` is
    given the caller owns the transaction and the debit metric.
    """
    feature = _feature_value(feature_key)
    now = _as_utc(now) or _utcnow()
    if session is not None:
        result, _ = _deduct(session, user_id, feature, reference_id, reference_table, metadata, now)
        return result

    with get_db_session() as own:
        result, cost = _deduct(own, user_id, feature, reference_id, reference_table, metadata, now)
    credits_debited_total.inc(labels={"feature": feature}, amount=cost)
    log_event(
        "info",
        "credits.debited",
        user_id=user_id,
        feature_key=feature,
        event_type="debit",
        extra={"amount": cost, "new_balance": result.new_balance},
    )
    return result


def _add(
    session: Session,
    user_id: str,
    amount: int,
    transaction_type: str,
    description: Optional[str],
    reference_id: Optional[str],
    reference_table: Optional[str],
    metadata: Optional[Dict[str, Any]],
    now: datetime,
) -> CreditGrant:
    ensure_entitlement_record(session, user_id, now)
    credited = session.execute(
        update(entitlements)
        .where(entitlements.c.user_id == user_id)
        .values(credits_available=entitlements.c.credits_available + amount, updated_at=now)
        .returning(entitlements.c.credits_available)
    ).first()
    new_balance = credited[0]
    transaction_id = _append_transaction(
        session,
        user_id=user_id,
        transaction_type=transaction_type,
        amount=amount,
        balance_before=new_balance - amount,
        balance_after=new_balance,
        reference_id=reference_id,
        reference_table=reference_table,
        description=description,
        metadata=metadata,
        now=now,
    )
    return CreditGrant(success=True, amount=amount, new_balance=new_balance, transaction_id=transaction_id)


def add_credits(
    user_id: str,
    amount: int,
    transaction_type: str = "grant",
    description: Optional[str] = None,
    reference_id: Optional[str] = None,
    reference_table: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    *,
    session: Optional[Session] = None,
    now: Optional[datetime] = None,
) -> CreditGrant:
    """Credit a positive amount (grant, purchase, refund, bonus) and log it in the ledger."""
    if amount <= 0:
        raise ValidationError("Credit amount must be positive")
    now = _as_utc(now) or _utcnow()
    if session is not None:
        return _add(session, user_id, amount, transaction_type, description, reference_id, reference_table, metadata, now)

    with get_db_session() as own:
        grant = _add(own, user_id, amount, transaction_type, description, reference_id, reference_table, metadata, now)
    credits_granted_total.inc(labels={"transaction_type": transaction_type}, amount=amount)
    log_event(
        "info",
        "credits.granted",
        user_id=user_id,
        event_type=transaction_type,
        extra={"amount": amount, "new_balance": grant.new_balance},
    )
    return grant


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_balance(user_id: str) -> int:
    with get_db_session() as session:
        return ensure_entitlement_record(session, user_id).credits_available


def get_transactions(user_id: str, limit: int = 50) -> List[CreditTransaction]:
    """Most recent ledger entries first."""
    limit = max(1, min(int(limit), MAX_TRANSACTIONS_PAGE))
    with get_db_session() as session:
        rows = session.execute(
            select(credit_transactions)
            .where(credit_transactions.c.user_id == user_id)
            .order_by(credit_transactions.c.created_at.desc())
            .limit(limit)
        ).all()

        return [
            CreditTransaction(
                id=row.id,
                user_id=row.user_id,
                feature_key=row.feature_key,
                transaction_type=row.transaction_type,
                amount=row.amount,
                balance_before=row.balance_before,
                balance_after=row.balance_after,
                reference_id=row.reference_id,
                reference_table=row.reference_table,
                description=row.description,
                metadata=row._mapping["metadata"] or {},
                created_at=_as_utc(row.created_at),
            )
            for row in rows
        ]


def _subscription(session: Session, user_id: str) -> Subscription:
    record = ensure_entitlement_record(session, user_id)
    return Subscription(
        user_id=user_id,
        plan=_load_plan(session, record.plan_key),
        credits_available=record.credits_available,
        credits_used=record.credits_used,
        updated_at=_as_utc(record.updated_at),
    )


def get_subscription(user_id: str) -> Subscription:
    with get_db_session() as session:
        return _subscription(session, user_id)


# ---------------------------------------------------------------------------
# Plan changes and the monthly reset
# ---------------------------------------------------------------------------

def assign_plan(
    user_id: str,
    plan_key: str,
    *,
    grant_allowance: bool = True,
    now: Optional[datetime] = None,
) -> Subscription:
    """
    Move a principal onto ``plan_key``.

    With ``grant_allowance`` the plan's monthly credits are added immediately
    as a ``subscription`` transaction; the next monthly reset then applies the
    plan's normal rollover rules.
    """
    now = _as_utc(now) or _utcnow()
    period_start, _ = current_period(now)
    granted = 0
    with get_db_session() as session:
        ensure_entitlement_record(session, user_id, now)
        plan = _load_plan(session, plan_key)
        session.execute(
            update(entitlements)
            .where(entitlements.c.user_id == user_id)
            .values(plan_key=plan.plan_key, period_start=period_start, updated_at=now)
        )
        if grant_allowance and plan.credits_monthly > 0:
            _add(
                session,
                user_id,
                plan.credits_monthly,
                "subscription",
                f"{plan.name} plan allowance",
                None,
                "subscription_plans",
                {"plan_key": plan.plan_key},
                now,
            )
            granted = plan.credits_monthly
        subscription = _subscription(session, user_id)

    if granted:
        credits_granted_total.inc(labels={"transaction_type": "subscription"}, amount=granted)
    log_event(
        "info",
        "credits.plan_assigned",
        user_id=user_id,
        event_type="plan_assigned",
        extra={"plan_key": plan_key, "granted": granted},
    )
    return subscription


def reset_monthly_credits(now: Optional[datetime] = None) -> MonthlyResetSummary:
    """
    Apply the monthly allowance to every record not yet reset this period.

    Rollover plans add the allowance to the remaining balance; other plans
    reset the balance to the allowance. Per-feature usage counters restart.
    Running it twice in the same period is a no-op.
    """
    now = _as_utc(now) or _utcnow()
    period_start, period_end = current_period(now)
    users_reset = 0
    credits_granted = 0

    with get_db_session() as session:
        plan_keys = session.execute(select(subscription_plans.c.plan_key)).scalars().all()
        plans = {key: _load_plan(session, key) for key in plan_keys}
        records = session.execute(select(entitlements)).all()

        for record in records:
            last_period = _as_utc(record.period_start)
            if last_period is not None and last_period >= period_start:
                continue

            plan = plans[record.plan_key]
            before = record.credits_available
            if plan.credits_rollover_allowed:
                after = before + plan.credits_monthly
            else:
                after = plan.credits_monthly

            # Guard on the balance read above so a concurrent debit is never overwritten
            applied = session.execute(
                update(entitlements)
                .where(entitlements.c.user_id == record.user_id)
                .where(entitlements.c.credits_available == before)
                .values(credits_available=after, period_start=period_start, updated_at=now)
                .returning(entitlements.c.credits_available)
            ).first()
            if applied is None:
                log_event(
                    "warning",
                    "credits.monthly_reset_skipped",
                    user_id=record.user_id,
                    event_type="monthly_reset",
                    extra={"reason": "balance changed during reset"},
                )
                continue

            if after != before:
                _append_transaction(
                    session,
                    user_id=record.user_id,
                    transaction_type="monthly_allowance",
                    amount=after - before,
                    balance_before=before,
                    balance_after=after,
                    reference_table="subscription_plans",
                    description=f"{plan.name} monthly allowance",
                    metadata={"plan_key": plan.plan_key, "rollover": plan.credits_rollover_allowed},
                    now=now,
                )

            session.execute(
                update(feature_usage)
                .where(feature_usage.c.user_id == record.user_id)
                .values(usage_count=0, period_start=period_start, period_end=period_end)
            )
            users_reset += 1
            credits_granted += max(0, after - before)

    if credits_granted:
        credits_granted_total.inc(labels={"transaction_type": "monthly_allowance"}, amount=credits_granted)
    log_event(
        "info",
        "credits.monthly_reset",
        event_type="monthly_reset",
        extra={"users_reset": users_reset, "credits_granted": credits_granted},
    )
    return MonthlyResetSummary(
        users_reset=users_reset,
        credits_granted=credits_granted,
        period_start=period_start,
    )
