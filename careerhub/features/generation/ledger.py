"""
careerhub/features/generation/ledger.py

Commit step of the generation pipeline.

An AI result is debited and stored in one database transaction: the
conditional balance update, the usage counter, the append-only transaction
row and the artifact upsert commit together or not at all. Fallback results
are stored without touching the ledger.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from careerhub.core.database import get_db_session
from careerhub.core.errors import PersistenceError
from careerhub.core.logging import log_event
from careerhub.core.metrics import credits_debited_total
from careerhub.features.artifacts.service import find_artifact_id, save_artifact
from careerhub.features.credits.service import deduct_credits
from careerhub.models.credits import DeductionResult

ARTIFACTS_TABLE = "generated_artifacts"


@dataclass(frozen=True)
class CommitResult:
    deduction: Optional[DeductionResult]
    artifact_id: str


def _payload(result: BaseModel) -> Dict[str, Any]:
    return result.model_dump(mode="json", exclude={"feature_key"})


def _storage_failure(user_id: str, feature_key: str, message: str, exc: Exception) -> PersistenceError:
    log_event(
        "error",
        "generation.persist_failed",
        user_id=user_id,
        feature_key=feature_key,
        event_type="commit",
        error_code=PersistenceError.code,
        extra={"error": str(exc)},
    )
    return PersistenceError(message)


def commit_generation(
    user_id: str,
    feature_key: str,
    result: BaseModel,
    *,
    cache_key: str = "default",
    model: Optional[str] = None,
    tokens_used: Optional[int] = None,
    input_snapshot: Optional[Dict[str, Any]] = None,
) -> CommitResult:
    """
    Debit the feature cost and persist the AI result atomically.

    Raises:
        InsufficientCreditsError: balance or monthly cap no longer covers the cost
        PersistenceError: the database rejected the write; nothing was committed
    """
    try:
        with get_db_session() as session:
            artifact_id = find_artifact_id(session, user_id, feature_key, cache_key) or str(uuid4())
            deduction = deduct_credits(
                user_id,
                feature_key,
                reference_id=artifact_id,
                reference_table=ARTIFACTS_TABLE,
                metadata={"model": model, "tokens_used": tokens_used},
                session=session,
            )
            save_artifact(
                user_id,
                feature_key,
                _payload(result),
                source="ai",
                generation_status="completed",
                cache_key=cache_key,
                model=model,
                tokens_used=tokens_used,
                input_snapshot=input_snapshot,
                artifact_id=artifact_id,
                session=session,
            )
    except SQLAlchemyError as e:
        raise _storage_failure(
            user_id, feature_key, f"Failed to save {feature_key} result; no credits were charged", e
        ) from e

    credits_debited_total.inc(labels={"feature": feature_key}, amount=deduction.amount)
    log_event(
        "info",
        "credits.debited",
        user_id=user_id,
        feature_key=feature_key,
        event_type="debit",
        extra={"amount": deduction.amount, "new_balance": deduction.new_balance, "artifact_id": artifact_id},
    )
    return CommitResult(deduction=deduction, artifact_id=artifact_id)


def persist_fallback(
    user_id: str,
    feature_key: str,
    result: BaseModel,
    *,
    cache_key: str = "default",
    input_snapshot: Optional[Dict[str, Any]] = None,
    reason: Optional[str] = None,
) -> CommitResult:
    """Store a fallback result flagged as such. Never debits."""
    try:
        artifact_id = save_artifact(
            user_id,
            feature_key,
            _payload(result),
            source="fallback",
            generation_status="failed",
            cache_key=cache_key,
            input_snapshot=input_snapshot,
        )
    except SQLAlchemyError as e:
        raise _storage_failure(user_id, feature_key, f"Failed to save {feature_key} fallback result", e) from e

    log_event(
        "info",
        "generation.fallback_persisted",
        user_id=user_id,
        feature_key=feature_key,
        event_type="fallback",
        extra={"artifact_id": artifact_id, "reason": reason},
    )
    return CommitResult(deduction=None, artifact_id=artifact_id)
