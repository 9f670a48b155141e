"""
careerhub/features/artifacts/service.py

Durable storage for generation results.

One row per (principal, feature, cache_key); saving again replaces the
payload in place and keeps the artifact id stable.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import insert, select, update
from sqlalchemy.orm import Session

from careerhub.core.database import generated_artifacts, get_db_session
from careerhub.models.generation import ArtifactRecord


def _to_record(row) -> ArtifactRecord:
    return ArtifactRecord(
        id=row.id,
        user_id=row.user_id,
        feature_key=row.feature_key,
        cache_key=row.cache_key,
        payload=row.payload,
        source=row.source,
        generation_status=row.generation_status,
        model=row.model,
        tokens_used=row.tokens_used,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def find_artifact_id(session: Session, user_id: str, feature_key: str, cache_key: str = "default") -> Optional[str]:
    return session.execute(
        select(generated_artifacts.c.id)
        .where(generated_artifacts.c.user_id == user_id)
        .where(generated_artifacts.c.feature_key == feature_key)
        .where(generated_artifacts.c.cache_key == cache_key)
    ).scalar()


def _save(
    session: Session,
    user_id: str,
    feature_key: str,
    payload: Dict[str, Any],
    source: str,
    generation_status: str,
    cache_key: str,
    model: Optional[str],
    tokens_used: Optional[int],
    input_snapshot: Optional[Dict[str, Any]],
    artifact_id: Optional[str],
) -> str:
    now = datetime.now(timezone.utc)
    values = {
        "payload": payload,
        "source": source,
        "generation_status": generation_status,
        "model": model,
        "tokens_used": tokens_used,
        "input_snapshot": input_snapshot,
        "updated_at": now,
    }

    existing_id = find_artifact_id(session, user_id, feature_key, cache_key)
    if existing_id is not None:
        session.execute(
            update(generated_artifacts).where(generated_artifacts.c.id == existing_id).values(**values)
        )
        return existing_id

    new_id = artifact_id or str(uuid4())
    session.execute(
        insert(generated_artifacts).values(
            id=new_id,
            user_id=user_id,
            feature_key=feature_key,
            cache_key=cache_key,
            created_at=now,
            **values,
        )
    )
    return new_id


def save_artifact(
    user_id: str,
    feature_key: str,
    payload: Dict[str, Any],
    *,
    source: str,
    generation_status: str,
    cache_key: str = "default",
    model: Optional[str] = None,
    tokens_used: Optional[int] = None,
    input_snapshot: Optional[Dict[str, Any]] = None,
    artifact_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> str:
    """
    Upsert the artifact for (user_id, feature_key, cache_key).

    Args:
        payload: JSON-serializable result (model_dump(mode="json"))
        source: "ai" or "fallback"
        generation_status: "completed" or "failed"
        artifact_id: id to use if a new row is inserted
        session: join the caller's transaction instead of committing here

    Returns:
        The artifact id (existing id on update)
    """
    args = (user_id, feature_key, payload, source, generation_status, cache_key,
            model, tokens_used, input_snapshot, artifact_id)
    if session is not None:
        return _save(session, *args)
    with get_db_session() as own:
        return _save(own, *args)


def get_artifact(
    user_id: str,
    feature_key: str,
    cache_key: str = "default",
    source: Optional[str] = None,
) -> Optional[ArtifactRecord]:
    with get_db_session() as session:
        query = (
            select(generated_artifacts)
            .where(generated_artifacts.c.user_id == user_id)
            .where(generated_artifacts.c.feature_key == feature_key)
            .where(generated_artifacts.c.cache_key == cache_key)
        )
        if source:
            query = query.where(generated_artifacts.c.source == source)
        row = session.execute(query).first()
        return _to_record(row) if row is not None else None


def get_latest_artifact(user_id: str, feature_key: str) -> Optional[ArtifactRecord]:
    """Most recently written artifact for the feature, across cache keys."""
    records = list_artifacts(user_id, feature_key=feature_key, limit=1)
    return records[0] if records else None


def list_artifacts(user_id: str, feature_key: Optional[str] = None, limit: int = 20) -> List[ArtifactRecord]:
    with get_db_session() as session:
        query = select(generated_artifacts).where(generated_artifacts.c.user_id == user_id)
        if feature_key:
            query = query.where(generated_artifacts.c.feature_key == feature_key)
        rows = session.execute(
            query.order_by(generated_artifacts.c.updated_at.desc()).limit(max(1, limit))
        ).all()
        return [_to_record(row) for row in rows]
