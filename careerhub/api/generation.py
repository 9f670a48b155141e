"""
Generation API: one POST per feature plus read access to stored artifacts.

Feature names accept hyphens on the wire (/v1/generate/career-suggestions).
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from pydantic import ValidationError as PydanticValidationError

from careerhub.core.auth import get_current_user_id
from careerhub.core.errors import NotFoundError, ValidationError
from careerhub.features.artifacts.service import get_latest_artifact, list_artifacts
from careerhub.features.generation.client import GenerationClient, provider_config_from_settings
from careerhub.features.generation.pipeline import GenerationPipeline
from careerhub.models.generation import INPUT_MODELS, FeatureKey, GenerationRequest


router = APIRouter(prefix="/v1", tags=["generation"])


def get_generation_client() -> GenerationClient:
    return GenerationClient(provider_config_from_settings())


def _feature(name: str) -> FeatureKey:
    try:
        return FeatureKey.parse(name)
    except ValueError:
        raise NotFoundError(f"Unknown feature: {name}")


def _invalid(e: PydanticValidationError) -> ValidationError:
    first = e.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return ValidationError(f"Invalid request: {location} {first.get('msg', '')}".strip())


@router.post("/generate/{feature}")
def generate(
    feature: str,
    body: Dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user_id),
    client: GenerationClient = Depends(get_generation_client),
) -> Dict:
    """
    Run one generation for the authenticated principal.

    Returns 200 with the result (AI or fallback), 429 when credits or the
    monthly cap do not cover the feature, 500 when the result cannot be saved.
    """
    feature_key = _feature(feature)
    try:
        payload = INPUT_MODELS[feature_key].model_validate(body)
    except PydanticValidationError as e:
        raise _invalid(e)

    request = GenerationRequest(feature_key=feature_key, principal_id=user_id, payload=payload)
    outcome = GenerationPipeline(client).run(request)
    return {"success": True, "data": outcome.model_dump(mode="json")}


@router.get("/generate/{feature}/latest")
def latest(feature: str, user_id: str = Depends(get_current_user_id)) -> Dict:
    """Most recently stored result for the feature."""
    feature_key = _feature(feature)
    record = get_latest_artifact(user_id, feature_key.value)
    if record is None:
        raise NotFoundError(f"No saved {feature_key.slug} result")
    return {"success": True, "data": record.model_dump(mode="json")}


@router.get("/artifacts")
def artifacts(
    feature: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
) -> Dict:
    feature_value = _feature(feature).value if feature else None
    records = list_artifacts(user_id, feature_key=feature_value, limit=limit)
    return {"success": True, "data": [r.model_dump(mode="json") for r in records]}
