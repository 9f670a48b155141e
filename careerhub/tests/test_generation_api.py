"""HTTP contract for the generation and credits endpoints."""

import time

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import update

from careerhub.api.generation import get_generation_client
from careerhub.core.config import settings
from careerhub.core.database import entitlements, get_db_session
from careerhub.features.credits.service import get_balance
from careerhub.main import app

AI_CAREERS = {
    "alternative_careers": [
        {
            "title": "Actuarial Analyst",
            "match": 82,
            "salary_range_tzs": {"entry": 1800000, "mid": 4000000, "senior": 9000000},
            "reasoning": "Strong mathematics fits risk modelling.",
        }
    ],
    "industry_trends": [{"industry": "Insurance", "growth": "+9%"}],
    "skills_to_develop": [{"skill": "Excel Modelling", "demand": 80}],
    "overall_analysis": "Quantitative careers suit this profile.",
}


@pytest.fixture
def provider_calls():
    return []


@pytest.fixture
def client(make_client, chat_response, provider_calls):
    def handler(request):
        provider_calls.append(request)
        return chat_response(AI_CAREERS)

    app.dependency_overrides[get_generation_client] = lambda: make_client(handler)
    yield TestClient(app)
    app.dependency_overrides.clear()


def _auth(user_id: str = "u1") -> dict:
    return {"X-User-Id": user_id}


def test_generate_returns_ai_result(client, inputs, provider_calls):
    resp = client.post("/v1/generate/career-suggestions", json=inputs["career_suggestions"], headers=_auth())

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["feature_key"] == "career_suggestions"
    assert data["source"] == "ai"
    assert data["result"]["alternative_careers"][0]["title"] == "Actuarial Analyst"
    assert data["new_balance"] == 25
    assert len(provider_calls) == 1


def test_generate_accepts_bearer_jwt(client, inputs):
    token = jwt.encode({"sub": "jwt-user", "exp": int(time.time()) + 60}, settings.AUTH_JWT_SECRET, algorithm="HS256")

    resp = client.post(
        "/v1/generate/career_suggestions",
        json=inputs["career_suggestions"],
        headers={"Authorization": f"Bearer {token}"},
    )

    assert resp.status_code == 200
    assert get_balance("jwt-user") == 25


def test_missing_principal_is_401(client, inputs, provider_calls):
    resp = client.post("/v1/generate/roadmap", json=inputs["roadmap"])

    assert resp.status_code == 401
    body = resp.json()
    assert body["success"] is False
    assert body["error_code"] == "unauthorized"
    assert body["request_id"] == resp.headers["x-request-id"]
    assert provider_calls == []


def test_expired_jwt_is_401(client, inputs):
    token = jwt.encode({"sub": "u1", "exp": int(time.time()) - 60}, settings.AUTH_JWT_SECRET, algorithm="HS256")
    resp = client.post("/v1/generate/roadmap", json=inputs["roadmap"], headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Token expired"


def test_invalid_payload_is_400(client, inputs, provider_calls):
    payload = dict(inputs["roadmap"])
    del payload["dream_career"]

    resp = client.post("/v1/generate/roadmap", json=payload, headers=_auth())

    assert resp.status_code == 400
    body = resp.json()
    assert body["error_code"] == "validation_error"
    assert "dream_career" in body["error"]
    assert provider_calls == []


def test_non_object_body_is_400(client):
    resp = client.post("/v1/generate/roadmap", json=["not", "an", "object"], headers=_auth())
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "validation_error"


def test_unknown_feature_is_404(client):
    resp = client.post("/v1/generate/horoscope", json={}, headers=_auth())
    assert resp.status_code == 404
    assert resp.json()["error_code"] == "not_found"


def test_insufficient_credits_is_429_with_deficit(client, inputs, provider_calls):
    get_balance("u1")
    with get_db_session() as session:
        session.execute(update(entitlements).where(entitlements.c.user_id == "u1").values(credits_available=2))

    resp = client.post("/v1/generate/career-suggestions", json=inputs["career_suggestions"], headers=_auth())

    assert resp.status_code == 429
    body = resp.json()
    assert body["error_code"] == "insufficient_credits"
    assert body["details"]["credits_required"] == 5
    assert body["details"]["credits_available"] == 2
    assert body["details"]["deficit"] == 3
    assert "3 more needed" in body["error"]
    assert provider_calls == []


def test_latest_returns_stored_artifact(client, inputs):
    assert client.get("/v1/generate/career-suggestions/latest", headers=_auth()).status_code == 404

    client.post("/v1/generate/career-suggestions", json=inputs["career_suggestions"], headers=_auth())
    resp = client.get("/v1/generate/career-suggestions/latest", headers=_auth())

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["source"] == "ai"
    assert data["payload"]["alternative_careers"][0]["title"] == "Actuarial Analyst"


def test_artifacts_list_is_scoped_to_principal(client, inputs):
    client.post("/v1/generate/career-suggestions", json=inputs["career_suggestions"], headers=_auth("u1"))

    mine = client.get("/v1/artifacts", headers=_auth("u1")).json()["data"]
    theirs = client.get("/v1/artifacts", headers=_auth("u2")).json()["data"]

    assert [a["feature_key"] for a in mine] == ["career_suggestions"]
    assert theirs == []


def test_credits_endpoints(client, inputs):
    client.post("/v1/generate/career-suggestions", json=inputs["career_suggestions"], headers=_auth())

    balance = client.get("/v1/credits/balance", headers=_auth()).json()["data"]
    assert balance["credits_available"] == 25

    txs = client.get("/v1/credits/transactions", params={"limit": 10}, headers=_auth()).json()["data"]
    assert {t["transaction_type"] for t in txs} == {"signup_bonus", "usage"}

    check = client.get("/v1/credits/check/roadmap", headers=_auth()).json()["data"]
    assert check["can_use"] is True
    assert check["credits_required"] == 10

    subscription = client.get("/v1/credits/subscription", headers=_auth()).json()["data"]
    assert subscription["plan"]["plan_key"] == "free"


def test_transactions_limit_is_validated(client):
    resp = client.get("/v1/credits/transactions", params={"limit": 0}, headers=_auth())
    assert resp.status_code == 400


def test_request_id_is_echoed(client):
    resp = client.get("/v1/credits/balance", headers={**_auth(), "X-Request-Id": "rid-123"})
    assert resp.headers["x-request-id"] == "rid-123"
