from fastapi.testclient import TestClient

from careerhub.core.config import settings
from careerhub.features.credits.service import get_balance, get_subscription, get_transactions
from careerhub.main import app

client = TestClient(app)


def _admin() -> dict:
    return {"X-Admin-Key": settings.ADMIN_KEY}


def test_grant_requires_admin_key():
    resp = client.post("/v1/admin/credits/grant", json={"user_id": "u1", "amount": 10})
    assert resp.status_code == 403
    assert resp.json()["error_code"] == "forbidden"


def test_grant_rejects_wrong_admin_key():
    resp = client.post(
        "/v1/admin/credits/grant",
        json={"user_id": "u1", "amount": 10},
        headers={"X-Admin-Key": "nope"},
    )
    assert resp.status_code == 403


def test_grant_appends_positive_transaction():
    resp = client.post(
        "/v1/admin/credits/grant",
        json={"user_id": "u1", "amount": 40, "transaction_type": "bonus", "description": "Competition prize"},
        headers=_admin(),
    )

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["new_balance"] == 70
    grant = next(t for t in get_transactions("u1") if t.id == data["transaction_id"])
    assert grant.transaction_type == "bonus"
    assert grant.amount == 40
    assert grant.description == "Competition prize"
    assert grant.metadata == {"actor": "admin_key"}


def test_grant_rejects_non_positive_amount():
    resp = client.post("/v1/admin/credits/grant", json={"user_id": "u1", "amount": 0}, headers=_admin())
    assert resp.status_code == 400


def test_grant_rejects_usage_type():
    resp = client.post(
        "/v1/admin/credits/grant",
        json={"user_id": "u1", "amount": 5, "transaction_type": "usage"},
        headers=_admin(),
    )
    assert resp.status_code == 400


def test_assign_plan():
    resp = client.post("/v1/admin/plans/assign", json={"user_id": "u1", "plan_key": "pro"}, headers=_admin())

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["plan"]["plan_key"] == "pro"
    assert data["plan"]["credits_rollover_allowed"] is True
    assert data["credits_available"] == 530
    assert get_subscription("u1").plan.plan_key == "pro"


def test_assign_unknown_plan_is_404():
    resp = client.post("/v1/admin/plans/assign", json={"user_id": "u1", "plan_key": "gold"}, headers=_admin())
    assert resp.status_code == 404


def test_monthly_reset_endpoint():
    client.post("/v1/admin/plans/assign", json={"user_id": "u1", "plan_key": "student"}, headers=_admin())

    resp = client.post(
        "/v1/admin/credits/monthly-reset",
        params={"now": "2099-01-15T00:00:00+00:00"},
        headers=_admin(),
    )

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["users_reset"] == 1
    assert get_balance("u1") == 100


def test_monthly_reset_requires_admin_key():
    assert client.post("/v1/admin/credits/monthly-reset").status_code == 403
