"""
HTTP surface tests: trial banner, plan meters, downgrade checks, route
guard redirects, sections and the external API.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from clinicgate.core.database import api_keys, get_db_session, pets, tenant_users
from clinicgate.core.errors import UpstreamUnavailableError
from clinicgate.features.api_keys.service import hash_api_key
from clinicgate.main import app


RAW_KEY = "cgk_" + "Zy9xW8vU" * 4


@pytest.fixture
def client(sqlite_db):
    return TestClient(app)


def _headers(tenant_id):
    return {"X-Tenant-Id": tenant_id}


def _add_users(tenant_id, count):
    with get_db_session() as session:
        session.execute(
            tenant_users.insert(),
            [{"tenant_id": tenant_id, "email": f"u{i}@clinic.test", "is_active": True} for i in range(count)],
        )


def _add_pets(tenant_id, count):
    with get_db_session() as session:
        session.execute(
            pets.insert(),
            [{"tenant_id": tenant_id, "name": f"pet-{i}", "is_deceased": False} for i in range(count)],
        )


def _store_key(tenant_id, scopes):
    with get_db_session() as session:
        session.execute(
            api_keys.insert().values(
                key_hash=hash_api_key(RAW_KEY),
                key_prefix=RAW_KEY[:8],
                tenant_id=tenant_id,
                name="Integration",
                scopes=scopes,
                rate_limit=250,
            )
        )


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert resp.headers.get("x-request-id")


def test_readyz(client):
    resp = client.get("/readyz")
    assert resp.status_code == 200
    assert resp.json()["db"] is True


def test_trial_status(client, trial_tenant):
    resp = client.get("/v1/subscription/trial-status", headers=_headers(trial_tenant))
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "active"
    assert body["days_remaining"] == 10
    assert body["banner_severity"] == "success"
    assert body["blocked_features"] == []


def test_missing_tenant_header(client):
    resp = client.get("/v1/subscription/trial-status")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "unauthenticated"


def test_unknown_tenant(client):
    resp = client.get("/v1/subscription/trial-status", headers=_headers("ghost"))
    assert resp.status_code == 404
    body = resp.json()
    assert body["error"]["code"] == "tenant_not_found"
    assert body["error"]["request_id"] == resp.headers.get("x-request-id")


def test_plan_status(client, make_tenant):
    tenant_id = make_tenant(plan_key="BASICO")
    _add_users(tenant_id, 3)
    resp = client.get("/v1/subscription/plan-status", headers=_headers(tenant_id))
    assert resp.status_code == 200
    body = resp.json()
    assert body["plan_key"] == "BASICO"
    assert body["resources"]["users"]["status"] == "at_limit"
    assert body["resources"]["pets"]["status"] == "ok"


def test_validate_downgrade_blocked(client, make_tenant):
    tenant_id = make_tenant(plan_key="PROFESIONAL")
    _add_users(tenant_id, 5)
    _add_pets(tenant_id, 3)

    resp = client.post(
        "/v1/subscription/validate-downgrade",
        headers=_headers(tenant_id),
        json={"target_plan": "basico"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["is_downgrade"] is True
    validation = body["validation"]
    assert validation["can_downgrade"] is False
    assert [b["resource"] for b in validation["blockers"]] == ["users"]
    assert validation["blockers"][0]["excess"] == 2
    assert validation["current_usage"]["current_users"] == 5
    assert len(body["resolution_steps"]) == 2
    assert {w["feature"] for w in validation["warnings"]} >= {"automations"}


def test_validate_downgrade_unknown_plan_is_not_found(client, make_tenant):
    tenant_id = make_tenant()
    resp = client.post(
        "/v1/subscription/validate-downgrade",
        headers=_headers(tenant_id),
        json={"target_plan": "PLATINO"},
    )
    assert resp.status_code == 404
    body = resp.json()
    assert body["error"]["code"] == "plan_not_found"
    assert "PLATINO" in body["error"]["message"]


def test_validate_downgrade_upstream_failure(client, make_tenant):
    tenant_id = make_tenant()
    with patch(
        "clinicgate.features.downgrade.service.get_usage_snapshot",
        side_effect=UpstreamUnavailableError("usage down"),
    ):
        resp = client.post(
            "/v1/subscription/validate-downgrade",
            headers=_headers(tenant_id),
            json={"target_plan": "BASICO"},
        )
    assert resp.status_code == 503
    assert resp.json()["error"]["code"] == "upstream_unavailable"


def test_dashboard_allows_active_tenant(client, make_tenant):
    tenant_id = make_tenant(subscription_status="ACTIVE")
    resp = client.get("/v1/dashboard", headers=_headers(tenant_id))
    assert resp.status_code == 200
    assert resp.json()["trial"]["status"] == "converted"


def test_dashboard_redirects_expired_trial(client, make_tenant):
    tenant_id = make_tenant(
        subscription_status="TRIALING",
        is_trial_period=True,
        trial_ends_at=datetime.now(timezone.utc) - timedelta(days=2),
    )
    resp = client.get("/v1/dashboard", headers=_headers(tenant_id), follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/dashboard/settings?tab=subscription&reason=trial_expired"


def test_dashboard_redirects_past_due(client, make_tenant):
    tenant_id = make_tenant(subscription_status="PAST_DUE")
    resp = client.get("/v1/dashboard", headers=_headers(tenant_id), follow_redirects=False)
    assert resp.status_code == 303
    assert "reason=payment_past_due" in resp.headers["location"]


def test_sections_for_entitled_tenant(client, make_tenant):
    tenant_id = make_tenant(subscription_status="ACTIVE")
    resp = client.get("/v1/sections", params={"requested": "team"}, headers=_headers(tenant_id))
    body = resp.json()
    assert body["subscription_active"] is True
    assert body["initial_section"] == "team"
    assert not any(s["locked"] for s in body["sections"])


def test_sections_for_cancelled_tenant(client, make_tenant):
    tenant_id = make_tenant(subscription_status="CANCELLED")
    resp = client.get("/v1/sections", params={"requested": "team"}, headers=_headers(tenant_id))
    body = resp.json()
    assert body["subscription_active"] is False
    assert body["initial_section"] == "subscription"
    unlocked = [s["key"] for s in body["sections"] if not s["locked"]]
    assert unlocked == ["subscription"]


def test_external_usage(client, make_tenant):
    tenant_id = make_tenant(plan_key="CORPORATIVO")
    _store_key(tenant_id, ["read:reports", "read:pets"])
    resp = client.get("/v1/external/usage", headers={"Authorization": f"Bearer {RAW_KEY}"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["tenant_id"] == tenant_id
    assert body["bundle"] == "custom"
    assert body["usage"]["resources"]["pets"]["status"] == "unlimited"
    assert resp.headers["X-RateLimit-Limit"] == "250"


def test_external_usage_requires_scope(client, make_tenant):
    tenant_id = make_tenant(plan_key="CORPORATIVO")
    _store_key(tenant_id, ["read:pets"])
    resp = client.get("/v1/external/usage", headers={"Authorization": f"Bearer {RAW_KEY}"})
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "insufficient_scope"


def test_external_usage_requires_key(client):
    resp = client.get("/v1/external/usage")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "unauthenticated"
