"""Navigation API - tests for health probes, the resolve endpoint and handoff decoding.

Tests cover:
    - Liveness is always 200; readiness follows the backend
    - /resolve returns rewrite / set_page / settle with the reducer's reasons
    - /handoff/decode summarises a bundle; malformed bundles answer 400
    - Request validation errors use the VALIDATION_ERROR envelope
"""

import pytest

from tenantgate.core.handoff_codec import encode, fingerprint

from tests.builders import make_session

ALICE = {
    "id": 1,
    "username": "alice",
    "role": "owner",
    "company": {"id": 10, "name": "Acme"},
}


# ─── Health ──────────────────────────────────────────────────────

async def test_liveness(client):
    res = await client.get("/api/v1/health/")
    assert res.status_code == 200
    assert res.json()["service"] == "tenantgate-api"


async def test_readiness_follows_backend(client, backend_status):
    ready = await client.get("/api/v1/health/ready")
    assert ready.status_code == 200
    assert ready.json()["checks"] == {"backend": "healthy"}

    backend_status["code"] = 503
    down = await client.get("/api/v1/health/ready")
    assert down.status_code == 503
    assert down.json()["reason"] == "backend_unavailable"


# ─── /resolve ────────────────────────────────────────────────────

async def test_anonymous_tenant_path_rewrites_to_login(client):
    res = await client.post("/api/v1/navigation/resolve", json={"path": "/acme/leads"})
    body = res.json()

    assert res.status_code == 200
    assert body["action"] == "rewrite"
    assert body["path"] == "/login"
    assert body["page"] == "Login"
    assert body["reason"] == "login_required"


async def test_wrong_company_segment_is_corrected(client):
    res = await client.post(
        "/api/v1/navigation/resolve",
        json={"path": "/globex/leads/", "user": ALICE},
    )
    body = res.json()

    assert body["action"] == "rewrite"
    assert body["path"] == "/acme/leads"
    assert body["page"] == "Leads"
    assert body["reason"] == "company_segment"


@pytest.mark.parametrize("current_page, action", [(None, "set_page"), ("Leads", "settle")])
async def test_canonical_path(client, current_page, action):
    res = await client.post(
        "/api/v1/navigation/resolve",
        json={"path": "/acme/leads", "user": ALICE, "current_page": current_page},
    )
    assert res.json()["action"] == action
    assert res.json()["path"] == "/acme/leads"


async def test_view_lead_carries_id(client):
    res = await client.post(
        "/api/v1/navigation/resolve",
        json={"path": "/acme/view-lead/12", "user": ALICE},
    )
    assert res.json()["lead_id"] == 12
    assert res.json()["page"] == "ViewLead"


async def test_supervisor_restricted_page_goes_to_dashboard(client):
    supervisor = {**ALICE, "role": "supervisor"}
    res = await client.post(
        "/api/v1/navigation/resolve",
        json={"path": "/acme/settings", "user": supervisor},
    )
    body = res.json()
    assert body["path"] == "/acme/dashboard"
    assert body["reason"] == "restricted"


@pytest.mark.parametrize("payload", [
    {"path": ""},
    {"path": "/acme/leads", "current_lead_id": 0},
    {"path": "/acme/leads", "current_page": "Nowhere"},
])
async def test_invalid_request_is_400(client, payload):
    res = await client.post("/api/v1/navigation/resolve", json=payload)
    body = res.json()["error"]

    assert res.status_code == 400
    assert body["code"] == "VALIDATION_ERROR"
    assert body["details"]


# ─── /handoff/decode ─────────────────────────────────────────────

async def test_decode_summarises_bundle(client):
    token = encode(make_session())
    res = await client.post("/api/v1/navigation/handoff/decode", json={"token": token})
    body = res.json()

    assert res.status_code == 200
    assert body["fingerprint"] == fingerprint(token)
    assert body["user"]["company_slug"] == "acme"
    assert body["user"]["role"] == "owner"
    assert body["user"]["subscription_active"] is True
    assert "access" not in res.text


async def test_malformed_bundle_is_400(client):
    res = await client.post("/api/v1/navigation/handoff/decode", json={"token": "not-a-bundle!"})
    body = res.json()["error"]

    assert res.status_code == 400
    assert body["code"] == "HANDOFF_DECODE_ERROR"
