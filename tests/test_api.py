"""Tests for trustledger API v1 router."""

import os

import pytest
from httpx import AsyncClient, ASGITransport

from trustledger import LedgerConfig, ReputationLedger
from trustledger.api import create_app

OWNER = "owner"
ADMIN_KEY = os.environ["TRUSTLEDGER_ADMIN_KEY"]


def as_(account: str) -> dict:
    return {"X-Account-ID": account}


@pytest.fixture
def app():
    """Fresh app over an empty in-memory ledger."""
    return create_app(ledger=ReputationLedger(LedgerConfig(owner=OWNER)))


@pytest.fixture
def seeded_app():
    """App with verifier v1 (weight 80) and account alice."""
    ledger = ReputationLedger(LedgerConfig(owner=OWNER))
    ledger.register_verifier(OWNER, "v1", 80, 5000).unwrap()
    ledger.initialize_account("alice").unwrap()
    app = create_app(ledger=ledger)
    app._test_ledger = ledger
    return app


def client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_health(app):
    async with client(app) as c:
        r = await c.get("/api/v1/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["height"] == 0
    assert "X-Request-ID" in r.headers


@pytest.mark.asyncio
async def test_initialize_account(app):
    async with client(app) as c:
        r1 = await c.post("/api/v1/accounts", headers=as_("alice"))
        r2 = await c.post("/api/v1/accounts", headers=as_("alice"))
        r3 = await c.get("/api/v1/accounts/alice")
    assert r1.status_code == 201 and r1.json()["created"] is True
    assert r2.status_code == 200 and r2.json()["created"] is False
    assert r3.json()["score"] == 50
    assert r3.json()["status"] == "fair"


@pytest.mark.asyncio
async def test_missing_caller_header(app):
    async with client(app) as c:
        r = await c.post("/api/v1/accounts")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_unknown_account_404(app):
    async with client(app) as c:
        r = await c.get("/api/v1/accounts/ghost")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_register_verifier(app):
    async with client(app) as c:
        r = await c.post("/api/v1/verifiers", headers=as_(OWNER),
                         json={"verifier_id": "v1", "weight": 80, "stake": 5000})
        dup = await c.post("/api/v1/verifiers", headers=as_(OWNER),
                           json={"verifier_id": "v1", "weight": 80, "stake": 5000})
        got = await c.get("/api/v1/verifiers/v1")
    assert r.status_code == 201
    assert r.json()["is_active"] is True
    assert dup.status_code == 409
    assert dup.json()["code"] == "already-registered"
    assert got.json()["credibility_weight"] == 80


@pytest.mark.asyncio
async def test_register_verifier_not_owner(app):
    async with client(app) as c:
        r = await c.post("/api/v1/verifiers", headers=as_("mallory"),
                         json={"verifier_id": "v1", "weight": 80, "stake": 5000})
    assert r.status_code == 403
    assert r.json()["code"] == "not-authorized"


@pytest.mark.asyncio
async def test_register_verifier_bad_weight(app):
    async with client(app) as c:
        r = await c.post("/api/v1/verifiers", headers=as_(OWNER),
                         json={"verifier_id": "v1", "weight": 0, "stake": 5000})
    assert r.status_code == 400
    assert r.json()["code"] == "invalid-weight"


@pytest.mark.asyncio
async def test_submit_and_recompute(seeded_app):
    async with client(seeded_app) as c:
        r = await c.post("/api/v1/submissions", headers=as_("v1"),
                         json={"user": "alice", "score": 90, "ai_confidence": 70, "category": "kyc"})
        assert r.status_code == 201
        sid = r.json()["submission_id"]
        assert sid == 0

        sub = await c.get(f"/api/v1/submissions/{sid}")
        assert sub.json()["verifier"] == "v1"

        listed = await c.get("/api/v1/accounts/alice/submissions")
        assert [s["sequence"] for s in listed.json()] == [0]

        rc = await c.post("/api/v1/accounts/alice/recompute", json={"submission_ids": [sid]})
        assert rc.status_code == 200
        assert rc.json()["new_score"] == 57
        assert rc.json()["status"] == "fair"

        rep = await c.get("/api/v1/accounts/alice")
    assert rep.json()["score"] == 57
    assert rep.json()["total_interactions"] == 1


@pytest.mark.asyncio
async def test_submit_rejections(seeded_app):
    body = {"user": "alice", "score": 90, "ai_confidence": 70, "category": "kyc"}
    async with client(seeded_app) as c:
        stranger = await c.post("/api/v1/submissions", headers=as_("mallory"), json=body)
        bad_score = await c.post("/api/v1/submissions", headers=as_("v1"), json={**body, "score": 101})
        no_user = await c.post("/api/v1/submissions", headers=as_("v1"), json={**body, "user": "ghost"})
        await c.post("/api/v1/verifiers/v1/deactivate", headers=as_(OWNER))
        inactive = await c.post("/api/v1/submissions", headers=as_("v1"), json=body)
    assert (stranger.status_code, stranger.json()["code"]) == (403, "not-a-verifier")
    assert (bad_score.status_code, bad_score.json()["code"]) == (400, "invalid-score")
    assert (no_user.status_code, no_user.json()["code"]) == (404, "unknown-account")
    assert (inactive.status_code, inactive.json()["code"]) == (403, "inactive-verifier")


@pytest.mark.asyncio
async def test_recompute_batch_too_large(seeded_app):
    async with client(seeded_app) as c:
        r = await c.post("/api/v1/accounts/alice/recompute", json={"submission_ids": list(range(11))})
    assert r.status_code == 400
    assert r.json()["code"] == "batch-too-large"


@pytest.mark.asyncio
async def test_reactivate_verifier(seeded_app):
    async with client(seeded_app) as c:
        await c.post("/api/v1/verifiers/v1/deactivate", headers=as_(OWNER))
        r = await c.post("/api/v1/verifiers/v1/reactivate", headers=as_(OWNER))
    assert r.status_code == 200
    assert r.json()["is_active"] is True


@pytest.mark.asyncio
async def test_disputes(seeded_app):
    async with client(seeded_app) as c:
        r = await c.post("/api/v1/disputes", headers=as_("alice"), json={"reason": "too low"})
        assert r.status_code == 201
        assert r.json()["dispute_id"] == 0
        got = await c.get("/api/v1/accounts/alice/disputes/0")
        missing = await c.get("/api/v1/accounts/alice/disputes/5")
        ghost = await c.post("/api/v1/disputes", headers=as_("ghost"), json={"reason": "why"})
    assert got.json()["status"] == "open"
    assert got.json()["resolved_at"] == -1
    assert missing.status_code == 404
    assert ghost.status_code == 404


@pytest.mark.asyncio
async def test_advance_clock_requires_admin(seeded_app):
    async with client(seeded_app) as c:
        missing = await c.post("/api/v1/admin/clock/advance", json={"blocks": 10})
        wrong = await c.post("/api/v1/admin/clock/advance", json={"blocks": 10},
                             headers={"X-Admin-Key": "nope"})
        ok = await c.post("/api/v1/admin/clock/advance", json={"blocks": 2000},
                          headers={"X-Admin-Key": ADMIN_KEY})
        rep = await c.get("/api/v1/accounts/alice")
    assert missing.status_code == 401
    assert wrong.status_code == 403
    assert ok.json()["height"] == 2000
    assert rep.json()["score"] == 50
    assert rep.json()["effective_score"] == 45


@pytest.mark.asyncio
async def test_stats(seeded_app):
    async with client(seeded_app) as c:
        r = await c.get("/api/v1/stats")
    assert r.json() == {
        "total_users": 1,
        "total_verifiers": 1,
        "submission_sequence": 0,
        "dispute_sequence": 0,
        "height": 0,
        "owner": OWNER,
    }


@pytest.mark.asyncio
async def test_request_id_echoed(app):
    async with client(app) as c:
        r = await c.get("/api/v1/health", headers={"X-Request-ID": "abc123"})
    assert r.headers["X-Request-ID"] == "abc123"


def test_rate_limit_keyed_by_account():
    from starlette.requests import Request

    from trustledger.security import _rate_key

    scope = {"type": "http", "method": "GET", "path": "/", "client": ("10.0.0.1", 5000),
             "headers": [(b"x-account-id", b"alice")]}
    assert _rate_key(Request(scope)) == "account:alice"
    scope["headers"] = []
    assert _rate_key(Request(scope)) == "10.0.0.1"
