from datetime import datetime, timedelta, timezone

import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

import mingle.main as m
from mingle.auth import security
from mingle.collaborators.channels import InMemoryChannel
from mingle.container import build_services
from mingle.deps import get_services
from mingle.services import rate_limit
from mingle.services.notifications import MATCH_FORMED


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def api(monkeypatch):
    monkeypatch.setattr(security, "JWT_SECRET", "test-secret")
    rate_limit.limiter.reset()
    clock = FakeClock(datetime(2026, 3, 1, 20, 0, tzinfo=timezone.utc))
    channel = InMemoryChannel()
    services = build_services("memory", clock=clock, channel=channel)
    m.app.dependency_overrides[get_services] = lambda: services
    client = TestClient(m.app)
    yield client, services, clock, channel
    m.app.dependency_overrides = {}


def _auth(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {security.create_access_token(user_id)}"}


def _matched(client) -> str:
    client.post("/checkins", json={"venue_id": "v1"}, headers=_auth("u1"))
    client.post("/checkins", json={"venue_id": "v1"}, headers=_auth("u2"))
    first = client.post("/interests", json={"to_user_id": "u2", "venue_id": "v1"}, headers=_auth("u1"))
    assert first.status_code == 200
    assert first.json()["status"] == "pending"
    second = client.post("/interests", json={"to_user_id": "u1", "venue_id": "v1"}, headers=_auth("u2"))
    assert second.json()["status"] == "matched"
    return second.json()["match_id"]


def test_requests_without_token_are_rejected(api):
    client, *_ = api
    res = client.get("/matches")
    assert res.status_code == 401
    res = client.get("/matches", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


def test_scaffold_health_endpoints(api):
    client, *_ = api
    for module in ("checkins", "interests", "matches", "messages", "rematch", "safety"):
        res = client.get(f"/_scaffold/{module}/health")
        assert res.status_code == 200
        assert res.json() == {"status": "ok", "module": module}


def test_like_match_message_share_expire_rematch_flow(api):
    client, services, clock, channel = api
    match_id = _matched(client)
    assert len(channel.of_type(MATCH_FORMED)) == 2

    res = client.get(f"/matches/{match_id}", headers=_auth("u1"))
    assert res.status_code == 200
    body = res.json()["match"]
    assert body["status"] == "active"
    assert body["other_user_id"] == "u2"
    assert body["seconds_remaining"] == 3 * 3600
    assert body["rematch_available"] is False

    for i in range(3):
        res = client.post(f"/matches/{match_id}/messages", json={"text": f"hi {i}"}, headers=_auth("u1"))
        assert res.status_code == 201
    assert res.json()["remaining"] == 0

    res = client.post(f"/matches/{match_id}/messages", json={"text": "again"}, headers=_auth("u1"))
    assert res.status_code == 429
    assert res.json()["kind"] == "quota_exceeded"
    assert res.json()["reason"] == "limit_reached"

    res = client.get(f"/matches/{match_id}/messages", headers=_auth("u2"))
    assert len(res.json()["messages"]) == 3
    assert res.json()["unread"] == 3
    assert client.post(f"/matches/{match_id}/read", headers=_auth("u2")).json() == {"marked": 3}

    clock.advance(minutes=10)
    res = client.post(f"/matches/{match_id}/contact", json={"kind": "phone", "value": "555-0100"}, headers=_auth("u2"))
    assert res.status_code == 200
    assert res.json()["match"]["status"] == "contact_shared"
    res = client.post(f"/matches/{match_id}/contact", json={"kind": "email", "value": "u1@example.com"}, headers=_auth("u1"))
    assert res.status_code == 409
    assert res.json()["kind"] == "contact_already_shared"
    clock.advance(minutes=1)

    res = client.post(f"/matches/{match_id}/messages", json={"text": "thanks!"}, headers=_auth("u1"))
    assert res.status_code == 201
    assert res.json()["frozen"] is True
    assert res.json()["remaining"] == 3

    clock.advance(hours=3)
    res = client.post(f"/matches/{match_id}/messages", json={"text": "still there?"}, headers=_auth("u1"))
    assert res.status_code == 410
    assert res.json()["kind"] == "expired"
    assert res.json()["rematch_available"] is True

    client.post("/checkins", json={"venue_id": "v1"}, headers=_auth("u1"))
    client.post("/checkins", json={"venue_id": "v1"}, headers=_auth("u2"))
    assert client.get(f"/matches/{match_id}/rematch", headers=_auth("u2")).json()["rematch_available"] is True
    res = client.post(f"/matches/{match_id}/rematch", headers=_auth("u1"))
    assert res.status_code == 201
    new = res.json()["match"]
    assert new["rematched_from_id"] == match_id
    assert new["status"] == "active"

    res = client.post(f"/matches/{match_id}/rematch", headers=_auth("u2"))
    assert res.status_code == 409
    assert res.json()["kind"] == "already_rematched"

    listed = client.get("/matches", headers=_auth("u1")).json()["matches"]
    assert [row["id"] for row in listed] == [new["id"], match_id]


def test_error_mapping(api):
    client, services, clock, _ = api
    match_id = _matched(client)

    assert client.get("/matches/missing", headers=_auth("u1")).status_code == 404
    assert client.get(f"/matches/{match_id}", headers=_auth("u3")).status_code == 403

    res = client.post("/interests", json={"to_user_id": "u1", "venue_id": "v1"}, headers=_auth("u1"))
    assert res.status_code == 400
    assert res.json()["kind"] == "self_interest"

    res = client.post("/interests", json={"to_user_id": "u9", "venue_id": "v1"}, headers=_auth("u1"))
    assert res.status_code == 409
    assert res.json()["kind"] == "not_checked_in"

    res = client.post(f"/matches/{match_id}/messages", json={"text": "   "}, headers=_auth("u1"))
    assert res.status_code == 400
    assert res.json()["kind"] == "validation_failed"

    res = client.post(f"/matches/{match_id}/rematch", headers=_auth("u1"))
    assert res.status_code == 409
    assert res.json()["kind"] == "not_expired"

    client.post("/safety/block", json={"blocked_user_id": "u1"}, headers=_auth("u2"))
    res = client.post(f"/matches/{match_id}/messages", json={"text": "hello"}, headers=_auth("u1"))
    assert res.status_code == 403
    assert res.json()["kind"] == "blocked"
    quota = client.get(f"/matches/{match_id}/quota", headers=_auth("u1")).json()
    assert quota["reason"] == "blocked"
    assert quota["can_send"] is False


def test_typing_and_mutual_interest(api):
    client, *_ = api
    match_id = _matched(client)

    res = client.post(f"/matches/{match_id}/typing", json={"is_typing": True}, headers=_auth("u1"))
    assert res.status_code == 204
    assert client.get(f"/matches/{match_id}/typing", headers=_auth("u2")).json() == {"typing": ["u1"]}

    assert client.get("/interests/mutual/u2", headers=_auth("u1")).json() == {"mutual": True}
    assert client.get("/interests/mutual/u3", headers=_auth("u1")).json() == {"mutual": False}
    res = client.get("/interests/likes-remaining", params={"venue_id": "v1"}, headers=_auth("u1"))
    assert res.json() == {"venue_id": "v1", "remaining": 2}


def test_rate_limit_returns_429(api, monkeypatch):
    client, *_ = api
    monkeypatch.setattr(rate_limit, "limiter", rate_limit.InMemoryRateLimiter())
    client.post("/checkins", json={"venue_id": "v1"}, headers=_auth("u1"))
    for _ in range(60):
        rate_limit.limiter.check("interest:u1", limit=60, window_seconds=60)
    res = client.post("/interests", json={"to_user_id": "u2", "venue_id": "v1"}, headers=_auth("u1"))
    assert res.status_code == 429
    assert "Retry-After" in res.headers
