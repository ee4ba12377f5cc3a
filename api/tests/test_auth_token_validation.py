"""
Tests for bearer token validation.

These tests verify that:
1. Tokens issued by create_access_token authenticate protected endpoints
2. Expired, forged and subject-less tokens are rejected with 401
3. Detailed auth error responses include trace_id and reason in dev mode
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

pytest.importorskip("fastapi")
from fastapi import HTTPException
from fastapi.testclient import TestClient

import mingle.main as m
from mingle.auth import deps as auth_deps
from mingle.auth import security
from mingle.collaborators.channels import InMemoryChannel
from mingle.container import build_services
from mingle.deps import get_services


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(security, "JWT_SECRET", "test-secret")
    m.app.dependency_overrides[get_services] = lambda: build_services("memory", channel=InMemoryChannel())
    yield TestClient(m.app)
    m.app.dependency_overrides = {}


def _token(payload: dict) -> str:
    return jwt.encode(payload, "test-secret", algorithm=security.ALGORITHM)


def test_round_trip_token_carries_subject(monkeypatch):
    monkeypatch.setattr(security, "JWT_SECRET", "test-secret")
    payload = security.decode_access_token(security.create_access_token("u1"))
    assert payload["sub"] == "u1"
    assert payload["exp"] > payload["iat"]


def test_missing_secret_is_a_server_error(monkeypatch):
    monkeypatch.setattr(security, "JWT_SECRET", "")
    with pytest.raises(HTTPException) as exc:
        security.create_access_token("u1")
    assert exc.value.status_code == 500


def test_valid_token_reaches_endpoint(client):
    res = client.get("/matches", headers={"Authorization": f"Bearer {security.create_access_token('u1')}"})
    assert res.status_code == 200
    assert res.json() == {"matches": []}


def test_expired_token_rejected(client):
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    token = _token({"sub": "u1", "iat": int(past.timestamp()), "exp": int((past + timedelta(minutes=5)).timestamp())})
    res = client.get("/matches", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401
    assert "trace_id" in res.json()["detail"]


def test_forged_token_rejected(client):
    token = jwt.encode({"sub": "u1"}, "other-secret", algorithm="HS256")
    res = client.get("/matches", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401


def test_token_without_subject_rejected(client):
    res = client.get("/matches", headers={"Authorization": f"Bearer {_token({'iat': 0})}"})
    assert res.status_code == 401


def test_malformed_header_reports_reason_in_dev_mode(client, monkeypatch):
    monkeypatch.setattr(auth_deps, "DEV_MODE", True)
    res = client.get("/matches", headers={"Authorization": "Token abc"})
    assert res.status_code == 401
    assert res.json()["detail"]["reason"] == "malformed_token"
