from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from applytrack.auth.dependencies import LOCAL_USER_EMAIL, decode_session_token
from applytrack.auth.models import User
from applytrack.config import settings
from applytrack.main import app

SIGNING_KEY = "clerk-test-key"


@pytest.fixture
def clerk_mode(monkeypatch):
    """Verify real tokens, signed with a shared HS256 key."""
    monkeypatch.setattr(settings.auth, "single_user_mode", False)
    monkeypatch.setattr(settings.auth, "clerk_jwt_key", SIGNING_KEY)
    monkeypatch.setattr(settings.auth, "clerk_algorithms", "HS256")
    monkeypatch.setattr(settings.auth, "clerk_issuer", None)


@pytest.fixture
def raw_client(db):
    """A client with no dependency overrides."""
    return TestClient(app)


def _token(sub="user_123", expires_in=timedelta(minutes=5), **claims):
    payload = {"sub": sub, "exp": datetime.utcnow() + expires_in, **claims}
    return jwt.encode(payload, SIGNING_KEY, algorithm="HS256")


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_auth_status(client):
    status = client.get("/api/users/status").json()
    assert status["single_user_mode"] is True
    assert status["provider"] is None
    assert status["token_verification_configured"] is False


def test_single_user_mode_uses_local_account(raw_client, db):
    me = raw_client.get("/api/users/me").json()
    assert me["email"] == LOCAL_USER_EMAIL
    raw_client.get("/api/users/me")
    assert db.query(User).filter(User.email == LOCAL_USER_EMAIL).count() == 1


def test_missing_token_is_rejected(raw_client, clerk_mode):
    response = raw_client.get("/api/users/me")
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Not authenticated"}
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_bad_and_expired_tokens(raw_client, clerk_mode):
    assert raw_client.get("/api/users/me", headers=_bearer("not-a-jwt")).status_code == 401
    expired = _token(expires_in=timedelta(minutes=-5))
    assert raw_client.get("/api/users/me", headers=_bearer(expired)).status_code == 401


def test_first_request_provisions_user(raw_client, db, clerk_mode):
    token = _token(sub="user_new", email="New.Person@Example.com", name="New Person")
    me = raw_client.get("/api/users/me", headers=_bearer(token)).json()
    assert me["email"] == "new.person@example.com"
    assert me["name"] == "New Person"
    assert me["subscription_tier"] == "free"

    again = raw_client.get("/api/users/me", headers=_bearer(token)).json()
    assert again["id"] == me["id"]
    assert db.query(User).filter(User.clerk_user_id == "user_new").count() == 1


def test_existing_account_is_linked_by_email(raw_client, db, users, clerk_mode):
    token = _token(sub="user_alice", email="alice@example.com")
    me = raw_client.get("/api/users/me", headers=_bearer(token)).json()
    assert me["id"] == users["alice"]
    db.expire_all()
    assert db.get(User, users["alice"]).clerk_user_id == "user_alice"


def test_issuer_is_checked(raw_client, clerk_mode, monkeypatch):
    monkeypatch.setattr(settings.auth, "clerk_issuer", "https://clerk.applytrack.test")
    wrong = _token(iss="https://evil.example")
    assert raw_client.get("/api/users/me", headers=_bearer(wrong)).status_code == 401
    right = _token(iss="https://clerk.applytrack.test")
    assert raw_client.get("/api/users/me", headers=_bearer(right)).status_code == 200


def test_decode_without_key_configured(monkeypatch):
    monkeypatch.setattr(settings.auth, "clerk_jwt_key", None)
    assert decode_session_token("anything") is None


def test_subject_is_required(clerk_mode):
    token = jwt.encode({"email": "x@example.com"}, SIGNING_KEY, algorithm="HS256")
    assert decode_session_token(token) is None


def test_update_preferences(client):
    updated = client.patch("/api/users/me", json={
        "name": "Alice A.", "follow_up_reminders": False, "follow_up_after_days": 10,
    }).json()
    assert updated["name"] == "Alice A."
    assert updated["follow_up_reminders"] is False
    assert updated["follow_up_after_days"] == 10
    assert client.patch("/api/users/me", json={"follow_up_after_days": 0}).status_code == 422


def test_deactivation(client, monkeypatch):
    assert client.delete("/api/users/me").status_code == 400

    monkeypatch.setattr(settings.auth, "single_user_mode", False)
    assert client.delete("/api/users/me").json() == {"message": "Account deactivated"}
    response = client.get("/api/users/me")
    assert response.status_code == 403
    assert response.json()["message"] == "Account is deactivated"
