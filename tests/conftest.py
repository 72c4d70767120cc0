"""
Shared fixtures.

The environment is set before the application is imported so the engine,
limiter and settings pick up the test values: a throwaway SQLite file, no
rate limiting, no background reminder loop, no AI key and no email transport.
"""
import os
import re
import tempfile

_TEST_DIR = tempfile.mkdtemp(prefix="applytrack-tests-")
os.environ["APPLYTRACK_DATABASE_URL"] = f"sqlite:///{_TEST_DIR}/test.db"
os.environ["APPLYTRACK_RATE_LIMIT_ENABLED"] = "false"
os.environ["APPLYTRACK_REMINDERS_ENABLED"] = "false"
os.environ["APPLYTRACK_SINGLE_USER_MODE"] = "true"
os.environ["APPLYTRACK_GEMINI_API_KEY"] = ""
os.environ["APPLYTRACK_RESEND_API_KEY"] = ""
os.environ["APPLYTRACK_SMTP_HOST"] = ""

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient

from applytrack.database import Base, engine, SessionLocal, get_db
from applytrack.main import app
from applytrack.auth.dependencies import get_current_user
from applytrack.auth.models import User
from applytrack.services.email_service import email_service
from applytrack.services.ai_service import ai_service


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def users(db):
    """Two regular users; alice is signed in unless a test switches."""
    alice = User(email="alice@example.com", name="Alice Adams", is_active=True)
    bob = User(email="bob@example.com", name="Bob Brown", is_active=True)
    db.add_all([alice, bob])
    db.commit()
    return {"alice": alice.id, "bob": bob.id}


class ActingUser:
    """Which user the test client is acting as."""

    def __init__(self, user_id):
        self.user_id = user_id

    def use(self, user_id):
        self.user_id = user_id


@pytest.fixture
def auth(users):
    return ActingUser(users["alice"])


@pytest.fixture
def client(db, auth):
    def _current_user(session=Depends(get_db)):
        return session.get(User, auth.user_id)

    app.dependency_overrides[get_current_user] = _current_user
    # No context manager: the lifespan (migrations, seeding, reminder loop) stays off
    test_client = TestClient(app)
    try:
        yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def sent_emails(monkeypatch):
    """Capture outgoing mail instead of sending it."""
    outbox = []

    async def fake_send(to_email, subject, html_body, text_body=None):
        outbox.append({"to": to_email, "subject": subject, "html": html_body})
        return True

    monkeypatch.setattr(email_service, "send_email", fake_send)
    return outbox


@pytest.fixture
def token_from():
    """Pulls the invitation token out of an emailed accept link."""
    def _token(email: dict) -> str:
        match = re.search(r"token=([A-Za-z0-9_\-.]+)", email["html"])
        assert match, "no token in email"
        return match.group(1)
    return _token


@pytest.fixture
def ai_responses(monkeypatch):
    """
    Make AI available and answer prompts from a queue.

    Append strings to the returned list; each generation call pops the
    first one. An empty queue raises AIServiceError.
    """
    from applytrack.services.ai_service import AIServiceError

    queue = []

    async def fake_generate(prompt, temperature=None, max_tokens=None, json_mode=False):
        if not queue:
            raise AIServiceError("no canned response")
        return queue.pop(0)

    monkeypatch.setattr(ai_service, "enabled", True)
    monkeypatch.setattr(ai_service, "api_key", "test-key")
    monkeypatch.setattr(ai_service, "_generate", fake_generate)
    return queue


@pytest.fixture
def make_job(client):
    def _make(**overrides):
        payload = {"title": "Backend Engineer", "company": "Acme"}
        payload.update(overrides)
        response = client.post("/api/jobs/", json=payload)
        assert response.status_code == 201, response.text
        return response.json()
    return _make
