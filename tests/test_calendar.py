from datetime import datetime, timedelta
from types import SimpleNamespace
from urllib.parse import parse_qs, urlparse

import pytest

from applytrack.auth.models import CalendarConnection
from applytrack.auth.tokens import generate_calendar_state
from applytrack.config import settings
from applytrack.services import calendar_service
from applytrack.services.calendar_service import CalendarSyncError, build_event


@pytest.fixture
def google_configured(monkeypatch):
    monkeypatch.setattr(settings.calendar, "google_client_id", "client-123")
    monkeypatch.setattr(settings.calendar, "google_client_secret", "secret")


@pytest.fixture
def connection(db, users):
    row = CalendarConnection(
        user_id=users["alice"], provider="google", access_token="tok",
        refresh_token="refresh", expires_at=datetime.utcnow() + timedelta(hours=1),
    )
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def calendar_calls(monkeypatch):
    """Record provider API calls; POST answers with a new event id."""
    calls = []

    async def fake_call(conn, method, url, body=None):
        calls.append((method, url))
        if method == "POST":
            return {"id": f"evt-{len(calls)}"}
        return {} if method != "DELETE" else None

    monkeypatch.setattr(calendar_service, "_call", fake_call)
    return calls


@pytest.fixture
def interview(client):
    scheduled = (datetime.utcnow() + timedelta(days=2)).replace(microsecond=0)
    return client.post("/api/interviews/", json={
        "title": "Onsite", "company": "Acme", "scheduled_at": scheduled.isoformat(),
    }).json()


def test_build_event_for_each_provider():
    interview = SimpleNamespace(
        title="Onsite", company="Acme", scheduled_at=datetime(2030, 1, 2, 15, 0),
        ends_at=datetime(2030, 1, 2, 16, 0), location=None, meeting_link="https://meet.example/x",
        interviewer={"name": "Pat", "title": "CTO"}, notes=None, reminder_hours=[24, 1.5],
    )
    google = build_event("google", interview)
    assert google["summary"] == "Interview: Onsite at Acme"
    assert google["start"] == {"dateTime": "2030-01-02T15:00:00", "timeZone": "UTC"}
    assert [o["minutes"] for o in google["reminders"]["overrides"]] == [1440, 90]
    assert "Interviewer: Pat (CTO)" in google["description"]

    outlook = build_event("outlook", interview)
    assert outlook["subject"] == "Interview: Onsite at Acme"
    assert outlook["location"] == {"displayName": "https://meet.example/x"}


def test_status_lists_providers(client):
    status = client.get("/api/calendar/status").json()
    assert set(status) == {"google", "outlook"}
    assert status["google"] == {
        "configured": False, "connected": False, "account_email": None,
        "calendar_id": None, "expires_at": None,
    }


def test_connect_requires_configuration(client):
    assert client.get("/api/calendar/google/connect").status_code == 503
    assert client.get("/api/calendar/yahoo/connect").status_code == 400


def test_connect_returns_consent_url(client, google_configured):
    url = client.get("/api/calendar/google/connect").json()["authorization_url"]
    query = parse_qs(urlparse(url).query)
    assert url.startswith(calendar_service.GOOGLE_AUTH_URL)
    assert query["client_id"] == ["client-123"]
    assert query["access_type"] == ["offline"]
    assert query["redirect_uri"] == [f"{settings.api_url}/api/calendar/google/callback"]


def test_callback_rejects_bad_state(client, google_configured):
    response = client.get("/api/calendar/google/callback?code=abc&state=forged", follow_redirects=False)
    assert response.status_code == 302
    assert "error=invalid_state" in response.headers["location"]


def test_callback_stores_connection(client, db, users, google_configured, monkeypatch):
    async def fake_exchange(provider, code):
        assert code == "abc"
        return {"access_token": "new-token", "refresh_token": "r1",
                "expires_at": datetime.utcnow() + timedelta(hours=1)}

    monkeypatch.setattr(calendar_service, "exchange_code", fake_exchange)
    state = generate_calendar_state(users["alice"], "google")
    response = client.get(f"/api/calendar/google/callback?code=abc&state={state}", follow_redirects=False)
    assert response.status_code == 302
    assert "connected=true" in response.headers["location"]

    stored = db.query(CalendarConnection).filter(CalendarConnection.user_id == users["alice"]).one()
    assert stored.access_token == "new-token"
    assert client.get("/api/calendar/status").json()["google"]["connected"] is True


def test_callback_state_is_bound_to_provider(client, users, google_configured):
    state = generate_calendar_state(users["alice"], "outlook")
    response = client.get(f"/api/calendar/google/callback?code=abc&state={state}", follow_redirects=False)
    assert "error=invalid_state" in response.headers["location"]


def test_sync_without_connection(client, interview):
    assert client.post(f"/api/calendar/sync/{interview['id']}").status_code == 400


def test_sync_creates_updates_and_deletes(client, connection, calendar_calls, interview):
    created = client.post(f"/api/calendar/sync/{interview['id']}").json()
    assert created["action"] == "created"
    assert created["event_id"] == "evt-1"
    stored = client.get(f"/api/interviews/{interview['id']}").json()
    assert stored["calendar_sync_status"] == "synced"
    assert stored["calendar_provider"] == "google"

    updated = client.post(f"/api/calendar/sync/{interview['id']}").json()
    assert updated["action"] == "updated"
    assert calendar_calls[-1][0] == "PUT"
    assert calendar_calls[-1][1].endswith("/calendars/primary/events/evt-1")

    client.post(f"/api/interviews/{interview['id']}/cancel", json={})
    deleted = client.post(f"/api/calendar/sync/{interview['id']}").json()
    assert deleted["action"] == "deleted"
    assert deleted["event_id"] is None
    assert calendar_calls[-1][0] == "DELETE"


def test_sync_failure_is_recorded(client, connection, interview, monkeypatch):
    async def failing_call(conn, method, url, body=None):
        raise CalendarSyncError("Google returned status 500")

    monkeypatch.setattr(calendar_service, "_call", failing_call)
    response = client.post(f"/api/calendar/sync/{interview['id']}")
    assert response.status_code == 502
    stored = client.get(f"/api/interviews/{interview['id']}").json()
    assert stored["calendar_sync_status"] == "failed"


def test_expired_connection_without_refresh_token(client, db, connection, interview, calendar_calls):
    connection.expires_at = datetime.utcnow() - timedelta(minutes=5)
    connection.refresh_token = None
    db.commit()
    response = client.post(f"/api/calendar/sync/{interview['id']}")
    assert response.status_code == 502
    assert "reconnect" in response.json()["message"]
    assert calendar_calls == []


def test_disconnect(client, connection):
    assert client.delete("/api/calendar/google").json() == {"message": "Google calendar disconnected"}
    assert client.delete("/api/calendar/google").status_code == 404
