import re
from datetime import date, datetime, timedelta
from pathlib import Path

import pytest

from applytrack import __version__
from applytrack.auth.models import User
from applytrack.config import settings
from applytrack.services import ai_prompts


def test_health(client):
    body = client.get("/api/health").json()
    assert body["status"] == "healthy"
    assert body["version"] == __version__


def test_security_headers(client):
    response = client.get("/api/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_error_envelope(client):
    missing = client.get("/api/jobs/9999")
    assert missing.status_code == 404
    assert missing.json()["success"] is False

    invalid = client.post("/api/jobs/", json={"company": "Acme"})
    assert invalid.status_code == 422
    body = invalid.json()
    assert body["message"] == "Validation failed"
    assert body["errors"][0]["loc"][-1] == "title"


def test_dashboard(client, make_job):
    today = date.today()
    make_job(status="applied", deadline=(today + timedelta(days=3)).isoformat())
    make_job(title="Old", status="rejected")
    client.post("/api/interviews/", json={
        "title": "Screen", "company": "Acme",
        "scheduled_at": (datetime.utcnow() + timedelta(days=1)).replace(microsecond=0).isoformat(),
    })
    client.post("/api/contacts/", json={"name": "Pat", "next_follow_up": today.isoformat()})
    client.post("/api/goals/", json={"title": "Apply", "target_value": 1, "current_value": 1})

    dashboard = client.get("/api/dashboard").json()
    assert dashboard["jobs"]["total"] == 2
    assert dashboard["jobs"]["active"] == 1
    assert dashboard["jobs"]["by_status"] == {"applied": 1, "rejected": 1}
    assert dashboard["jobs"]["deadlines_this_week"] == 1
    assert dashboard["interviews"]["upcoming_7_days"] == 1
    assert dashboard["goals"] == {"total": 1, "completed": 1, "at_risk": 0}
    assert dashboard["contacts"] == {"total": 1, "follow_ups_due": 1}
    assert dashboard["profile_completion"] == 0


def test_export(client, make_job):
    make_job(title="Exported")
    response = client.get("/api/export")
    assert response.headers["Content-Disposition"].startswith("attachment; filename=applytrack_export_")
    data = response.json()
    assert data["user"]["email"] == "alice@example.com"
    assert data["jobs"][0]["title"] == "Exported"
    assert "salary_progression" in data

    partial = client.get("/api/export?include_jobs=false&include_salary=false").json()
    assert "jobs" not in partial
    assert "salary_negotiations" not in partial
    assert "contacts" in partial


def test_export_only_contains_own_data(client, auth, users, make_job):
    make_job()
    auth.use(users["bob"])
    assert client.get("/api/export").json()["jobs"] == []


def test_ai_status(client):
    status = client.get("/api/ai/status").json()
    assert status["provider"] == "gemini"
    assert status["available"] is False


def test_prompt_editing(client):
    listing = client.get("/api/ai/prompts").json()
    assert "cover_letter" in listing["available_names"]
    assert client.get("/api/ai/prompts/nope").status_code == 404
    assert client.put("/api/ai/prompts/job_analysis", json={}).status_code == 400

    original = ai_prompts.ALL_PROMPTS["job_analysis"]
    try:
        updated = client.put("/api/ai/prompts/job_analysis", json={"template": "Analyze {job}"}).json()
        assert updated["character_count"] == len("Analyze {job}")
        assert client.get("/api/ai/prompts/job_analysis").json()["template"] == "Analyze {job}"
        assert ai_prompts.JOB_ANALYSIS_PROMPT == "Analyze {job}"

        client.put("/api/ai/prompts/job_analysis", json={"reset": True})
        assert client.get("/api/ai/prompts/job_analysis").json()["template"] == original
    finally:
        ai_prompts.reset_prompt("job_analysis")


@pytest.fixture
def multi_user(monkeypatch):
    monkeypatch.setattr(settings.auth, "single_user_mode", False)


def test_admin_reminder_run(client, db, users, multi_user, sent_emails):
    assert client.post("/api/admin/reminders/run").status_code == 403

    db.get(User, users["alice"]).is_admin = True
    db.commit()
    result = client.post("/api/admin/reminders/run").json()
    assert result["ghosted_detection"]["updated"] == 0
    assert "ran_at" in result


def test_package_readme_is_present():
    root = Path(__file__).resolve().parent.parent
    declared = re.search(r'^readme = "([^"]+)"$', (root / "pyproject.toml").read_text(), re.M).group(1)
    assert declared == "README.md"
    assert (root / declared).read_text().startswith("# ApplyTrack")
