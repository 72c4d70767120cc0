import json
from datetime import datetime, timedelta

import pytest


def _slot(days=2, hour=15):
    start = (datetime.utcnow() + timedelta(days=days)).replace(hour=hour, minute=0, second=0, microsecond=0)
    return start.isoformat()


@pytest.fixture
def schedule(client):
    def _schedule(**overrides):
        payload = {"title": "Technical screen", "company": "Acme", "scheduled_at": _slot()}
        payload.update(overrides)
        response = client.post("/api/interviews/", json=payload)
        assert response.status_code == 201, response.text
        return response.json()
    return _schedule


def test_schedule_interview_defaults(schedule):
    interview = schedule()
    assert interview["status"] == "scheduled"
    assert interview["reminder_hours"] == [24, 2]
    assert interview["has_conflict"] is False
    assert interview["history"][0]["action"] == "scheduled"


def test_reminder_hours_are_validated_and_sorted(client, schedule):
    interview = schedule(reminder_hours=[1, 48, 1])
    assert interview["reminder_hours"] == [48, 1]
    bad = client.post("/api/interviews/", json={
        "title": "x", "company": "y", "scheduled_at": _slot(), "reminder_hours": [500],
    })
    assert bad.status_code == 422


def test_timezone_aware_times_are_stored_as_utc(schedule):
    interview = schedule(scheduled_at="2030-05-01T10:00:00+02:00")
    assert interview["scheduled_at"].startswith("2030-05-01T08:00:00")


def test_overlapping_interviews_are_flagged(client, schedule):
    first = schedule(scheduled_at=_slot(hour=14), duration_minutes=60)
    second = schedule(scheduled_at=_slot(hour=14).replace("14:00", "14:30"), duration_minutes=60)
    assert second["has_conflict"] is True
    assert second["conflict_details"][0]["interview_id"] == first["id"]
    assert client.get(f"/api/interviews/{first['id']}").json()["has_conflict"] is True

    # Cancelling one clears the flag on the other
    client.post(f"/api/interviews/{second['id']}/cancel", json={"reason": "Moved"})
    assert client.get(f"/api/interviews/{first['id']}").json()["has_conflict"] is False


def test_back_to_back_interviews_do_not_conflict(client, schedule):
    schedule(scheduled_at=_slot(hour=10), duration_minutes=60)
    response = client.get("/api/interviews/conflicts", params={
        "scheduled_at": _slot(hour=11), "duration_minutes": 30,
    })
    assert response.json() == {"has_conflict": False, "conflicts": []}


def test_reschedule_resets_reminders_and_records_history(client, schedule):
    interview = schedule()
    new_time = _slot(days=5)
    response = client.post(f"/api/interviews/{interview['id']}/reschedule", json={
        "scheduled_at": new_time, "reason": "Interviewer sick",
    })
    body = response.json()
    assert body["status"] == "rescheduled"
    assert body["reminders_sent"] == []
    assert body["history"][-1]["action"] == "rescheduled"
    assert body["history"][-1]["details"]["reason"] == "Interviewer sick"


def test_cannot_reschedule_cancelled_interview(client, schedule):
    interview = schedule()
    client.post(f"/api/interviews/{interview['id']}/cancel", json={})
    response = client.post(f"/api/interviews/{interview['id']}/reschedule", json={"scheduled_at": _slot(days=3)})
    assert response.status_code == 400
    assert client.post(f"/api/interviews/{interview['id']}/cancel", json={}).status_code == 400


def test_outcome_moves_linked_job_forward(client, schedule, make_job):
    job = make_job(status="applied")
    interview = schedule(job_id=job["id"])
    response = client.post(f"/api/interviews/{interview['id']}/outcome", json={
        "result": "offer_extended", "rating": 5,
    })
    assert response.json()["status"] == "completed"
    assert response.json()["outcome"]["result"] == "offer_extended"

    updated_job = client.get(f"/api/jobs/{job['id']}").json()
    assert updated_job["status"] == "offer"
    history = client.get(f"/api/jobs/{job['id']}/history").json()
    assert history[-1]["notes"] == "Interview outcome: offer extended"


def test_outcome_leaves_closed_job_alone(client, schedule, make_job):
    job = make_job(status="withdrawn")
    interview = schedule(job_id=job["id"])
    client.post(f"/api/interviews/{interview['id']}/outcome", json={"result": "passed"})
    assert client.get(f"/api/jobs/{job['id']}").json()["status"] == "withdrawn"


def test_schedule_against_foreign_job_is_404(client, auth, users, make_job):
    job = make_job()
    auth.use(users["bob"])
    response = client.post("/api/interviews/", json={
        "title": "x", "company": "y", "scheduled_at": _slot(), "job_id": job["id"],
    })
    assert response.status_code == 404


def test_prep_tasks_toggle_and_delete(client, schedule):
    interview = schedule()
    body = client.post(f"/api/interviews/{interview['id']}/prep-tasks", json={
        "title": "Research the team", "priority": "high",
    }).json()
    task_id = body["preparation_tasks"][0]["id"]

    toggled = client.patch(f"/api/interviews/{interview['id']}/prep-tasks/{task_id}/toggle").json()
    assert toggled["preparation_tasks"][0]["completed"] is True
    assert toggled["preparation_tasks"][0]["completed_at"] is not None

    assert client.patch(f"/api/interviews/{interview['id']}/prep-tasks/missing/toggle").status_code == 404
    remaining = client.delete(f"/api/interviews/{interview['id']}/prep-tasks/{task_id}").json()
    assert remaining["preparation_tasks"] == []


def test_upcoming_summary(client, schedule):
    interview = schedule(scheduled_at=_slot(days=1))
    client.post(f"/api/interviews/{interview['id']}/prep-tasks", json={"title": "Practice"})
    schedule(scheduled_at=_slot(days=30))

    summary = client.get("/api/interviews/upcoming-summary?days=7").json()
    assert summary["total"] == 1
    assert summary["next_interview"]["id"] == interview["id"]
    assert summary["incomplete_prep_tasks"][0]["task"] == "Practice"


def test_time_until(client, schedule):
    interview = schedule(scheduled_at=_slot(days=3))
    result = client.get(f"/api/interviews/{interview['id']}/time-until").json()
    assert result["is_past"] is False
    assert result["days"] in (2, 3)


def test_coaching_without_ai_is_503(client, schedule):
    interview = schedule()
    response = client.post(f"/api/interviews/{interview['id']}/coaching/questions", json={})
    assert response.status_code == 503
    assert response.json()["success"] is False


def test_coaching_questions_and_feedback(client, schedule, ai_responses):
    interview = schedule()
    ai_responses.append(json.dumps({"questions": [
        {"question": "Tell me about a hard bug", "category": "behavioral"},
        {"question": "", "category": "junk"},
    ]}))
    questions = client.post(f"/api/interviews/{interview['id']}/coaching/questions", json={"count": 3}).json()
    assert [q["question"] for q in questions["questions"]] == ["Tell me about a hard bug"]

    ai_responses.append('Here you go: {"score": 14, "strengths": ["clear"], "improvements": []}')
    feedback = client.post(f"/api/interviews/{interview['id']}/coaching/feedback", json={
        "question": "Tell me about a hard bug", "answer": "I bisected it.",
    }).json()
    assert feedback["score"] == 10
    assert feedback["strengths"] == ["clear"]


def test_coaching_bad_ai_response_is_503(client, schedule, ai_responses):
    interview = schedule()
    ai_responses.append("not json at all")
    response = client.post(f"/api/interviews/{interview['id']}/coaching/questions", json={})
    assert response.status_code == 503
