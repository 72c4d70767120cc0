from datetime import date, timedelta

from applytrack.models import Goal
from applytrack.routers.goals import derive_status, elapsed_percent


def _goal(**kwargs):
    defaults = {"title": "g", "target_value": 10, "current_value": 0, "milestones": []}
    defaults.update(kwargs)
    return Goal(**defaults)


def test_elapsed_percent():
    today = date(2030, 1, 11)
    goal = _goal(start_date=date(2030, 1, 1), target_date=date(2030, 1, 21))
    assert elapsed_percent(goal, today) == 50.0
    assert elapsed_percent(_goal(), today) is None
    same_day = _goal(start_date=today, target_date=today)
    assert elapsed_percent(same_day, today) == 100.0


def test_derive_status():
    today = date(2030, 1, 11)
    window = {"start_date": date(2030, 1, 1), "target_date": date(2030, 1, 21)}
    # 50% of the time used, 20% done: lagging by 30 points
    assert derive_status(_goal(current_value=2, **window), today) == "at_risk"
    # Lagging by exactly 20 points is still on track
    assert derive_status(_goal(current_value=3, **window), today) == "on_track"
    assert derive_status(_goal(current_value=10, **window), today) == "completed"
    # No timeline: never at risk
    assert derive_status(_goal(current_value=0), today) == "on_track"


def test_progress_percent_from_milestones():
    goal = _goal(target_value=None, milestones=[{"completed": True}, {"completed": False}, {"completed": False}])
    assert goal.progress_percent == 33.3


def test_create_goal_defaults(client):
    response = client.post("/api/goals/", json={"title": "Land a job", "target_value": 5, "unit": "offers"})
    assert response.status_code == 201
    goal = response.json()
    assert goal["status"] == "not_started"
    assert goal["start_date"] == date.today().isoformat()
    assert goal["progress_percent"] == 0.0


def test_create_goal_rejects_inverted_dates(client):
    response = client.post("/api/goals/", json={
        "title": "x", "start_date": "2030-02-01", "target_date": "2030-01-01",
    })
    assert response.status_code == 422


def test_progress_updates_drive_status(client):
    goal = client.post("/api/goals/", json={
        "title": "Apply to 20 jobs", "target_value": 20,
        "start_date": (date.today() - timedelta(days=10)).isoformat(),
        "target_date": (date.today() + timedelta(days=10)).isoformat(),
    }).json()

    behind = client.post(f"/api/goals/{goal['id']}/progress", json={"value": 2}).json()
    assert behind["status"] == "at_risk"
    assert behind["progress_updates"][-1]["value"] == 2

    ahead = client.post(f"/api/goals/{goal['id']}/progress", json={"value": 12, "notes": "Good week"}).json()
    assert ahead["status"] == "on_track"

    done = client.post(f"/api/goals/{goal['id']}/progress", json={"value": 25}).json()
    assert done["status"] == "completed"
    assert done["progress_percent"] == 100.0
    assert done["completed_at"] is not None
    assert len(done["progress_updates"]) == 3


def test_milestone_goal(client):
    goal = client.post("/api/goals/", json={
        "title": "Get certified", "category": "professional_certification",
        "milestones": [{"title": "Study"}, {"title": "Pass exam"}],
    }).json()
    first, second = goal["milestones"]

    half = client.patch(f"/api/goals/{goal['id']}/milestones/{first['id']}/complete").json()
    assert half["progress_percent"] == 50.0
    done = client.patch(f"/api/goals/{goal['id']}/milestones/{second['id']}/complete").json()
    assert done["status"] == "completed"

    # A new milestone reopens the goal
    reopened = client.post(f"/api/goals/{goal['id']}/milestones", json={"title": "Renew"}).json()
    assert reopened["status"] != "completed"
    assert reopened["completed_at"] is None
    assert client.patch(f"/api/goals/{goal['id']}/milestones/nope/complete").status_code == 404


def test_abandoned_goal_is_frozen(client):
    goal = client.post("/api/goals/", json={"title": "Learn Rust", "target_value": 10}).json()
    abandoned = client.patch(f"/api/goals/{goal['id']}", json={"status": "abandoned"}).json()
    assert abandoned["status"] == "abandoned"
    assert client.post(f"/api/goals/{goal['id']}/progress", json={"value": 5}).status_code == 400


def test_update_rejects_target_before_start(client):
    goal = client.post("/api/goals/", json={"title": "x", "start_date": date.today().isoformat()}).json()
    response = client.patch(f"/api/goals/{goal['id']}", json={
        "target_date": (date.today() - timedelta(days=1)).isoformat(),
    })
    assert response.status_code == 400


def test_goal_stats(client):
    client.post("/api/goals/", json={"title": "Done", "target_value": 1, "current_value": 1})
    client.post("/api/goals/", json={
        "title": "Overdue", "target_value": 10,
        "start_date": (date.today() - timedelta(days=30)).isoformat(),
        "target_date": (date.today() - timedelta(days=1)).isoformat(),
    })
    stats = client.get("/api/goals/stats").json()
    assert stats["total"] == 2
    assert stats["completed"] == 1
    assert stats["completion_rate"] == 50.0
    assert stats["overdue"] == 1
    assert stats["overdue_goals"][0]["title"] == "Overdue"


def test_goals_filter_and_isolation(client, auth, users):
    client.post("/api/goals/", json={"title": "Network", "category": "networking"})
    client.post("/api/goals/", json={"title": "Search"})
    assert [g["title"] for g in client.get("/api/goals/?category=networking").json()] == ["Network"]
    auth.use(users["bob"])
    assert client.get("/api/goals/").json() == []
