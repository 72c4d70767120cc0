from datetime import date, datetime, timedelta

from applytrack.models import Job


def test_create_job_records_initial_history(client, make_job):
    job = make_job(status="applied", tags=["python"])
    assert job["status"] == "applied"
    assert job["application_date"] == date.today().isoformat()

    history = client.get(f"/api/jobs/{job['id']}/history").json()
    assert len(history) == 1
    assert history[0]["from_status"] is None
    assert history[0]["to_status"] == "applied"
    assert history[0]["changed_by"] == "user"


def test_create_job_rejects_inverted_salary_range(client):
    response = client.post("/api/jobs/", json={
        "title": "Engineer", "company": "Acme", "salary_min": 150000, "salary_max": 100000,
    })
    assert response.status_code == 422
    assert response.json()["success"] is False


def test_status_change_appends_history_and_stamps_dates(client, make_job):
    job = make_job()
    client.put(f"/api/jobs/{job['id']}/status", json={"status": "applied"})
    response = client.put(f"/api/jobs/{job['id']}/status", json={
        "status": "phone_screen", "notes": "Recruiter called", "next_action": "Prep",
    })
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "phone_screen"
    assert body["response_date"] == date.today().isoformat()
    assert body["next_action"] == "Prep"

    history = client.get(f"/api/jobs/{job['id']}/history").json()
    assert [h["to_status"] for h in history] == ["interested", "applied", "phone_screen"]
    assert history[-1]["from_status"] == "applied"
    assert history[-1]["notes"] == "Recruiter called"


def test_same_status_does_not_add_history(client, make_job):
    job = make_job()
    client.put(f"/api/jobs/{job['id']}/status", json={"status": "interested", "next_action": "Research"})
    history = client.get(f"/api/jobs/{job['id']}/history").json()
    assert len(history) == 1


def test_jobs_are_isolated_between_users(client, auth, users, make_job):
    job = make_job()
    auth.use(users["bob"])
    assert client.get(f"/api/jobs/{job['id']}").status_code == 404
    assert client.get("/api/jobs/").json() == []
    assert client.delete(f"/api/jobs/{job['id']}").status_code == 404


def test_list_filters_search_and_tag(client, make_job):
    make_job(title="Data Engineer", company="Globex", tags=["data"])
    make_job(title="Frontend Developer", company="Initech", status="applied")
    make_job(title="Platform Engineer", company="Acme", tags=["infra", "data"])

    assert len(client.get("/api/jobs/?search=engineer").json()) == 2
    assert [j["company"] for j in client.get("/api/jobs/?status=applied").json()] == ["Initech"]
    assert len(client.get("/api/jobs/?tag=data").json()) == 2
    titles = [j["title"] for j in client.get("/api/jobs/?sort_by=title&sort_order=asc").json()]
    assert titles == sorted(titles)


def test_update_checks_salary_against_stored_values(client, make_job):
    job = make_job(salary_min=100000, salary_max=120000)
    response = client.patch(f"/api/jobs/{job['id']}", json={"salary_min": 130000})
    assert response.status_code == 400
    assert "salary_min" in response.json()["message"]


def test_update_rejects_foreign_resume_link(client, make_job):
    job = make_job()
    response = client.patch(f"/api/jobs/{job['id']}", json={"resume_id": 999})
    assert response.status_code == 404


def test_archive_and_unarchive(client, make_job):
    job = make_job()
    response = client.post(f"/api/jobs/{job['id']}/archive", json={"reason": "Position filled"})
    assert response.status_code == 200
    assert response.json()["archived"] is True
    assert response.json()["archive_reason"] == "Position filled"

    assert client.get("/api/jobs/").json() == []
    assert len(client.get("/api/jobs/?archived=true").json()) == 1
    assert client.post(f"/api/jobs/{job['id']}/archive").status_code == 400

    assert client.post(f"/api/jobs/{job['id']}/unarchive").json()["archived"] is False
    assert client.post(f"/api/jobs/{job['id']}/unarchive").status_code == 400


def test_bulk_status_update(client, make_job):
    first = make_job()
    second = make_job(status="applied")
    response = client.post("/api/jobs/bulk/status", json={
        "job_ids": [first["id"], second["id"], 9999], "status": "applied",
    })
    body = response.json()
    assert body["updated"] == 1
    assert body["unchanged"] == 1
    assert body["not_found"] == [9999]


def test_bulk_deadline_shift_and_validation(client, make_job):
    deadline = date.today() + timedelta(days=5)
    with_deadline = make_job(deadline=deadline.isoformat())
    without = make_job()

    response = client.post("/api/jobs/bulk/deadline", json={
        "job_ids": [with_deadline["id"], without["id"]], "shift_days": 3,
    })
    assert response.json()["updated"] == 1
    shifted = client.get(f"/api/jobs/{with_deadline['id']}").json()
    assert shifted["deadline"] == (deadline + timedelta(days=3)).isoformat()

    both = client.post("/api/jobs/bulk/deadline", json={
        "job_ids": [without["id"]], "shift_days": 3, "clear": True,
    })
    assert both.status_code == 422


def test_stats_and_funnel(client, make_job):
    job = make_job()
    client.put(f"/api/jobs/{job['id']}/status", json={"status": "applied"})
    client.put(f"/api/jobs/{job['id']}/status", json={"status": "interview"})
    client.put(f"/api/jobs/{job['id']}/status", json={"status": "rejected"})
    make_job(status="applied")
    make_job()

    stats = client.get("/api/jobs/stats").json()
    assert stats["total"] == 3
    assert stats["by_status"]["rejected"] == 1
    assert stats["by_status"]["applied"] == 1
    assert stats["response_rate"] == 50.0

    funnel = client.get("/api/jobs/funnel").json()
    # The rejected job still counts as having reached the interview stage
    assert funnel["funnel"]["interested"] == 3
    assert funnel["funnel"]["applied"] == 2
    assert funnel["funnel"]["interview"] == 1
    assert funnel["conversion_rates"]["applied_to_phone_screen"] == 50.0


def test_upcoming_deadlines_skip_terminal_jobs(client, make_job):
    soon = make_job(title="Soon", deadline=(date.today() + timedelta(days=1)).isoformat())
    make_job(title="Later", deadline=(date.today() + timedelta(days=30)).isoformat())
    make_job(title="Closed", status="rejected", deadline=(date.today() + timedelta(days=2)).isoformat())

    upcoming = client.get("/api/jobs/upcoming-deadlines?days=7").json()
    assert [u["job"]["id"] for u in upcoming] == [soon["id"]]
    assert upcoming[0]["urgent"] is True


def test_stale_applications(client, db, make_job):
    job = make_job(status="applied")
    db.query(Job).filter(Job.id == job["id"]).update(
        {"last_status_change": datetime.utcnow() - timedelta(days=20)}
    )
    db.commit()
    make_job(status="applied")

    stale = client.get("/api/jobs/stale?days=14").json()
    assert stale["count"] == 1
    assert stale["jobs"][0]["id"] == job["id"]
    assert stale["jobs"][0]["days_since_change"] >= 20


def test_delete_job(client, make_job):
    job = make_job()
    assert client.delete(f"/api/jobs/{job['id']}").json() == {"message": "Job deleted"}
    assert client.get(f"/api/jobs/{job['id']}").status_code == 404


def test_tag_filter_applies_before_paging(client, make_job):
    make_job(title="Tagged", tags=["data"])
    for i in range(3):
        make_job(title=f"Untagged {i}")

    page = client.get("/api/jobs/?tag=data&limit=1").json()
    assert [j["title"] for j in page] == ["Tagged"]
    assert client.get("/api/jobs/?tag=data&skip=1").json() == []
