from datetime import date, timedelta

import pytest


@pytest.fixture
def make_contact(client):
    def _make(**overrides):
        payload = {"name": "Riley Recruiter", "company": "Acme", "relationship_type": "recruiter"}
        payload.update(overrides)
        response = client.post("/api/contacts/", json=payload)
        assert response.status_code == 201, response.text
        return response.json()
    return _make


def test_create_contact_validates_email(client, make_contact):
    contact = make_contact(email="riley@acme.com", tags=["warm"])
    assert contact["relationship_strength"] == 0
    assert contact["tags"] == ["warm"]
    bad = client.post("/api/contacts/", json={"name": "X", "email": "nope"})
    assert bad.status_code == 422


def test_linked_jobs_must_belong_to_user(client, auth, users, make_job, make_contact):
    job = make_job()
    contact = make_contact(linked_job_ids=[job["id"]])
    assert contact["linked_job_ids"] == [job["id"]]

    auth.use(users["bob"])
    response = client.post("/api/contacts/", json={"name": "Y", "linked_job_ids": [job["id"]]})
    assert response.status_code == 404


def test_link_and_unlink_job(client, make_job, make_contact):
    job = make_job()
    contact = make_contact()
    linked = client.post(f"/api/contacts/{contact['id']}/jobs/{job['id']}").json()
    assert linked["linked_job_ids"] == [job["id"]]
    # Linking twice does not duplicate
    assert client.post(f"/api/contacts/{contact['id']}/jobs/{job['id']}").json()["linked_job_ids"] == [job["id"]]
    assert [c["id"] for c in client.get(f"/api/contacts/?job_id={job['id']}").json()] == [contact["id"]]

    unlinked = client.delete(f"/api/contacts/{contact['id']}/jobs/{job['id']}").json()
    assert unlinked["linked_job_ids"] == []


def test_list_filters(client, make_contact):
    make_contact(name="Alex Mentor", relationship_type="mentor", tags=["design"])
    make_contact(name="Blake Colleague", company="Globex", relationship_type="colleague")
    make_contact(name="Casey Recruiter")

    assert [c["name"] for c in client.get("/api/contacts/?relationship_type=mentor").json()] == ["Alex Mentor"]
    assert [c["name"] for c in client.get("/api/contacts/?search=globex").json()] == ["Blake Colleague"]
    assert [c["name"] for c in client.get("/api/contacts/?tag=design").json()] == ["Alex Mentor"]
    names = [c["name"] for c in client.get("/api/contacts/?sort_by=name&sort_order=desc").json()]
    assert names == ["Casey Recruiter", "Blake Colleague", "Alex Mentor"]


def test_activity_moves_last_contacted_forward_only(client, make_contact):
    contact = make_contact()
    recent = date.today()
    client.post(f"/api/contacts/{contact['id']}/activities", json={
        "activity_type": "call", "activity_date": recent.isoformat(),
        "next_follow_up": (recent + timedelta(days=14)).isoformat(),
    })
    client.post(f"/api/contacts/{contact['id']}/activities", json={
        "activity_type": "email", "activity_date": (recent - timedelta(days=30)).isoformat(),
    })

    stored = client.get(f"/api/contacts/{contact['id']}").json()
    assert stored["last_contacted"] == recent.isoformat()
    assert stored["next_follow_up"] == (recent + timedelta(days=14)).isoformat()

    activities = client.get(f"/api/contacts/{contact['id']}/activities").json()
    assert [a["activity_type"] for a in activities] == ["call", "email"]


def test_delete_activity(client, make_contact):
    contact = make_contact()
    activity = client.post(f"/api/contacts/{contact['id']}/activities", json={"activity_type": "meeting"}).json()
    assert client.delete(f"/api/contacts/{contact['id']}/activities/{activity['id']}").status_code == 200
    assert client.delete(f"/api/contacts/{contact['id']}/activities/{activity['id']}").status_code == 404


def test_follow_ups_and_snooze(client, make_contact):
    overdue = make_contact(name="Overdue", next_follow_up=(date.today() - timedelta(days=2)).isoformat())
    make_contact(name="Soon", next_follow_up=(date.today() + timedelta(days=3)).isoformat())
    make_contact(name="Later", next_follow_up=(date.today() + timedelta(days=40)).isoformat())

    due = client.get("/api/contacts/follow-ups?days=7").json()
    assert [c["name"] for c in due] == ["Overdue", "Soon"]
    assert [c["name"] for c in client.get("/api/contacts/follow-ups?include_overdue=false").json()] == ["Soon"]

    snoozed = client.patch(f"/api/contacts/{overdue['id']}/snooze?days=10").json()
    assert snoozed["next_follow_up"] == (date.today() + timedelta(days=10)).isoformat()


def test_stats(client, make_contact):
    contact = make_contact(relationship_strength=7)
    make_contact(name="M", relationship_type="mentor", next_follow_up=date.today().isoformat())
    client.post(f"/api/contacts/{contact['id']}/activities", json={"activity_type": "referral_request"})

    stats = client.get("/api/contacts/stats").json()
    assert stats["total"] == 2
    assert stats["by_relationship_type"] == {"recruiter": 1, "mentor": 1}
    assert stats["by_strength"]["7"] == 1
    assert stats["needs_follow_up"] == 1
    assert stats["contacted_this_week"] == 1
    assert stats["referral_requests"] == 1


def test_bulk_create(client):
    created = client.post("/api/contacts/bulk", json=[{"name": "One"}, {"name": "Two"}])
    assert created.status_code == 201
    assert [c["name"] for c in created.json()] == ["One", "Two"]
    assert client.post("/api/contacts/bulk", json=[]).status_code == 400


def test_contacts_are_private(client, auth, users, make_contact):
    contact = make_contact()
    auth.use(users["bob"])
    assert client.get(f"/api/contacts/{contact['id']}").status_code == 404
    assert client.get("/api/contacts/").json() == []
