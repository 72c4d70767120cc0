import pytest


@pytest.fixture
def invite(client, sent_emails, token_from):
    """Alice invites Bob; returns the relationship and the emailed token."""
    def _invite(**overrides):
        payload = {"mentor_email": "Bob@Example.com", "relationship_type": "career_coach",
                   "invitation_message": "Would love your help"}
        payload.update(overrides)
        response = client.post("/api/mentors/invite", json=payload)
        assert response.status_code == 201, response.text
        return response.json(), token_from(sent_emails[-1])
    return _invite


@pytest.fixture
def accepted(client, auth, users, invite):
    relationship, token = invite()
    auth.use(users["bob"])
    response = client.post(f"/api/mentors/invitations/{token}/accept")
    assert response.status_code == 200, response.text
    return response.json()


def test_invite_sends_email_without_exposing_token(invite, sent_emails):
    relationship, token = invite()
    assert relationship["status"] == "pending"
    assert relationship["mentor_email"] == "bob@example.com"
    assert "token" not in relationship
    assert sent_emails[0]["to"] == "bob@example.com"
    assert "Alice Adams" in sent_emails[0]["subject"]


def test_cannot_invite_self_or_twice(client, invite):
    invite()
    assert client.post("/api/mentors/invite", json={"mentor_email": "bob@example.com"}).status_code == 409
    assert client.post("/api/mentors/invite", json={"mentor_email": "alice@example.com"}).status_code == 400


def test_accept_links_mentor(client, users, accepted):
    assert accepted["status"] == "accepted"
    assert accepted["mentor_id"] == users["bob"]
    assert accepted["mentor_name"] == "Bob Brown"
    assert [r["id"] for r in client.get("/api/mentors/my-mentees").json()] == [accepted["id"]]


def test_token_only_works_for_invited_address(client, db, auth, invite):
    from applytrack.auth.models import User

    _, token = invite()
    carol = User(email="carol@example.com", name="Carol", is_active=True)
    db.add(carol)
    db.commit()
    auth.use(carol.id)
    assert client.post(f"/api/mentors/invitations/{token}/accept").status_code == 403
    assert client.post("/api/mentors/invitations/garbage/accept").status_code == 400


def test_reject_then_token_is_spent(client, auth, users, invite):
    _, token = invite()
    auth.use(users["bob"])
    assert client.post(f"/api/mentors/invitations/{token}/reject").json()["status"] == "rejected"
    assert client.post(f"/api/mentors/invitations/{token}/accept").status_code == 400


def test_progress_respects_sharing_flags(client, auth, users, accepted, make_job):
    auth.use(users["alice"])
    make_job(status="applied")
    client.post("/api/goals/", json={"title": "Apply to 10 jobs", "target_value": 10})

    auth.use(users["bob"])
    progress = client.get(f"/api/mentors/{accepted['id']}/progress").json()
    assert progress["applications"]["total"] == 1
    assert progress["applications"]["by_status"] == {"applied": 1}
    assert progress["goals"][0]["title"] == "Apply to 10 jobs"
    assert progress["resumes"] is None

    # Only the mentee can change what is shared
    assert client.patch(f"/api/mentors/{accepted['id']}/sharing", json={"share_goals": False}).status_code == 403
    auth.use(users["alice"])
    client.patch(f"/api/mentors/{accepted['id']}/sharing", json={"share_applications": False})
    auth.use(users["bob"])
    assert client.get(f"/api/mentors/{accepted['id']}/progress").json()["applications"] is None


def test_feedback_only_from_mentor(client, auth, users, accepted):
    created = client.post(f"/api/mentors/{accepted['id']}/feedback", json={
        "feedback_type": "resume", "subject": "Summary", "content": "Tighten the summary.",
    })
    assert created.status_code == 201
    feedback = created.json()
    assert feedback["status"] == "open"

    auth.use(users["alice"])
    assert client.post(f"/api/mentors/{accepted['id']}/feedback", json={"content": "x"}).status_code == 403
    updated = client.patch(f"/api/mentors/{accepted['id']}/feedback/{feedback['id']}", json={"status": "completed"})
    assert updated.json()["status"] == "completed"
    assert client.get(f"/api/mentors/{accepted['id']}/feedback?status=open").json() == []


def test_cancel_ends_relationship(client, auth, users, accepted):
    cancelled = client.post(f"/api/mentors/{accepted['id']}/cancel").json()
    assert cancelled["status"] == "cancelled"
    assert client.post(f"/api/mentors/{accepted['id']}/cancel").status_code == 400
    assert client.get(f"/api/mentors/{accepted['id']}/progress").status_code == 400

    auth.use(users["alice"])
    assert client.get("/api/mentors/my-mentors").json() == []
    assert len(client.get("/api/mentors/my-mentors?include_ended=true").json()) == 1


def test_strangers_cannot_see_relationship(client, db, auth, accepted):
    from applytrack.auth.models import User

    carol = User(email="carol@example.com", name="Carol", is_active=True)
    db.add(carol)
    db.commit()
    auth.use(carol.id)
    assert client.get(f"/api/mentors/{accepted['id']}/progress").status_code == 404
