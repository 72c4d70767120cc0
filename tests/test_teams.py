from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from applytrack.models import TeamMember
from applytrack.services.team_plans import (
    apply_plan, has_permission, settle_cancellation, slugify,
)


@pytest.fixture
def team(client):
    response = client.post("/api/teams/", json={"name": "Career Coaches Inc"})
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def bob_joined(client, auth, users, team, sent_emails, token_from):
    """Bob accepts an invitation to the team as a candidate."""
    invited = client.post(f"/api/teams/{team['id']}/members/invite", json={"email": "bob@example.com"})
    assert invited.status_code == 201, invited.text
    auth.use(users["bob"])
    accepted = client.post(f"/api/teams/invitations/{token_from(sent_emails[-1])}/accept")
    assert accepted.status_code == 200, accepted.text
    auth.use(users["alice"])
    return accepted.json()["membership"]


def test_slugify():
    assert slugify("  Career Coaches, Inc! ") == "career-coaches-inc"
    assert slugify("!!!") == "team"


def test_member_permission_overrides():
    member = SimpleNamespace(role="candidate", status="active", permissions={"invite_members": True})
    assert has_permission(member, "invite_members") is True
    assert has_permission(member, "manage_billing") is False
    member.permissions = {"view_analytics": False}
    assert has_permission(member, "view_analytics") is False
    member.status = "pending"
    assert has_permission(member, "view_resumes") is False


def test_cancellation_settles_after_period_end():
    subscription = SimpleNamespace(billing_cycle="monthly")
    start = datetime(2030, 1, 1)
    apply_plan(subscription, "starter", "monthly", start)
    assert subscription.current_period_end == start + timedelta(days=30)
    subscription.cancel_at_period_end = True

    assert settle_cancellation(subscription, start + timedelta(days=10)) is False
    assert settle_cancellation(subscription, start + timedelta(days=31)) is True
    assert subscription.plan == "free"
    assert subscription.price == 0.0
    assert subscription.cancel_at_period_end is False


def test_create_team(client, team):
    assert team["slug"] == "career-coaches-inc"
    assert team["status"] == "trial"
    assert team["my_role"] == "owner"
    assert team["my_permissions"]["manage_billing"] is True

    duplicate = client.post("/api/teams/", json={"name": "Career Coaches Inc"}).json()
    assert duplicate["slug"] == "career-coaches-inc-1"

    subscription = client.get(f"/api/teams/{team['id']}/subscription").json()
    assert subscription["plan"] == "free"
    assert subscription["limits"]["max_members"] == 5
    assert subscription["usage"]["members"] == 1


def test_invitation_is_emailed_and_accepted(client, team, bob_joined, sent_emails):
    assert "token" not in bob_joined
    assert bob_joined["status"] == "active"
    assert bob_joined["role"] == "candidate"
    assert sent_emails[0]["subject"] == "Join Career Coaches Inc on ApplyTrack"

    members = client.get(f"/api/teams/{team['id']}/members").json()
    assert sorted(m["role"] for m in members) == ["candidate", "owner"]
    usage = client.get(f"/api/teams/{team['id']}/subscription").json()["usage"]
    assert usage == {"members": 2, "pending_invitations": 0, "candidates": 1, "mentors": 0}


def test_invitation_for_someone_else_is_refused(client, auth, users, team, sent_emails, token_from):
    client.post(f"/api/teams/{team['id']}/members/invite", json={"email": "carol@example.com"})
    auth.use(users["bob"])
    response = client.post(f"/api/teams/invitations/{token_from(sent_emails[-1])}/accept")
    assert response.status_code == 403


def test_duplicate_and_owner_invites(client, team, sent_emails):
    client.post(f"/api/teams/{team['id']}/members/invite", json={"email": "dana@example.com"})
    again = client.post(f"/api/teams/{team['id']}/members/invite", json={"email": "DANA@example.com"})
    assert again.status_code == 409
    owner = client.post(f"/api/teams/{team['id']}/members/invite", json={"email": "x@example.com", "role": "owner"})
    assert owner.status_code == 422


def test_pending_invitations_count_against_plan_limit(client, team, sent_emails):
    for i in range(4):
        ok = client.post(f"/api/teams/{team['id']}/members/invite", json={"email": f"user{i}@example.com"})
        assert ok.status_code == 201
    full = client.post(f"/api/teams/{team['id']}/members/invite", json={"email": "one-more@example.com"})
    assert full.status_code == 403
    assert "upgrade" in full.json()["message"]

    upgraded = client.put(f"/api/teams/{team['id']}/subscription", json={"plan": "starter"}).json()
    assert upgraded["limits"]["max_members"] == 15
    assert client.post(f"/api/teams/{team['id']}/members/invite",
                       json={"email": "one-more@example.com"}).status_code == 201

    # Six seats are taken; the free plan allows five
    downgrade = client.put(f"/api/teams/{team['id']}/subscription", json={"plan": "free"})
    assert downgrade.status_code == 400


def test_upgrade_ends_trial_and_cancel(client, team):
    client.put(f"/api/teams/{team['id']}/subscription", json={"plan": "professional", "billing_cycle": "annual"})
    assert client.get(f"/api/teams/{team['id']}").json()["status"] == "active"

    cancelled = client.post(f"/api/teams/{team['id']}/subscription/cancel").json()
    assert cancelled["cancel_at_period_end"] is True
    assert cancelled["plan"] == "professional"
    assert client.post(f"/api/teams/{team['id']}/subscription/cancel").status_code == 400


def test_free_plan_cannot_be_cancelled(client, team):
    assert client.post(f"/api/teams/{team['id']}/subscription/cancel").status_code == 400


def test_candidate_permissions(client, auth, users, team, bob_joined):
    auth.use(users["bob"])
    assert client.post(f"/api/teams/{team['id']}/members/invite",
                       json={"email": "z@example.com"}).status_code == 403
    assert client.put(f"/api/teams/{team['id']}/subscription", json={"plan": "starter"}).status_code == 403
    assert client.get(f"/api/teams/{team['id']}").json()["my_role"] == "candidate"


def test_role_change_and_removal(client, auth, users, team, bob_joined):
    promoted = client.patch(f"/api/teams/{team['id']}/members/{bob_joined['id']}", json={"role": "admin"}).json()
    assert promoted["role"] == "admin"

    owner = next(m for m in client.get(f"/api/teams/{team['id']}/members").json() if m["role"] == "owner")
    auth.use(users["bob"])
    assert client.delete(f"/api/teams/{team['id']}/members/{owner['id']}").status_code == 403

    # Members may leave on their own
    assert client.delete(f"/api/teams/{team['id']}/members/{bob_joined['id']}").json() == {"message": "Member removed"}
    assert client.get(f"/api/teams/{team['id']}").status_code == 404


def test_non_members_see_404(client, auth, users, team):
    auth.use(users["bob"])
    assert client.get(f"/api/teams/{team['id']}").status_code == 404
    assert client.get(f"/api/teams/{team['id']}/members").status_code == 404


def test_activity_log(client, team, sent_emails):
    client.post(f"/api/teams/{team['id']}/members/invite", json={"email": "eve@example.com"})
    actions = [entry["action"] for entry in client.get(f"/api/teams/{team['id']}/activity").json()]
    assert actions == ["member_invited", "team_created"]
    invited = client.get(f"/api/teams/{team['id']}/activity?action=member_invited").json()
    assert invited[0]["target"] == "eve@example.com"


def test_shared_jobs_and_comments(client, auth, users, team, bob_joined, make_job):
    job = make_job(title="SRE", company="Globex")
    posting = client.post(f"/api/teams/{team['id']}/jobs", json={"job_id": job["id"]}).json()
    assert (posting["title"], posting["company"]) == ("SRE", "Globex")

    auth.use(users["bob"])
    commented = client.post(f"/api/teams/{team['id']}/jobs/{posting['id']}/comments", json={"text": "Applying!"}).json()
    assert commented["comments"][0]["author"] == "Bob Brown"
    # Bob did not share it and is not an admin
    assert client.delete(f"/api/teams/{team['id']}/jobs/{posting['id']}").status_code == 403

    auth.use(users["alice"])
    assert client.delete(f"/api/teams/{team['id']}/jobs/{posting['id']}").status_code == 200
    assert client.get(f"/api/teams/{team['id']}/jobs").json() == []


def test_only_owner_deletes_team(client, auth, users, team, bob_joined):
    auth.use(users["bob"])
    assert client.delete(f"/api/teams/{team['id']}").status_code == 403
    auth.use(users["alice"])
    assert client.delete(f"/api/teams/{team['id']}").json() == {"message": "Team deleted"}
    assert client.get("/api/teams/").json() == []


def test_removed_member_can_be_invited_again(client, auth, users, team, bob_joined, sent_emails, token_from):
    assert client.delete(f"/api/teams/{team['id']}/members/{bob_joined['id']}").status_code == 200

    again = client.post(f"/api/teams/{team['id']}/members/invite",
                        json={"email": "bob@example.com", "role": "mentor"})
    assert again.status_code == 201, again.text
    reinvited = again.json()
    assert reinvited["id"] == bob_joined["id"]
    assert (reinvited["status"], reinvited["role"]) == ("pending", "mentor")
    assert reinvited["user_id"] is None
    assert reinvited["joined_at"] is None

    auth.use(users["bob"])
    rejoined = client.post(f"/api/teams/invitations/{token_from(sent_emails[-1])}/accept")
    assert rejoined.status_code == 200
    assert rejoined.json()["membership"]["role"] == "mentor"


def test_lapsed_invitation_frees_its_seat(client, db, team, sent_emails):
    first = client.post(f"/api/teams/{team['id']}/members/invite", json={"email": "late@example.com"}).json()
    row = db.get(TeamMember, first["id"])
    row.invitation_expires_at = datetime.utcnow() - timedelta(days=1)
    db.commit()

    assert client.get(f"/api/teams/{team['id']}/subscription").json()["usage"]["pending_invitations"] == 0
    members = client.get(f"/api/teams/{team['id']}/members").json()
    assert [m["email"] for m in members] == ["alice@example.com"]

    # Four open seats remain next to the owner
    for i in range(4):
        ok = client.post(f"/api/teams/{team['id']}/members/invite", json={"email": f"seat{i}@example.com"})
        assert ok.status_code == 201

    full = client.post(f"/api/teams/{team['id']}/members/invite", json={"email": "late@example.com"})
    assert full.status_code == 403


def test_lapsed_invitation_is_reissued(client, db, team, sent_emails):
    first = client.post(f"/api/teams/{team['id']}/members/invite", json={"email": "late@example.com"}).json()
    row = db.get(TeamMember, first["id"])
    row.invitation_expires_at = datetime.utcnow() - timedelta(days=1)
    db.commit()

    again = client.post(f"/api/teams/{team['id']}/members/invite", json={"email": "late@example.com"})
    assert again.status_code == 201, again.text
    assert again.json()["id"] == first["id"]
    db.expire_all()
    assert db.get(TeamMember, first["id"]).invitation_expires_at > datetime.utcnow()
    assert len(sent_emails) == 2


def test_rename_keeps_own_slug(client, team):
    renamed = client.patch(f"/api/teams/{team['id']}", json={"name": "career coaches inc"}).json()
    assert renamed["slug"] == "career-coaches-inc"
    assert renamed["name"] == "career coaches inc"
