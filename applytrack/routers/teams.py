"""
ApplyTrack - Teams, memberships and subscriptions.

Career coaching practices, bootcamps and agencies manage candidates as a
team. Access to each route is decided by the caller's active membership
and the permissions of its role (see services/team_plans.py).
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from sqlalchemy import and_, func, or_
from typing import List, Optional
from datetime import datetime, timedelta
import logging

from ..database import get_db
from ..models import Team, TeamMember, TeamSubscription, TeamActivityLog, SharedJobPosting, Job
from ..schemas import (
    TeamCreate, TeamUpdate, TeamResponse, TeamInvite, TeamMemberResponse, MemberRoleUpdate,
    SubscriptionUpdate, SubscriptionResponse, SharedJobCreate, SharedJobResponse, CommentCreate,
)
from ..auth.dependencies import get_current_active_user
from ..auth.models import User
from ..auth.tokens import generate_team_invite_token, verify_team_invite_token
from ..query_helpers import get_owned_or_404, append_json
from ..rate_limit import limiter, RATE_LIMIT_GENERAL
from ..services.email_service import email_service
from ..services.team_plans import (
    PLAN_CONFIGS, TRIAL_DAYS, INVITATION_DAYS, apply_plan, effective_permissions, has_permission,
    member_limit, settle_cancellation, unique_slug,
)

logger = logging.getLogger("applytrack.teams")

router = APIRouter()

SEAT_STATUSES = ("active", "pending")


# --- Helpers ---

def _get_team(db: Session, team_id: int) -> Team:
    team = db.query(Team).filter(Team.id == team_id, Team.is_deleted.is_(False)).first()
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


def _membership(db: Session, team: Team, user: User) -> Optional[TeamMember]:
    return db.query(TeamMember).filter(
        TeamMember.team_id == team.id,
        TeamMember.user_id == user.id,
        TeamMember.status == "active"
    ).first()


def _require_member(db: Session, team: Team, user: User) -> TeamMember:
    member = _membership(db, team, user)
    if member is None:
        # Non-members cannot tell a private team from a missing one
        raise HTTPException(status_code=404, detail="Team not found")
    return member


def _require_permission(db: Session, team: Team, user: User, permission: str, action: str) -> TeamMember:
    member = _require_member(db, team, user)
    if not has_permission(member, permission):
        raise HTTPException(status_code=403, detail=f"You don't have permission to {action}")
    return member


def _log(db: Session, team: Team, actor: Optional[User], action: str,
         target: Optional[str] = None, details: Optional[dict] = None) -> None:
    db.add(TeamActivityLog(
        team_id=team.id,
        actor_id=actor.id if actor else None,
        action=action,
        target=target,
        details=details or {},
    ))


def _subscription(db: Session, team: Team) -> TeamSubscription:
    """The team's subscription, creating a free one if missing and settling ended cancellations."""
    subscription = team.subscription
    if subscription is None:
        subscription = TeamSubscription(team_id=team.id)
        apply_plan(subscription, "free", "monthly")
        db.add(subscription)
        team.subscription = subscription
    if settle_cancellation(subscription):
        logger.info(f"Team {team.id} subscription reverted to free after cancellation")
        _log(db, team, None, "subscription_reverted", details={"plan": "free"})
    return subscription


def _open_invitation(now: Optional[datetime] = None):
    """Pending rows whose invitation has not lapsed."""
    now = now or datetime.utcnow()
    return and_(
        TeamMember.status == "pending",
        or_(TeamMember.invitation_expires_at.is_(None), TeamMember.invitation_expires_at >= now),
    )


def _holds_seat(now: Optional[datetime] = None):
    """Active members and open invitations count against the plan limit."""
    return or_(TeamMember.status == "active", _open_invitation(now))


def _invitation_lapsed(member: TeamMember, now: Optional[datetime] = None) -> bool:
    now = now or datetime.utcnow()
    return bool(member.invitation_expires_at and member.invitation_expires_at < now)


def _count_seats(db: Session, team: Team) -> int:
    return db.query(TeamMember).filter(TeamMember.team_id == team.id, _holds_seat()).count()


def _refresh_usage(db: Session, team: Team, subscription: TeamSubscription) -> None:
    pending = db.query(TeamMember).filter(TeamMember.team_id == team.id, _open_invitation()).count()
    roles = dict(db.query(TeamMember.role, func.count(TeamMember.id)).filter(
        TeamMember.team_id == team.id, TeamMember.status == "active"
    ).group_by(TeamMember.role).all())
    subscription.usage = {
        "members": sum(roles.values()),
        "pending_invitations": pending,
        "candidates": roles.get("candidate", 0),
        "mentors": roles.get("mentor", 0) + roles.get("coach", 0),
    }


def _team_payload(team: Team, member: TeamMember) -> dict:
    data = TeamResponse.model_validate(team).model_dump()
    data["my_role"] = member.role
    data["my_permissions"] = effective_permissions(member)
    return data


# --- Teams ---

@router.post("/", status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
def create_team(
    request: Request,
    team: TeamCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Create a team on a 14 day trial with the caller as owner and a free subscription."""
    now = datetime.utcnow()
    db_team = Team(
        **team.model_dump(),
        slug=unique_slug(db, team.name, Team),
        owner_id=current_user.id,
        status="trial",
        trial_ends_at=now + timedelta(days=TRIAL_DAYS),
    )
    db.add(db_team)
    db.flush()

    owner = TeamMember(
        team_id=db_team.id,
        user_id=current_user.id,
        email=current_user.email,
        role="owner",
        status="active",
        permissions={},
        joined_at=now,
    )
    db.add(owner)
    subscription = TeamSubscription(team_id=db_team.id)
    apply_plan(subscription, "free", "monthly", now)
    subscription.usage = {"members": 1, "pending_invitations": 0, "candidates": 0, "mentors": 0}
    db.add(subscription)
    _log(db, db_team, current_user, "team_created", details={"name": db_team.name})
    db.commit()
    db.refresh(db_team)
    logger.info(f"User {current_user.id} created team {db_team.id} ({db_team.slug})")
    return _team_payload(db_team, owner)


@router.get("/")
def list_my_teams(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    memberships = db.query(TeamMember).join(Team).filter(
        TeamMember.user_id == current_user.id,
        TeamMember.status == "active",
        Team.is_deleted.is_(False)
    ).order_by(Team.name).all()
    return [_team_payload(m.team, m) for m in memberships]


@router.get("/invitations/pending", response_model=List[TeamMemberResponse])
def list_my_invitations(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Unexpired invitations addressed to the caller's email."""
    return db.query(TeamMember).join(Team).filter(
        func.lower(TeamMember.email) == (current_user.email or "").lower(),
        TeamMember.status == "pending",
        TeamMember.invitation_expires_at > datetime.utcnow(),
        Team.is_deleted.is_(False)
    ).all()


@router.post("/invitations/{token}/accept")
@limiter.limit(RATE_LIMIT_GENERAL)
def accept_invitation(
    request: Request,
    token: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    payload = verify_team_invite_token(token)
    if not payload:
        raise HTTPException(status_code=400, detail="Invalid or expired invitation")
    member = db.get(TeamMember, payload.get("mid"))
    if member is None or member.status != "pending" or member.team.is_deleted:
        raise HTTPException(status_code=404, detail="Invitation not found or already processed")
    if _invitation_lapsed(member):
        raise HTTPException(status_code=400, detail="Invitation has expired")
    if member.email.lower() != (current_user.email or "").lower():
        raise HTTPException(status_code=403, detail="This invitation is for a different email address")

    member.user_id = current_user.id
    member.status = "active"
    member.joined_at = datetime.utcnow()
    team = member.team
    _refresh_usage(db, team, _subscription(db, team))
    _log(db, team, current_user, "member_joined", target=member.email, details={"role": member.role})
    db.commit()
    db.refresh(member)
    return {
        "team": _team_payload(team, member),
        "membership": TeamMemberResponse.model_validate(member),
    }


@router.get("/{team_id}")
def get_team(
    team_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    team = _get_team(db, team_id)
    member = _require_member(db, team, current_user)
    data = _team_payload(team, member)
    data["member_count"] = db.query(TeamMember).filter(
        TeamMember.team_id == team.id, TeamMember.status == "active"
    ).count()
    return data


@router.patch("/{team_id}")
@limiter.limit(RATE_LIMIT_GENERAL)
def update_team(
    request: Request,
    team_id: int,
    team: TeamUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_team = _get_team(db, team_id)
    member = _require_permission(db, db_team, current_user, "manage_team_settings", "update this team")
    update_data = team.model_dump(exclude_unset=True)
    if update_data.get("name") and update_data["name"] != db_team.name:
        db_team.slug = unique_slug(db, update_data["name"], Team, exclude_id=db_team.id)
    for key, value in update_data.items():
        if value is not None:
            setattr(db_team, key, value)
    _log(db, db_team, current_user, "team_updated", details={"fields": sorted(update_data)})
    db.commit()
    db.refresh(db_team)
    return _team_payload(db_team, member)


@router.delete("/{team_id}")
@limiter.limit(RATE_LIMIT_GENERAL)
def delete_team(
    request: Request,
    team_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Soft-delete a team. Only the owner can do this; every membership is ended."""
    team = _get_team(db, team_id)
    _require_member(db, team, current_user)
    if team.owner_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the team owner can delete the team")

    now = datetime.utcnow()
    team.is_deleted = True
    team.deleted_at = now
    team.status = "cancelled"
    for member in team.members:
        member.status = "removed"
    _log(db, team, current_user, "team_deleted")
    db.commit()
    logger.info(f"Team {team.id} deleted by user {current_user.id}")
    return {"message": "Team deleted"}


# --- Members ---

@router.get("/{team_id}/members", response_model=List[TeamMemberResponse])
def list_members(
    team_id: int,
    include_pending: bool = True,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    team = _get_team(db, team_id)
    _require_member(db, team, current_user)
    shown = _holds_seat() if include_pending else TeamMember.status == "active"
    return db.query(TeamMember).filter(TeamMember.team_id == team.id, shown).order_by(TeamMember.created_at).all()


@router.post("/{team_id}/members/invite", response_model=TeamMemberResponse, status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
async def invite_member(
    request: Request,
    team_id: int,
    invite: TeamInvite,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Invite someone by email. Active members and open invitations both
    count against the plan's member limit.

    One row exists per (team, email): a removed member or a lapsed
    invitation is re-issued on the same row.
    """
    team = _get_team(db, team_id)
    _require_permission(db, team, current_user, "invite_members", "invite members")
    email = invite.email.lower()
    now = datetime.utcnow()

    existing = db.query(TeamMember).filter(
        TeamMember.team_id == team.id,
        func.lower(TeamMember.email) == email
    ).first()
    if existing and existing.status in ("active", "suspended"):
        raise HTTPException(status_code=409, detail="User is already a team member")
    if existing and existing.status == "pending" and not _invitation_lapsed(existing, now):
        raise HTTPException(status_code=409, detail="Invitation already sent to this email")

    subscription = _subscription(db, team)
    if _count_seats(db, team) >= member_limit(subscription):
        raise HTTPException(
            status_code=403,
            detail=f"Team has reached its {subscription.plan} plan limit of {member_limit(subscription)} members. "
                   "Please upgrade your plan."
        )

    member = existing or TeamMember(team_id=team.id, email=email)
    member.role = invite.role.value
    member.status = "pending"
    member.permissions = invite.permissions
    member.invited_by = current_user.id
    member.invitation_expires_at = now + timedelta(days=INVITATION_DAYS)
    member.user_id = None
    member.joined_at = None
    if existing is None:
        db.add(member)
    db.flush()
    _refresh_usage(db, team, subscription)
    _log(db, team, current_user, "member_invited", target=email, details={"role": member.role})
    db.commit()
    db.refresh(member)

    token = generate_team_invite_token(member.id, email)
    sent = await email_service.send_team_invitation(
        email, team.name, current_user.name or current_user.email, member.role, token
    )
    if not sent:
        logger.warning(f"Team invitation email for member {member.id} was not sent")
    return member


@router.patch("/{team_id}/members/{member_id}", response_model=TeamMemberResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def update_member_role(
    request: Request,
    team_id: int,
    member_id: int,
    data: MemberRoleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    team = _get_team(db, team_id)
    _require_permission(db, team, current_user, "manage_roles", "manage roles")
    member = db.query(TeamMember).filter(
        TeamMember.id == member_id,
        TeamMember.team_id == team.id,
        TeamMember.status.in_(SEAT_STATUSES)
    ).first()
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")
    if member.role == "owner":
        raise HTTPException(status_code=403, detail="Cannot change owner role")
    if data.role.value == "owner":
        raise HTTPException(status_code=403, detail="A team has exactly one owner")

    previous = member.role
    member.role = data.role.value
    if data.permissions is not None:
        member.permissions = data.permissions
    _refresh_usage(db, team, _subscription(db, team))
    _log(db, team, current_user, "member_role_changed", target=member.email,
         details={"from": previous, "to": member.role})
    db.commit()
    db.refresh(member)
    return member


@router.delete("/{team_id}/members/{member_id}")
@limiter.limit(RATE_LIMIT_GENERAL)
def remove_member(
    request: Request,
    team_id: int,
    member_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Remove a member or withdraw an invitation. Members may also remove themselves."""
    team = _get_team(db, team_id)
    caller = _require_member(db, team, current_user)
    member = db.query(TeamMember).filter(
        TeamMember.id == member_id,
        TeamMember.team_id == team.id,
        TeamMember.status.in_(SEAT_STATUSES)
    ).first()
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")
    if member.role == "owner":
        raise HTTPException(status_code=403, detail="Cannot remove team owner")
    if member.id != caller.id and not has_permission(caller, "remove_members"):
        raise HTTPException(status_code=403, detail="You don't have permission to remove members")

    member.status = "removed"
    _refresh_usage(db, team, _subscription(db, team))
    _log(db, team, current_user, "member_left" if member.id == caller.id else "member_removed",
         target=member.email)
    db.commit()
    return {"message": "Member removed"}


# --- Subscription ---

@router.get("/{team_id}/subscription", response_model=SubscriptionResponse)
def get_subscription(
    team_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    team = _get_team(db, team_id)
    _require_member(db, team, current_user)
    subscription = _subscription(db, team)
    _refresh_usage(db, team, subscription)
    db.commit()
    db.refresh(subscription)
    return subscription


@router.put("/{team_id}/subscription", response_model=SubscriptionResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def update_subscription(
    request: Request,
    team_id: int,
    data: SubscriptionUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Change plan or billing cycle. A downgrade below the current headcount is refused."""
    team = _get_team(db, team_id)
    _require_permission(db, team, current_user, "manage_billing", "manage billing")
    subscription = _subscription(db, team)

    plan = data.plan.value
    previous = subscription.plan
    seats = _count_seats(db, team)
    new_limit = PLAN_CONFIGS[plan]["limits"]["max_members"]
    if seats > new_limit:
        raise HTTPException(
            status_code=400,
            detail=f"The {plan} plan allows {new_limit} members; the team has {seats}"
        )
    apply_plan(subscription, plan, data.billing_cycle.value)

    if plan != "free" and team.status == "trial":
        team.status = "active"
    _refresh_usage(db, team, subscription)
    _log(db, team, current_user, "subscription_changed",
         details={"from": previous, "to": plan, "billing_cycle": subscription.billing_cycle})
    db.commit()
    db.refresh(subscription)
    return subscription


@router.post("/{team_id}/subscription/cancel", response_model=SubscriptionResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def cancel_subscription(
    request: Request,
    team_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Cancel at the end of the current period, after which the team reverts to free."""
    team = _get_team(db, team_id)
    _require_permission(db, team, current_user, "manage_billing", "manage billing")
    subscription = _subscription(db, team)
    if subscription.plan == "free":
        raise HTTPException(status_code=400, detail="The free plan cannot be cancelled")
    if subscription.cancel_at_period_end:
        raise HTTPException(status_code=400, detail="Subscription is already cancelled")

    subscription.cancel_at_period_end = True
    subscription.cancelled_at = datetime.utcnow()
    _log(db, team, current_user, "subscription_cancelled",
         details={"plan": subscription.plan, "ends_at": subscription.current_period_end.isoformat()
                  if subscription.current_period_end else None})
    db.commit()
    db.refresh(subscription)
    return subscription


# --- Activity ---

@router.get("/{team_id}/activity")
def get_activity(
    team_id: int,
    limit: int = Query(50, ge=1, le=500),
    action: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    team = _get_team(db, team_id)
    _require_permission(db, team, current_user, "view_analytics", "view team activity")
    query = db.query(TeamActivityLog).filter(TeamActivityLog.team_id == team.id)
    if action:
        query = query.filter(TeamActivityLog.action == action)
    return [
        {
            "id": entry.id,
            "actor_id": entry.actor_id,
            "action": entry.action,
            "target": entry.target,
            "details": entry.details,
            "created_at": entry.created_at,
        }
        for entry in query.order_by(TeamActivityLog.created_at.desc(), TeamActivityLog.id.desc()).limit(limit).all()
    ]


# --- Shared job postings ---

@router.get("/{team_id}/jobs", response_model=List[SharedJobResponse])
def list_shared_jobs(
    team_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    team = _get_team(db, team_id)
    _require_member(db, team, current_user)
    return db.query(SharedJobPosting).filter(
        SharedJobPosting.team_id == team.id
    ).order_by(SharedJobPosting.created_at.desc()).all()


@router.post("/{team_id}/jobs", response_model=SharedJobResponse, status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
def share_job(
    request: Request,
    team_id: int,
    data: SharedJobCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Share a posting with the team, either one of the caller's tracked jobs or a new one."""
    team = _get_team(db, team_id)
    _require_member(db, team, current_user)

    fields = data.model_dump(exclude={"job_id"})
    if data.job_id is not None:
        job = get_owned_or_404(db, Job, data.job_id, current_user, "Job")
        fields = {
            "title": data.title or job.title,
            "company": data.company or job.company,
            "url": data.url or job.url,
            "description": data.description or job.description,
        }

    posting = SharedJobPosting(team_id=team.id, shared_by=current_user.id, job_id=data.job_id,
                               comments=[], **fields)
    db.add(posting)
    _log(db, team, current_user, "job_shared", target=f"{fields['title']} at {fields['company']}")
    db.commit()
    db.refresh(posting)
    return posting


@router.post("/{team_id}/jobs/{posting_id}/comments", response_model=SharedJobResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def comment_on_job(
    request: Request,
    team_id: int,
    posting_id: int,
    data: CommentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    team = _get_team(db, team_id)
    _require_member(db, team, current_user)
    posting = db.query(SharedJobPosting).filter(
        SharedJobPosting.id == posting_id,
        SharedJobPosting.team_id == team.id
    ).first()
    if not posting:
        raise HTTPException(status_code=404, detail="Shared job not found")

    append_json(posting, "comments", {
        "user_id": current_user.id,
        "author": current_user.name or current_user.email,
        "text": data.text,
        "at": datetime.utcnow().isoformat(),
    })
    db.commit()
    db.refresh(posting)
    return posting


@router.delete("/{team_id}/jobs/{posting_id}")
def delete_shared_job(
    team_id: int,
    posting_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    team = _get_team(db, team_id)
    member = _require_member(db, team, current_user)
    posting = db.query(SharedJobPosting).filter(
        SharedJobPosting.id == posting_id,
        SharedJobPosting.team_id == team.id
    ).first()
    if not posting:
        raise HTTPException(status_code=404, detail="Shared job not found")
    if posting.shared_by != current_user.id and not has_permission(member, "manage_team_settings"):
        raise HTTPException(status_code=403, detail="Only the member who shared it or a team admin can remove it")
    db.delete(posting)
    db.commit()
    return {"message": "Shared job removed"}
