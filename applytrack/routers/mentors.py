"""
ApplyTrack - Mentor and career coach relationships.

A mentee invites a mentor by email; the mentor accepts or rejects with the
signed invitation token. Once accepted the mentor can see the mentee's
progress (limited by the mentee's sharing flags) and leave feedback and
recommendations.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from sqlalchemy import func, or_
from typing import List, Optional
from datetime import datetime
import logging

from ..database import get_db
from ..models import (
    MentorRelationship, MentorFeedback, Job, Goal, Interview, Resume, TERMINAL_STATUSES,
)
from ..schemas import (
    MentorInvite, SharingUpdate, MentorRelationshipResponse,
    MentorFeedbackCreate, MentorFeedbackUpdate, MentorFeedbackResponse,
)
from ..auth.dependencies import get_current_active_user
from ..auth.models import User
from ..auth.tokens import generate_mentor_invite_token, verify_mentor_invite_token
from ..rate_limit import limiter, RATE_LIMIT_GENERAL
from ..services.email_service import email_service

logger = logging.getLogger("applytrack.mentors")

router = APIRouter()

OPEN_STATUSES = ("pending", "accepted")


def _get_relationship(db: Session, relationship_id: int, user: User) -> MentorRelationship:
    """A relationship the user takes part in, as mentee or mentor."""
    relationship = db.query(MentorRelationship).filter(
        MentorRelationship.id == relationship_id,
        or_(MentorRelationship.mentee_id == user.id, MentorRelationship.mentor_id == user.id)
    ).first()
    if not relationship:
        raise HTTPException(status_code=404, detail="Mentor relationship not found")
    return relationship


def _pending_from_token(db: Session, token: str, user: User) -> MentorRelationship:
    payload = verify_mentor_invite_token(token)
    if not payload:
        raise HTTPException(status_code=400, detail="Invalid or expired invitation")
    relationship = db.get(MentorRelationship, payload.get("rid"))
    if relationship is None:
        raise HTTPException(status_code=404, detail="Invitation not found")
    if relationship.status != "pending":
        raise HTTPException(status_code=400, detail=f"Invitation is already {relationship.status}")
    if (user.email or "").lower() != relationship.mentor_email.lower():
        raise HTTPException(status_code=403, detail="This invitation was sent to a different email address")
    if relationship.mentee_id == user.id:
        raise HTTPException(status_code=400, detail="You cannot mentor yourself")
    return relationship


# --- Invitations ---

@router.post("/invite", response_model=MentorRelationshipResponse, status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
async def invite_mentor(
    request: Request,
    invite: MentorInvite,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Invite someone by email to be a mentor, career coach or peer mentor."""
    email = invite.mentor_email.lower()
    if email == (current_user.email or "").lower():
        raise HTTPException(status_code=400, detail="You cannot invite yourself")

    existing = db.query(MentorRelationship).filter(
        MentorRelationship.mentee_id == current_user.id,
        func.lower(MentorRelationship.mentor_email) == email,
        MentorRelationship.status.in_(OPEN_STATUSES)
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail=f"An invitation to {email} is already {existing.status}")

    relationship = MentorRelationship(**invite.model_dump(), mentee_id=current_user.id)
    relationship.mentor_email = email
    db.add(relationship)
    db.commit()
    db.refresh(relationship)

    token = generate_mentor_invite_token(relationship.id, email)
    sent = await email_service.send_mentor_invitation(
        email,
        current_user.name or current_user.email,
        relationship.relationship_type,
        relationship.invitation_message,
        token,
    )
    if not sent:
        logger.warning(f"Mentor invitation email for relationship {relationship.id} was not sent")
    return relationship


@router.post("/invitations/{token}/accept", response_model=MentorRelationshipResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def accept_invitation(
    request: Request,
    token: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    relationship = _pending_from_token(db, token, current_user)
    relationship.mentor_id = current_user.id
    relationship.mentor_name = relationship.mentor_name or current_user.name
    relationship.status = "accepted"
    relationship.accepted_at = datetime.utcnow()
    db.commit()
    db.refresh(relationship)
    logger.info(f"User {current_user.id} accepted mentor relationship {relationship.id}")
    return relationship


@router.post("/invitations/{token}/reject", response_model=MentorRelationshipResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def reject_invitation(
    request: Request,
    token: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    relationship = _pending_from_token(db, token, current_user)
    relationship.status = "rejected"
    relationship.ended_at = datetime.utcnow()
    db.commit()
    db.refresh(relationship)
    return relationship


@router.post("/{relationship_id}/cancel", response_model=MentorRelationshipResponse)
def cancel_relationship(
    relationship_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Withdraw a pending invitation or end an accepted relationship. Either side may do this."""
    relationship = _get_relationship(db, relationship_id, current_user)
    if relationship.status not in OPEN_STATUSES:
        raise HTTPException(status_code=400, detail=f"Relationship is already {relationship.status}")
    relationship.status = "cancelled"
    relationship.ended_at = datetime.utcnow()
    db.commit()
    db.refresh(relationship)
    return relationship


# --- Listing ---

@router.get("/my-mentors", response_model=List[MentorRelationshipResponse])
def list_my_mentors(
    include_ended: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    query = db.query(MentorRelationship).filter(MentorRelationship.mentee_id == current_user.id)
    if not include_ended:
        query = query.filter(MentorRelationship.status.in_(OPEN_STATUSES))
    return query.order_by(MentorRelationship.invited_at.desc()).all()


@router.get("/my-mentees", response_model=List[MentorRelationshipResponse])
def list_my_mentees(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return db.query(MentorRelationship).filter(
        MentorRelationship.mentor_id == current_user.id,
        MentorRelationship.status == "accepted"
    ).order_by(MentorRelationship.accepted_at.desc()).all()


@router.patch("/{relationship_id}/sharing", response_model=MentorRelationshipResponse)
def update_sharing(
    relationship_id: int,
    data: SharingUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Change what the mentor can see. Only the mentee controls this."""
    relationship = _get_relationship(db, relationship_id, current_user)
    if relationship.mentee_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the mentee can change sharing settings")
    for key, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(relationship, key, value)
    db.commit()
    db.refresh(relationship)
    return relationship


@router.get("/{relationship_id}/progress")
def get_mentee_progress(
    relationship_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    The mentee's job-search progress as the mentor may see it.

    Sections the mentee has not shared are returned as null.
    """
    relationship = _get_relationship(db, relationship_id, current_user)
    if relationship.status != "accepted":
        raise HTTPException(status_code=400, detail="Relationship is not active")
    mentee_id = relationship.mentee_id
    now = datetime.utcnow()

    applications = None
    if relationship.share_applications:
        jobs = db.query(Job).filter(Job.user_id == mentee_id, Job.archived.is_(False)).all()
        by_status = {}
        for job in jobs:
            by_status[job.status] = by_status.get(job.status, 0) + 1
        applications = {
            "total": len(jobs),
            "active": sum(1 for j in jobs if j.status not in TERMINAL_STATUSES),
            "by_status": by_status,
            "recent": [
                {"id": j.id, "title": j.title, "company": j.company, "status": j.status}
                for j in sorted(jobs, key=lambda j: j.updated_at or j.created_at, reverse=True)[:10]
            ],
        }

    goals = None
    if relationship.share_goals:
        goals = [
            {"id": g.id, "title": g.title, "category": g.category, "status": g.status,
             "progress_percent": g.progress_percent, "target_date": g.target_date}
            for g in db.query(Goal).filter(Goal.user_id == mentee_id).order_by(Goal.created_at.desc()).all()
        ]

    interviews = None
    if relationship.share_interviews:
        rows = db.query(Interview).filter(Interview.user_id == mentee_id).all()
        interviews = {
            "upcoming": [
                {"id": i.id, "title": i.title, "company": i.company,
                 "interview_type": i.interview_type, "scheduled_at": i.scheduled_at}
                for i in sorted(rows, key=lambda i: i.scheduled_at)
                if i.scheduled_at >= now and i.status not in ("cancelled", "completed")
            ],
            "completed": sum(1 for i in rows if i.status == "completed"),
        }

    resumes = None
    if relationship.share_resumes:
        resumes = [
            {"id": r.id, "name": r.name, "is_default": r.is_default, "updated_at": r.updated_at}
            for r in db.query(Resume).filter(Resume.user_id == mentee_id, Resume.archived.is_(False)).all()
        ]

    return {
        "relationship_id": relationship.id,
        "mentee_id": mentee_id,
        "applications": applications,
        "goals": goals,
        "interviews": interviews,
        "resumes": resumes,
    }


# --- Feedback ---

@router.post("/{relationship_id}/feedback", response_model=MentorFeedbackResponse, status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
def create_feedback(
    request: Request,
    relationship_id: int,
    feedback: MentorFeedbackCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Feedback or a recommendation from the mentor to the mentee."""
    relationship = _get_relationship(db, relationship_id, current_user)
    if relationship.status != "accepted":
        raise HTTPException(status_code=400, detail="Relationship is not active")
    if relationship.mentor_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the mentor can leave feedback")

    db_feedback = MentorFeedback(
        relationship_id=relationship.id,
        author_id=current_user.id,
        **feedback.model_dump()
    )
    db.add(db_feedback)
    db.commit()
    db.refresh(db_feedback)
    return db_feedback


@router.get("/{relationship_id}/feedback", response_model=List[MentorFeedbackResponse])
def list_feedback(
    relationship_id: int,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    _get_relationship(db, relationship_id, current_user)
    query = db.query(MentorFeedback).filter(MentorFeedback.relationship_id == relationship_id)
    if status:
        query = query.filter(MentorFeedback.status == status)
    return query.order_by(MentorFeedback.created_at.desc()).all()


@router.patch("/{relationship_id}/feedback/{feedback_id}", response_model=MentorFeedbackResponse)
def update_feedback_status(
    relationship_id: int,
    feedback_id: int,
    data: MentorFeedbackUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Track a recommendation through open, in_progress, completed or dismissed."""
    _get_relationship(db, relationship_id, current_user)
    feedback = db.query(MentorFeedback).filter(
        MentorFeedback.id == feedback_id,
        MentorFeedback.relationship_id == relationship_id
    ).first()
    if not feedback:
        raise HTTPException(status_code=404, detail="Feedback not found")
    feedback.status = data.status
    db.commit()
    db.refresh(feedback)
    return feedback
