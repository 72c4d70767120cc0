"""
Reusable query helpers for user-scoped data isolation.

Every router filters by the current user through these so that one user's
records can never be read or modified through another user's session.
"""
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import or_

from .models import Job, JobStatusChange, UserProfile


def user_query(db: Session, model, user):
    """Return a query filtered to the given user's records."""
    return db.query(model).filter(model.user_id == user.id)


def get_owned_or_404(db: Session, model, record_id: int, user, label: str = "Record"):
    """Fetch a record by id and user_id, or raise 404."""
    record = db.query(model).filter(
        model.id == record_id,
        model.user_id == user.id
    ).first()
    if not record:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return record


def owned_or_system_query(db: Session, model, user):
    """Templates owned by the user OR built-in templates (user_id IS NULL)."""
    return db.query(model).filter(
        or_(
            model.user_id == user.id,
            model.user_id.is_(None)
        )
    )


def append_json(obj, attr: str, item) -> list:
    """Append to a JSON list column by reassignment so the change is persisted."""
    updated = list(getattr(obj, attr) or [])
    updated.append(item)
    setattr(obj, attr, updated)
    return updated


def record_status_change(
    db: Session,
    job: Job,
    new_status: str,
    notes: Optional[str] = None,
    changed_by: str = "user",
) -> JobStatusChange:
    """
    Move a job to new_status and append the history entry.

    Also stamps application_date when a job first reaches 'applied' and
    response_date when it first leaves 'applied'. The caller commits.
    """
    old_status = job.status if job.id else None
    today = datetime.utcnow().date()

    if new_status == "applied" and not job.application_date:
        job.application_date = today
    if old_status == "applied" and new_status not in ("applied", "interested") and not job.response_date:
        job.response_date = today

    job.status = new_status
    job.last_status_change = datetime.utcnow()

    entry = JobStatusChange(
        user_id=job.user_id,
        from_status=old_status,
        to_status=new_status,
        notes=notes,
        changed_by=changed_by,
    )
    job.status_history.append(entry)
    db.add(entry)
    return entry


def get_or_create_profile(db: Session, user) -> UserProfile:
    """The user's career profile, created empty on first access."""
    profile = db.query(UserProfile).filter(UserProfile.user_id == user.id).first()
    if profile is None:
        profile = UserProfile(user_id=user.id, skills=[], employment=[], education=[],
                              certifications=[], projects=[])
        db.add(profile)
        db.commit()
        db.refresh(profile)
    return profile
