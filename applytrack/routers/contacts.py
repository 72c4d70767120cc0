"""
ApplyTrack - Networking contacts API.

Contacts (recruiters, colleagues, hiring managers, referrals, alumni),
their activity log, follow-up scheduling and links to tracked jobs.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from sqlalchemy import func, or_
from typing import List, Optional
from datetime import date, timedelta

from ..database import get_db
from ..models import Contact, RelationshipActivity, Job
from ..schemas import (
    ContactCreate, ContactUpdate, ContactResponse,
    ActivityCreate, ActivityResponse,
)
from ..auth.dependencies import get_current_active_user
from ..auth.models import User
from ..query_helpers import user_query, get_owned_or_404
from ..rate_limit import limiter, RATE_LIMIT_GENERAL

router = APIRouter()

MAX_BULK_CONTACTS = 100


def _check_job_ids(db: Session, user: User, job_ids: List[int]) -> None:
    if not job_ids:
        return
    found = {row.id for row in user_query(db, Job, user).filter(Job.id.in_(job_ids)).all()}
    missing = sorted(set(job_ids) - found)
    if missing:
        raise HTTPException(status_code=404, detail=f"Jobs not found: {missing}")


@router.get("/", response_model=List[ContactResponse])
def list_contacts(
    skip: int = 0,
    limit: int = Query(100, ge=1, le=500),
    relationship_type: Optional[str] = None,
    company: Optional[str] = None,
    tag: Optional[str] = None,
    job_id: Optional[int] = None,
    needs_follow_up: bool = False,
    search: Optional[str] = None,
    sort_by: Optional[str] = Query(
        None, pattern="^(name|company|created_at|last_contacted|next_follow_up|relationship_strength)$"
    ),
    sort_order: Optional[str] = Query("asc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """List contacts with optional filters, search, and sorting."""
    query = user_query(db, Contact, current_user)

    if relationship_type:
        query = query.filter(Contact.relationship_type == relationship_type)
    if company:
        query = query.filter(Contact.company.ilike(f"%{company}%"))
    if needs_follow_up:
        query = query.filter(Contact.next_follow_up <= date.today())

    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                Contact.name.ilike(search_term),
                Contact.company.ilike(search_term),
                Contact.email.ilike(search_term),
                Contact.title.ilike(search_term),
                Contact.notes.ilike(search_term)
            )
        )

    if sort_by:
        sort_column = getattr(Contact, sort_by)
        query = query.order_by(sort_column.desc() if sort_order == "desc" else sort_column.asc())
    else:
        query = query.order_by(Contact.created_at.desc())

    contacts = query.all()

    # JSON list columns are filtered here rather than in SQL
    if tag:
        contacts = [c for c in contacts if tag in (c.tags or [])]
    if job_id is not None:
        contacts = [c for c in contacts if job_id in (c.linked_job_ids or [])]

    return contacts[skip:skip + limit]


@router.get("/stats")
def get_contact_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Counts by relationship type and strength, follow-ups due, and recent activity."""
    base = user_query(db, Contact, current_user)
    today = date.today()

    by_type = {}
    for relationship_type, count in base.with_entities(
        Contact.relationship_type, func.count(Contact.id)
    ).group_by(Contact.relationship_type).all():
        by_type[relationship_type or "other"] = count

    by_strength = {}
    for strength, count in base.with_entities(
        Contact.relationship_strength, func.count(Contact.id)
    ).group_by(Contact.relationship_strength).all():
        by_strength[str(strength or 0)] = count

    activities = db.query(RelationshipActivity).filter(RelationshipActivity.user_id == current_user.id)

    return {
        "total": base.count(),
        "by_relationship_type": by_type,
        "by_strength": by_strength,
        "needs_follow_up": base.filter(Contact.next_follow_up <= today).count(),
        "contacted_this_week": base.filter(Contact.last_contacted >= today - timedelta(days=7)).count(),
        "contacted_this_month": base.filter(Contact.last_contacted >= today - timedelta(days=30)).count(),
        "activities_last_30_days": activities.filter(
            RelationshipActivity.activity_date >= today - timedelta(days=30)
        ).count(),
        "referral_requests": activities.filter(RelationshipActivity.activity_type == "referral_request").count(),
    }


@router.get("/follow-ups", response_model=List[ContactResponse])
def get_due_follow_ups(
    days: int = Query(7, ge=0, le=90),
    include_overdue: bool = True,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Contacts with a follow-up due within the next N days, overdue ones first."""
    today = date.today()
    query = user_query(db, Contact, current_user).filter(
        Contact.next_follow_up.isnot(None),
        Contact.next_follow_up <= today + timedelta(days=days)
    )
    if not include_overdue:
        query = query.filter(Contact.next_follow_up >= today)
    return query.order_by(Contact.next_follow_up.asc()).all()


@router.post("/bulk", response_model=List[ContactResponse], status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
def bulk_create_contacts(
    request: Request,
    contacts: List[ContactCreate],
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Create several contacts at once."""
    if not contacts:
        raise HTTPException(status_code=400, detail="No contacts provided")
    if len(contacts) > MAX_BULK_CONTACTS:
        raise HTTPException(status_code=400, detail=f"At most {MAX_BULK_CONTACTS} contacts per request")

    _check_job_ids(db, current_user, sorted({j for c in contacts for j in c.linked_job_ids}))
    created = [Contact(**c.model_dump(), user_id=current_user.id) for c in contacts]
    db.add_all(created)
    db.commit()
    for contact in created:
        db.refresh(contact)
    return created


@router.get("/{contact_id}", response_model=ContactResponse)
def get_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return get_owned_or_404(db, Contact, contact_id, current_user, "Contact")


@router.post("/", response_model=ContactResponse, status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
def create_contact(
    request: Request,
    contact: ContactCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    _check_job_ids(db, current_user, contact.linked_job_ids)
    db_contact = Contact(**contact.model_dump(), user_id=current_user.id)
    db.add(db_contact)
    db.commit()
    db.refresh(db_contact)
    return db_contact


@router.patch("/{contact_id}", response_model=ContactResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def update_contact(
    request: Request,
    contact_id: int,
    contact: ContactUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_contact = get_owned_or_404(db, Contact, contact_id, current_user, "Contact")

    update_data = contact.model_dump(exclude_unset=True)
    if update_data.get("linked_job_ids"):
        _check_job_ids(db, current_user, update_data["linked_job_ids"])
    for key, value in update_data.items():
        setattr(db_contact, key, value)

    db.commit()
    db.refresh(db_contact)
    return db_contact


@router.delete("/{contact_id}")
@limiter.limit(RATE_LIMIT_GENERAL)
def delete_contact(
    request: Request,
    contact_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Delete a contact and its activity log."""
    db_contact = get_owned_or_404(db, Contact, contact_id, current_user, "Contact")
    db.delete(db_contact)
    db.commit()
    return {"message": "Contact deleted"}


@router.patch("/{contact_id}/snooze", response_model=ContactResponse)
def snooze_follow_up(
    contact_id: int,
    days: int = Query(7, ge=1, le=90),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_contact = get_owned_or_404(db, Contact, contact_id, current_user, "Contact")
    db_contact.next_follow_up = date.today() + timedelta(days=days)
    db.commit()
    db.refresh(db_contact)
    return db_contact


@router.post("/{contact_id}/jobs/{job_id}", response_model=ContactResponse)
def link_job(
    contact_id: int,
    job_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Link a contact to a tracked job (e.g. the recruiter or referrer for it)."""
    db_contact = get_owned_or_404(db, Contact, contact_id, current_user, "Contact")
    get_owned_or_404(db, Job, job_id, current_user, "Job")
    linked = list(db_contact.linked_job_ids or [])
    if job_id not in linked:
        linked.append(job_id)
        db_contact.linked_job_ids = linked
        db.commit()
        db.refresh(db_contact)
    return db_contact


@router.delete("/{contact_id}/jobs/{job_id}", response_model=ContactResponse)
def unlink_job(
    contact_id: int,
    job_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_contact = get_owned_or_404(db, Contact, contact_id, current_user, "Contact")
    db_contact.linked_job_ids = [j for j in db_contact.linked_job_ids or [] if j != job_id]
    db.commit()
    db.refresh(db_contact)
    return db_contact


# --- Activity endpoints ---

@router.get("/{contact_id}/activities", response_model=List[ActivityResponse])
def list_activities(
    contact_id: int,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    get_owned_or_404(db, Contact, contact_id, current_user, "Contact")
    return db.query(RelationshipActivity).filter(
        RelationshipActivity.contact_id == contact_id,
        RelationshipActivity.user_id == current_user.id
    ).order_by(RelationshipActivity.activity_date.desc()).limit(limit).all()


@router.post("/{contact_id}/activities", response_model=ActivityResponse, status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
def log_activity(
    request: Request,
    contact_id: int,
    activity: ActivityCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Log an activity with a contact.

    Moves last_contacted forward to the activity date (never backwards, so
    back-filling an old call does not hide a recent one) and sets the next
    follow-up when one is given.
    """
    contact = get_owned_or_404(db, Contact, contact_id, current_user, "Contact")

    db_activity = RelationshipActivity(
        contact_id=contact_id,
        user_id=current_user.id,
        activity_type=activity.activity_type,
        activity_date=activity.activity_date,
        notes=activity.notes,
    )
    db.add(db_activity)

    if contact.last_contacted is None or activity.activity_date > contact.last_contacted:
        contact.last_contacted = activity.activity_date
    if activity.next_follow_up:
        contact.next_follow_up = activity.next_follow_up

    db.commit()
    db.refresh(db_activity)
    return db_activity


@router.delete("/{contact_id}/activities/{activity_id}")
def delete_activity(
    contact_id: int,
    activity_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    get_owned_or_404(db, Contact, contact_id, current_user, "Contact")
    activity = db.query(RelationshipActivity).filter(
        RelationshipActivity.id == activity_id,
        RelationshipActivity.contact_id == contact_id,
        RelationshipActivity.user_id == current_user.id
    ).first()
    if not activity:
        raise HTTPException(status_code=404, detail="Activity not found")
    db.delete(activity)
    db.commit()
    return {"message": "Activity deleted"}
