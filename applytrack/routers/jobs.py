"""
ApplyTrack - Job application tracking API.

Endpoints for tracking jobs through the hiring pipeline, from saved
posting through offer, rejection or ghosting, plus match scoring and
skill gap analysis against the user's profile.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from sqlalchemy import func, or_
from typing import List, Optional
from datetime import date, datetime, timedelta

from ..database import get_db
from ..models import (
    Job, JobStatusChange, Resume, CoverLetter,
    PIPELINE_STATUSES, TERMINAL_STATUSES, IN_PROGRESS_STATUSES,
)
from ..schemas import (
    JobCreate, JobUpdate, JobResponse, JobStats, JobStatusUpdate, JobArchiveRequest,
    BulkStatusUpdate, BulkDeadlineUpdate, MatchCompareRequest, StatusChangeResponse,
)
from ..auth.dependencies import get_current_active_user
from ..auth.models import User
from ..query_helpers import user_query, get_owned_or_404, get_or_create_profile, record_status_change
from ..rate_limit import limiter, RATE_LIMIT_GENERAL, RATE_LIMIT_READ
from ..services.job_matching import calculate_job_match, compare_job_matches
from ..services.skill_gap import skill_gap_report
from ..services.follow_up import follow_up_due, next_follow_up_date
import logging

logger = logging.getLogger("applytrack.jobs")

router = APIRouter()

# Statuses that count as hearing back from the company
RESPONSE_STATUSES = ["phone_screen", "interview", "offer", "accepted", "rejected"]
# Stages the funnel counts; a job counts toward every stage it reached
FUNNEL_STAGES = ["interested", "applied", "phone_screen", "interview", "offer", "accepted"]


def _check_links(db: Session, user: User, resume_id: Optional[int], cover_letter_id: Optional[int]):
    if resume_id is not None:
        get_owned_or_404(db, Resume, resume_id, user, "Resume")
    if cover_letter_id is not None:
        get_owned_or_404(db, CoverLetter, cover_letter_id, user, "Cover letter")


@router.get("/", response_model=List[JobResponse])
def list_jobs(
    skip: int = 0,
    limit: int = Query(100, ge=1, le=500),
    status: Optional[str] = None,
    archived: bool = False,
    priority: Optional[str] = None,
    company: Optional[str] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: Optional[str] = Query(
        None, pattern="^(title|company|status|priority|deadline|application_date|created_at|last_status_change)$"
    ),
    sort_order: Optional[str] = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """List jobs with optional filters, search, and sorting."""
    query = user_query(db, Job, current_user).filter(Job.archived == archived)

    if status:
        statuses = [s.strip() for s in status.split(",") if s.strip()]
        query = query.filter(Job.status.in_(statuses))
    if priority:
        query = query.filter(Job.priority == priority)
    if company:
        query = query.filter(Job.company.ilike(f"%{company}%"))

    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                Job.title.ilike(search_term),
                Job.company.ilike(search_term),
                Job.location.ilike(search_term),
                Job.description.ilike(search_term),
                Job.notes.ilike(search_term)
            )
        )

    if sort_by:
        sort_column = getattr(Job, sort_by)
        query = query.order_by(sort_column.desc() if sort_order == "desc" else sort_column.asc())
    else:
        query = query.order_by(Job.created_at.desc())

    # JSON list membership is not portable across SQLite and PostgreSQL,
    # so tagged listings are filtered before the page is cut
    if tag:
        tagged = [j for j in query.all() if tag in (j.tags or [])]
        return tagged[skip:skip + limit]
    return query.offset(skip).limit(limit).all()


@router.get("/stats", response_model=JobStats)
def get_job_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Pipeline counts, response rate and time to response."""
    base = user_query(db, Job, current_user)
    total = base.count()
    total_archived = base.filter(Job.archived.is_(True)).count()

    by_status = {s: 0 for s in PIPELINE_STATUSES}
    rows = base.filter(Job.archived.is_(False)).with_entities(
        Job.status, func.count(Job.id)
    ).group_by(Job.status).all()
    for status, count in rows:
        by_status[status] = count

    submitted = base.filter(Job.status != "interested").count()
    responded = base.filter(Job.status.in_(RESPONSE_STATUSES)).count()
    response_rate = round(responded / submitted * 100, 1) if submitted else 0.0

    timed = base.filter(
        Job.application_date.isnot(None),
        Job.response_date.isnot(None)
    ).with_entities(Job.application_date, Job.response_date).all()
    avg_days = None
    if timed:
        avg_days = round(sum((r - a).days for a, r in timed) / len(timed), 1)

    today = date.today()
    return JobStats(
        total=total,
        total_active=total - total_archived,
        total_archived=total_archived,
        by_status=by_status,
        response_rate=response_rate,
        avg_days_to_response=avg_days,
        applications_this_week=base.filter(Job.application_date >= today - timedelta(days=7)).count(),
        applications_this_month=base.filter(Job.application_date >= today - timedelta(days=30)).count(),
    )


@router.get("/funnel")
def get_funnel(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Conversion funnel across pipeline stages.

    A job counts toward every stage up to the furthest one it reached, so a
    job rejected after an interview still counts as interviewed.
    """
    jobs = user_query(db, Job, current_user).all()
    history = user_query(db, JobStatusChange, current_user).with_entities(
        JobStatusChange.job_id, JobStatusChange.to_status
    ).all()

    reached = {job.id: {job.status} for job in jobs}
    for job_id, to_status in history:
        if job_id in reached:
            reached[job_id].add(to_status)

    counts = {stage: 0 for stage in FUNNEL_STAGES}
    for statuses in reached.values():
        furthest = max((FUNNEL_STAGES.index(s) for s in statuses if s in FUNNEL_STAGES), default=0)
        for stage in FUNNEL_STAGES[:furthest + 1]:
            counts[stage] += 1

    def rate(num, denom):
        return round(num / denom * 100, 1) if denom > 0 else 0

    return {
        "funnel": counts,
        "conversion_rates": {
            "interested_to_applied": rate(counts["applied"], counts["interested"]),
            "applied_to_phone_screen": rate(counts["phone_screen"], counts["applied"]),
            "phone_screen_to_interview": rate(counts["interview"], counts["phone_screen"]),
            "interview_to_offer": rate(counts["offer"], counts["interview"]),
            "offer_to_accepted": rate(counts["accepted"], counts["offer"]),
            "applied_to_offer": rate(counts["offer"], counts["applied"]),
        }
    }


@router.get("/upcoming-deadlines")
def upcoming_deadlines(
    days: int = Query(7, ge=1, le=90),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Open jobs whose deadline falls within the next `days` days."""
    today = date.today()
    jobs = user_query(db, Job, current_user).filter(
        Job.archived.is_(False),
        Job.status.notin_(TERMINAL_STATUSES),
        Job.deadline.isnot(None),
        Job.deadline >= today,
        Job.deadline <= today + timedelta(days=days)
    ).order_by(Job.deadline.asc()).all()

    return [
        {
            "job": JobResponse.model_validate(job),
            "days_left": (job.deadline - today).days,
            "urgent": (job.deadline - today).days <= 2,
        }
        for job in jobs
    ]


@router.get("/stale")
def stale_jobs(
    days: int = Query(14, ge=7, le=60),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """In-progress applications with no status change for `days` days."""
    now = datetime.utcnow()
    jobs = user_query(db, Job, current_user).filter(
        Job.archived.is_(False),
        Job.status.in_(IN_PROGRESS_STATUSES),
        Job.last_status_change <= now - timedelta(days=days)
    ).order_by(Job.last_status_change.asc()).all()

    return {
        "threshold_days": days,
        "count": len(jobs),
        "jobs": [
            {
                "id": job.id,
                "title": job.title,
                "company": job.company,
                "status": job.status,
                "days_since_change": (now - job.last_status_change).days,
                "suggestion": "Send a follow-up" if job.status == "applied" else "Check in on next steps",
            }
            for job in jobs
        ],
    }


@router.get("/follow-ups")
def due_follow_ups(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Follow-ups due right now across the user's active jobs."""
    now = datetime.utcnow()
    jobs = user_query(db, Job, current_user).filter(Job.archived.is_(False)).all()
    due = []
    for job in jobs:
        follow_up = follow_up_due(job, now, applied_days=current_user.follow_up_after_days)
        if follow_up:
            due.append(dict(follow_up, job_title=job.title, company=job.company))
    priority_rank = {"high": 0, "medium": 1, "low": 2}
    due.sort(key=lambda f: (priority_rank.get(f["priority"], 3), -f["days_in_status"]))
    return {"count": len(due), "follow_ups": due}


@router.post("/match/compare")
@limiter.limit(RATE_LIMIT_READ)
def compare_matches(
    request: Request,
    data: MatchCompareRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Score several jobs against the profile and rank them."""
    jobs = user_query(db, Job, current_user).filter(Job.id.in_(data.job_ids)).all()
    missing = sorted(set(data.job_ids) - {j.id for j in jobs})
    if missing:
        raise HTTPException(status_code=404, detail=f"Jobs not found: {missing}")

    profile = get_or_create_profile(db, current_user)
    try:
        matches = [calculate_job_match(job, profile, data.weights) for job in jobs]
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return compare_job_matches(matches)


# --- Bulk operations ---

@router.post("/bulk/status")
@limiter.limit(RATE_LIMIT_GENERAL)
def bulk_update_status(
    request: Request,
    data: BulkStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Move several jobs to one status, recording history for each."""
    jobs = user_query(db, Job, current_user).filter(Job.id.in_(data.job_ids)).all()
    updated = 0
    for job in jobs:
        if job.status == data.status.value:
            continue
        record_status_change(db, job, data.status.value, notes=data.notes)
        updated += 1
    db.commit()

    found = {j.id for j in jobs}
    return {
        "message": f"Updated {updated} jobs",
        "updated": updated,
        "unchanged": len(jobs) - updated,
        "not_found": [i for i in data.job_ids if i not in found],
    }


@router.post("/bulk/deadline")
@limiter.limit(RATE_LIMIT_GENERAL)
def bulk_update_deadline(
    request: Request,
    data: BulkDeadlineUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Set, shift or clear the deadline of several jobs."""
    jobs = user_query(db, Job, current_user).filter(Job.id.in_(data.job_ids)).all()
    updated = 0
    for job in jobs:
        if data.clear:
            job.deadline = None
        elif data.deadline is not None:
            job.deadline = data.deadline
        elif job.deadline is not None:
            job.deadline = job.deadline + timedelta(days=data.shift_days)
        else:
            # Nothing to shift
            continue
        job.deadline_reminder_sent_on = None
        updated += 1
    db.commit()

    found = {j.id for j in jobs}
    return {
        "message": f"Updated {updated} deadlines",
        "updated": updated,
        "not_found": [i for i in data.job_ids if i not in found],
    }


# --- Single job ---

@router.get("/{job_id}", response_model=JobResponse)
def get_job(
    job_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Get a specific job."""
    return get_owned_or_404(db, Job, job_id, current_user, "Job")


@router.post("/", response_model=JobResponse, status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
def create_job(
    request: Request,
    job: JobCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Create a job. The initial status is the first history entry."""
    data = job.model_dump(exclude={"status"})
    db_job = Job(**data, user_id=current_user.id)
    db.add(db_job)
    record_status_change(db, db_job, job.status.value, notes="Job created")
    db.commit()
    db.refresh(db_job)
    logger.info(f"User {current_user.id} created job {db_job.id} ({db_job.status})")
    return db_job


@router.patch("/{job_id}", response_model=JobResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def update_job(
    request: Request,
    job_id: int,
    job: JobUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Update job fields. Status changes go through PUT /{id}/status."""
    db_job = get_owned_or_404(db, Job, job_id, current_user, "Job")
    update_data = job.model_dump(exclude_unset=True)
    _check_links(db, current_user, update_data.get("resume_id"), update_data.get("cover_letter_id"))

    salary_min = update_data.get("salary_min", db_job.salary_min)
    salary_max = update_data.get("salary_max", db_job.salary_max)
    if salary_min is not None and salary_max is not None and salary_min > salary_max:
        raise HTTPException(status_code=400, detail="salary_min cannot exceed salary_max")

    if "deadline" in update_data and update_data["deadline"] != db_job.deadline:
        db_job.deadline_reminder_sent_on = None

    for key, value in update_data.items():
        setattr(db_job, key, value)

    db.commit()
    db.refresh(db_job)
    return db_job


@router.delete("/{job_id}")
@limiter.limit(RATE_LIMIT_GENERAL)
def delete_job(
    request: Request,
    job_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Delete a job and its status history."""
    db_job = get_owned_or_404(db, Job, job_id, current_user, "Job")
    db.delete(db_job)
    db.commit()
    return {"message": "Job deleted"}


@router.put("/{job_id}/status", response_model=JobResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def update_job_status(
    request: Request,
    job_id: int,
    data: JobStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Change status, appending to history. Re-sending the current status only updates next action."""
    db_job = get_owned_or_404(db, Job, job_id, current_user, "Job")

    if data.status.value != db_job.status:
        record_status_change(db, db_job, data.status.value, notes=data.notes)
    if data.next_action is not None:
        db_job.next_action = data.next_action
    if data.next_action_date is not None:
        db_job.next_action_date = data.next_action_date

    db.commit()
    db.refresh(db_job)
    return db_job


@router.post("/{job_id}/archive", response_model=JobResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def archive_job(
    request: Request,
    job_id: int,
    data: Optional[JobArchiveRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Archive a job. Archived jobs drop out of lists, stats and reminders."""
    db_job = get_owned_or_404(db, Job, job_id, current_user, "Job")
    if db_job.archived:
        raise HTTPException(status_code=400, detail="Job is already archived")
    db_job.archived = True
    db_job.archived_at = datetime.utcnow()
    db_job.archive_reason = data.reason if data else None
    db.commit()
    db.refresh(db_job)
    return db_job


@router.post("/{job_id}/unarchive", response_model=JobResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def unarchive_job(
    request: Request,
    job_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_job = get_owned_or_404(db, Job, job_id, current_user, "Job")
    if not db_job.archived:
        raise HTTPException(status_code=400, detail="Job is not archived")
    db_job.archived = False
    db_job.archived_at = None
    db_job.archive_reason = None
    db.commit()
    db.refresh(db_job)
    return db_job


@router.get("/{job_id}/history", response_model=List[StatusChangeResponse])
def get_status_history(
    job_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Status history, oldest first."""
    db_job = get_owned_or_404(db, Job, job_id, current_user, "Job")
    return db_job.status_history


@router.get("/{job_id}/match")
@limiter.limit(RATE_LIMIT_READ)
def get_job_match(
    request: Request,
    job_id: int,
    skills_weight: Optional[float] = Query(None, ge=0),
    experience_weight: Optional[float] = Query(None, ge=0),
    education_weight: Optional[float] = Query(None, ge=0),
    additional_weight: Optional[float] = Query(None, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Match score of this job against the user's profile."""
    db_job = get_owned_or_404(db, Job, job_id, current_user, "Job")
    profile = get_or_create_profile(db, current_user)
    weights = {
        "skills": skills_weight,
        "experience": experience_weight,
        "education": education_weight,
        "additional": additional_weight,
    }
    try:
        return calculate_job_match(db_job, profile, weights)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{job_id}/skill-gap")
@limiter.limit(RATE_LIMIT_READ)
def get_skill_gap(
    request: Request,
    job_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Matched, weak and missing skills for this job with learning resources."""
    db_job = get_owned_or_404(db, Job, job_id, current_user, "Job")
    profile = get_or_create_profile(db, current_user)
    report = skill_gap_report(profile.skills or [], db_job.requirements, db_job.description)
    report["job_id"] = db_job.id
    report["job_title"] = db_job.title
    report["company"] = db_job.company
    return report


@router.get("/{job_id}/follow-up")
def get_follow_up(
    job_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """The follow-up this job needs now, if any, and when the next one is due."""
    db_job = get_owned_or_404(db, Job, job_id, current_user, "Job")
    applied_days = current_user.follow_up_after_days
    return {
        "job_id": db_job.id,
        "due": follow_up_due(db_job, applied_days=applied_days),
        "next_follow_up_date": next_follow_up_date(db_job, applied_days=applied_days),
        "last_reminder_at": db_job.last_follow_up_reminder_at,
    }
