"""
ApplyTrack - Interview scheduling API.

Schedule, reschedule, cancel and record outcomes for interviews, with
overlap detection against the user's other active interviews,
preparation checklists, and AI coaching.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from typing import Dict, List, Optional
from datetime import datetime, timedelta
from collections import Counter
import logging
import uuid

from ..database import get_db
from ..models import Interview, Job, TERMINAL_STATUSES
from ..schemas import (
    InterviewCreate, InterviewUpdate, InterviewResponse, InterviewReschedule,
    InterviewCancel, InterviewOutcome, PrepTaskCreate,
    CoachingQuestionsRequest, CoachingFeedbackRequest, to_naive_utc,
)
from ..auth.dependencies import get_current_active_user
from ..auth.models import User
from ..query_helpers import user_query, get_owned_or_404, append_json, record_status_change
from ..rate_limit import limiter, RATE_LIMIT_AI, RATE_LIMIT_GENERAL
from ..services.ai_service import ai_service, AIServiceError

logger = logging.getLogger("applytrack.interviews")

router = APIRouter()

# Interviews that still occupy a slot in the calendar
ACTIVE_INTERVIEW_STATUSES = ("scheduled", "confirmed", "rescheduled")

# Job status an interview result implies; only applied when it moves the job forward
RESULT_JOB_STATUS = {
    "passed": "interview",
    "moved_to_next_round": "interview",
    "offer_extended": "offer",
    "failed": "rejected",
}
PRE_INTERVIEW_STATUSES = ("interested", "applied", "phone_screen")


def _history(interview: Interview, action: str, **details):
    append_json(interview, "history", {
        "action": action,
        "at": datetime.utcnow().isoformat(),
        "details": details,
    })


def find_conflicts(db: Session, user: User, start: datetime, duration_minutes: int,
                   exclude_id: Optional[int] = None) -> List[Dict]:
    """Active interviews of this user whose time window overlaps [start, start + duration)."""
    end = start + timedelta(minutes=duration_minutes)
    # Longest allowed interview is 10 hours, so nothing starting earlier can overlap
    candidates = user_query(db, Interview, user).filter(
        Interview.status.in_(ACTIVE_INTERVIEW_STATUSES),
        Interview.scheduled_at < end,
        Interview.scheduled_at > start - timedelta(hours=10),
    )
    if exclude_id is not None:
        candidates = candidates.filter(Interview.id != exclude_id)

    return [
        {
            "interview_id": other.id,
            "title": other.title,
            "company": other.company,
            "scheduled_at": other.scheduled_at.isoformat(),
            "ends_at": other.ends_at.isoformat(),
        }
        for other in candidates.all()
        if other.ends_at > start
    ]


def refresh_conflicts(db: Session, user: User) -> None:
    """Recompute conflict flags on all of the user's active interviews. The caller commits."""
    db.flush()
    interviews = user_query(db, Interview, user).filter(
        Interview.scheduled_at >= datetime.utcnow() - timedelta(days=1)
    ).all()
    for interview in interviews:
        if interview.status in ACTIVE_INTERVIEW_STATUSES:
            conflicts = find_conflicts(db, user, interview.scheduled_at,
                                       interview.duration_minutes, exclude_id=interview.id)
        else:
            conflicts = []
        interview.has_conflict = bool(conflicts)
        interview.conflict_details = conflicts or None


@router.get("/", response_model=List[InterviewResponse])
def list_interviews(
    upcoming: bool = False,
    past: bool = False,
    status: Optional[str] = None,
    job_id: Optional[int] = None,
    skip: int = 0,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """List interviews; upcoming ones soonest first, otherwise most recent first."""
    query = user_query(db, Interview, current_user)
    now = datetime.utcnow()

    if upcoming:
        query = query.filter(Interview.scheduled_at >= now,
                             Interview.status.in_(ACTIVE_INTERVIEW_STATUSES))
    if past:
        query = query.filter(Interview.scheduled_at < now)
    if status:
        query = query.filter(Interview.status == status)
    if job_id is not None:
        query = query.filter(Interview.job_id == job_id)

    order = Interview.scheduled_at.asc() if upcoming else Interview.scheduled_at.desc()
    return query.order_by(order).offset(skip).limit(limit).all()


@router.get("/upcoming-summary")
def upcoming_summary(
    days: int = Query(7, ge=1, le=60),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Counts by day and type for the next `days` days, open prep tasks, and conflicts."""
    now = datetime.utcnow()
    interviews = user_query(db, Interview, current_user).filter(
        Interview.status.in_(ACTIVE_INTERVIEW_STATUSES),
        Interview.scheduled_at >= now,
        Interview.scheduled_at <= now + timedelta(days=days)
    ).order_by(Interview.scheduled_at.asc()).all()

    by_day = Counter(i.scheduled_at.date().isoformat() for i in interviews)
    by_type = Counter(i.interview_type for i in interviews)
    open_tasks = [
        {"interview_id": i.id, "company": i.company, "task": t["title"], "priority": t.get("priority")}
        for i in interviews
        for t in (i.preparation_tasks or [])
        if not t.get("completed")
    ]

    next_interview = None
    if interviews:
        first = interviews[0]
        next_interview = {
            "id": first.id,
            "title": first.title,
            "company": first.company,
            "scheduled_at": first.scheduled_at,
            "time_until": first.time_until(now),
        }

    return {
        "total": len(interviews),
        "by_day": dict(sorted(by_day.items())),
        "by_type": dict(by_type),
        "next_interview": next_interview,
        "incomplete_prep_tasks": open_tasks,
        "conflicts": [
            {"interview_id": i.id, "conflicts_with": i.conflict_details}
            for i in interviews if i.has_conflict
        ],
    }


@router.get("/conflicts")
def check_conflicts(
    scheduled_at: datetime,
    duration_minutes: int = Query(60, ge=5, le=600),
    exclude_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Check a proposed slot against existing interviews without saving anything."""
    conflicts = find_conflicts(db, current_user, to_naive_utc(scheduled_at), duration_minutes, exclude_id)
    return {"has_conflict": bool(conflicts), "conflicts": conflicts}


@router.get("/{interview_id}", response_model=InterviewResponse)
def get_interview(
    interview_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Get a specific interview."""
    return get_owned_or_404(db, Interview, interview_id, current_user, "Interview")


@router.get("/{interview_id}/time-until")
def get_time_until(
    interview_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    interview = get_owned_or_404(db, Interview, interview_id, current_user, "Interview")
    return interview.time_until()


@router.post("/", response_model=InterviewResponse, status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
def schedule_interview(
    request: Request,
    interview: InterviewCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Schedule an interview. Overlaps are flagged, not rejected."""
    if interview.job_id is not None:
        get_owned_or_404(db, Job, interview.job_id, current_user, "Job")

    data = interview.model_dump()
    db_interview = Interview(**data, user_id=current_user.id,
                             preparation_tasks=[], reminders_sent=[], history=[])
    _history(db_interview, "scheduled", scheduled_at=interview.scheduled_at.isoformat())
    db.add(db_interview)
    refresh_conflicts(db, current_user)
    db.commit()
    db.refresh(db_interview)

    if db_interview.has_conflict:
        logger.info(f"Interview {db_interview.id} overlaps {len(db_interview.conflict_details)} other interview(s)")
    return db_interview


@router.patch("/{interview_id}", response_model=InterviewResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def update_interview(
    request: Request,
    interview_id: int,
    interview: InterviewUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Update interview details. Time changes go through /reschedule."""
    db_interview = get_owned_or_404(db, Interview, interview_id, current_user, "Interview")
    update_data = interview.model_dump(exclude_unset=True)

    if update_data.get("thank_you_note_sent") and not db_interview.thank_you_note_sent:
        db_interview.thank_you_note_sent_at = datetime.utcnow()
    old_status = db_interview.status

    for key, value in update_data.items():
        setattr(db_interview, key, value)

    if "status" in update_data and update_data["status"] != old_status:
        _history(db_interview, "status_changed", from_status=old_status, to_status=db_interview.status)
        refresh_conflicts(db, current_user)
    else:
        _history(db_interview, "updated", fields=sorted(update_data))

    db.commit()
    db.refresh(db_interview)
    return db_interview


@router.post("/{interview_id}/reschedule", response_model=InterviewResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def reschedule_interview(
    request: Request,
    interview_id: int,
    data: InterviewReschedule,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Move an interview. Previous time goes to history and reminders start over."""
    db_interview = get_owned_or_404(db, Interview, interview_id, current_user, "Interview")
    if db_interview.status in ("cancelled", "completed"):
        raise HTTPException(status_code=400, detail=f"Cannot reschedule a {db_interview.status} interview")

    previous = db_interview.scheduled_at
    db_interview.scheduled_at = data.scheduled_at
    if data.duration_minutes:
        db_interview.duration_minutes = data.duration_minutes
    db_interview.status = "rescheduled"
    db_interview.reminders_sent = []
    if db_interview.calendar_event_id:
        db_interview.calendar_sync_status = "not_synced"
    _history(db_interview, "rescheduled",
             previous_scheduled_at=previous.isoformat(),
             new_scheduled_at=data.scheduled_at.isoformat(),
             reason=data.reason)

    refresh_conflicts(db, current_user)
    db.commit()
    db.refresh(db_interview)
    return db_interview


@router.post("/{interview_id}/cancel", response_model=InterviewResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def cancel_interview(
    request: Request,
    interview_id: int,
    data: InterviewCancel,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_interview = get_owned_or_404(db, Interview, interview_id, current_user, "Interview")
    if db_interview.status == "cancelled":
        raise HTTPException(status_code=400, detail="Interview is already cancelled")

    db_interview.status = "cancelled"
    db_interview.cancellation_reason = data.reason
    db_interview.cancelled_by = data.cancelled_by
    _history(db_interview, "cancelled", reason=data.reason, cancelled_by=data.cancelled_by)

    refresh_conflicts(db, current_user)
    db.commit()
    db.refresh(db_interview)
    return db_interview


@router.post("/{interview_id}/outcome", response_model=InterviewResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def record_outcome(
    request: Request,
    interview_id: int,
    data: InterviewOutcome,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Record how an interview went and mark it completed.

    When the interview is linked to a job, the result moves the job along:
    passed or next round to 'interview', an offer to 'offer', failed to
    'rejected'. Jobs already closed or further along are left alone.
    """
    db_interview = get_owned_or_404(db, Interview, interview_id, current_user, "Interview")
    if db_interview.status == "cancelled":
        raise HTTPException(status_code=400, detail="Cannot record an outcome for a cancelled interview")

    result = data.result.value
    db_interview.outcome = {
        "result": result,
        "rating": data.rating,
        "notes": data.notes,
        "feedback": data.feedback,
        "recorded_at": datetime.utcnow().isoformat(),
    }
    db_interview.status = "completed"
    _history(db_interview, "outcome_recorded", result=result)

    job = db.get(Job, db_interview.job_id) if db_interview.job_id else None
    new_status = RESULT_JOB_STATUS.get(result)
    if job is not None and new_status and job.status not in TERMINAL_STATUSES:
        moves_forward = (
            (new_status == "interview" and job.status in PRE_INTERVIEW_STATUSES)
            or (new_status == "offer" and job.status != "offer")
            or new_status == "rejected"
        )
        if moves_forward:
            record_status_change(db, job, new_status,
                                 notes=f"Interview outcome: {result.replace('_', ' ')}")

    refresh_conflicts(db, current_user)
    db.commit()
    db.refresh(db_interview)
    return db_interview


@router.delete("/{interview_id}")
@limiter.limit(RATE_LIMIT_GENERAL)
def delete_interview(
    request: Request,
    interview_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_interview = get_owned_or_404(db, Interview, interview_id, current_user, "Interview")
    db.delete(db_interview)
    refresh_conflicts(db, current_user)
    db.commit()
    return {"message": "Interview deleted"}


# --- Preparation tasks ---

@router.post("/{interview_id}/prep-tasks", response_model=InterviewResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def add_prep_task(
    request: Request,
    interview_id: int,
    task: PrepTaskCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_interview = get_owned_or_404(db, Interview, interview_id, current_user, "Interview")
    append_json(db_interview, "preparation_tasks", {
        "id": uuid.uuid4().hex[:12],
        "title": task.title,
        "priority": task.priority.value,
        "completed": False,
        "completed_at": None,
    })
    db.commit()
    db.refresh(db_interview)
    return db_interview


@router.patch("/{interview_id}/prep-tasks/{task_id}/toggle", response_model=InterviewResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def toggle_prep_task(
    request: Request,
    interview_id: int,
    task_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Flip a preparation task between done and not done."""
    db_interview = get_owned_or_404(db, Interview, interview_id, current_user, "Interview")
    tasks = [dict(t) for t in db_interview.preparation_tasks or []]
    for t in tasks:
        if t.get("id") == task_id:
            t["completed"] = not t.get("completed")
            t["completed_at"] = datetime.utcnow().isoformat() if t["completed"] else None
            break
    else:
        raise HTTPException(status_code=404, detail="Task not found")

    db_interview.preparation_tasks = tasks
    db.commit()
    db.refresh(db_interview)
    return db_interview


@router.delete("/{interview_id}/prep-tasks/{task_id}", response_model=InterviewResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def delete_prep_task(
    request: Request,
    interview_id: int,
    task_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_interview = get_owned_or_404(db, Interview, interview_id, current_user, "Interview")
    tasks = [t for t in db_interview.preparation_tasks or [] if t.get("id") != task_id]
    if len(tasks) == len(db_interview.preparation_tasks or []):
        raise HTTPException(status_code=404, detail="Task not found")
    db_interview.preparation_tasks = tasks
    db.commit()
    db.refresh(db_interview)
    return db_interview


# --- AI coaching ---

def _job_description(db: Session, interview: Interview) -> str:
    job = db.get(Job, interview.job_id) if interview.job_id else None
    if job is None:
        return ""
    return "\n".join(filter(None, [job.description, "\n".join(job.requirements or [])]))


@router.post("/{interview_id}/coaching/questions")
@limiter.limit(RATE_LIMIT_AI)
async def generate_practice_questions(
    request: Request,
    interview_id: int,
    data: CoachingQuestionsRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Likely interview questions for this role and interview type."""
    db_interview = get_owned_or_404(db, Interview, interview_id, current_user, "Interview")
    if not ai_service.is_available():
        raise HTTPException(status_code=503, detail="AI coaching is not available")

    try:
        questions = await ai_service.interview_questions(
            title=db_interview.title,
            company=db_interview.company,
            interview_type=db_interview.interview_type,
            job_description=_job_description(db, db_interview),
            focus=data.focus,
            count=data.count,
        )
    except AIServiceError as e:
        logger.error(f"Question generation failed for interview {interview_id}: {e}")
        raise HTTPException(status_code=503, detail=f"AI coaching failed: {e}")

    return {"interview_id": db_interview.id, "questions": questions, "model": ai_service.model}


@router.post("/{interview_id}/coaching/feedback")
@limiter.limit(RATE_LIMIT_AI)
async def practice_answer_feedback(
    request: Request,
    interview_id: int,
    data: CoachingFeedbackRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Score a practice answer and suggest improvements."""
    db_interview = get_owned_or_404(db, Interview, interview_id, current_user, "Interview")
    if not ai_service.is_available():
        raise HTTPException(status_code=503, detail="AI coaching is not available")

    try:
        feedback = await ai_service.answer_feedback(
            title=db_interview.title,
            company=db_interview.company,
            question=data.question,
            answer=data.answer,
        )
    except AIServiceError as e:
        logger.error(f"Answer feedback failed for interview {interview_id}: {e}")
        raise HTTPException(status_code=503, detail=f"AI coaching failed: {e}")

    return {"interview_id": db_interview.id, "question": data.question, **feedback}
