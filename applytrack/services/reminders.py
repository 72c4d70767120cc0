"""
ApplyTrack - Reminder jobs.

Each job takes a DB session, processes every due item, commits per item,
and returns a summary dict. A failure on one item is logged and the batch
moves on. Jobs run from:
    - the background loop started in the app lifespan (reminder_loop)
    - scripts/run_reminders.py
    - POST /api/admin/reminders/run
"""
import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.orm import Session

from ..auth.models import User
from ..config import settings
from ..database import get_resilient_session
from ..models import Interview, Job, IN_PROGRESS_STATUSES, TERMINAL_STATUSES
from ..query_helpers import append_json, record_status_change
from .email_service import email_service
from .follow_up import FOLLOW_UP_TIMING, follow_up_due

logger = logging.getLogger("applytrack.reminders")

REMINDABLE_INTERVIEW_STATUSES = ("scheduled", "confirmed", "rescheduled")
# Largest reminder_hours value accepted on an interview (two weeks)
MAX_REMINDER_HOURS = 24 * 14


def _summary(name: str) -> Dict:
    return {"job": name, "checked": 0, "sent": 0, "skipped": 0, "failed": 0}


def _wants(user: Optional[User], preference: str) -> bool:
    return bool(user and user.is_active and user.email_notifications and getattr(user, preference))


# --- Interview reminders ---

def due_thresholds(interview, now: datetime):
    """Configured hour thresholds that have been reached and not yet sent."""
    sent = {entry.get("hours") for entry in interview.reminders_sent or []}
    remaining = interview.scheduled_at - now
    return sorted(
        h for h in (interview.reminder_hours or [])
        if h not in sent and timedelta(0) < remaining <= timedelta(hours=h)
    )


async def run_interview_reminders(db: Session, now: Optional[datetime] = None) -> Dict:
    """
    Email upcoming-interview reminders.

    When several thresholds are due at once (e.g. the interview was booked
    an hour out), one email goes out for the nearest and all of them are
    recorded, so each threshold is sent at most once.
    """
    now = now or datetime.utcnow()
    summary = _summary("interview_reminders")

    interviews = db.query(Interview).filter(
        Interview.status.in_(REMINDABLE_INTERVIEW_STATUSES),
        Interview.reminders_enabled.is_(True),
        Interview.scheduled_at > now,
        Interview.scheduled_at <= now + timedelta(hours=MAX_REMINDER_HOURS),
    ).all()

    for interview in interviews:
        summary["checked"] += 1
        due = due_thresholds(interview, now)
        if not due:
            continue
        user = db.get(User, interview.user_id)
        if not _wants(user, "interview_reminders"):
            summary["skipped"] += 1
            continue
        try:
            delivered = await email_service.send_interview_reminder(
                user.email, interview, due[0], user.name or "")
            if not delivered:
                summary["failed"] += 1
                continue
            sent = list(interview.reminders_sent or [])
            sent.extend({"hours": h, "sent_at": now.isoformat()} for h in due)
            interview.reminders_sent = sent
            append_json(interview, "history", {
                "action": "reminder_sent", "at": now.isoformat(), "details": {"hours": due[0]},
            })
            db.commit()
            summary["sent"] += 1
        except Exception:
            db.rollback()
            summary["failed"] += 1
            logger.exception(f"Interview reminder failed for interview {interview.id}")

    logger.info(f"Interview reminders: {summary}")
    return summary


# --- Deadline reminders ---

async def run_deadline_reminders(db: Session, now: Optional[datetime] = None,
                                 days_ahead: Optional[int] = None) -> Dict:
    """Remind about deadlines within `days_ahead` days, at most once per day per job."""
    now = now or datetime.utcnow()
    today = now.date()
    days_ahead = settings.reminders.deadline_reminder_days if days_ahead is None else days_ahead
    summary = _summary("deadline_reminders")

    jobs = db.query(Job).filter(
        Job.archived.is_(False),
        Job.status.notin_(TERMINAL_STATUSES),
        Job.deadline.isnot(None),
        Job.deadline >= today,
        Job.deadline <= today + timedelta(days=days_ahead),
    ).all()

    for job in jobs:
        summary["checked"] += 1
        if job.deadline_reminder_sent_on == today:
            summary["skipped"] += 1
            continue
        user = db.get(User, job.user_id)
        if not _wants(user, "deadline_reminders"):
            summary["skipped"] += 1
            continue
        try:
            days_left = (job.deadline - today).days
            if not await email_service.send_deadline_reminder(user.email, job, days_left, user.name or ""):
                summary["failed"] += 1
                continue
            job.deadline_reminder_sent_on = today
            db.commit()
            summary["sent"] += 1
        except Exception:
            db.rollback()
            summary["failed"] += 1
            logger.exception(f"Deadline reminder failed for job {job.id}")

    logger.info(f"Deadline reminders: {summary}")
    return summary


# --- Follow-up reminders ---

async def run_follow_up_reminders(db: Session, now: Optional[datetime] = None) -> Dict:
    now = now or datetime.utcnow()
    summary = _summary("follow_up_reminders")
    repeat_days = settings.reminders.repeat_after_days

    jobs = db.query(Job).filter(
        Job.archived.is_(False),
        Job.status.in_(list(FOLLOW_UP_TIMING)),
    ).all()

    for job in jobs:
        summary["checked"] += 1
        user = db.get(User, job.user_id)
        follow_up = follow_up_due(
            job, now,
            applied_days=user.follow_up_after_days if user else None,
            repeat_after_days=repeat_days,
        )
        if follow_up is None:
            continue
        if not _wants(user, "follow_up_reminders"):
            summary["skipped"] += 1
            continue
        try:
            if not await email_service.send_follow_up_reminder(user.email, job, follow_up, user.name or ""):
                summary["failed"] += 1
                continue
            job.last_follow_up_reminder_at = now
            db.commit()
            summary["sent"] += 1
        except Exception:
            db.rollback()
            summary["failed"] += 1
            logger.exception(f"Follow-up reminder failed for job {job.id}")

    logger.info(f"Follow-up reminders: {summary}")
    return summary


# --- Stalled digest ---

async def run_stalled_digest(db: Session, now: Optional[datetime] = None,
                             stalled_days: Optional[int] = None) -> Dict:
    """One digest per user listing in-progress applications with no movement."""
    now = now or datetime.utcnow()
    stalled_days = settings.reminders.stalled_after_days if stalled_days is None else stalled_days
    repeat_days = settings.reminders.repeat_after_days
    cutoff = now - timedelta(days=stalled_days)
    summary = _summary("stalled_digest")

    jobs = db.query(Job).filter(
        Job.archived.is_(False),
        Job.status.in_(IN_PROGRESS_STATUSES),
        Job.last_status_change <= cutoff,
    ).order_by(Job.last_status_change).all()

    by_user = defaultdict(list)
    for job in jobs:
        by_user[job.user_id].append(job)

    for user_id, user_jobs in by_user.items():
        summary["checked"] += 1
        user = db.get(User, user_id)
        if not _wants(user, "follow_up_reminders"):
            summary["skipped"] += 1
            continue
        if user.last_stalled_digest_at and now - user.last_stalled_digest_at < timedelta(days=repeat_days):
            summary["skipped"] += 1
            continue
        try:
            if not await email_service.send_stalled_digest(user.email, user_jobs, stalled_days, user.name or ""):
                summary["failed"] += 1
                continue
            user.last_stalled_digest_at = now
            db.commit()
            summary["sent"] += 1
        except Exception:
            db.rollback()
            summary["failed"] += 1
            logger.exception(f"Stalled digest failed for user {user_id}")

    logger.info(f"Stalled digest: {summary}")
    return summary


# --- Ghosted detection ---

def mark_ghosted(db: Session, now: Optional[datetime] = None, after_days: Optional[int] = None) -> Dict:
    """Move 'applied' jobs with no change for `after_days` days to 'ghosted'."""
    now = now or datetime.utcnow()
    after_days = settings.reminders.ghosted_after_days if after_days is None else after_days
    cutoff = now - timedelta(days=after_days)
    summary = {"job": "ghosted_detection", "checked": 0, "updated": 0, "skipped": 0, "failed": 0}

    jobs = db.query(Job).filter(
        Job.archived.is_(False),
        Job.status == "applied",
        Job.last_status_change <= cutoff,
    ).all()

    for job in jobs:
        summary["checked"] += 1
        user = db.get(User, job.user_id)
        if user is not None and not user.auto_mark_ghosted:
            summary["skipped"] += 1
            continue
        try:
            record_status_change(
                db, job, "ghosted",
                notes=f"No response for {after_days} days",
                changed_by="automation",
            )
            db.commit()
            summary["updated"] += 1
        except Exception:
            db.rollback()
            summary["failed"] += 1
            logger.exception(f"Ghosted update failed for job {job.id}")

    logger.info(f"Ghosted detection: {summary}")
    return summary


async def run_all(db: Session, now: Optional[datetime] = None) -> Dict:
    """Run every reminder job once; returns the per-job summaries."""
    now = now or datetime.utcnow()
    return {
        "interview_reminders": await run_interview_reminders(db, now),
        "deadline_reminders": await run_deadline_reminders(db, now),
        "follow_up_reminders": await run_follow_up_reminders(db, now),
        "stalled_digest": await run_stalled_digest(db, now),
        "ghosted_detection": mark_ghosted(db, now),
        "ran_at": now.isoformat(),
    }


def _run_pass() -> Dict:
    """One full pass on its own session and event loop, for use in a worker thread."""
    with get_resilient_session() as db:
        return asyncio.run(run_all(db))


async def reminder_loop(interval_seconds: Optional[int] = None) -> None:
    """
    Run all reminder jobs forever, sleeping between passes. Cancel to stop.

    Each pass runs in a worker thread on its own event loop, keeping the
    blocking database work off the server's loop.
    """
    interval = interval_seconds or settings.reminders.reminder_check_interval_seconds
    logger.info(f"Reminder loop started (every {interval}s)")
    while True:
        try:
            await asyncio.to_thread(_run_pass)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Reminder pass failed")
        await asyncio.sleep(interval)
