"""
ApplyTrack - Follow-up timing rules.

Decides when an application deserves a follow-up nudge based on its
status and how long it has sat there. Company responsiveness stretches or
shrinks the wait. Used by the reminder job and the job detail endpoint.
"""
from datetime import datetime, timedelta
from typing import Dict, Optional

# Days after entering the status before the follow-up is due
FOLLOW_UP_TIMING = {
    "applied": {
        "type": "application_follow_up",
        "days": 7,
        "title": "Follow up on your application",
        "description": "It's been a week since you applied. Consider sending a polite status inquiry.",
        "priority": "medium",
        "repeats": True,
        "tips": [
            "Keep it brief and professional",
            "Reference your original application date",
            "Don't follow up more than once per week",
        ],
    },
    "phone_screen": {
        "type": "thank_you",
        "days": 1,
        "title": "Send a thank-you note after your phone screen",
        "description": "Send a thank-you note within 24 hours of your phone screen.",
        "priority": "high",
        "repeats": False,
        "tips": [
            "Send within 24 hours",
            "Reference specific topics you discussed",
        ],
    },
    "interview": {
        "type": "thank_you",
        "days": 1,
        "title": "Send a thank-you note after your interview",
        "description": "Send a personalized thank-you note to each interviewer.",
        "priority": "high",
        "repeats": False,
        "tips": [
            "Send individual notes to each interviewer",
            "Summarize why you're the right fit",
        ],
    },
    "offer": {
        "type": "offer_response",
        "days": 3,
        "title": "Respond to your job offer",
        "description": "You have a pending offer. Respond in a timely manner, even if you need more time.",
        "priority": "high",
        "repeats": False,
        "tips": [
            "Respond promptly, even if asking for more time",
            "Get verbal agreements in writing",
        ],
    },
    "rejected": {
        "type": "feedback_request",
        "days": 3,
        "title": "Request feedback (optional)",
        "description": "Consider asking for feedback to improve for future opportunities.",
        "priority": "low",
        "repeats": False,
        "tips": [
            "Keep it brief and gracious",
            "Don't argue or try to change their decision",
        ],
    },
}

RESPONSIVENESS_MULTIPLIERS = {
    "highly_responsive": 0.75,
    "responsive": 1.0,
    "slow": 1.5,
    "unresponsive": 2.0,
    "unknown": 1.0,
}


def adjusted_days(status: str, responsiveness: Optional[str] = None,
                  applied_days: Optional[int] = None) -> Optional[int]:
    """Wait in days for this status, or None when the status gets no follow-up."""
    timing = FOLLOW_UP_TIMING.get(status)
    if not timing:
        return None
    base = applied_days if (status == "applied" and applied_days) else timing["days"]
    multiplier = RESPONSIVENESS_MULTIPLIERS.get(responsiveness or "unknown", 1.0)
    return max(1, round(base * multiplier))


def follow_up_due(job, now: Optional[datetime] = None, applied_days: Optional[int] = None,
                  repeat_after_days: int = 7) -> Optional[Dict]:
    """
    The follow-up a job needs right now, or None.

    A reminder is due once the job has sat in its status for the adjusted
    wait. Statuses marked `repeats` are re-reminded at most every
    repeat_after_days; the rest are reminded once per status change.
    """
    now = now or datetime.utcnow()
    if job.archived:
        return None
    days = adjusted_days(job.status, job.company_responsiveness, applied_days)
    if days is None:
        return None

    since = job.last_status_change or job.created_at
    if since is None or now - since < timedelta(days=days):
        return None

    last_sent = job.last_follow_up_reminder_at
    timing = FOLLOW_UP_TIMING[job.status]
    if last_sent and last_sent >= since:
        if not timing["repeats"]:
            return None
        if now - last_sent < timedelta(days=repeat_after_days):
            return None

    return {
        "job_id": job.id,
        "status": job.status,
        "type": timing["type"],
        "title": timing["title"],
        "description": timing["description"],
        "priority": timing["priority"],
        "tips": timing["tips"],
        "days_in_status": (now - since).days,
        "wait_days": days,
    }


def next_follow_up_date(job, applied_days: Optional[int] = None) -> Optional[datetime]:
    """When the next follow-up for this job becomes due (None when never)."""
    days = adjusted_days(job.status, job.company_responsiveness, applied_days)
    since = job.last_status_change or job.created_at
    if days is None or since is None:
        return None
    return since + timedelta(days=days)
