import asyncio
import threading
from datetime import datetime, timedelta

import pytest

from applytrack.auth.models import User
from applytrack.models import Interview, Job, JobStatusChange
from applytrack.services import reminders
from applytrack.services.follow_up import adjusted_days, follow_up_due, next_follow_up_date

NOW = datetime(2030, 3, 4, 9, 0)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def add_job(db, users):
    def _add(user="alice", **kwargs):
        fields = {"title": "Engineer", "company": "Acme", "status": "interested", "created_at": NOW - timedelta(days=1)}
        fields.update(kwargs)
        job = Job(user_id=users[user], **fields)
        db.add(job)
        db.commit()
        return job
    return _add


def test_follow_up_wait_depends_on_responsiveness():
    assert adjusted_days("applied") == 7
    assert adjusted_days("applied", "slow") == 10
    assert adjusted_days("applied", applied_days=14) == 14
    assert adjusted_days("interview", "highly_responsive") == 1
    assert adjusted_days("interested") is None


def test_follow_up_due_repeats_only_for_applied(add_job):
    job = add_job(status="applied", last_status_change=NOW - timedelta(days=8))
    assert follow_up_due(job, NOW)["type"] == "application_follow_up"
    assert next_follow_up_date(job) == NOW - timedelta(days=1)

    job.last_follow_up_reminder_at = NOW - timedelta(days=2)
    assert follow_up_due(job, NOW) is None
    assert follow_up_due(job, NOW + timedelta(days=6)) is not None

    job.status = "offer"
    assert follow_up_due(job, NOW) is None


def test_interview_thresholds_are_sent_once(db, users, sent_emails):
    interview = Interview(
        user_id=users["alice"], title="Onsite", company="Acme",
        scheduled_at=NOW + timedelta(minutes=90), reminder_hours=[24, 2],
    )
    db.add(interview)
    db.commit()

    first = run(reminders.run_interview_reminders(db, NOW))
    assert first["sent"] == 1
    assert len(sent_emails) == 1
    assert sent_emails[0]["subject"] == "Reminder: Acme interview in 2 hours"
    db.refresh(interview)
    assert sorted(entry["hours"] for entry in interview.reminders_sent) == [2, 24]
    assert interview.history[-1]["action"] == "reminder_sent"

    second = run(reminders.run_interview_reminders(db, NOW + timedelta(minutes=30)))
    assert second["sent"] == 0
    assert len(sent_emails) == 1


def test_interview_reminders_respect_preferences(db, users, sent_emails):
    db.get(User, users["alice"]).interview_reminders = False
    db.add(Interview(user_id=users["alice"], title="Call", company="Acme", scheduled_at=NOW + timedelta(hours=1)))
    db.commit()
    summary = run(reminders.run_interview_reminders(db, NOW))
    assert summary["skipped"] == 1
    assert sent_emails == []


def test_deadline_reminder_once_per_day(db, add_job, sent_emails):
    job = add_job(deadline=(NOW + timedelta(days=2)).date())
    add_job(title="Far away", deadline=(NOW + timedelta(days=10)).date())
    add_job(title="Closed", status="rejected", deadline=(NOW + timedelta(days=1)).date())

    summary = run(reminders.run_deadline_reminders(db, NOW))
    assert (summary["checked"], summary["sent"]) == (1, 1)
    assert sent_emails[0]["subject"] == "Deadline in 2 days: Engineer at Acme"
    db.refresh(job)
    assert job.deadline_reminder_sent_on == NOW.date()

    again = run(reminders.run_deadline_reminders(db, NOW + timedelta(hours=3)))
    assert (again["sent"], again["skipped"]) == (0, 1)


def test_follow_up_reminders(db, add_job, sent_emails):
    job = add_job(status="applied", last_status_change=NOW - timedelta(days=8))
    add_job(status="applied", last_status_change=NOW - timedelta(days=2))

    summary = run(reminders.run_follow_up_reminders(db, NOW))
    assert summary["sent"] == 1
    assert sent_emails[0]["subject"] == "Follow up on your application: Acme"
    db.refresh(job)
    assert job.last_follow_up_reminder_at == NOW

    assert run(reminders.run_follow_up_reminders(db, NOW + timedelta(days=1)))["sent"] == 0


def test_unconfigured_email_counts_as_failure(db, add_job):
    add_job(status="applied", last_status_change=NOW - timedelta(days=8))
    summary = run(reminders.run_follow_up_reminders(db, NOW))
    assert (summary["sent"], summary["failed"]) == (0, 1)


def test_stalled_digest_groups_by_user(db, users, add_job, sent_emails):
    add_job(status="applied", last_status_change=NOW - timedelta(days=20))
    add_job(title="Analyst", status="interview", last_status_change=NOW - timedelta(days=15))
    add_job(user="bob", status="offer", last_status_change=NOW - timedelta(days=30))
    db.get(User, users["bob"]).email_notifications = False
    db.commit()

    summary = run(reminders.run_stalled_digest(db, NOW))
    assert (summary["checked"], summary["sent"], summary["skipped"]) == (2, 1, 1)
    assert sent_emails[0]["to"] == "alice@example.com"
    assert sent_emails[0]["subject"] == "2 stalled application(s)"

    # Not repeated within the repeat window
    assert run(reminders.run_stalled_digest(db, NOW + timedelta(days=1)))["sent"] == 0


def test_mark_ghosted(db, users, add_job):
    stale = add_job(status="applied", last_status_change=NOW - timedelta(days=31))
    add_job(status="applied", last_status_change=NOW - timedelta(days=5))
    opted_out = add_job(user="bob", status="applied", last_status_change=NOW - timedelta(days=40))
    db.get(User, users["bob"]).auto_mark_ghosted = False
    db.commit()

    summary = reminders.mark_ghosted(db, NOW)
    assert (summary["updated"], summary["skipped"]) == (1, 1)
    db.refresh(stale)
    db.refresh(opted_out)
    assert stale.status == "ghosted"
    assert opted_out.status == "applied"
    change = db.query(JobStatusChange).filter(JobStatusChange.job_id == stale.id).one()
    assert change.changed_by == "automation"
    assert change.from_status == "applied"


def test_run_all_reports_each_job(db, sent_emails):
    result = run(reminders.run_all(db, NOW))
    assert set(result) == {
        "interview_reminders", "deadline_reminders", "follow_up_reminders",
        "stalled_digest", "ghosted_detection", "ran_at",
    }
    assert result["ran_at"] == NOW.isoformat()


def test_cancelled_and_completed_interviews_are_not_reminded(db, users, sent_emails):
    for status in ("cancelled", "completed"):
        db.add(Interview(user_id=users["alice"], title=status.title(), company="Acme",
                         scheduled_at=NOW + timedelta(hours=1), status=status))
    db.commit()

    summary = run(reminders.run_interview_reminders(db, NOW))
    assert summary["checked"] == 0
    assert summary["sent"] == 0
    assert sent_emails == []


def test_reminder_loop_runs_passes_off_the_event_loop(db, monkeypatch):
    ran = threading.Event()
    pass_threads = []

    async def fake_run_all(session, now=None):
        pass_threads.append(threading.get_ident())
        ran.set()
        return {}

    monkeypatch.setattr(reminders, "run_all", fake_run_all)

    async def main():
        task = asyncio.create_task(reminders.reminder_loop(interval_seconds=3600))
        assert await asyncio.to_thread(ran.wait, 5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return threading.get_ident()

    loop_thread = run(main())
    assert pass_threads
    assert pass_threads[0] != loop_thread


def test_single_pass_uses_its_own_session(db, users, sent_emails):
    db.add(Interview(user_id=users["alice"], title="Call", company="Acme",
                     scheduled_at=datetime.utcnow() + timedelta(hours=1)))
    db.commit()

    results = reminders._run_pass()
    assert results["interview_reminders"]["sent"] == 1
    assert len(sent_emails) == 1
