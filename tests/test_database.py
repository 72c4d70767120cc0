import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from applytrack import database
from applytrack.config import settings
from applytrack.database import get_resilient_session, with_retry
from applytrack.main import seed_system_templates
from applytrack.models import CoverLetterTemplate, ResumeTemplate


@pytest.fixture
def no_backoff(monkeypatch):
    monkeypatch.setattr(settings, "db_retry_base_delay", 0.0)
    monkeypatch.setattr(database.time, "sleep", lambda seconds: None)


def test_transient_errors_are_retried(no_backoff):
    calls = []

    @with_retry
    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))
        return "ok"

    assert flaky() == "ok"
    assert len(calls) == 3


def test_retries_give_up_after_max_attempts(no_backoff):
    calls = []

    @with_retry
    def always_locked():
        calls.append(1)
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    with pytest.raises(OperationalError):
        always_locked()
    assert len(calls) == settings.db_retry_max_attempts


def test_integrity_errors_are_not_retried(no_backoff):
    calls = []

    @with_retry
    def duplicate():
        calls.append(1)
        raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

    with pytest.raises(IntegrityError):
        duplicate()
    assert len(calls) == 1


def test_resilient_session_rolls_back_on_error(db, users):
    from applytrack.models import Job

    with pytest.raises(ValueError):
        with get_resilient_session() as session:
            session.add(Job(user_id=users["alice"], title="Lost", company="Acme"))
            session.flush()
            raise ValueError("boom")
    assert db.query(Job).count() == 0


def test_seeding_system_templates_is_idempotent(db):
    seed_system_templates()
    resume_templates = db.query(ResumeTemplate).filter(ResumeTemplate.user_id.is_(None)).count()
    letter_templates = db.query(CoverLetterTemplate).filter(CoverLetterTemplate.user_id.is_(None)).count()
    assert resume_templates > 0
    assert letter_templates > 0

    seed_system_templates()
    assert db.query(ResumeTemplate).filter(ResumeTemplate.user_id.is_(None)).count() == resume_templates
    assert db.query(CoverLetterTemplate).filter(CoverLetterTemplate.user_id.is_(None)).count() == letter_templates
