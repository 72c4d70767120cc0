"""
Database engine, session management, and resilience layer.

SQLite (WAL mode) is used for local development and tests, PostgreSQL with
connection pooling for hosted deployments. Transient errors are retried with
exponential backoff; integrity errors always propagate.
"""
import logging
import random
import time
from contextlib import contextmanager
from functools import wraps

from sqlalchemy import create_engine, event
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings

logger = logging.getLogger("applytrack.database")

Base = declarative_base()


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def create_app_engine(database_url: str = None):
    """
    Build the SQLAlchemy engine for the configured backend.

    SQLite: WAL journal, busy_timeout, foreign keys on, shared across threads
    PostgreSQL: pooled connections with pre-ping and recycling
    """
    url = database_url or settings.database_url

    if _is_sqlite(url):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
        )

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        logger.info("Using SQLite database at %s", url)
    else:
        engine = create_engine(
            url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_pre_ping=True,
            pool_recycle=settings.db_pool_recycle,
        )
        logger.info("Using pooled PostgreSQL database")

    return engine


engine = create_app_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def _is_transient_error(exc: Exception) -> bool:
    """Lock timeouts and dropped connections are retryable; constraint violations are not."""
    if isinstance(exc, IntegrityError):
        return False
    return isinstance(exc, (OperationalError, DBAPIError))


def with_retry(func):
    """
    Retry the wrapped call on transient database errors.

    Backoff doubles from db_retry_base_delay up to 2 seconds, plus up to
    50% jitter. The last failure is re-raised unchanged.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        max_retries = settings.db_retry_max_attempts
        base_delay = settings.db_retry_base_delay
        max_delay = 2.0

        for attempt in range(max_retries):
            try:
                return func(*args, **kwargs)
            except Exception as exc:
                if not _is_transient_error(exc) or attempt == max_retries - 1:
                    raise
                delay = min(base_delay * (2 ** attempt), max_delay)
                sleep_time = delay + random.uniform(0, delay * 0.5)
                logger.warning(
                    "%s hit a transient DB error (attempt %d/%d), retrying in %.2fs: %s",
                    func.__name__, attempt + 1, max_retries, sleep_time, exc
                )
                time.sleep(sleep_time)

    return wrapper


def get_db():
    """FastAPI dependency yielding a request-scoped session."""
    db = SessionLocal()
    try:
        yield db
    except Exception as exc:
        if _is_transient_error(exc):
            db.rollback()
            logger.warning("Rolled back request session after transient error: %s", exc)
        raise
    finally:
        db.close()


@contextmanager
def get_resilient_session():
    """
    Session for work outside a request (reminder jobs, scripts, startup seeding).

    Commits on success, rolls back on any error.

    Usage:
        with get_resilient_session() as db:
            run_interview_reminders(db)
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception as exc:
        db.rollback()
        if _is_transient_error(exc):
            logger.warning("Background session rolled back after transient error: %s", exc)
        raise
    finally:
        db.close()


def init_db():
    """
    Create all tables straight from model metadata.

    Used for fresh databases and tests. Existing databases are upgraded
    with Alembic: `alembic upgrade head`
    """
    from . import models  # noqa: F401
    from .auth import models as auth_models  # noqa: F401
    Base.metadata.create_all(bind=engine)
