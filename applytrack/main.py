"""
ApplyTrack - FastAPI application entry point.

Job application tracking API: applications, interviews, resumes, cover
letters, networking, goals, salary negotiation, market intelligence and teams.
"""
from fastapi import FastAPI, Request, Depends, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy.orm import Session
from sqlalchemy import inspect as sa_inspect
from datetime import datetime, date, timedelta
import asyncio
import logging
import os

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from . import __version__
from .config import settings
from .rate_limit import limiter, RATE_LIMIT_AI, RATE_LIMIT_EXPORT, RATE_LIMIT_READ
from .database import SessionLocal, get_db, with_retry
from .models import (
    Job, Interview, Resume, ResumeTemplate, CoverLetter, CoverLetterTemplate,
    Contact, Goal, SalaryNegotiation, SalaryProgression, TERMINAL_STATUSES,
)
from .routers import (
    jobs, interviews, resumes, cover_letters, shares, contacts, mentors,
    goals, salary, market, teams, calendar, profile, admin,
)
from .auth.router import router as users_router
from .auth.dependencies import get_current_active_user
from .auth.models import User
from .query_helpers import user_query, get_or_create_profile
from .services import reminders
from .services.ai_service import ai_service, AIServiceError
from .services.ai_prompts import ALL_PROMPTS, set_prompt, reset_prompt
from .services.calendar_service import CalendarSyncError
from .services.cover_letter_options import SYSTEM_TEMPLATES
from .services.pdf_export import PDFExportError, SYSTEM_RESUME_TEMPLATES
from .services.resume_parser import ResumeParseError

# --- Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("applytrack")


@with_retry
def seed_system_templates():
    """Seed built-in resume and cover letter templates if none exist."""
    db = SessionLocal()
    try:
        if not db.query(ResumeTemplate).filter(ResumeTemplate.user_id.is_(None)).first():
            for t in SYSTEM_RESUME_TEMPLATES:
                db.add(ResumeTemplate(user_id=None, **t))
            logger.info(f"Seeded {len(SYSTEM_RESUME_TEMPLATES)} system resume templates")
        if not db.query(CoverLetterTemplate).filter(CoverLetterTemplate.user_id.is_(None)).first():
            for t in SYSTEM_TEMPLATES:
                db.add(CoverLetterTemplate(user_id=None, **t))
            logger.info(f"Seeded {len(SYSTEM_TEMPLATES)} system cover letter templates")
        db.commit()
    finally:
        db.close()


def setup_database():
    """Create tables if fresh DB, run migrations if existing."""
    import subprocess
    from .database import engine, Base

    inspector = sa_inspect(engine)
    existing = inspector.get_table_names()

    if "users" not in existing:
        logger.info("Fresh database, creating all tables...")
        # Import all models so Base.metadata knows about them
        from . import models  # noqa: F401
        from .auth import models as auth_models  # noqa: F401
        Base.metadata.create_all(bind=engine, checkfirst=True)
        subprocess.run(["alembic", "stamp", "head"], check=True)
        logger.info("Tables created and alembic stamped to head.")
    else:
        logger.info("Existing database, running migrations...")
        subprocess.run(["alembic", "upgrade", "head"], check=True)
        logger.info("Migrations complete.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup and run the reminder loop while serving."""
    logger.info("Starting ApplyTrack application...")
    if settings.database_url.startswith("sqlite:///./data"):
        os.makedirs("data", exist_ok=True)
    setup_database()
    seed_system_templates()

    reminder_task = None
    if settings.reminders.reminders_enabled:
        reminder_task = asyncio.create_task(reminders.reminder_loop())
    logger.info("ApplyTrack ready!")
    yield
    logger.info("Shutting down ApplyTrack...")
    if reminder_task is not None:
        reminder_task.cancel()
        try:
            await reminder_task
        except asyncio.CancelledError:
            pass


app = FastAPI(
    title="ApplyTrack",
    description="Job application tracking API - applications, interviews, resumes, networking and teams",
    version=__version__,
    lifespan=lifespan
)

# --- Rate Limiting ---
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# --- Error envelopes ---
def _error(status_code: int, message, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, **extra},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    response = _error(exc.status_code, exc.detail)
    if getattr(exc, "headers", None):
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return _error(422, "Validation failed", errors=jsonable_encoder(exc.errors()))


@app.exception_handler(AIServiceError)
async def ai_exception_handler(request: Request, exc: AIServiceError):
    logger.error(f"AI error on {request.url.path}: {exc}")
    return _error(503, f"AI service unavailable: {exc}")


@app.exception_handler(CalendarSyncError)
async def calendar_exception_handler(request: Request, exc: CalendarSyncError):
    logger.error(f"Calendar error on {request.url.path}: {exc}")
    return _error(502, f"Calendar sync failed: {exc}")


@app.exception_handler(PDFExportError)
async def pdf_exception_handler(request: Request, exc: PDFExportError):
    logger.error(f"PDF export error on {request.url.path}: {exc}")
    return _error(500, f"PDF export failed: {exc}")


@app.exception_handler(ResumeParseError)
async def resume_parse_exception_handler(request: Request, exc: ResumeParseError):
    return _error(400, str(exc))


# --- Security Headers Middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        return response


# --- Middleware ---
# Parse allowed origins from config
_allowed_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(jobs.router, prefix="/api/jobs", tags=["jobs"])
app.include_router(interviews.router, prefix="/api/interviews", tags=["interviews"])
app.include_router(resumes.router, prefix="/api/resumes", tags=["resumes"])
app.include_router(cover_letters.router, prefix="/api/cover-letters", tags=["cover-letters"])
app.include_router(shares.router, prefix="/api/shares", tags=["shares"])
app.include_router(contacts.router, prefix="/api/contacts", tags=["contacts"])
app.include_router(mentors.router, prefix="/api/mentors", tags=["mentors"])
app.include_router(goals.router, prefix="/api/goals", tags=["goals"])
app.include_router(salary.router, prefix="/api/salary", tags=["salary"])
app.include_router(market.router, prefix="/api/market", tags=["market"])
app.include_router(teams.router, prefix="/api/teams", tags=["teams"])
app.include_router(calendar.router, prefix="/api/calendar", tags=["calendar"])
app.include_router(profile.router, prefix="/api/profile", tags=["profile"])
app.include_router(users_router, prefix="/api/users", tags=["users"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])


# --- API Endpoints ---

@app.get("/api/health", tags=["system"])
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.utcnow().isoformat()
    }


@app.get("/api/ai/status", tags=["ai"])
@limiter.limit(RATE_LIMIT_READ)
async def ai_status(request: Request):
    """Whether Gemini is enabled and configured."""
    return ai_service.status()


@app.get("/api/ai/prompts", tags=["ai"])
@limiter.limit(RATE_LIMIT_READ)
async def get_all_prompts(
    request: Request,
    current_user: User = Depends(get_current_active_user)
):
    """Get all AI prompt templates for viewing and prompt engineering."""
    return {
        "prompts": {
            name: {
                "template": template,
                "character_count": len(template),
            }
            for name, template in ALL_PROMPTS.items()
        },
        "available_names": list(ALL_PROMPTS.keys())
    }


def _check_prompt(prompt_name: str) -> None:
    if prompt_name not in ALL_PROMPTS:
        raise HTTPException(
            status_code=404,
            detail=f"Prompt '{prompt_name}' not found. Available: {list(ALL_PROMPTS.keys())}"
        )


@app.get("/api/ai/prompts/{prompt_name}", tags=["ai"])
@limiter.limit(RATE_LIMIT_READ)
async def get_prompt(
    request: Request,
    prompt_name: str,
    current_user: User = Depends(get_current_active_user)
):
    """Get a specific AI prompt template by name."""
    _check_prompt(prompt_name)
    return {
        "name": prompt_name,
        "template": ALL_PROMPTS[prompt_name],
        "character_count": len(ALL_PROMPTS[prompt_name])
    }


@app.put("/api/ai/prompts/{prompt_name}", tags=["ai"])
@limiter.limit(RATE_LIMIT_AI)
async def update_prompt(
    request: Request,
    prompt_name: str,
    data: dict,
    current_user: User = Depends(get_current_active_user)
):
    """
    Update an AI prompt template at runtime.

    Changes persist until the app restarts. Send {"template": "..."}, or
    {"reset": true} to restore the shipped prompt.
    """
    _check_prompt(prompt_name)
    if data.get("reset"):
        reset_prompt(prompt_name)
        logger.info(f"Prompt '{prompt_name}' reset by user {current_user.id}")
        return {"message": f"Prompt '{prompt_name}' reset", "name": prompt_name}

    template = data.get("template")
    if not template:
        raise HTTPException(status_code=400, detail="'template' field is required")

    set_prompt(prompt_name, template)
    logger.info(f"Prompt '{prompt_name}' updated by user {current_user.id}")
    return {
        "message": f"Prompt '{prompt_name}' updated successfully",
        "name": prompt_name,
        "character_count": len(template),
        "note": "Changes persist until app restart"
    }


@app.get("/api/dashboard", tags=["system"])
@limiter.limit(RATE_LIMIT_READ)
async def get_dashboard(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Summary counts across jobs, interviews, goals and contacts."""
    now = datetime.utcnow()
    today = date.today()
    week_ahead = today + timedelta(days=7)

    jobs_list = user_query(db, Job, current_user).all()
    active_jobs = [j for j in jobs_list if not j.archived and j.status not in TERMINAL_STATUSES]
    by_status = {}
    for j in jobs_list:
        if not j.archived:
            by_status[j.status] = by_status.get(j.status, 0) + 1

    upcoming_interviews = user_query(db, Interview, current_user).filter(
        Interview.scheduled_at >= now,
        Interview.scheduled_at <= now + timedelta(days=7),
        Interview.status.in_(reminders.REMINDABLE_INTERVIEW_STATUSES),
    ).count()

    goals_list = user_query(db, Goal, current_user).filter(Goal.status != "abandoned").all()
    contacts_query = user_query(db, Contact, current_user)

    return {
        "jobs": {
            "total": len(jobs_list),
            "active": len(active_jobs),
            "by_status": by_status,
            "deadlines_this_week": sum(
                1 for j in active_jobs if j.deadline and today <= j.deadline <= week_ahead
            ),
        },
        "interviews": {
            "upcoming_7_days": upcoming_interviews,
            "total": user_query(db, Interview, current_user).count(),
        },
        "goals": {
            "total": len(goals_list),
            "completed": sum(1 for g in goals_list if g.status == "completed"),
            "at_risk": sum(1 for g in goals_list if g.status == "at_risk"),
        },
        "contacts": {
            "total": contacts_query.count(),
            "follow_ups_due": contacts_query.filter(
                Contact.next_follow_up.isnot(None),
                Contact.next_follow_up <= today,
            ).count(),
        },
        "profile_completion": profile.calculate_profile_completion(get_or_create_profile(db, current_user)),
    }


def _rows(items) -> list:
    """Column values of each ORM row, ready for JSON."""
    return [
        {c.key: getattr(item, c.key) for c in sa_inspect(item).mapper.column_attrs}
        for item in items
    ]


@app.get("/api/export", tags=["system"])
@limiter.limit(RATE_LIMIT_EXPORT)
async def export_data(
    request: Request,
    include_jobs: bool = True,
    include_interviews: bool = True,
    include_documents: bool = True,
    include_contacts: bool = True,
    include_goals: bool = True,
    include_salary: bool = True,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Export the current user's data as a JSON download."""
    data = {"exported_at": datetime.utcnow(), "user": {"email": current_user.email, "name": current_user.name}}

    if include_jobs:
        data["jobs"] = _rows(user_query(db, Job, current_user).all())
    if include_interviews:
        data["interviews"] = _rows(user_query(db, Interview, current_user).all())
    if include_documents:
        data["resumes"] = _rows(user_query(db, Resume, current_user).all())
        data["cover_letters"] = _rows(user_query(db, CoverLetter, current_user).all())
    if include_contacts:
        data["contacts"] = _rows(user_query(db, Contact, current_user).all())
    if include_goals:
        data["goals"] = _rows(user_query(db, Goal, current_user).all())
    if include_salary:
        data["salary_negotiations"] = _rows(user_query(db, SalaryNegotiation, current_user).all())
        data["salary_progression"] = _rows(user_query(db, SalaryProgression, current_user).all())

    return JSONResponse(
        content=jsonable_encoder(data),
        headers={
            "Content-Disposition": f"attachment; filename=applytrack_export_{date.today()}.json"
        }
    )
