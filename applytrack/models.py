"""
ApplyTrack - SQLAlchemy ORM models

Database models for jobs, interviews, resumes, cover letters, networking,
goals, salary research, market intelligence, and teams.

Nested document data (resume sections, interview history, goal milestones,
offer lists) lives in JSON columns. Assign a new list/dict to change them;
in-place mutation is not tracked.
"""
from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, Float, Text, JSON,
    ForeignKey, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timedelta
from typing import Optional

from .database import Base


# =============================================================================
# Profile
# =============================================================================

class UserProfile(Base):
    """Career profile used for job matching, skill gaps, and AI generation."""
    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    headline = Column(String)
    phone = Column(String)
    location = Column(String)
    linkedin_url = Column(String)
    industry = Column(String)
    experience_level = Column(String)  # entry, mid, senior, executive
    years_experience = Column(Float)
    preferred_work_mode = Column(String)  # remote, hybrid, onsite
    salary_expectation_min = Column(Integer)
    salary_expectation_max = Column(Integer)
    summary = Column(Text)
    skills = Column(JSON, default=list)          # [{"name", "level", "category"}]
    employment = Column(JSON, default=list)      # [{"title", "company", "industry", "start_date", "end_date", "description"}]
    education = Column(JSON, default=list)       # [{"degree", "field", "institution", "gpa", "graduation_year"}]
    certifications = Column(JSON, default=list)  # [{"name", "issuer", "date"}]
    projects = Column(JSON, default=list)        # [{"name", "description", "technologies"}]
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# =============================================================================
# Jobs
# =============================================================================

# Pipeline order matters for the funnel
PIPELINE_STATUSES = [
    "interested", "applied", "phone_screen", "interview", "offer",
    "accepted", "rejected", "withdrawn", "ghosted",
]
TERMINAL_STATUSES = {"accepted", "rejected", "withdrawn", "ghosted"}
# Submitted and waiting on the company
IN_PROGRESS_STATUSES = {"applied", "phone_screen", "interview", "offer"}

class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    company = Column(String, nullable=False)
    status = Column(String, default="interested", nullable=False, index=True)
    location = Column(String)
    work_mode = Column(String)  # remote, hybrid, onsite
    job_type = Column(String)  # full_time, part_time, contract, internship
    industry = Column(String)
    company_size = Column(String)  # startup, small, medium, large, enterprise
    salary_min = Column(Integer)
    salary_max = Column(Integer)
    salary_currency = Column(String, default="USD")
    description = Column(Text)
    requirements = Column(JSON, default=list)
    url = Column(String)
    application_date = Column(Date)
    response_date = Column(Date)
    deadline = Column(Date, index=True)
    priority = Column(String, default="medium")  # low, medium, high
    tags = Column(JSON, default=list)
    notes = Column(Text)
    next_action = Column(String)
    next_action_date = Column(Date)
    company_responsiveness = Column(String, default="unknown")

    archived = Column(Boolean, default=False, nullable=False, index=True)
    archived_at = Column(DateTime)
    archive_reason = Column(String)

    # Plain ids: resumes and cover letters already reference jobs
    resume_id = Column(Integer)
    cover_letter_id = Column(Integer)

    # Automation bookkeeping
    last_status_change = Column(DateTime, default=datetime.utcnow)
    last_follow_up_reminder_at = Column(DateTime)
    deadline_reminder_sent_on = Column(Date)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    status_history = relationship(
        "JobStatusChange", back_populates="job",
        cascade="all, delete-orphan", order_by="JobStatusChange.changed_at"
    )
    interviews = relationship("Interview", back_populates="job")

    __table_args__ = (
        CheckConstraint(
            "salary_min IS NULL OR salary_max IS NULL OR salary_min <= salary_max",
            name="ck_jobs_salary_range"
        ),
    )


class JobStatusChange(Base):
    """One entry of a job's status history."""
    __tablename__ = "job_status_changes"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    from_status = Column(String)
    to_status = Column(String, nullable=False)
    notes = Column(Text)
    changed_by = Column(String, default="user")  # user, automation
    changed_at = Column(DateTime, default=datetime.utcnow)

    job = relationship("Job", back_populates="status_history")


# =============================================================================
# Interviews
# =============================================================================

class Interview(Base):
    __tablename__ = "interviews"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="SET NULL"), index=True)
    title = Column(String, nullable=False)
    company = Column(String, nullable=False)
    interview_type = Column(String, default="video")  # phone_screen, video, in_person, technical, final_round, other
    scheduled_at = Column(DateTime, nullable=False, index=True)
    duration_minutes = Column(Integer, default=60, nullable=False)
    location = Column(String)
    meeting_link = Column(String)
    interviewer = Column(JSON)  # {"name", "title", "email", "phone"}
    notes = Column(Text)
    status = Column(String, default="scheduled", nullable=False, index=True)

    outcome = Column(JSON)  # {"result", "notes", "feedback", "rating"}
    preparation_tasks = Column(JSON, default=list)  # [{"id", "title", "completed", "priority", "completed_at"}]

    reminders_enabled = Column(Boolean, default=True, nullable=False)
    reminder_hours = Column(JSON, default=lambda: [24, 2])
    reminders_sent = Column(JSON, default=list)  # [{"hours", "sent_at"}]

    history = Column(JSON, default=list)  # [{"action", "at", "details"}]

    has_conflict = Column(Boolean, default=False, nullable=False)
    conflict_details = Column(JSON)

    calendar_provider = Column(String)
    calendar_event_id = Column(String)
    calendar_sync_status = Column(String, default="not_synced")  # not_synced, synced, failed
    calendar_sync_error = Column(String)
    calendar_synced_at = Column(DateTime)

    cancellation_reason = Column(String)
    cancelled_by = Column(String)
    thank_you_note_sent = Column(Boolean, default=False, nullable=False)
    thank_you_note_sent_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    job = relationship("Job", back_populates="interviews")

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_interviews_duration_positive"),
    )

    @property
    def ends_at(self) -> datetime:
        return self.scheduled_at + timedelta(minutes=self.duration_minutes or 60)

    def time_until(self, now: Optional[datetime] = None) -> dict:
        """Breakdown of time remaining until the interview starts."""
        now = now or datetime.utcnow()
        delta = self.scheduled_at - now
        if delta.total_seconds() < 0:
            return {"is_past": True, "days": 0, "hours": 0, "minutes": 0}
        total_minutes = int(delta.total_seconds() // 60)
        return {
            "is_past": False,
            "days": total_minutes // (24 * 60),
            "hours": (total_minutes // 60) % 24,
            "minutes": total_minutes % 60,
        }


# =============================================================================
# Resumes
# =============================================================================

class ResumeTemplate(Base):
    """Resume layout. user_id NULL marks a built-in template shared by everyone."""
    __tablename__ = "resume_templates"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String, nullable=False)
    template_type = Column(String, default="chronological")  # chronological, functional, hybrid
    description = Column(Text)
    layout = Column(JSON, default=dict)  # {"section_order": [...], "primary_color", "text_color", "font"}
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Resume(Base):
    __tablename__ = "resumes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    template_id = Column(Integer, ForeignKey("resume_templates.id", ondelete="SET NULL"))
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="SET NULL"))
    name = Column(String, nullable=False)
    sections = Column(JSON, default=dict)
    section_order = Column(JSON)
    is_default = Column(Boolean, default=False, nullable=False)
    archived = Column(Boolean, default=False, nullable=False)
    source = Column(String, default="manual")  # manual, import, ai, clone
    last_validation = Column(JSON)
    validated_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    template = relationship("ResumeTemplate")


# =============================================================================
# Cover letters
# =============================================================================

class CoverLetterTemplate(Base):
    """Cover letter body with {placeholders}. user_id NULL marks a built-in template."""
    __tablename__ = "cover_letter_templates"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String, nullable=False)
    industry = Column(String, default="general")
    tone = Column(String, default="formal")
    content = Column(Text, nullable=False)
    usage_count = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CoverLetter(Base):
    __tablename__ = "cover_letters"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="SET NULL"))
    template_id = Column(Integer, ForeignKey("cover_letter_templates.id", ondelete="SET NULL"))
    name = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    tone = Column(String)
    industry = Column(String)
    length = Column(String)
    is_ai_generated = Column(Boolean, default=False, nullable=False)
    archived = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# =============================================================================
# Sharing
# =============================================================================

class DocumentShare(Base):
    """
    A public share link for a resume or cover letter.

    The URL token is a signed serialization of this row's id; revoking or
    expiring the row invalidates the link even though the signature is valid.
    """
    __tablename__ = "document_shares"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    document_type = Column(String, nullable=False)  # resume, cover_letter
    document_id = Column(Integer, nullable=False, index=True)
    token = Column(String, unique=True, index=True)
    allow_feedback = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime)
    revoked = Column(Boolean, default=False, nullable=False)
    view_count = Column(Integer, default=0, nullable=False)
    last_viewed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    feedback = relationship("ShareFeedback", back_populates="share", cascade="all, delete-orphan")

    @property
    def is_usable(self) -> bool:
        if self.revoked:
            return False
        return not (self.expires_at and self.expires_at <= datetime.utcnow())


class ShareFeedback(Base):
    __tablename__ = "share_feedback"

    id = Column(Integer, primary_key=True, index=True)
    share_id = Column(Integer, ForeignKey("document_shares.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_name = Column(String, nullable=False)
    reviewer_email = Column(String)
    section = Column(String)
    comment = Column(Text, nullable=False)
    resolved = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    share = relationship("DocumentShare", back_populates="feedback")


# =============================================================================
# Networking
# =============================================================================

class Contact(Base):
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    email = Column(String)
    phone = Column(String)
    company = Column(String)
    title = Column(String)
    industry = Column(String)
    linkedin_url = Column(String)
    relationship_type = Column(String, default="other")  # recruiter, colleague, mentor, hiring_manager, referral, alumni, other
    relationship_strength = Column(Integer, default=0)
    tags = Column(JSON, default=list)
    linked_job_ids = Column(JSON, default=list)
    last_contacted = Column(Date)
    next_follow_up = Column(Date)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    activities = relationship(
        "RelationshipActivity", back_populates="contact",
        cascade="all, delete-orphan", order_by="RelationshipActivity.activity_date.desc()"
    )


class RelationshipActivity(Base):
    __tablename__ = "relationship_activities"

    id = Column(Integer, primary_key=True, index=True)
    contact_id = Column(Integer, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    activity_type = Column(String, nullable=False)  # email, call, meeting, coffee_chat, linkedin_message, referral_request, other
    activity_date = Column(Date, nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    contact = relationship("Contact", back_populates="activities")


class MentorRelationship(Base):
    """
    Link between a mentee and a mentor.

    mentor_id stays NULL until the invited email accepts.
    """
    __tablename__ = "mentor_relationships"

    id = Column(Integer, primary_key=True, index=True)
    mentee_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    mentor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    mentor_email = Column(String, nullable=False, index=True)
    mentor_name = Column(String)
    relationship_type = Column(String, default="mentor")  # mentor, career_coach, peer_mentor
    status = Column(String, default="pending", nullable=False)  # pending, accepted, rejected, cancelled
    focus_areas = Column(JSON, default=list)
    invitation_message = Column(String(500))
    share_applications = Column(Boolean, default=True, nullable=False)
    share_goals = Column(Boolean, default=True, nullable=False)
    share_interviews = Column(Boolean, default=True, nullable=False)
    share_resumes = Column(Boolean, default=False, nullable=False)
    invited_at = Column(DateTime, default=datetime.utcnow)
    accepted_at = Column(DateTime)
    ended_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    feedback = relationship("MentorFeedback", back_populates="mentorship", cascade="all, delete-orphan")


class MentorFeedback(Base):
    __tablename__ = "mentor_feedback"

    id = Column(Integer, primary_key=True, index=True)
    relationship_id = Column(Integer, ForeignKey("mentor_relationships.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    feedback_type = Column(String, default="general")  # general, resume, interview, application, recommendation
    subject = Column(String)
    content = Column(Text, nullable=False)
    status = Column(String, default="open")  # open, in_progress, completed, dismissed
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    mentorship = relationship("MentorRelationship", back_populates="feedback")


# =============================================================================
# Goals
# =============================================================================

class Goal(Base):
    __tablename__ = "goals"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text)
    category = Column(String, default="job_search")
    goal_type = Column(String, default="short_term")  # short_term, long_term, milestone
    priority = Column(String, default="medium")  # low, medium, high, critical
    status = Column(String, default="not_started", nullable=False)

    # SMART breakdown
    specific = Column(Text)
    measurable = Column(Text)
    achievable = Column(Text)
    relevant = Column(Text)

    target_value = Column(Float)
    current_value = Column(Float, default=0)
    unit = Column(String)
    start_date = Column(Date, default=lambda: datetime.utcnow().date())
    target_date = Column(Date)
    completed_at = Column(DateTime)

    milestones = Column(JSON, default=list)  # [{"id", "title", "target_date", "completed", "completed_at"}]
    progress_updates = Column(JSON, default=list)  # [{"value", "notes", "at"}]
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def progress_percent(self) -> float:
        if self.target_value:
            return round(min((self.current_value or 0) / self.target_value * 100, 100), 1)
        milestones = self.milestones or []
        if milestones:
            done = sum(1 for m in milestones if m.get("completed"))
            return round(done / len(milestones) * 100, 1)
        return 100.0 if self.status == "completed" else 0.0


# =============================================================================
# Salary
# =============================================================================

class SalaryNegotiation(Base):
    __tablename__ = "salary_negotiations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="SET NULL"))
    role = Column(String, nullable=False)
    company = Column(String, nullable=False)
    location = Column(String)
    industry = Column(String)
    experience_level = Column(String)
    market_research = Column(JSON)
    minimum_acceptable = Column(Integer)
    target_salary = Column(Integer)
    ideal_salary = Column(Integer)
    offers = Column(JSON, default=list)  # [{"base_salary", "bonus", "equity", "benefits", "received_at", "notes"}]
    talking_points = Column(JSON, default=list)
    status = Column(String, default="preparing")  # preparing, negotiating, accepted, declined, withdrawn
    outcome = Column(JSON)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SalaryBenchmarkCache(Base):
    """
    Cached market benchmark for a (job title, location) pair.

    Rows past expires_at are ignored by find_cached and overwritten by store.
    """
    __tablename__ = "salary_benchmark_cache"

    id = Column(Integer, primary_key=True, index=True)
    job_title = Column(String, nullable=False)
    location_key = Column(String, nullable=False)
    salary_data = Column(JSON, nullable=False)
    data_source = Column(String, default="internal_benchmarks")
    data_year = Column(Integer)
    hit_count = Column(Integer, default=0, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("job_title", "location_key", name="uix_benchmark_title_location"),
    )

    DEFAULT_TTL_DAYS = 30

    @staticmethod
    def normalize(value: Optional[str]) -> str:
        return " ".join((value or "").lower().split()) or "any"

    @classmethod
    def find_cached(cls, db, job_title: str, location: Optional[str]):
        """Return the unexpired cache row for this title/location, or None."""
        return db.query(cls).filter(
            cls.job_title == cls.normalize(job_title),
            cls.location_key == cls.normalize(location),
            cls.expires_at > datetime.utcnow()
        ).first()

    @classmethod
    def store(cls, db, job_title: str, location: Optional[str], salary_data: dict,
              data_source: str = "internal_benchmarks", ttl_days: int = DEFAULT_TTL_DAYS):
        """Insert or refresh the cache row for this title/location."""
        title_key = cls.normalize(job_title)
        location_key = cls.normalize(location)
        row = db.query(cls).filter(
            cls.job_title == title_key,
            cls.location_key == location_key
        ).first()
        if row is None:
            row = cls(job_title=title_key, location_key=location_key)
            db.add(row)
        row.salary_data = salary_data
        row.data_source = data_source
        row.data_year = datetime.utcnow().year
        row.hit_count = 0
        row.expires_at = datetime.utcnow() + timedelta(days=ttl_days)
        db.commit()
        db.refresh(row)
        return row

    def age_days(self) -> int:
        return (datetime.utcnow() - (self.updated_at or self.created_at)).days


class SalaryProgression(Base):
    """One offer in a user's compensation history."""
    __tablename__ = "salary_progression"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="SET NULL"))
    company = Column(String, nullable=False)
    role = Column(String, nullable=False)
    location = Column(String)
    base_salary = Column(Integer, nullable=False)
    signing_bonus = Column(Integer, default=0)
    annual_bonus = Column(Integer, default=0)
    equity_value = Column(Integer, default=0)
    benefits_value = Column(Integer, default=0)
    initial_offer = Column(Integer)
    negotiated = Column(Boolean, default=False, nullable=False)
    outcome = Column(String, default="pending")  # pending, accepted, declined
    offer_date = Column(Date)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def total_compensation(self) -> int:
        return (
            (self.base_salary or 0) + (self.signing_bonus or 0) + (self.annual_bonus or 0)
            + (self.equity_value or 0) + (self.benefits_value or 0)
        )


# =============================================================================
# Market intelligence
# =============================================================================

class MarketIntelligencePreference(Base):
    __tablename__ = "market_preferences"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    industries = Column(JSON, default=list)
    locations = Column(JSON, default=list)
    roles = Column(JSON, default=list)
    update_frequency = Column(String, default="weekly")  # daily, weekly, monthly
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# =============================================================================
# Teams
# =============================================================================

class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)
    description = Column(Text)
    team_type = Column(String, default="career_coaching")  # career_coaching, bootcamp, university, recruiting_agency, corporate, other
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    settings = Column(JSON, default=dict)
    status = Column(String, default="trial", nullable=False)  # trial, active, suspended, cancelled
    trial_ends_at = Column(DateTime)
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    members = relationship("TeamMember", back_populates="team", cascade="all, delete-orphan")
    subscription = relationship("TeamSubscription", back_populates="team", uselist=False, cascade="all, delete-orphan")


class TeamMember(Base):
    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    email = Column(String, nullable=False)
    role = Column(String, default="candidate", nullable=False)  # owner, admin, mentor, coach, candidate, viewer
    status = Column(String, default="pending", nullable=False)  # pending, active, suspended, removed
    permissions = Column(JSON, default=dict)
    invited_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    invitation_expires_at = Column(DateTime)
    joined_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    team = relationship("Team", back_populates="members")

    __table_args__ = (
        UniqueConstraint("team_id", "email", name="uix_team_member_email"),
    )


class TeamSubscription(Base):
    __tablename__ = "team_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), unique=True, nullable=False)
    plan = Column(String, default="free", nullable=False)  # free, starter, professional, enterprise
    billing_cycle = Column(String, default="monthly")  # monthly, annual
    price = Column(Float, default=0)
    status = Column(String, default="active", nullable=False)  # active, trialing, cancelled, past_due
    limits = Column(JSON, default=dict)
    usage = Column(JSON, default=dict)
    current_period_start = Column(DateTime, default=datetime.utcnow)
    current_period_end = Column(DateTime)
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)
    cancelled_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    team = relationship("Team", back_populates="subscription")


class TeamActivityLog(Base):
    """Audit trail of membership, settings, and billing changes in a team."""
    __tablename__ = "team_activity_log"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    action = Column(String, nullable=False)
    target = Column(String)
    details = Column(JSON)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class SharedJobPosting(Base):
    """A job posting shared into a team feed, with member comments."""
    __tablename__ = "shared_job_postings"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    shared_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="SET NULL"))
    title = Column(String, nullable=False)
    company = Column(String, nullable=False)
    url = Column(String)
    description = Column(Text)
    comments = Column(JSON, default=list)  # [{"user_id", "text", "at"}]
    created_at = Column(DateTime, default=datetime.utcnow)
