"""
ApplyTrack - Pydantic schemas for request/response validation.

Defines data models for API request bodies and responses,
including validation rules and serialization configuration.
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import date, datetime, timezone
from typing import Optional, List, Dict, Any
from enum import Enum
import re


# --- Enums for validated fields ---

class JobStatus(str, Enum):
    INTERESTED = "interested"
    APPLIED = "applied"
    PHONE_SCREEN = "phone_screen"
    INTERVIEW = "interview"
    OFFER = "offer"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    GHOSTED = "ghosted"


class WorkMode(str, Enum):
    REMOTE = "remote"
    HYBRID = "hybrid"
    ONSITE = "onsite"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class InterviewType(str, Enum):
    PHONE_SCREEN = "phone_screen"
    VIDEO = "video"
    IN_PERSON = "in_person"
    TECHNICAL = "technical"
    FINAL_ROUND = "final_round"
    OTHER = "other"


class InterviewStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    RESCHEDULED = "rescheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class InterviewResult(str, Enum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"
    NEXT_ROUND = "moved_to_next_round"
    WAITING = "waiting_for_feedback"
    OFFER_EXTENDED = "offer_extended"


class ResumeTemplateType(str, Enum):
    CHRONOLOGICAL = "chronological"
    FUNCTIONAL = "functional"
    HYBRID = "hybrid"


class MentorType(str, Enum):
    MENTOR = "mentor"
    CAREER_COACH = "career_coach"
    PEER_MENTOR = "peer_mentor"


class GoalStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class GoalCategory(str, Enum):
    JOB_SEARCH = "job_search"
    SKILL_DEVELOPMENT = "skill_development"
    NETWORKING = "networking"
    CAREER_ADVANCEMENT = "career_advancement"
    SALARY_NEGOTIATION = "salary_negotiation"
    WORK_LIFE_BALANCE = "work_life_balance"
    CERTIFICATION = "professional_certification"
    INDUSTRY_KNOWLEDGE = "industry_knowledge"
    LEADERSHIP = "leadership"
    CUSTOM = "custom"


class TeamRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MENTOR = "mentor"
    COACH = "coach"
    CANDIDATE = "candidate"
    VIEWER = "viewer"


class SubscriptionPlan(str, Enum):
    FREE = "free"
    STARTER = "starter"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"


class BillingCycle(str, Enum):
    MONTHLY = "monthly"
    ANNUAL = "annual"


# --- Helper validators ---

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


def validate_url(url: Optional[str]) -> Optional[str]:
    """Validate URL format if provided."""
    if url is None or url == "":
        return None
    if not re.match(r'^https?://[^\s/$.?#].[^\s]*$', url, re.IGNORECASE):
        raise ValueError('Invalid URL format')
    return url


def validate_email_address(email: Optional[str]) -> Optional[str]:
    if email is None or email == "":
        return None
    if not EMAIL_PATTERN.match(email):
        raise ValueError('Invalid email format')
    return email.lower()


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Store datetimes as naive UTC; aware inputs are converted."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# --- Job Schemas ---

class JobBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    company: str = Field(..., min_length=1, max_length=200)
    location: Optional[str] = Field(None, max_length=200)
    work_mode: Optional[WorkMode] = None
    job_type: Optional[str] = Field(None, max_length=50)
    industry: Optional[str] = Field(None, max_length=100)
    company_size: Optional[str] = Field(None, max_length=50)
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=50000)
    requirements: List[str] = []
    url: Optional[str] = Field(None, max_length=1000)
    deadline: Optional[date] = None
    priority: Priority = Priority.MEDIUM
    tags: List[str] = []
    notes: Optional[str] = Field(None, max_length=5000)
    next_action: Optional[str] = Field(None, max_length=500)
    next_action_date: Optional[date] = None

    @field_validator('url')
    @classmethod
    def validate_job_url(cls, v):
        return validate_url(v)

    @model_validator(mode='after')
    def check_salary_range(self):
        if self.salary_min is not None and self.salary_max is not None and self.salary_min > self.salary_max:
            raise ValueError('salary_min cannot exceed salary_max')
        return self


class JobCreate(JobBase):
    status: JobStatus = JobStatus.INTERESTED
    application_date: Optional[date] = None


class JobUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    company: Optional[str] = Field(None, min_length=1, max_length=200)
    location: Optional[str] = Field(None, max_length=200)
    work_mode: Optional[WorkMode] = None
    job_type: Optional[str] = Field(None, max_length=50)
    industry: Optional[str] = Field(None, max_length=100)
    company_size: Optional[str] = Field(None, max_length=50)
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=50000)
    requirements: Optional[List[str]] = None
    url: Optional[str] = Field(None, max_length=1000)
    application_date: Optional[date] = None
    deadline: Optional[date] = None
    priority: Optional[Priority] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = Field(None, max_length=5000)
    next_action: Optional[str] = Field(None, max_length=500)
    next_action_date: Optional[date] = None
    company_responsiveness: Optional[str] = Field(
        None, pattern="^(highly_responsive|responsive|slow|unresponsive|unknown)$"
    )
    resume_id: Optional[int] = None
    cover_letter_id: Optional[int] = None

    @field_validator('url')
    @classmethod
    def validate_job_url(cls, v):
        return validate_url(v)


class JobResponse(BaseModel):
    id: int
    title: str
    company: str
    status: str
    location: Optional[str] = None
    work_mode: Optional[str] = None
    job_type: Optional[str] = None
    industry: Optional[str] = None
    company_size: Optional[str] = None
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    description: Optional[str] = None
    requirements: Optional[List[str]] = None
    url: Optional[str] = None
    application_date: Optional[date] = None
    response_date: Optional[date] = None
    deadline: Optional[date] = None
    priority: Optional[str] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None
    next_action: Optional[str] = None
    next_action_date: Optional[date] = None
    company_responsiveness: Optional[str] = None
    archived: bool
    archived_at: Optional[datetime] = None
    archive_reason: Optional[str] = None
    resume_id: Optional[int] = None
    cover_letter_id: Optional[int] = None
    last_status_change: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class JobStatusUpdate(BaseModel):
    status: JobStatus
    notes: Optional[str] = Field(None, max_length=2000)
    next_action: Optional[str] = Field(None, max_length=500)
    next_action_date: Optional[date] = None


class JobArchiveRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=200)


class BulkStatusUpdate(BaseModel):
    job_ids: List[int] = Field(..., min_length=1, max_length=500)
    status: JobStatus
    notes: Optional[str] = Field(None, max_length=2000)


class BulkDeadlineUpdate(BaseModel):
    """Either set every deadline to `deadline` or shift existing ones by `shift_days`."""
    job_ids: List[int] = Field(..., min_length=1, max_length=500)
    deadline: Optional[date] = None
    shift_days: Optional[int] = Field(None, ge=-365, le=365)
    clear: bool = False

    @model_validator(mode='after')
    def check_one_action(self):
        actions = [self.deadline is not None, self.shift_days is not None, self.clear]
        if sum(actions) != 1:
            raise ValueError('Provide exactly one of deadline, shift_days, or clear')
        return self


class MatchCompareRequest(BaseModel):
    job_ids: List[int] = Field(..., min_length=2, max_length=20)
    weights: Optional[Dict[str, float]] = None


class StatusChangeResponse(BaseModel):
    id: int
    job_id: int
    from_status: Optional[str]
    to_status: str
    notes: Optional[str]
    changed_by: str
    changed_at: datetime

    class Config:
        from_attributes = True


class JobStats(BaseModel):
    total: int
    total_active: int
    total_archived: int
    by_status: Dict[str, int]
    response_rate: float
    avg_days_to_response: Optional[float] = None
    applications_this_week: int
    applications_this_month: int


# --- Interview Schemas ---

class InterviewerInfo(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    title: Optional[str] = Field(None, max_length=200)
    email: Optional[str] = Field(None, max_length=254)
    phone: Optional[str] = Field(None, max_length=50)

    @field_validator('email')
    @classmethod
    def validate_email_format(cls, v):
        return validate_email_address(v)


class InterviewBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    company: str = Field(..., min_length=1, max_length=200)
    interview_type: InterviewType = InterviewType.VIDEO
    scheduled_at: datetime
    duration_minutes: int = Field(60, ge=5, le=600)
    location: Optional[str] = Field(None, max_length=300)
    meeting_link: Optional[str] = Field(None, max_length=1000)
    interviewer: Optional[InterviewerInfo] = None
    notes: Optional[str] = Field(None, max_length=5000)

    @field_validator('scheduled_at')
    @classmethod
    def normalize_scheduled_at(cls, v):
        return to_naive_utc(v)

    @field_validator('meeting_link')
    @classmethod
    def validate_meeting_link(cls, v):
        return validate_url(v)


class InterviewCreate(InterviewBase):
    job_id: Optional[int] = None
    reminders_enabled: bool = True
    reminder_hours: List[int] = Field(default_factory=lambda: [24, 2])

    @field_validator('reminder_hours')
    @classmethod
    def validate_reminder_hours(cls, v):
        if any(h <= 0 or h > 24 * 14 for h in v):
            raise ValueError('Reminder hours must be between 1 and 336')
        return sorted(set(v), reverse=True)


class InterviewUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    company: Optional[str] = Field(None, min_length=1, max_length=200)
    interview_type: Optional[InterviewType] = None
    location: Optional[str] = Field(None, max_length=300)
    meeting_link: Optional[str] = Field(None, max_length=1000)
    interviewer: Optional[InterviewerInfo] = None
    notes: Optional[str] = Field(None, max_length=5000)
    status: Optional[InterviewStatus] = None
    reminders_enabled: Optional[bool] = None
    thank_you_note_sent: Optional[bool] = None

    @field_validator('meeting_link')
    @classmethod
    def validate_meeting_link(cls, v):
        return validate_url(v)


class InterviewReschedule(BaseModel):
    scheduled_at: datetime
    duration_minutes: Optional[int] = Field(None, ge=5, le=600)
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator('scheduled_at')
    @classmethod
    def normalize_scheduled_at(cls, v):
        return to_naive_utc(v)


class InterviewCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)
    cancelled_by: str = Field("candidate", pattern="^(candidate|company|other)$")


class InterviewOutcome(BaseModel):
    result: InterviewResult
    rating: Optional[int] = Field(None, ge=1, le=5)
    notes: Optional[str] = Field(None, max_length=5000)
    feedback: Optional[str] = Field(None, max_length=5000)


class PrepTaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    priority: Priority = Priority.MEDIUM


class InterviewResponse(BaseModel):
    id: int
    job_id: Optional[int]
    title: str
    company: str
    interview_type: str
    scheduled_at: datetime
    duration_minutes: int
    location: Optional[str] = None
    meeting_link: Optional[str] = None
    interviewer: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    status: str
    outcome: Optional[Dict[str, Any]] = None
    preparation_tasks: Optional[List[Dict[str, Any]]] = None
    reminders_enabled: bool
    reminder_hours: Optional[List[int]] = None
    reminders_sent: Optional[List[Dict[str, Any]]] = None
    history: Optional[List[Dict[str, Any]]] = None
    has_conflict: bool
    conflict_details: Optional[List[Dict[str, Any]]] = None
    calendar_provider: Optional[str] = None
    calendar_event_id: Optional[str] = None
    calendar_sync_status: Optional[str] = None
    cancellation_reason: Optional[str] = None
    thank_you_note_sent: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CoachingQuestionsRequest(BaseModel):
    focus: Optional[str] = Field(None, max_length=200)
    count: int = Field(8, ge=1, le=20)


class CoachingFeedbackRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=2000)
    answer: str = Field(..., min_length=1, max_length=10000)


# --- Resume Schemas ---

class ResumeTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    template_type: ResumeTemplateType = ResumeTemplateType.CHRONOLOGICAL
    description: Optional[str] = Field(None, max_length=1000)
    layout: Dict[str, Any] = {}


class ResumeTemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    template_type: Optional[ResumeTemplateType] = None
    description: Optional[str] = Field(None, max_length=1000)
    layout: Optional[Dict[str, Any]] = None


class ResumeTemplateResponse(BaseModel):
    id: int
    user_id: Optional[int]
    name: str
    template_type: str
    description: Optional[str] = None
    layout: Optional[Dict[str, Any]] = None
    is_default: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ResumeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    template_id: Optional[int] = None
    job_id: Optional[int] = None
    sections: Dict[str, Any] = {}
    section_order: Optional[List[str]] = None


class ResumeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    template_id: Optional[int] = None
    job_id: Optional[int] = None
    sections: Optional[Dict[str, Any]] = None
    section_order: Optional[List[str]] = None
    archived: Optional[bool] = None


class ResumeResponse(BaseModel):
    id: int
    name: str
    template_id: Optional[int] = None
    job_id: Optional[int] = None
    sections: Optional[Dict[str, Any]] = None
    section_order: Optional[List[str]] = None
    is_default: bool
    archived: bool
    source: Optional[str] = None
    last_validation: Optional[Dict[str, Any]] = None
    validated_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ResumeMergeRequest(BaseModel):
    source_resume_id: int
    sections: List[str] = Field(..., min_length=1)


class ResumeTailorRequest(BaseModel):
    job_id: int
    save_as_new: bool = True


# --- Cover Letter Schemas ---

class CoverLetterCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=20000)
    job_id: Optional[int] = None
    template_id: Optional[int] = None
    tone: Optional[str] = Field(None, max_length=50)
    industry: Optional[str] = Field(None, max_length=50)
    length: Optional[str] = Field(None, max_length=20)


class CoverLetterUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1, max_length=20000)
    job_id: Optional[int] = None
    tone: Optional[str] = Field(None, max_length=50)
    industry: Optional[str] = Field(None, max_length=50)
    archived: Optional[bool] = None


class CoverLetterResponse(BaseModel):
    id: int
    name: str
    content: str
    job_id: Optional[int] = None
    template_id: Optional[int] = None
    tone: Optional[str] = None
    industry: Optional[str] = None
    length: Optional[str] = None
    is_ai_generated: bool
    archived: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CoverLetterGenerateRequest(BaseModel):
    job_id: Optional[int] = None
    company_name: Optional[str] = Field(None, max_length=200)
    role: Optional[str] = Field(None, max_length=200)
    job_description: Optional[str] = Field(None, max_length=50000)
    resume_id: Optional[int] = None
    tone: str = Field("formal", max_length=30)
    industry: str = Field("technology", max_length=30)
    company_culture: str = Field("corporate", max_length=30)
    length: str = Field("standard", pattern="^(brief|standard|detailed)$")
    writing_style: str = Field("direct", max_length=30)
    variations: int = Field(1, ge=1, le=3)
    template_id: Optional[int] = None
    save: bool = False

    @model_validator(mode='after')
    def check_target(self):
        if self.job_id is None and not (self.company_name and self.role):
            raise ValueError('Provide job_id, or both company_name and role')
        return self


class CoverLetterTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    industry: str = Field("general", max_length=50)
    tone: str = Field("formal", max_length=30)
    content: str = Field(..., min_length=1, max_length=20000)


class CoverLetterTemplateResponse(BaseModel):
    id: int
    user_id: Optional[int]
    name: str
    industry: Optional[str]
    tone: Optional[str]
    content: str
    usage_count: int
    created_at: datetime

    class Config:
        from_attributes = True


# --- Sharing Schemas ---

class ShareCreate(BaseModel):
    allow_feedback: bool = True
    expires_in_days: Optional[int] = Field(None, ge=1, le=365)


class ShareResponse(BaseModel):
    id: int
    document_type: str
    document_id: int
    token: str
    share_url: Optional[str] = None
    allow_feedback: bool
    expires_at: Optional[datetime] = None
    revoked: bool
    view_count: int
    created_at: datetime

    class Config:
        from_attributes = True


class FeedbackCreate(BaseModel):
    reviewer_name: str = Field(..., min_length=1, max_length=200)
    reviewer_email: Optional[str] = Field(None, max_length=254)
    section: Optional[str] = Field(None, max_length=50)
    comment: str = Field(..., min_length=1, max_length=5000)

    @field_validator('reviewer_email')
    @classmethod
    def validate_email_format(cls, v):
        return validate_email_address(v)


class FeedbackResponse(BaseModel):
    id: int
    reviewer_name: str
    reviewer_email: Optional[str] = None
    section: Optional[str] = None
    comment: str
    resolved: bool
    created_at: datetime

    class Config:
        from_attributes = True


# --- Contact Schemas ---

class ContactBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = Field(None, max_length=254)
    phone: Optional[str] = Field(None, max_length=50)
    company: Optional[str] = Field(None, max_length=200)
    title: Optional[str] = Field(None, max_length=200)
    industry: Optional[str] = Field(None, max_length=100)
    linkedin_url: Optional[str] = Field(None, max_length=500)
    relationship_type: str = Field(
        "other", pattern="^(recruiter|colleague|mentor|hiring_manager|referral|alumni|friend|other)$"
    )
    relationship_strength: int = Field(0, ge=0, le=10)
    tags: List[str] = []
    linked_job_ids: List[int] = []
    next_follow_up: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=5000)

    @field_validator('email')
    @classmethod
    def validate_email_format(cls, v):
        return validate_email_address(v)

    @field_validator('linkedin_url')
    @classmethod
    def validate_linkedin(cls, v):
        return validate_url(v)


class ContactCreate(ContactBase):
    pass


class ContactUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[str] = Field(None, max_length=254)
    phone: Optional[str] = Field(None, max_length=50)
    company: Optional[str] = Field(None, max_length=200)
    title: Optional[str] = Field(None, max_length=200)
    industry: Optional[str] = Field(None, max_length=100)
    linkedin_url: Optional[str] = Field(None, max_length=500)
    relationship_type: Optional[str] = Field(
        None, pattern="^(recruiter|colleague|mentor|hiring_manager|referral|alumni|friend|other)$"
    )
    relationship_strength: Optional[int] = Field(None, ge=0, le=10)
    tags: Optional[List[str]] = None
    linked_job_ids: Optional[List[int]] = None
    last_contacted: Optional[date] = None
    next_follow_up: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=5000)

    @field_validator('email')
    @classmethod
    def validate_email_format(cls, v):
        return validate_email_address(v)


class ContactResponse(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    title: Optional[str] = None
    industry: Optional[str] = None
    linkedin_url: Optional[str] = None
    relationship_type: Optional[str] = None
    relationship_strength: int
    tags: Optional[List[str]] = None
    linked_job_ids: Optional[List[int]] = None
    last_contacted: Optional[date] = None
    next_follow_up: Optional[date] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ActivityCreate(BaseModel):
    activity_type: str = Field(
        ..., pattern="^(email|call|meeting|coffee_chat|linkedin_message|referral_request|other)$"
    )
    activity_date: date = Field(default_factory=date.today)
    notes: Optional[str] = Field(None, max_length=5000)
    next_follow_up: Optional[date] = None


class ActivityResponse(BaseModel):
    id: int
    contact_id: int
    activity_type: str
    activity_date: date
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# --- Mentor Schemas ---

class MentorInvite(BaseModel):
    mentor_email: str = Field(..., max_length=254)
    mentor_name: Optional[str] = Field(None, max_length=200)
    relationship_type: MentorType = MentorType.MENTOR
    focus_areas: List[str] = []
    invitation_message: Optional[str] = Field(None, max_length=500)
    share_applications: bool = True
    share_goals: bool = True
    share_interviews: bool = True
    share_resumes: bool = False

    @field_validator('mentor_email')
    @classmethod
    def validate_email_format(cls, v):
        return validate_email_address(v)


class SharingUpdate(BaseModel):
    share_applications: Optional[bool] = None
    share_goals: Optional[bool] = None
    share_interviews: Optional[bool] = None
    share_resumes: Optional[bool] = None


class MentorRelationshipResponse(BaseModel):
    id: int
    mentee_id: int
    mentor_id: Optional[int] = None
    mentor_email: str
    mentor_name: Optional[str] = None
    relationship_type: str
    status: str
    focus_areas: Optional[List[str]] = None
    invitation_message: Optional[str] = None
    share_applications: bool
    share_goals: bool
    share_interviews: bool
    share_resumes: bool
    invited_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MentorFeedbackCreate(BaseModel):
    feedback_type: str = Field(
        "general", pattern="^(general|resume|interview|application|recommendation)$"
    )
    subject: Optional[str] = Field(None, max_length=200)
    content: str = Field(..., min_length=1, max_length=10000)


class MentorFeedbackUpdate(BaseModel):
    status: str = Field(..., pattern="^(open|in_progress|completed|dismissed)$")


class MentorFeedbackResponse(BaseModel):
    id: int
    relationship_id: int
    author_id: int
    feedback_type: str
    subject: Optional[str] = None
    content: str
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# --- Goal Schemas ---

class MilestoneCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    target_date: Optional[date] = None


class GoalCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    category: GoalCategory = GoalCategory.JOB_SEARCH
    goal_type: str = Field("short_term", pattern="^(short_term|long_term|milestone)$")
    priority: str = Field("medium", pattern="^(low|medium|high|critical)$")
    specific: Optional[str] = Field(None, max_length=2000)
    measurable: Optional[str] = Field(None, max_length=2000)
    achievable: Optional[str] = Field(None, max_length=2000)
    relevant: Optional[str] = Field(None, max_length=2000)
    target_value: Optional[float] = Field(None, gt=0)
    current_value: float = Field(0, ge=0)
    unit: Optional[str] = Field(None, max_length=50)
    start_date: Optional[date] = None
    target_date: Optional[date] = None
    milestones: List[MilestoneCreate] = []

    @model_validator(mode='after')
    def check_dates(self):
        if self.start_date and self.target_date and self.target_date < self.start_date:
            raise ValueError('target_date cannot be before start_date')
        return self


class GoalUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    category: Optional[GoalCategory] = None
    priority: Optional[str] = Field(None, pattern="^(low|medium|high|critical)$")
    status: Optional[GoalStatus] = None
    specific: Optional[str] = Field(None, max_length=2000)
    measurable: Optional[str] = Field(None, max_length=2000)
    achievable: Optional[str] = Field(None, max_length=2000)
    relevant: Optional[str] = Field(None, max_length=2000)
    target_value: Optional[float] = Field(None, gt=0)
    unit: Optional[str] = Field(None, max_length=50)
    target_date: Optional[date] = None


class GoalProgressUpdate(BaseModel):
    value: float = Field(..., ge=0)
    notes: Optional[str] = Field(None, max_length=2000)


class GoalResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    category: str
    goal_type: str
    priority: str
    status: str
    specific: Optional[str] = None
    measurable: Optional[str] = None
    achievable: Optional[str] = None
    relevant: Optional[str] = None
    target_value: Optional[float] = None
    current_value: Optional[float] = None
    unit: Optional[str] = None
    start_date: Optional[date] = None
    target_date: Optional[date] = None
    completed_at: Optional[datetime] = None
    progress_percent: float
    milestones: Optional[List[Dict[str, Any]]] = None
    progress_updates: Optional[List[Dict[str, Any]]] = None
    created_at: datetime

    class Config:
        from_attributes = True


# --- Salary Schemas ---

class OfferDetails(BaseModel):
    base_salary: int = Field(..., ge=0)
    bonus: int = Field(0, ge=0)
    equity: int = Field(0, ge=0)
    benefits: int = Field(0, ge=0)
    received_at: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=2000)


class NegotiationCreate(BaseModel):
    role: str = Field(..., min_length=1, max_length=200)
    company: str = Field(..., min_length=1, max_length=200)
    job_id: Optional[int] = None
    location: Optional[str] = Field(None, max_length=200)
    industry: Optional[str] = Field(None, max_length=100)
    experience_level: Optional[str] = Field(None, pattern="^(entry|mid|senior|executive)$")
    minimum_acceptable: Optional[int] = Field(None, ge=0)
    target_salary: Optional[int] = Field(None, ge=0)
    ideal_salary: Optional[int] = Field(None, ge=0)
    talking_points: List[str] = []

    @model_validator(mode='after')
    def check_order(self):
        values = [v for v in (self.minimum_acceptable, self.target_salary, self.ideal_salary) if v is not None]
        if values != sorted(values):
            raise ValueError('Expected minimum_acceptable <= target_salary <= ideal_salary')
        return self


class NegotiationUpdate(BaseModel):
    location: Optional[str] = Field(None, max_length=200)
    minimum_acceptable: Optional[int] = Field(None, ge=0)
    target_salary: Optional[int] = Field(None, ge=0)
    ideal_salary: Optional[int] = Field(None, ge=0)
    talking_points: Optional[List[str]] = None
    status: Optional[str] = Field(None, pattern="^(preparing|negotiating|accepted|declined|withdrawn)$")
    outcome: Optional[Dict[str, Any]] = None


class NegotiationResponse(BaseModel):
    id: int
    job_id: Optional[int] = None
    role: str
    company: str
    location: Optional[str] = None
    industry: Optional[str] = None
    experience_level: Optional[str] = None
    market_research: Optional[Dict[str, Any]] = None
    minimum_acceptable: Optional[int] = None
    target_salary: Optional[int] = None
    ideal_salary: Optional[int] = None
    offers: Optional[List[Dict[str, Any]]] = None
    talking_points: Optional[List[str]] = None
    status: str
    outcome: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OfferEvaluationRequest(BaseModel):
    offer_amount: int = Field(..., gt=0)
    minimum_acceptable: Optional[int] = Field(None, gt=0)
    target_salary: Optional[int] = Field(None, gt=0)
    ideal_salary: Optional[int] = Field(None, gt=0)
    negotiation_id: Optional[int] = None


class OfferComparisonItem(BaseModel):
    company: str = Field(..., min_length=1, max_length=200)
    role: Optional[str] = Field(None, max_length=200)
    location: Optional[str] = Field(None, max_length=200)
    base_salary: int = Field(..., ge=0)
    bonus: int = Field(0, ge=0)
    equity: int = Field(0, ge=0)
    benefits: int = Field(0, ge=0)


class OfferComparisonRequest(BaseModel):
    offers: List[OfferComparisonItem] = Field(..., min_length=2, max_length=10)


class ProgressionCreate(BaseModel):
    company: str = Field(..., min_length=1, max_length=200)
    role: str = Field(..., min_length=1, max_length=200)
    job_id: Optional[int] = None
    location: Optional[str] = Field(None, max_length=200)
    base_salary: int = Field(..., ge=0)
    signing_bonus: int = Field(0, ge=0)
    annual_bonus: int = Field(0, ge=0)
    equity_value: int = Field(0, ge=0)
    benefits_value: int = Field(0, ge=0)
    initial_offer: Optional[int] = Field(None, ge=0)
    negotiated: bool = False
    outcome: str = Field("pending", pattern="^(pending|accepted|declined)$")
    offer_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=2000)


class ProgressionUpdate(BaseModel):
    location: Optional[str] = Field(None, max_length=200)
    base_salary: Optional[int] = Field(None, ge=0)
    signing_bonus: Optional[int] = Field(None, ge=0)
    annual_bonus: Optional[int] = Field(None, ge=0)
    equity_value: Optional[int] = Field(None, ge=0)
    benefits_value: Optional[int] = Field(None, ge=0)
    negotiated: Optional[bool] = None
    outcome: Optional[str] = Field(None, pattern="^(pending|accepted|declined)$")
    notes: Optional[str] = Field(None, max_length=2000)


class ProgressionResponse(BaseModel):
    id: int
    company: str
    role: str
    location: Optional[str] = None
    base_salary: int
    signing_bonus: Optional[int] = 0
    annual_bonus: Optional[int] = 0
    equity_value: Optional[int] = 0
    benefits_value: Optional[int] = 0
    initial_offer: Optional[int] = None
    negotiated: bool
    outcome: str
    offer_date: Optional[date] = None
    total_compensation: int
    created_at: datetime

    class Config:
        from_attributes = True


# --- Market Schemas ---

class MarketPreferenceUpdate(BaseModel):
    industries: Optional[List[str]] = None
    locations: Optional[List[str]] = None
    roles: Optional[List[str]] = None
    update_frequency: Optional[str] = Field(None, pattern="^(daily|weekly|monthly)$")


class MarketPreferenceResponse(BaseModel):
    industries: List[str] = []
    locations: List[str] = []
    roles: List[str] = []
    update_frequency: str = "weekly"

    class Config:
        from_attributes = True


# --- Team Schemas ---

class TeamCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    team_type: str = Field(
        "career_coaching", pattern="^(career_coaching|bootcamp|university|recruiting_agency|corporate|other)$"
    )
    settings: Dict[str, Any] = {}


class TeamUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    settings: Optional[Dict[str, Any]] = None


class TeamResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    team_type: str
    owner_id: int
    settings: Optional[Dict[str, Any]] = None
    status: str
    trial_ends_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TeamInvite(BaseModel):
    email: str = Field(..., max_length=254)
    role: TeamRole = TeamRole.CANDIDATE
    permissions: Dict[str, bool] = {}

    @field_validator('email')
    @classmethod
    def validate_email_format(cls, v):
        return validate_email_address(v)

    @field_validator('role')
    @classmethod
    def no_owner_invites(cls, v):
        if v == TeamRole.OWNER:
            raise ValueError('A team has exactly one owner; invite as admin instead')
        return v


class TeamMemberResponse(BaseModel):
    id: int
    team_id: int
    user_id: Optional[int] = None
    email: str
    role: str
    status: str
    permissions: Optional[Dict[str, Any]] = None
    invitation_expires_at: Optional[datetime] = None
    joined_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MemberRoleUpdate(BaseModel):
    role: TeamRole
    permissions: Optional[Dict[str, bool]] = None


class SubscriptionUpdate(BaseModel):
    plan: SubscriptionPlan
    billing_cycle: BillingCycle = BillingCycle.MONTHLY


class SubscriptionResponse(BaseModel):
    plan: str
    billing_cycle: Optional[str] = None
    price: Optional[float] = None
    status: str
    limits: Optional[Dict[str, Any]] = None
    usage: Optional[Dict[str, Any]] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool

    class Config:
        from_attributes = True


class SharedJobCreate(BaseModel):
    job_id: Optional[int] = None
    title: Optional[str] = Field(None, max_length=200)
    company: Optional[str] = Field(None, max_length=200)
    url: Optional[str] = Field(None, max_length=1000)
    description: Optional[str] = Field(None, max_length=20000)

    @model_validator(mode='after')
    def check_source(self):
        if self.job_id is None and not (self.title and self.company):
            raise ValueError('Provide job_id, or both title and company')
        return self


class SharedJobResponse(BaseModel):
    id: int
    team_id: int
    shared_by: Optional[int] = None
    job_id: Optional[int] = None
    title: str
    company: str
    url: Optional[str] = None
    description: Optional[str] = None
    comments: Optional[List[Dict[str, Any]]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CommentCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)


# --- Profile Schemas ---

class SkillEntry(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    level: str = Field("intermediate", pattern="^(beginner|intermediate|advanced|expert)$")
    category: Optional[str] = Field(None, max_length=50)


class ProfileUpdate(BaseModel):
    headline: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=200)
    linkedin_url: Optional[str] = Field(None, max_length=500)
    industry: Optional[str] = Field(None, max_length=100)
    experience_level: Optional[str] = Field(None, pattern="^(entry|mid|senior|executive)$")
    years_experience: Optional[float] = Field(None, ge=0, le=60)
    preferred_work_mode: Optional[WorkMode] = None
    salary_expectation_min: Optional[int] = Field(None, ge=0)
    salary_expectation_max: Optional[int] = Field(None, ge=0)
    summary: Optional[str] = Field(None, max_length=5000)
    skills: Optional[List[SkillEntry]] = None
    employment: Optional[List[Dict[str, Any]]] = None
    education: Optional[List[Dict[str, Any]]] = None
    certifications: Optional[List[Dict[str, Any]]] = None
    projects: Optional[List[Dict[str, Any]]] = None


class ProfileResponse(BaseModel):
    headline: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    linkedin_url: Optional[str] = None
    industry: Optional[str] = None
    experience_level: Optional[str] = None
    years_experience: Optional[float] = None
    preferred_work_mode: Optional[str] = None
    salary_expectation_min: Optional[int] = None
    salary_expectation_max: Optional[int] = None
    summary: Optional[str] = None
    skills: List[Dict[str, Any]] = []
    employment: List[Dict[str, Any]] = []
    education: List[Dict[str, Any]] = []
    certifications: List[Dict[str, Any]] = []
    projects: List[Dict[str, Any]] = []

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    is_active: bool
    subscription_tier: str = "free"
    subscription_expires_at: Optional[datetime] = None
    email_notifications: bool
    interview_reminders: bool
    deadline_reminders: bool
    follow_up_reminders: bool
    auto_mark_ghosted: bool
    follow_up_after_days: int
    created_at: datetime

    class Config:
        from_attributes = True


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email_notifications: Optional[bool] = None
    interview_reminders: Optional[bool] = None
    deadline_reminders: Optional[bool] = None
    follow_up_reminders: Optional[bool] = None
    auto_mark_ghosted: Optional[bool] = None
    follow_up_after_days: Optional[int] = Field(None, ge=1, le=60)
