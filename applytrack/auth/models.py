"""
ApplyTrack - Authentication Models

Users are provisioned from Clerk session tokens (keyed by the Clerk `sub`)
or, in single-user mode, as one local account. Calendar OAuth connections
hang off the user.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from ..database import Base


class User(Base):
    """Application user mirrored from the identity provider."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    clerk_user_id = Column(String, unique=True, index=True, nullable=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String)
    is_active = Column(Boolean, default=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    subscription_tier = Column(String, default="free", nullable=False)  # free, pro
    subscription_expires_at = Column(DateTime)

    # Notification preferences
    email_notifications = Column(Boolean, default=True, nullable=False)
    interview_reminders = Column(Boolean, default=True, nullable=False)
    deadline_reminders = Column(Boolean, default=True, nullable=False)
    follow_up_reminders = Column(Boolean, default=True, nullable=False)
    auto_mark_ghosted = Column(Boolean, default=True, nullable=False)
    follow_up_after_days = Column(Integer, default=7, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_stalled_digest_at = Column(DateTime)

    # Relationships
    calendar_connections = relationship(
        "CalendarConnection", back_populates="user", cascade="all, delete-orphan"
    )


class CalendarConnection(Base):
    """
    OAuth tokens for a user's Google or Outlook calendar.

    One row per (user, provider). Tokens are refreshed in place when expired.
    """
    __tablename__ = "calendar_connections"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(String, nullable=False)  # google, outlook
    account_email = Column(String)
    access_token = Column(String)
    refresh_token = Column(String)
    expires_at = Column(DateTime)
    calendar_id = Column(String, default="primary")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="calendar_connections")

    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uix_calendar_user_provider"),
    )

    @property
    def is_expired(self) -> bool:
        return bool(self.expires_at and self.expires_at <= datetime.utcnow())
