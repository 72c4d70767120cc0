"""
ApplyTrack - Application configuration.

Centralized configuration using Pydantic Settings for environment variable management.

Environment Variables:
    All settings can be overridden via environment variables with APPLYTRACK_ prefix.

    AI Settings:
        APPLYTRACK_AI_ENABLED=true            - Toggle AI features
        APPLYTRACK_GEMINI_API_KEY=...         - Gemini API key from aistudio.google.com
        APPLYTRACK_GEMINI_MODEL=...           - Model to use (e.g., gemini-1.5-flash)

    Auth Settings:
        APPLYTRACK_SINGLE_USER_MODE=true      - Skip token verification for local use
        APPLYTRACK_CLERK_JWT_KEY=...          - Clerk PEM public key used to verify session tokens
        APPLYTRACK_SECRET_KEY=...             - Signing key for share links and invitations

    Email Settings:
        APPLYTRACK_RESEND_API_KEY=...         - Resend API key (preferred)
        APPLYTRACK_SMTP_HOST=...              - SMTP fallback

    Reminder Settings:
        APPLYTRACK_REMINDERS_ENABLED=true     - Run the background reminder loop
"""
from pydantic_settings import BaseSettings
from typing import Optional


class AISettings(BaseSettings):
    """
    Google Gemini API configuration settings.

    Available models:
        - gemini-1.5-flash: Fast, cheap, good for most generation tasks
        - gemini-1.5-pro: Higher quality, slower
    """
    ai_enabled: bool = True
    gemini_api_key: Optional[str] = None
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-1.5-flash"
    ai_temperature: float = 0.7
    ai_max_tokens: int = 2048
    ai_fallback_to_template: bool = True

    class Config:
        env_prefix = "APPLYTRACK_"
        env_file = ".env"
        extra = "ignore"


class AuthSettings(BaseSettings):
    """
    Authentication configuration settings.

    Sign-in is handled by Clerk. This backend only verifies the session JWT
    Clerk issues. For production deployment:
        1. Set APPLYTRACK_SINGLE_USER_MODE=false
        2. Set APPLYTRACK_CLERK_JWT_KEY to the PEM public key from the Clerk dashboard
        3. Generate a secret key for share links: openssl rand -hex 32
    """
    single_user_mode: bool = True
    clerk_jwt_key: Optional[str] = None
    clerk_issuer: Optional[str] = None
    clerk_algorithms: str = "RS256"
    secret_key: str = "development-secret-key-change-in-production"

    # Token lifetimes for signed links (seconds)
    share_link_max_age: int = 60 * 60 * 24 * 30
    invitation_max_age: int = 60 * 60 * 24 * 7

    class Config:
        env_prefix = "APPLYTRACK_"
        env_file = ".env"
        extra = "ignore"


class EmailSettings(BaseSettings):
    """Outbound email via Resend HTTP API, with SMTP as a fallback."""
    resend_api_key: Optional[str] = None
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    from_email: str = "noreply@applytrack.app"
    from_name: str = "ApplyTrack"

    class Config:
        env_prefix = "APPLYTRACK_"
        env_file = ".env"
        extra = "ignore"


class CalendarSettings(BaseSettings):
    """OAuth client credentials for Google and Outlook calendar sync."""
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    outlook_client_id: Optional[str] = None
    outlook_client_secret: Optional[str] = None
    outlook_tenant: str = "common"

    class Config:
        env_prefix = "APPLYTRACK_"
        env_file = ".env"
        extra = "ignore"


class ReminderSettings(BaseSettings):
    """
    Background reminder loop settings.

    Interview reminder thresholds are per-interview (default 24h and 2h);
    the values below are the defaults for new interviews and the batch knobs.
    """
    reminders_enabled: bool = True
    reminder_check_interval_seconds: int = 15 * 60
    deadline_reminder_days: int = 3
    stalled_after_days: int = 14
    ghosted_after_days: int = 30
    repeat_after_days: int = 7

    class Config:
        env_prefix = "APPLYTRACK_"
        env_file = ".env"
        extra = "ignore"


class Settings(BaseSettings):
    """Combined application settings."""
    ai: AISettings = AISettings()
    auth: AuthSettings = AuthSettings()
    email: EmailSettings = EmailSettings()
    calendar: CalendarSettings = CalendarSettings()
    reminders: ReminderSettings = ReminderSettings()

    # Public URL of the frontend, used in emailed links
    base_url: str = "http://localhost:5173"

    # Public URL of this API, used for OAuth redirect URIs
    api_url: str = "http://localhost:8000"

    # CORS allowed origins (comma-separated, e.g. "http://localhost:5173,https://applytrack.app")
    allowed_origins: str = "*"

    # Turn off in tests
    rate_limit_enabled: bool = True

    # Database
    database_url: str = "sqlite:///./data/applytrack.db"

    # Database connection pool (PostgreSQL only)
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800

    # Database retry settings
    db_retry_max_attempts: int = 3
    db_retry_base_delay: float = 0.1

    class Config:
        env_prefix = "APPLYTRACK_"
        env_file = ".env"
        extra = "ignore"


# Global settings instance
settings = Settings()
