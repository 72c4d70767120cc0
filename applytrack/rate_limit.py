"""
ApplyTrack - Centralized rate limiting configuration.

Routers import `limiter` from here and decorate endpoints with one of the
named limits below. Limits key on client IP (X-Forwarded-For aware behind a proxy).
Set APPLYTRACK_RATE_LIMIT_ENABLED=false to switch limiting off (tests).
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

# --- Rate limit constants ---

# Gemini-backed generation (billed per call)
RATE_LIMIT_AI = "5/minute"

# PDF rendering and file parsing
RATE_LIMIT_EXPORT = "10/minute"

# Writes (create, update, delete, invite)
RATE_LIMIT_GENERAL = "30/minute"

# Reads (list, stats, search)
RATE_LIMIT_READ = "60/minute"

# Unauthenticated share-link views
RATE_LIMIT_PUBLIC = "20/minute"
