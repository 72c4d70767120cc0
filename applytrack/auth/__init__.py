"""
ApplyTrack - Authentication Module

Verifies Clerk session tokens and maps them to local users.

Usage:
    from applytrack.auth import get_current_active_user, User

    @router.get("/protected")
    def protected_route(current_user: User = Depends(get_current_active_user)):
        return {"user_id": current_user.id}

Configuration (environment variables):
    APPLYTRACK_SINGLE_USER_MODE=true     - Skip token checks for local single-user mode
    APPLYTRACK_CLERK_JWT_KEY=<pem>       - Clerk public key for RS256 verification
    APPLYTRACK_CLERK_ISSUER=<url>        - Expected `iss` claim (optional)
"""

# Models
from .models import User, CalendarConnection

# Dependencies (for use in routers)
from .dependencies import (
    get_current_user,
    get_current_active_user,
    get_current_admin_user,
)

__all__ = [
    # Models
    "User",
    "CalendarConnection",
    # Dependencies
    "get_current_user",
    "get_current_active_user",
    "get_current_admin_user",
]
