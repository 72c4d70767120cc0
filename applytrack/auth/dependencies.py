"""
ApplyTrack - Authentication Dependencies

FastAPI dependencies for route protection and user injection.

Sign-in happens in Clerk on the frontend. Requests carry the Clerk session
JWT as "Authorization: Bearer <token>"; this module verifies it and maps
the token subject to a local User row, creating one on first sight.

Usage in routers:
    from ..auth.dependencies import get_current_active_user

    @router.get("/protected")
    def protected_route(current_user: User = Depends(get_current_active_user)):
        return {"user_id": current_user.id}

Dependency hierarchy:
    get_current_user          - Base: verifies token or returns the single-user-mode user
    get_current_active_user   - Adds: user must be active
    get_current_admin_user    - Adds: user must be an admin
"""
from typing import Optional
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session
import logging

from ..database import get_db
from ..config import settings
from .models import User

logger = logging.getLogger("applytrack.auth")

# auto_error=False lets us return our own 401 body
bearer_scheme = HTTPBearer(auto_error=False)

LOCAL_USER_EMAIL = "local@applytrack.local"


# -----------------------------------------------------------------------------
# Token verification
# -----------------------------------------------------------------------------

def decode_session_token(token: str) -> Optional[dict]:
    """
    Verify a Clerk session JWT and return its claims.

    Returns None if the signature, expiry, or issuer check fails, or if no
    verification key is configured.
    """
    if not settings.auth.clerk_jwt_key:
        logger.error("APPLYTRACK_CLERK_JWT_KEY is not set - cannot verify tokens")
        return None

    algorithms = [a.strip() for a in settings.auth.clerk_algorithms.split(",") if a.strip()]
    options = {"verify_aud": False}
    kwargs = {}
    if settings.auth.clerk_issuer:
        kwargs["issuer"] = settings.auth.clerk_issuer
    else:
        options["verify_iss"] = False

    try:
        claims = jwt.decode(
            token,
            settings.auth.clerk_jwt_key,
            algorithms=algorithms,
            options=options,
            **kwargs
        )
    except JWTError as e:
        logger.debug(f"Token verification failed: {e}")
        return None

    if not claims.get("sub"):
        logger.warning("Token has no subject claim")
        return None
    return claims


def get_or_provision_user(db: Session, claims: dict) -> User:
    """Find the user for a verified token, creating the local row on first request."""
    clerk_id = claims["sub"]
    user = db.query(User).filter(User.clerk_user_id == clerk_id).first()
    if user:
        return user

    email = (claims.get("email") or claims.get("primary_email") or "").lower()
    if email:
        # Account created before the Clerk id was recorded
        user = db.query(User).filter(User.email == email).first()
        if user and not user.clerk_user_id:
            user.clerk_user_id = clerk_id
            db.commit()
            return user

    logger.info(f"Provisioning user for Clerk subject {clerk_id}")
    user = User(
        clerk_user_id=clerk_id,
        email=email or f"{clerk_id}@users.clerk.local",
        name=claims.get("name") or claims.get("full_name"),
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


# -----------------------------------------------------------------------------
# Core Authentication Dependencies
# -----------------------------------------------------------------------------

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """
    Get the current user from the Clerk session token.

    In single-user mode (default for local installs) no token is needed and
    a local user is returned.

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    if settings.auth.single_user_mode:
        return get_or_create_local_user(db)

    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    claims = decode_session_token(credentials.credentials)
    if not claims:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return get_or_provision_user(db, claims)


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Get the current user and verify they are active.

    Use this dependency for most protected routes.

    Raises:
        HTTPException: 403 if user account is deactivated
    """
    if not current_user.is_active:
        logger.warning(f"Inactive user {current_user.id} attempted access")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated"
        )
    return current_user


async def get_current_admin_user(
    current_user: User = Depends(get_current_active_user)
) -> User:
    """Restrict a route to admins. The single-user-mode user counts as admin."""
    if settings.auth.single_user_mode or current_user.is_admin:
        return current_user
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Admin access required"
    )


# -----------------------------------------------------------------------------
# Single-User Mode Support
# -----------------------------------------------------------------------------

def get_or_create_local_user(db: Session) -> User:
    """Get or create the local single-user mode user."""
    local_user = db.query(User).filter(User.email == LOCAL_USER_EMAIL).first()

    if not local_user:
        logger.info("Creating local single-user mode user")
        local_user = User(
            email=LOCAL_USER_EMAIL,
            name="Local User",
            is_active=True,
        )
        db.add(local_user)
        db.commit()
        db.refresh(local_user)

    return local_user


# -----------------------------------------------------------------------------
# Request Context Helpers
# -----------------------------------------------------------------------------

def get_client_ip(request: Request) -> str:
    """Client IP, honouring the first X-Forwarded-For hop behind a proxy."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"
