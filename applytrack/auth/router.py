"""
ApplyTrack - Current user endpoints.

Sign-up, sign-in and password handling live in Clerk. This router only
exposes the local user row and its notification preferences.

Endpoints:
    GET    /api/users/me       - Get current user
    PATCH  /api/users/me       - Update name and notification preferences
    DELETE /api/users/me       - Deactivate the account
    GET    /api/users/status   - Auth mode (single-user or Clerk)
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from datetime import datetime
import logging

from ..database import get_db
from ..config import settings
from ..schemas import UserResponse, UserUpdate
from .models import User
from .dependencies import get_current_active_user

logger = logging.getLogger("applytrack.auth")
router = APIRouter()


@router.get("/status")
async def get_auth_status():
    """Whether tokens are verified, and against which issuer."""
    return {
        "single_user_mode": settings.auth.single_user_mode,
        "provider": None if settings.auth.single_user_mode else "clerk",
        "token_verification_configured": bool(settings.auth.clerk_jwt_key),
        "issuer": settings.auth.clerk_issuer or None,
    }


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: User = Depends(get_current_active_user)
):
    return current_user


@router.patch("/me", response_model=UserResponse)
async def update_me(
    user_data: UserUpdate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """
    Update the current user's name and notification preferences.

    Only provided fields are updated.
    """
    for key, value in user_data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(current_user, key, value)

    current_user.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(current_user)
    return current_user


@router.delete("/me")
async def deactivate_me(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """
    Deactivate the account. Data is kept; further requests get 403.

    The single-user-mode account cannot be deactivated.
    """
    if settings.auth.single_user_mode:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The local account cannot be deactivated in single-user mode"
        )
    current_user.is_active = False
    current_user.updated_at = datetime.utcnow()
    db.commit()
    logger.info(f"User {current_user.id} deactivated their account")
    return {"message": "Account deactivated"}
