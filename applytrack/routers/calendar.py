"""
ApplyTrack - Calendar connections (Google, Outlook) and interview sync.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session
from typing import Optional
from urllib.parse import urlencode
import logging

from ..config import settings
from ..database import get_db
from ..models import Interview
from ..auth.dependencies import get_current_active_user
from ..auth.models import User, CalendarConnection
from ..auth.tokens import generate_calendar_state, verify_calendar_state
from ..query_helpers import get_owned_or_404
from ..rate_limit import limiter, RATE_LIMIT_GENERAL
from ..services import calendar_service
from ..services.calendar_service import CalendarSyncError

logger = logging.getLogger("applytrack.calendar")

router = APIRouter()


def _check_provider(provider: str) -> None:
    if provider not in calendar_service.PROVIDERS:
        raise HTTPException(status_code=400, detail=f"Unsupported calendar provider: {provider}")


def _get_connection(db: Session, user: User, provider: Optional[str] = None) -> Optional[CalendarConnection]:
    query = db.query(CalendarConnection).filter(CalendarConnection.user_id == user.id)
    if provider:
        query = query.filter(CalendarConnection.provider == provider)
    return query.order_by(CalendarConnection.updated_at.desc()).first()


def _frontend_redirect(**params) -> RedirectResponse:
    return RedirectResponse(f"{settings.base_url}/settings/calendar?{urlencode(params)}", status_code=302)


@router.get("/status")
def calendar_status(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    connections = {c.provider: c for c in current_user.calendar_connections}
    return {
        provider: {
            "configured": calendar_service.is_configured(provider),
            "connected": provider in connections,
            "account_email": connections[provider].account_email if provider in connections else None,
            "calendar_id": connections[provider].calendar_id if provider in connections else None,
            "expires_at": connections[provider].expires_at if provider in connections else None,
        }
        for provider in calendar_service.PROVIDERS
    }


@router.get("/{provider}/connect")
def connect_calendar(
    provider: str,
    current_user: User = Depends(get_current_active_user)
):
    """Provider consent URL. The state parameter binds the callback to this user for 10 minutes."""
    _check_provider(provider)
    if not calendar_service.is_configured(provider):
        raise HTTPException(status_code=503, detail=f"{provider.title()} calendar is not configured")
    state = generate_calendar_state(current_user.id, provider)
    return {"authorization_url": calendar_service.authorization_url(provider, state)}


@router.get("/{provider}/callback")
async def calendar_callback(
    provider: str,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """
    OAuth redirect target. Exchanges the code for tokens and stores the
    connection, then sends the browser back to the calendar settings page.
    """
    _check_provider(provider)
    if error:
        logger.warning(f"{provider} calendar consent denied: {error}")
        return _frontend_redirect(provider=provider, error=error)

    payload = verify_calendar_state(state) if state else None
    if not payload or payload.get("provider") != provider or not code:
        return _frontend_redirect(provider=provider, error="invalid_state")

    user = db.get(User, payload["uid"])
    if user is None or not user.is_active:
        return _frontend_redirect(provider=provider, error="invalid_state")

    try:
        tokens = await calendar_service.exchange_code(provider, code)
    except CalendarSyncError as e:
        logger.error(f"{provider} code exchange failed for user {user.id}: {e}")
        return _frontend_redirect(provider=provider, error="exchange_failed")

    connection = _get_connection(db, user, provider)
    if connection is None:
        connection = CalendarConnection(user_id=user.id, provider=provider)
        db.add(connection)
    connection.access_token = tokens["access_token"]
    connection.expires_at = tokens["expires_at"]
    if tokens.get("refresh_token"):
        connection.refresh_token = tokens["refresh_token"]
    db.commit()
    logger.info(f"User {user.id} connected {provider} calendar")
    return _frontend_redirect(provider=provider, connected="true")


@router.delete("/{provider}")
def disconnect_calendar(
    provider: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Forget the stored tokens. Events already created stay in the calendar."""
    _check_provider(provider)
    connection = _get_connection(db, current_user, provider)
    if connection is None:
        raise HTTPException(status_code=404, detail=f"No {provider} calendar connected")
    db.delete(connection)
    db.commit()
    return {"message": f"{provider.title()} calendar disconnected"}


@router.post("/sync/{interview_id}")
@limiter.limit(RATE_LIMIT_GENERAL)
async def sync_interview(
    request: Request,
    interview_id: int,
    provider: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Create, update or delete the calendar event for an interview.

    The outcome (including a failure) is recorded on the interview.
    """
    if provider:
        _check_provider(provider)
    interview = get_owned_or_404(db, Interview, interview_id, current_user, "Interview")
    if provider:
        connection = _get_connection(db, current_user, provider)
    else:
        # Prefer the calendar the event already lives in
        connection = (interview.calendar_provider and _get_connection(db, current_user, interview.calendar_provider)) \
            or _get_connection(db, current_user)
    if connection is None:
        raise HTTPException(status_code=400, detail="No calendar connected")

    try:
        result = await calendar_service.sync_interview(db, connection, interview)
    except CalendarSyncError as e:
        db.commit()
        logger.error(f"Calendar sync failed for interview {interview_id}: {e}")
        raise HTTPException(status_code=502, detail=f"Calendar sync failed: {e}")

    db.commit()
    return {**result, "synced_at": interview.calendar_synced_at}
