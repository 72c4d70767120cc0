"""
ApplyTrack - Calendar sync (Google Calendar and Outlook).

OAuth 2.0 authorization-code flow per provider, token refresh, and
create/update/delete of the calendar event mirroring an interview.
All provider calls go through httpx; failures raise CalendarSyncError.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional
from urllib.parse import urlencode

import httpx

from ..config import settings

logger = logging.getLogger("applytrack.calendar")

PROVIDERS = ("google", "outlook")

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/{calendar_id}/events"
GOOGLE_SCOPES = "https://www.googleapis.com/auth/calendar.events openid email"

OUTLOOK_AUTH_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/authorize"
OUTLOOK_TOKEN_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"
OUTLOOK_EVENTS_URL = "https://graph.microsoft.com/v1.0/me/events"
OUTLOOK_SCOPES = "offline_access Calendars.ReadWrite User.Read"


class CalendarSyncError(Exception):
    """Raised when a calendar provider call fails."""
    pass


def redirect_uri(provider: str) -> str:
    return f"{settings.api_url}/api/calendar/{provider}/callback"


def _credentials(provider: str):
    if provider == "google":
        return settings.calendar.google_client_id, settings.calendar.google_client_secret
    if provider == "outlook":
        return settings.calendar.outlook_client_id, settings.calendar.outlook_client_secret
    raise CalendarSyncError(f"Unsupported calendar provider: {provider}")


def is_configured(provider: str) -> bool:
    client_id, client_secret = _credentials(provider)
    return bool(client_id and client_secret)


def authorization_url(provider: str, state: str) -> str:
    """Provider consent URL; `state` is a signed token carrying the user id."""
    client_id, _ = _credentials(provider)
    if not is_configured(provider):
        raise CalendarSyncError(f"{provider.title()} calendar is not configured")

    if provider == "google":
        params = {
            "client_id": client_id,
            "redirect_uri": redirect_uri(provider),
            "response_type": "code",
            "scope": GOOGLE_SCOPES,
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri(provider),
        "response_type": "code",
        "response_mode": "query",
        "scope": OUTLOOK_SCOPES,
        "state": state,
    }
    return f"{OUTLOOK_AUTH_URL.format(tenant=settings.calendar.outlook_tenant)}?{urlencode(params)}"


def _token_url(provider: str) -> str:
    if provider == "google":
        return GOOGLE_TOKEN_URL
    return OUTLOOK_TOKEN_URL.format(tenant=settings.calendar.outlook_tenant)


async def _token_request(provider: str, data: Dict) -> Dict:
    client_id, client_secret = _credentials(provider)
    form = {"client_id": client_id, "client_secret": client_secret, **data}
    if provider == "outlook":
        form["scope"] = OUTLOOK_SCOPES
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(_token_url(provider), data=form, timeout=15.0)
    except httpx.HTTPError as e:
        logger.error(f"{provider} token request failed: {e}")
        raise CalendarSyncError(f"Could not reach {provider}")

    if response.status_code != 200:
        logger.error(f"{provider} token error {response.status_code}: {response.text[:300]}")
        raise CalendarSyncError(f"{provider.title()} rejected the token request")

    payload = response.json()
    expires_in = int(payload.get("expires_in", 3600))
    return {
        "access_token": payload["access_token"],
        "refresh_token": payload.get("refresh_token"),
        "expires_at": datetime.utcnow() + timedelta(seconds=expires_in - 60),
    }


async def exchange_code(provider: str, code: str) -> Dict:
    """Trade an authorization code for tokens."""
    return await _token_request(provider, {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": redirect_uri(provider),
    })


async def refresh_connection(db, connection) -> None:
    """Refresh an expired access token in place. The caller commits."""
    if not connection.refresh_token:
        raise CalendarSyncError("Calendar connection expired; reconnect your calendar")
    tokens = await _token_request(connection.provider, {
        "grant_type": "refresh_token",
        "refresh_token": connection.refresh_token,
    })
    connection.access_token = tokens["access_token"]
    connection.expires_at = tokens["expires_at"]
    # Google only returns a new refresh token on consent
    if tokens.get("refresh_token"):
        connection.refresh_token = tokens["refresh_token"]
    db.flush()
    logger.info(f"Refreshed {connection.provider} token for user {connection.user_id}")


def _description(interview) -> str:
    lines = []
    if interview.interviewer:
        name = interview.interviewer.get("name")
        title = interview.interviewer.get("title")
        if name:
            lines.append(f"Interviewer: {name}" + (f" ({title})" if title else ""))
    if interview.meeting_link:
        lines.append(f"Meeting link: {interview.meeting_link}")
    if interview.notes:
        lines.append("")
        lines.append(interview.notes)
    lines.append("")
    lines.append("Synced from ApplyTrack")
    return "\n".join(lines)


def build_event(provider: str, interview) -> Dict:
    """Provider-specific event body for an interview (times in UTC)."""
    summary = f"Interview: {interview.title} at {interview.company}"
    start = interview.scheduled_at.strftime("%Y-%m-%dT%H:%M:%S")
    end = interview.ends_at.strftime("%Y-%m-%dT%H:%M:%S")
    location = interview.location or interview.meeting_link or ""

    if provider == "google":
        return {
            "summary": summary,
            "description": _description(interview),
            "location": location,
            "start": {"dateTime": start, "timeZone": "UTC"},
            "end": {"dateTime": end, "timeZone": "UTC"},
            "reminders": {
                "useDefault": False,
                "overrides": [{"method": "popup", "minutes": int(h * 60)}
                              for h in (interview.reminder_hours or [])[:5]],
            },
        }
    return {
        "subject": summary,
        "body": {"contentType": "text", "content": _description(interview)},
        "location": {"displayName": location},
        "start": {"dateTime": start, "timeZone": "UTC"},
        "end": {"dateTime": end, "timeZone": "UTC"},
    }


def _events_url(connection) -> str:
    if connection.provider == "google":
        return GOOGLE_EVENTS_URL.format(calendar_id=connection.calendar_id or "primary")
    return OUTLOOK_EVENTS_URL


async def _call(connection, method: str, url: str, body: Optional[Dict] = None) -> Optional[Dict]:
    headers = {"Authorization": f"Bearer {connection.access_token}"}
    try:
        async with httpx.AsyncClient() as client:
            response = await client.request(method, url, headers=headers, json=body, timeout=15.0)
    except httpx.HTTPError as e:
        logger.error(f"{connection.provider} calendar request failed: {e}")
        raise CalendarSyncError(f"Could not reach {connection.provider}")

    if method == "DELETE" and response.status_code in (200, 204, 404, 410):
        return None
    if response.status_code not in (200, 201):
        logger.error(f"{connection.provider} calendar error {response.status_code}: {response.text[:300]}")
        raise CalendarSyncError(f"{connection.provider.title()} returned status {response.status_code}")
    return response.json()


async def sync_interview(db, connection, interview) -> Dict:
    """
    Mirror an interview into the connected calendar.

    Cancelled interviews delete their event; others create or update it.
    Sync status and error are recorded on the interview either way.
    The caller commits.
    """
    try:
        if connection.is_expired:
            await refresh_connection(db, connection)

        base = _events_url(connection)
        if interview.status == "cancelled":
            if interview.calendar_event_id:
                await _call(connection, "DELETE", f"{base}/{interview.calendar_event_id}")
            interview.calendar_event_id = None
            action = "deleted"
        elif interview.calendar_event_id and interview.calendar_provider == connection.provider:
            method = "PUT" if connection.provider == "google" else "PATCH"
            await _call(connection, method, f"{base}/{interview.calendar_event_id}",
                        build_event(connection.provider, interview))
            action = "updated"
        else:
            event = await _call(connection, "POST", base, build_event(connection.provider, interview))
            interview.calendar_event_id = event.get("id")
            action = "created"
    except CalendarSyncError as e:
        interview.calendar_sync_status = "failed"
        interview.calendar_sync_error = str(e)
        raise

    interview.calendar_provider = connection.provider
    interview.calendar_sync_status = "synced"
    interview.calendar_sync_error = None
    interview.calendar_synced_at = datetime.utcnow()
    logger.info(f"Calendar event {action} for interview {interview.id} ({connection.provider})")
    return {"action": action, "provider": connection.provider, "event_id": interview.calendar_event_id}
