"""
ApplyTrack - Signed tokens for share links, invitations, and OAuth state.

Uses itsdangerous URLSafeTimedSerializer: the token encodes its payload and
a timestamp, signed with the app secret. Each token kind has its own salt so
a resume share token cannot be replayed as a team invitation (and so on).
"""
from typing import Optional

from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired

from ..config import settings

_serializer = URLSafeTimedSerializer(settings.auth.secret_key)

SHARE_SALT = "document-share"
TEAM_INVITE_SALT = "team-invite"
MENTOR_INVITE_SALT = "mentor-invite"
CALENDAR_STATE_SALT = "calendar-oauth-state"


def _load(token: str, salt: str, max_age: Optional[int]) -> Optional[dict]:
    try:
        return _serializer.loads(token, salt=salt, max_age=max_age)
    except (BadSignature, SignatureExpired):
        return None


def generate_share_token(share_id: int, document_type: str) -> str:
    """Token for a public resume/cover letter link. Expiry is tracked on the share row."""
    return _serializer.dumps({"sid": share_id, "type": document_type}, salt=SHARE_SALT)


def verify_share_token(token: str) -> Optional[dict]:
    """Returns {"sid": int, "type": str} or None if the signature is invalid."""
    return _load(token, SHARE_SALT, None)


def generate_team_invite_token(member_id: int, email: str) -> str:
    return _serializer.dumps({"mid": member_id, "email": email}, salt=TEAM_INVITE_SALT)


def verify_team_invite_token(token: str, max_age: Optional[int] = None) -> Optional[dict]:
    """
    Verify a team invitation token.

    Returns {"mid": int, "email": str} or None if invalid/expired.
    Default max_age is the configured invitation lifetime (7 days).
    """
    return _load(token, TEAM_INVITE_SALT, max_age or settings.auth.invitation_max_age)


def generate_mentor_invite_token(relationship_id: int, email: str) -> str:
    return _serializer.dumps({"rid": relationship_id, "email": email}, salt=MENTOR_INVITE_SALT)


def verify_mentor_invite_token(token: str, max_age: Optional[int] = None) -> Optional[dict]:
    """Returns {"rid": int, "email": str} or None if invalid/expired."""
    return _load(token, MENTOR_INVITE_SALT, max_age or settings.auth.invitation_max_age)


def generate_calendar_state(user_id: int, provider: str) -> str:
    """OAuth `state` value binding the callback to the user who started the flow."""
    return _serializer.dumps({"uid": user_id, "provider": provider}, salt=CALENDAR_STATE_SALT)


def verify_calendar_state(state: str, max_age: int = 600) -> Optional[dict]:
    """Returns {"uid": int, "provider": str} or None. Valid for 10 minutes."""
    return _load(state, CALENDAR_STATE_SALT, max_age)
