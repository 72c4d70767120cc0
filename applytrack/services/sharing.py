"""
ApplyTrack - Share links for resumes and cover letters.

A share row holds the expiry, revocation and feedback switch; its token
is a signed serialization of the row id, so a link stops working the
moment the row is revoked or expires.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..auth.tokens import generate_share_token, verify_share_token
from ..config import settings
from ..models import DocumentShare, ShareFeedback

logger = logging.getLogger("applytrack.sharing")

DOCUMENT_TYPES = ("resume", "cover_letter")


def share_url(share: DocumentShare) -> str:
    return f"{settings.base_url}/shared/{share.token}"


def create_share(db: Session, user, document_type: str, document_id: int,
                 allow_feedback: bool = True, expires_in_days: Optional[int] = None) -> DocumentShare:
    """Create and commit a share link for a document the caller already owns."""
    if document_type not in DOCUMENT_TYPES:
        raise ValueError(f"Unsupported document type: {document_type}")
    share = DocumentShare(
        user_id=user.id,
        document_type=document_type,
        document_id=document_id,
        allow_feedback=allow_feedback,
        expires_at=datetime.utcnow() + timedelta(days=expires_in_days) if expires_in_days else None,
    )
    db.add(share)
    db.flush()
    share.token = generate_share_token(share.id, document_type)
    db.commit()
    db.refresh(share)
    logger.info(f"User {user.id} shared {document_type} {document_id} (share {share.id})")
    return share


def share_payload(share: DocumentShare) -> dict:
    return {
        "id": share.id,
        "document_type": share.document_type,
        "document_id": share.document_id,
        "token": share.token,
        "share_url": share_url(share),
        "allow_feedback": share.allow_feedback,
        "expires_at": share.expires_at,
        "revoked": share.revoked,
        "view_count": share.view_count,
        "created_at": share.created_at,
    }


def find_share(db: Session, token: str) -> Optional[DocumentShare]:
    """The share row a token points to, or None for a bad signature or unknown row."""
    payload = verify_share_token(token)
    if not payload:
        return None
    share = db.get(DocumentShare, payload.get("sid"))
    if share is None or share.token != token or share.document_type != payload.get("type"):
        return None
    return share


def list_shares(db: Session, user, document_type: str, document_id: int):
    return db.query(DocumentShare).filter(
        DocumentShare.user_id == user.id,
        DocumentShare.document_type == document_type,
        DocumentShare.document_id == document_id,
    ).order_by(DocumentShare.created_at.desc()).all()


def list_feedback(db: Session, user, document_type: str, document_id: int):
    """All reviewer feedback left through any share link of one document."""
    return db.query(ShareFeedback).join(DocumentShare).filter(
        DocumentShare.user_id == user.id,
        DocumentShare.document_type == document_type,
        DocumentShare.document_id == document_id,
    ).order_by(ShareFeedback.created_at.desc()).all()


def remove_document_shares(db: Session, user, document_type: str, document_id: int) -> int:
    """Delete every share (and its feedback) of a document being deleted. The caller commits."""
    shares = list_shares(db, user, document_type, document_id)
    for share in shares:
        db.delete(share)
    return len(shares)
