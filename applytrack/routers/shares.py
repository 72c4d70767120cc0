"""
ApplyTrack - Share link management and the public shared-document view.

Owner routes list and revoke links and resolve reviewer feedback. The
/public/{token} routes need no account: anyone holding a valid, unexpired,
unrevoked link can read the document and, when allowed, leave feedback.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime
import logging

from ..database import get_db
from ..models import CoverLetter, DocumentShare, Resume, ShareFeedback
from ..schemas import ShareResponse, FeedbackCreate, FeedbackResponse, ResumeResponse
from ..auth.dependencies import get_current_active_user
from ..auth.models import User
from ..rate_limit import limiter, RATE_LIMIT_GENERAL, RATE_LIMIT_PUBLIC
from ..services import sharing

logger = logging.getLogger("applytrack.sharing")

router = APIRouter()


def _get_owned_share(db: Session, share_id: int, user: User) -> DocumentShare:
    share = db.query(DocumentShare).filter(
        DocumentShare.id == share_id,
        DocumentShare.user_id == user.id
    ).first()
    if not share:
        raise HTTPException(status_code=404, detail="Share not found")
    return share


def _load_usable_share(db: Session, token: str) -> DocumentShare:
    """404 for unknown links, 410 for revoked or expired ones."""
    share = sharing.find_share(db, token)
    if share is None:
        raise HTTPException(status_code=404, detail="Shared document not found")
    if not share.is_usable:
        raise HTTPException(status_code=410, detail="This share link has expired or been revoked")
    return share


def _shared_document(db: Session, share: DocumentShare):
    model = Resume if share.document_type == "resume" else CoverLetter
    document = db.query(model).filter(
        model.id == share.document_id,
        model.user_id == share.user_id
    ).first()
    if document is None:
        raise HTTPException(status_code=404, detail="Shared document not found")
    return document


# --- Owner routes ---

@router.get("/", response_model=List[ShareResponse])
def list_my_shares(
    document_type: Optional[str] = None,
    include_revoked: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    query = db.query(DocumentShare).filter(DocumentShare.user_id == current_user.id)
    if document_type:
        query = query.filter(DocumentShare.document_type == document_type)
    if not include_revoked:
        query = query.filter(DocumentShare.revoked.is_(False))
    return [sharing.share_payload(s) for s in query.order_by(DocumentShare.created_at.desc()).all()]


@router.delete("/{share_id}")
@limiter.limit(RATE_LIMIT_GENERAL)
def revoke_share(
    request: Request,
    share_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Revoke a link. Feedback already left through it is kept."""
    share = _get_owned_share(db, share_id, current_user)
    share.revoked = True
    db.commit()
    logger.info(f"User {current_user.id} revoked share {share_id}")
    return {"message": "Share revoked"}


@router.patch("/feedback/{feedback_id}/resolve", response_model=FeedbackResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def resolve_feedback(
    request: Request,
    feedback_id: int,
    resolved: bool = True,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    feedback = db.query(ShareFeedback).join(DocumentShare).filter(
        ShareFeedback.id == feedback_id,
        DocumentShare.user_id == current_user.id
    ).first()
    if not feedback:
        raise HTTPException(status_code=404, detail="Feedback not found")
    feedback.resolved = resolved
    db.commit()
    db.refresh(feedback)
    return feedback


# --- Public routes ---

@router.get("/public/{token}")
@limiter.limit(RATE_LIMIT_PUBLIC)
def view_shared_document(
    request: Request,
    token: str,
    db: Session = Depends(get_db)
):
    """Read-only view of a shared resume or cover letter. Counts the view."""
    share = _load_usable_share(db, token)
    document = _shared_document(db, share)

    share.view_count = (share.view_count or 0) + 1
    share.last_viewed_at = datetime.utcnow()
    db.commit()

    if share.document_type == "resume":
        content = ResumeResponse.model_validate(document).model_dump(
            include={"id", "name", "sections", "section_order", "updated_at"}
        )
    else:
        content = {"id": document.id, "name": document.name,
                   "content": document.content, "updated_at": document.updated_at}

    return {
        "document_type": share.document_type,
        "document": content,
        "allow_feedback": share.allow_feedback,
        "expires_at": share.expires_at,
    }


@router.post("/public/{token}/feedback", response_model=FeedbackResponse, status_code=201)
@limiter.limit(RATE_LIMIT_PUBLIC)
def leave_feedback(
    request: Request,
    token: str,
    feedback: FeedbackCreate,
    db: Session = Depends(get_db)
):
    share = _load_usable_share(db, token)
    if not share.allow_feedback:
        raise HTTPException(status_code=403, detail="Feedback is disabled for this link")
    _shared_document(db, share)

    db_feedback = ShareFeedback(share_id=share.id, **feedback.model_dump())
    db.add(db_feedback)
    db.commit()
    db.refresh(db_feedback)
    logger.info(f"Feedback {db_feedback.id} left on share {share.id}")
    return db_feedback
