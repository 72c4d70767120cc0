"""
ApplyTrack - Admin operations.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
import logging

from ..database import get_db
from ..auth.dependencies import get_current_admin_user, get_client_ip
from ..auth.models import User
from ..rate_limit import limiter, RATE_LIMIT_GENERAL
from ..services import reminders

logger = logging.getLogger("applytrack.admin")

router = APIRouter()


@router.post("/reminders/run")
@limiter.limit(RATE_LIMIT_GENERAL)
async def run_reminders(
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin_user)
):
    """Run every reminder job once and return the per-job summaries."""
    logger.info(f"Reminder jobs triggered manually by admin {admin.id} from {get_client_ip(request)}")
    result = await reminders.run_all(db)
    db.commit()
    return result
