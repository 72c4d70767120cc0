"""
ApplyTrack - Market intelligence API.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from ..database import get_db
from ..models import Job, MarketIntelligencePreference
from ..schemas import MarketPreferenceUpdate, MarketPreferenceResponse
from ..auth.dependencies import get_current_active_user
from ..auth.models import User
from ..query_helpers import user_query, get_or_create_profile
from ..services.market_intelligence import market_overview

router = APIRouter()


def _get_preferences(db: Session, user: User) -> Optional[MarketIntelligencePreference]:
    return db.query(MarketIntelligencePreference).filter(
        MarketIntelligencePreference.user_id == user.id
    ).first()


def _matches(value: Optional[str], wanted) -> bool:
    if not wanted:
        return True
    value = (value or "").lower()
    return any(w.lower() in value for w in wanted)


@router.get("/overview")
def get_market_overview(
    use_preferences: bool = False,
    industry: Optional[str] = None,
    location: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Skill demand, industry and location mix, salary ranges, weekly hiring
    activity and recommendations, computed from the user's tracked jobs.

    use_preferences narrows the jobs to the saved industries, locations and roles.
    """
    jobs = user_query(db, Job, current_user).all()

    if use_preferences:
        prefs = _get_preferences(db, current_user)
        if prefs:
            jobs = [
                j for j in jobs
                if _matches(j.industry, prefs.industries)
                and _matches(j.location, prefs.locations)
                and _matches(j.title, prefs.roles)
            ]
    if industry:
        jobs = [j for j in jobs if _matches(j.industry, [industry])]
    if location:
        jobs = [j for j in jobs if _matches(j.location, [location])]

    profile = get_or_create_profile(db, current_user)
    return market_overview(jobs, profile.skills or [])


@router.get("/preferences", response_model=MarketPreferenceResponse)
def get_preferences(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    prefs = _get_preferences(db, current_user)
    if prefs is None:
        return MarketPreferenceResponse()
    return prefs


@router.put("/preferences", response_model=MarketPreferenceResponse)
def update_preferences(
    data: MarketPreferenceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    prefs = _get_preferences(db, current_user)
    if prefs is None:
        prefs = MarketIntelligencePreference(
            user_id=current_user.id, industries=[], locations=[], roles=[], update_frequency="weekly"
        )
        db.add(prefs)
    for key, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(prefs, key, value)
    db.commit()
    db.refresh(prefs)
    return prefs
