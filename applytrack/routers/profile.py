"""
ApplyTrack - Career profile API.

The profile feeds job matching, skill gap analysis, market intelligence
and cover letter generation.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas import ProfileUpdate, ProfileResponse
from ..auth.dependencies import get_current_active_user
from ..auth.models import User
from ..query_helpers import get_or_create_profile

router = APIRouter()

COMPLETION_FIELDS = [
    "headline", "location", "industry", "experience_level", "years_experience",
    "summary", "skills", "employment", "education",
]


def calculate_profile_completion(profile) -> int:
    filled = sum(1 for f in COMPLETION_FIELDS if getattr(profile, f, None) not in (None, "", []))
    return round(filled / len(COMPLETION_FIELDS) * 100)


@router.get("/", response_model=ProfileResponse)
def get_profile(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Get the user's profile, creating an empty one on first access."""
    return get_or_create_profile(db, current_user)


@router.put("/", response_model=ProfileResponse)
def update_profile(
    profile: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Update the profile. Only provided fields change; list fields are replaced whole."""
    existing = get_or_create_profile(db, current_user)
    update_data = profile.model_dump(mode="json", exclude_unset=True)

    low = update_data.get("salary_expectation_min", existing.salary_expectation_min)
    high = update_data.get("salary_expectation_max", existing.salary_expectation_max)
    if low is not None and high is not None and low > high:
        raise HTTPException(status_code=400, detail="salary_expectation_min cannot exceed salary_expectation_max")

    for key, value in update_data.items():
        setattr(existing, key, value)
    db.commit()
    db.refresh(existing)
    return existing


@router.get("/completion")
def get_profile_completion(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Which profile fields are filled, with suggestions for the most useful missing ones."""
    profile = get_or_create_profile(db, current_user)
    filled = [f for f in COMPLETION_FIELDS if getattr(profile, f, None) not in (None, "", [])]
    missing = [f for f in COMPLETION_FIELDS if f not in filled]

    suggestions = []
    if "skills" in missing:
        suggestions.append("Add your skills so job match scores and skill gaps can be calculated")
    if "employment" in missing:
        suggestions.append("Add your work history to improve experience matching")
    if "experience_level" in missing:
        suggestions.append("Set your experience level for accurate salary research")
    if "education" in missing:
        suggestions.append("Add your education for education matching")

    return {
        "completion_percentage": calculate_profile_completion(profile),
        "filled_fields": filled,
        "missing_fields": missing,
        "suggestions": suggestions[:3],
    }
