"""
ApplyTrack - Salary research, negotiation tracking and offer history.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from ..database import get_db
from ..models import SalaryNegotiation, SalaryProgression, Job
from ..schemas import (
    NegotiationCreate, NegotiationUpdate, NegotiationResponse, OfferDetails,
    OfferEvaluationRequest, OfferComparisonRequest,
    ProgressionCreate, ProgressionUpdate, ProgressionResponse,
)
from ..auth.dependencies import get_current_active_user
from ..auth.models import User
from ..query_helpers import user_query, get_owned_or_404, append_json
from ..rate_limit import limiter, RATE_LIMIT_GENERAL
from ..services.salary_benchmarks import (
    market_research, get_benchmark, evaluate_offer, compare_offers, progression_summary,
)

logger = logging.getLogger("applytrack.salary")

router = APIRouter()


# --- Market data ---

@router.get("/research")
def get_market_research(
    industry: Optional[str] = None,
    level: Optional[str] = Query(None, pattern="^(entry|mid|senior|executive)$"),
    location: Optional[str] = None,
    company: Optional[str] = None,
    company_size: Optional[str] = Query(None, pattern="^(startup|small|medium|large|enterprise)$"),
    current_user: User = Depends(get_current_active_user)
):
    """Salary range for an industry and level, adjusted for location and company size."""
    return market_research(industry, level, location, company, company_size)


@router.get("/benchmarks")
def get_salary_benchmark(
    job_title: str = Query(..., min_length=1, max_length=200),
    location: Optional[str] = None,
    industry: Optional[str] = None,
    level: Optional[str] = Query(None, pattern="^(entry|mid|senior|executive)$"),
    refresh: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Cached benchmark for a title and location; computed and cached on a miss."""
    return get_benchmark(db, job_title, location, industry, level, refresh=refresh)


# --- Negotiations ---

@router.get("/negotiations", response_model=List[NegotiationResponse])
def list_negotiations(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    query = user_query(db, SalaryNegotiation, current_user)
    if status:
        query = query.filter(SalaryNegotiation.status == status)
    return query.order_by(SalaryNegotiation.updated_at.desc()).all()


@router.post("/negotiations", response_model=NegotiationResponse, status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
def create_negotiation(
    request: Request,
    negotiation: NegotiationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Start tracking a negotiation. A market research snapshot is stored with it."""
    company_size = None
    if negotiation.job_id is not None:
        job = get_owned_or_404(db, Job, negotiation.job_id, current_user, "Job")
        company_size = job.company_size

    db_negotiation = SalaryNegotiation(
        **negotiation.model_dump(),
        user_id=current_user.id,
        offers=[],
        market_research=market_research(
            negotiation.industry, negotiation.experience_level, negotiation.location,
            negotiation.company, company_size,
        ),
    )
    db.add(db_negotiation)
    db.commit()
    db.refresh(db_negotiation)
    return db_negotiation


@router.get("/negotiations/{negotiation_id}", response_model=NegotiationResponse)
def get_negotiation(
    negotiation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return get_owned_or_404(db, SalaryNegotiation, negotiation_id, current_user, "Negotiation")


@router.patch("/negotiations/{negotiation_id}", response_model=NegotiationResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def update_negotiation(
    request: Request,
    negotiation_id: int,
    negotiation: NegotiationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_negotiation = get_owned_or_404(db, SalaryNegotiation, negotiation_id, current_user, "Negotiation")
    update_data = negotiation.model_dump(exclude_unset=True)

    merged = [
        update_data.get(key, getattr(db_negotiation, key))
        for key in ("minimum_acceptable", "target_salary", "ideal_salary")
    ]
    present = [v for v in merged if v is not None]
    if present != sorted(present):
        raise HTTPException(status_code=400, detail="Expected minimum_acceptable <= target_salary <= ideal_salary")

    for key, value in update_data.items():
        setattr(db_negotiation, key, value)
    db.commit()
    db.refresh(db_negotiation)
    return db_negotiation


@router.delete("/negotiations/{negotiation_id}")
@limiter.limit(RATE_LIMIT_GENERAL)
def delete_negotiation(
    request: Request,
    negotiation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_negotiation = get_owned_or_404(db, SalaryNegotiation, negotiation_id, current_user, "Negotiation")
    db.delete(db_negotiation)
    db.commit()
    return {"message": "Negotiation deleted"}


@router.post("/negotiations/{negotiation_id}/offers", response_model=NegotiationResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def add_offer(
    request: Request,
    negotiation_id: int,
    offer: OfferDetails,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Record an offer or counter-offer. The first one moves the negotiation to negotiating."""
    db_negotiation = get_owned_or_404(db, SalaryNegotiation, negotiation_id, current_user, "Negotiation")
    entry = offer.model_dump(mode="json")
    entry["total"] = offer.base_salary + offer.bonus + offer.equity + offer.benefits
    append_json(db_negotiation, "offers", entry)
    if db_negotiation.status == "preparing":
        db_negotiation.status = "negotiating"
    db.commit()
    db.refresh(db_negotiation)
    return db_negotiation


@router.post("/evaluate")
def evaluate_salary_offer(
    data: OfferEvaluationRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Recommendation and counter-offer for an offer amount.

    Thresholds missing from the request are taken from the negotiation
    when negotiation_id is given.
    """
    minimum, target, ideal = data.minimum_acceptable, data.target_salary, data.ideal_salary
    if data.negotiation_id is not None:
        negotiation = get_owned_or_404(db, SalaryNegotiation, data.negotiation_id, current_user, "Negotiation")
        minimum = minimum or negotiation.minimum_acceptable
        target = target or negotiation.target_salary
        ideal = ideal or negotiation.ideal_salary

    try:
        return evaluate_offer(data.offer_amount, minimum, target, ideal)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/compare")
def compare_salary_offers(
    data: OfferComparisonRequest,
    current_user: User = Depends(get_current_active_user)
):
    """Rank offers by total compensation adjusted for cost of living."""
    ranked = compare_offers([o.model_dump() for o in data.offers])
    return {"offers": ranked, "best": ranked[0]}


# --- Offer history ---

@router.get("/progression", response_model=List[ProgressionResponse])
def list_progression(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return user_query(db, SalaryProgression, current_user).order_by(
        SalaryProgression.offer_date.desc(), SalaryProgression.created_at.desc()
    ).all()


@router.get("/progression/summary")
def get_progression_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return progression_summary(user_query(db, SalaryProgression, current_user).all())


@router.post("/progression", response_model=ProgressionResponse, status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
def add_progression(
    request: Request,
    record: ProgressionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    if record.job_id is not None:
        get_owned_or_404(db, Job, record.job_id, current_user, "Job")
    db_record = SalaryProgression(**record.model_dump(), user_id=current_user.id)
    db.add(db_record)
    db.commit()
    db.refresh(db_record)
    return db_record


@router.patch("/progression/{record_id}", response_model=ProgressionResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def update_progression(
    request: Request,
    record_id: int,
    record: ProgressionUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Update an offer record, e.g. once the outcome is known."""
    db_record = get_owned_or_404(db, SalaryProgression, record_id, current_user, "Salary record")
    for key, value in record.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(db_record, key, value)
    db.commit()
    db.refresh(db_record)
    return db_record


@router.delete("/progression/{record_id}")
@limiter.limit(RATE_LIMIT_GENERAL)
def delete_progression(
    request: Request,
    record_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_record = get_owned_or_404(db, SalaryProgression, record_id, current_user, "Salary record")
    db.delete(db_record)
    db.commit()
    return {"message": "Salary record deleted"}
