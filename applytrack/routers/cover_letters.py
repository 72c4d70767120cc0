"""
ApplyTrack - Cover letter API.

CRUD, AI generation with tone/industry/length options and several
variations, a template fallback when Gemini is unavailable, templates,
PDF/TXT export and share links.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session
from typing import List, Optional
import logging
import re

from ..database import get_db
from ..models import CoverLetter, CoverLetterTemplate, Job, Resume
from ..schemas import (
    CoverLetterCreate, CoverLetterUpdate, CoverLetterResponse, CoverLetterGenerateRequest,
    CoverLetterTemplateCreate, CoverLetterTemplateResponse,
    ShareCreate, ShareResponse, FeedbackResponse,
)
from ..auth.dependencies import get_current_active_user
from ..auth.models import User
from ..query_helpers import user_query, get_owned_or_404, owned_or_system_query, get_or_create_profile
from ..rate_limit import limiter, RATE_LIMIT_AI, RATE_LIMIT_EXPORT, RATE_LIMIT_GENERAL
from ..services.ai_service import ai_service, AIServiceError
from ..services.cover_letter_options import (
    option_catalog, validate_options, tone_warnings, recommended_tone,
    template_values, build_template_letter,
)
from ..services.pdf_export import render_cover_letter_pdf, resume_to_text
from ..services import sharing

logger = logging.getLogger("applytrack.cover_letters")

router = APIRouter()


def _filename(name: str, extension: str) -> str:
    safe = re.sub(r"[^A-Za-z0-9_-]+", "_", name).strip("_") or "cover_letter"
    return f"{safe}.{extension}"


def _get_template(db: Session, user: User, template_id: int) -> CoverLetterTemplate:
    template = owned_or_system_query(db, CoverLetterTemplate, user).filter(
        CoverLetterTemplate.id == template_id
    ).first()
    if not template:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


@router.get("/options")
def get_options():
    """Tone, industry, culture, length and writing-style tables."""
    return option_catalog()


# --- Templates ---

@router.get("/templates", response_model=List[CoverLetterTemplateResponse])
def list_templates(
    industry: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    query = owned_or_system_query(db, CoverLetterTemplate, current_user)
    if industry:
        query = query.filter(CoverLetterTemplate.industry == industry)
    return query.order_by(CoverLetterTemplate.usage_count.desc(), CoverLetterTemplate.name).all()


@router.post("/templates", response_model=CoverLetterTemplateResponse, status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
def create_template(
    request: Request,
    template: CoverLetterTemplateCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_template = CoverLetterTemplate(**template.model_dump(), user_id=current_user.id)
    db.add(db_template)
    db.commit()
    db.refresh(db_template)
    return db_template


@router.delete("/templates/{template_id}")
@limiter.limit(RATE_LIMIT_GENERAL)
def delete_template(
    request: Request,
    template_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Delete one of the user's templates. Built-in templates cannot be deleted."""
    db_template = get_owned_or_404(db, CoverLetterTemplate, template_id, current_user, "Template")
    db.delete(db_template)
    db.commit()
    return {"message": "Template deleted"}


# --- Generation ---

@router.post("/generate")
@limiter.limit(RATE_LIMIT_AI)
async def generate_cover_letter(
    request: Request,
    data: CoverLetterGenerateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Generate one or more cover letter variations.

    The letter is written by Gemini when it is configured. When it is not,
    or when the AI call fails, a template letter is filled in instead and
    "source" is "template". With save=true the first variation is stored.
    """
    invalid = validate_options(data.tone, data.industry, data.company_culture, data.writing_style)
    if invalid:
        raise HTTPException(status_code=400, detail=f"Invalid options: {', '.join(invalid)}")

    job = None
    if data.job_id is not None:
        job = get_owned_or_404(db, Job, data.job_id, current_user, "Job")
    company = data.company_name or job.company
    role = data.role or job.title
    job_description = data.job_description or (job.description if job else "") or ""

    resume_text = ""
    if data.resume_id is not None:
        resume = get_owned_or_404(db, Resume, data.resume_id, current_user, "Resume")
        resume_text = resume_to_text(resume, resume.template)

    profile = get_or_create_profile(db, current_user)
    skills = [s.get("name") for s in profile.skills or [] if isinstance(s, dict) and s.get("name")]

    letters = []
    source = "template"
    if ai_service.is_available():
        candidate = {
            "name": current_user.name,
            "headline": profile.headline,
            "skills": skills,
            "years_experience": profile.years_experience,
            "summary": profile.summary,
        }
        try:
            for variation in range(data.variations):
                letters.append(await ai_service.generate_cover_letter(
                    candidate=candidate,
                    company_name=company,
                    role=role,
                    job_description=job_description,
                    resume_text=resume_text,
                    tone=data.tone,
                    industry=data.industry,
                    company_culture=data.company_culture,
                    length=data.length,
                    writing_style=data.writing_style,
                    variation=variation,
                ))
            source = "ai"
        except AIServiceError as e:
            logger.warning(f"AI cover letter generation failed, using template: {e}")
            letters = []

    template = None
    if not letters:
        if data.template_id is not None:
            template = _get_template(db, current_user, data.template_id)
            template.usage_count = (template.usage_count or 0) + 1
        values = template_values(
            name=current_user.name or "", company=company, role=role, tone=data.tone,
            skills=skills, summary=profile.summary, years_experience=profile.years_experience,
        )
        letters = [build_template_letter(values, template.content if template else None)]

    saved = None
    if data.save:
        saved = CoverLetter(
            user_id=current_user.id,
            job_id=job.id if job else None,
            template_id=template.id if template else None,
            name=f"{company} - {role}"[:200],
            content=letters[0],
            tone=data.tone,
            industry=data.industry,
            length=data.length,
            is_ai_generated=source == "ai",
        )
        db.add(saved)
    db.commit()
    if saved is not None:
        db.refresh(saved)

    return {
        "source": source,
        "variations": [{"index": i, "content": text, "word_count": len(text.split())}
                       for i, text in enumerate(letters)],
        "warnings": tone_warnings(data.tone, data.industry, data.company_culture),
        "recommended_tone": recommended_tone(data.industry, data.company_culture),
        "cover_letter": CoverLetterResponse.model_validate(saved) if saved else None,
    }


# --- Cover letters ---

@router.get("/", response_model=List[CoverLetterResponse])
def list_cover_letters(
    archived: bool = False,
    job_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    query = user_query(db, CoverLetter, current_user).filter(CoverLetter.archived == archived)
    if job_id is not None:
        query = query.filter(CoverLetter.job_id == job_id)
    return query.order_by(CoverLetter.updated_at.desc()).all()


@router.get("/{cover_letter_id}", response_model=CoverLetterResponse)
def get_cover_letter(
    cover_letter_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return get_owned_or_404(db, CoverLetter, cover_letter_id, current_user, "Cover letter")


@router.post("/", response_model=CoverLetterResponse, status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
def create_cover_letter(
    request: Request,
    cover_letter: CoverLetterCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    if cover_letter.job_id is not None:
        get_owned_or_404(db, Job, cover_letter.job_id, current_user, "Job")
    if cover_letter.template_id is not None:
        _get_template(db, current_user, cover_letter.template_id)
    db_letter = CoverLetter(**cover_letter.model_dump(), user_id=current_user.id)
    db.add(db_letter)
    db.commit()
    db.refresh(db_letter)
    return db_letter


@router.patch("/{cover_letter_id}", response_model=CoverLetterResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def update_cover_letter(
    request: Request,
    cover_letter_id: int,
    cover_letter: CoverLetterUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_letter = get_owned_or_404(db, CoverLetter, cover_letter_id, current_user, "Cover letter")
    update_data = cover_letter.model_dump(exclude_unset=True)
    if update_data.get("job_id") is not None:
        get_owned_or_404(db, Job, update_data["job_id"], current_user, "Job")
    for key, value in update_data.items():
        setattr(db_letter, key, value)
    db.commit()
    db.refresh(db_letter)
    return db_letter


@router.delete("/{cover_letter_id}")
@limiter.limit(RATE_LIMIT_GENERAL)
def delete_cover_letter(
    request: Request,
    cover_letter_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_letter = get_owned_or_404(db, CoverLetter, cover_letter_id, current_user, "Cover letter")
    sharing.remove_document_shares(db, current_user, "cover_letter", cover_letter_id)
    user_query(db, Job, current_user).filter(Job.cover_letter_id == cover_letter_id).update(
        {Job.cover_letter_id: None}, synchronize_session=False
    )
    db.delete(db_letter)
    db.commit()
    return {"message": "Cover letter deleted"}


@router.get("/{cover_letter_id}/export/pdf")
@limiter.limit(RATE_LIMIT_EXPORT)
def export_cover_letter_pdf(
    request: Request,
    cover_letter_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_letter = get_owned_or_404(db, CoverLetter, cover_letter_id, current_user, "Cover letter")
    pdf = render_cover_letter_pdf(db_letter, sender_name=current_user.name)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{_filename(db_letter.name, "pdf")}"'}
    )


@router.get("/{cover_letter_id}/export/txt")
@limiter.limit(RATE_LIMIT_EXPORT)
def export_cover_letter_text(
    request: Request,
    cover_letter_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_letter = get_owned_or_404(db, CoverLetter, cover_letter_id, current_user, "Cover letter")
    return Response(
        content=db_letter.content,
        media_type="text/plain; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{_filename(db_letter.name, "txt")}"'}
    )


# --- Sharing ---

@router.post("/{cover_letter_id}/shares", response_model=ShareResponse, status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
def share_cover_letter(
    request: Request,
    cover_letter_id: int,
    data: ShareCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    get_owned_or_404(db, CoverLetter, cover_letter_id, current_user, "Cover letter")
    share = sharing.create_share(db, current_user, "cover_letter", cover_letter_id,
                                 data.allow_feedback, data.expires_in_days)
    return sharing.share_payload(share)


@router.get("/{cover_letter_id}/shares", response_model=List[ShareResponse])
def list_cover_letter_shares(
    cover_letter_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    get_owned_or_404(db, CoverLetter, cover_letter_id, current_user, "Cover letter")
    return [sharing.share_payload(s)
            for s in sharing.list_shares(db, current_user, "cover_letter", cover_letter_id)]


@router.get("/{cover_letter_id}/feedback", response_model=List[FeedbackResponse])
def list_cover_letter_feedback(
    cover_letter_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    get_owned_or_404(db, CoverLetter, cover_letter_id, current_user, "Cover letter")
    return sharing.list_feedback(db, current_user, "cover_letter", cover_letter_id)
