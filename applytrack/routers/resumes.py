"""
ApplyTrack - Resume builder API.

Templates, resume CRUD, clone/merge, validation, PDF and text export,
import from PDF/DOCX, AI tailoring for a job, and share links.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request, UploadFile, File
from fastapi.responses import Response
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime
import copy
import logging
import os
import re

from ..database import get_db
from ..models import Resume, ResumeTemplate, Job, UserProfile
from ..schemas import (
    ResumeTemplateCreate, ResumeTemplateUpdate, ResumeTemplateResponse,
    ResumeCreate, ResumeUpdate, ResumeResponse, ResumeMergeRequest, ResumeTailorRequest,
    ShareCreate, ShareResponse, FeedbackResponse,
)
from ..auth.dependencies import get_current_active_user
from ..auth.models import User
from ..query_helpers import user_query, get_owned_or_404, owned_or_system_query
from ..rate_limit import limiter, RATE_LIMIT_AI, RATE_LIMIT_EXPORT, RATE_LIMIT_GENERAL
from ..services.ai_service import ai_service, AIServiceError
from ..services.pdf_export import (
    SECTION_TITLES, PDFExportError, count_pages, render_resume_pdf, resume_to_text,
)
from ..services.resume_parser import MAX_UPLOAD_BYTES, ResumeParseError, parse_resume_file
from ..services.resume_validator import validate_resume
from ..services import sharing

logger = logging.getLogger("applytrack.resumes")

router = APIRouter()

RESUME_SECTIONS = ["contact"] + list(SECTION_TITLES)


def _filename(name: str, extension: str) -> str:
    safe = re.sub(r"[^A-Za-z0-9_-]+", "_", name).strip("_") or "resume"
    return f"{safe}.{extension}"


def _check_template(db: Session, user: User, template_id: Optional[int]) -> None:
    if template_id is None:
        return
    found = owned_or_system_query(db, ResumeTemplate, user).filter(ResumeTemplate.id == template_id).first()
    if not found:
        raise HTTPException(status_code=404, detail="Template not found")


def _check_sections(section_order: Optional[List[str]]) -> None:
    unknown = [s for s in section_order or [] if s not in RESUME_SECTIONS]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown sections: {unknown}")


# --- Templates ---

@router.get("/templates", response_model=List[ResumeTemplateResponse])
def list_templates(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Built-in templates plus the user's own, defaults first."""
    return owned_or_system_query(db, ResumeTemplate, current_user).order_by(
        ResumeTemplate.is_default.desc(), ResumeTemplate.user_id.is_(None).desc(), ResumeTemplate.name
    ).all()


@router.post("/templates", response_model=ResumeTemplateResponse, status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
def create_template(
    request: Request,
    template: ResumeTemplateCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    _check_sections(template.layout.get("section_order"))
    db_template = ResumeTemplate(**template.model_dump(), user_id=current_user.id)
    db.add(db_template)
    db.commit()
    db.refresh(db_template)
    return db_template


@router.patch("/templates/{template_id}", response_model=ResumeTemplateResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def update_template(
    request: Request,
    template_id: int,
    template: ResumeTemplateUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Update one of the user's templates. Built-in templates are read-only."""
    db_template = get_owned_or_404(db, ResumeTemplate, template_id, current_user, "Template")
    update_data = template.model_dump(exclude_unset=True)
    if update_data.get("layout"):
        _check_sections(update_data["layout"].get("section_order"))
    for key, value in update_data.items():
        setattr(db_template, key, value)
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
    db_template = get_owned_or_404(db, ResumeTemplate, template_id, current_user, "Template")
    user_query(db, Resume, current_user).filter(Resume.template_id == template_id).update(
        {Resume.template_id: None}, synchronize_session=False
    )
    db.delete(db_template)
    db.commit()
    return {"message": "Template deleted"}


def _personal_copy(db: Session, system_template: ResumeTemplate, user: User) -> ResumeTemplate:
    """The user's unchanged copy of a built-in template, created on first use."""
    layout = system_template.layout or {}
    candidates = user_query(db, ResumeTemplate, user).filter(
        ResumeTemplate.name == system_template.name,
        ResumeTemplate.template_type == system_template.template_type
    ).order_by(ResumeTemplate.id).all()
    for template in candidates:
        if (template.layout or {}) == layout:
            return template

    template = ResumeTemplate(
        user_id=user.id,
        name=system_template.name,
        template_type=system_template.template_type,
        description=system_template.description,
        layout=copy.deepcopy(layout),
    )
    db.add(template)
    return template


@router.post("/templates/{template_id}/default", response_model=ResumeTemplateResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def set_default_template(
    request: Request,
    template_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Make a template the user's default.

    A built-in template is first copied into the user's templates, since
    the default flag is per user. An unchanged copy made earlier is reused.
    """
    db_template = owned_or_system_query(db, ResumeTemplate, current_user).filter(
        ResumeTemplate.id == template_id
    ).first()
    if not db_template:
        raise HTTPException(status_code=404, detail="Template not found")

    if db_template.user_id is None:
        db_template = _personal_copy(db, db_template, current_user)

    user_query(db, ResumeTemplate, current_user).update(
        {ResumeTemplate.is_default: False}, synchronize_session=False
    )
    db_template.is_default = True
    db.commit()
    db.refresh(db_template)
    return db_template


# --- Resumes ---

@router.get("/", response_model=List[ResumeResponse])
def list_resumes(
    archived: bool = False,
    job_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    query = user_query(db, Resume, current_user).filter(Resume.archived == archived)
    if job_id is not None:
        query = query.filter(Resume.job_id == job_id)
    return query.order_by(Resume.is_default.desc(), Resume.updated_at.desc()).all()


@router.post("/", response_model=ResumeResponse, status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
def create_resume(
    request: Request,
    resume: ResumeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Create a resume. The user's first resume becomes their default."""
    _check_template(db, current_user, resume.template_id)
    _check_sections(resume.section_order)
    if resume.job_id is not None:
        get_owned_or_404(db, Job, resume.job_id, current_user, "Job")

    data = resume.model_dump()
    if data["template_id"] is None:
        default_template = user_query(db, ResumeTemplate, current_user).filter(
            ResumeTemplate.is_default.is_(True)
        ).first()
        data["template_id"] = default_template.id if default_template else None

    is_first = user_query(db, Resume, current_user).count() == 0
    db_resume = Resume(**data, user_id=current_user.id, is_default=is_first, source="manual")
    db.add(db_resume)
    db.commit()
    db.refresh(db_resume)
    return db_resume


@router.post("/import", status_code=201)
@limiter.limit(RATE_LIMIT_EXPORT)
async def import_resume(
    request: Request,
    file: UploadFile = File(...),
    save: bool = True,
    name: Optional[str] = Query(None, max_length=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Parse an uploaded PDF, DOCX or TXT resume into sections.

    With save=false the parsed sections are returned without creating a resume.
    """
    data = await file.read()
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File too large (max 5MB)")
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    filename = file.filename or "resume.txt"
    try:
        sections = parse_resume_file(filename, data)
    except ResumeParseError as e:
        raise HTTPException(status_code=400, detail=str(e))

    result = {
        "filename": filename,
        "sections": sections,
        "sections_found": [key for key in RESUME_SECTIONS if sections.get(key)],
        "resume": None,
    }
    if not save:
        return result

    db_resume = Resume(
        user_id=current_user.id,
        name=name or os.path.splitext(os.path.basename(filename))[0] or "Imported resume",
        sections=sections,
        source="import",
        is_default=user_query(db, Resume, current_user).count() == 0,
    )
    db.add(db_resume)
    db.commit()
    db.refresh(db_resume)
    logger.info(f"User {current_user.id} imported resume {db_resume.id} from {filename}")
    result["resume"] = ResumeResponse.model_validate(db_resume)
    return result


@router.get("/{resume_id}", response_model=ResumeResponse)
def get_resume(
    resume_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return get_owned_or_404(db, Resume, resume_id, current_user, "Resume")


@router.patch("/{resume_id}", response_model=ResumeResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def update_resume(
    request: Request,
    resume_id: int,
    resume: ResumeUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Update a resume. Changing sections clears the stored validation."""
    db_resume = get_owned_or_404(db, Resume, resume_id, current_user, "Resume")
    update_data = resume.model_dump(exclude_unset=True)
    _check_template(db, current_user, update_data.get("template_id"))
    _check_sections(update_data.get("section_order"))
    if update_data.get("job_id") is not None:
        get_owned_or_404(db, Job, update_data["job_id"], current_user, "Job")

    if "sections" in update_data:
        db_resume.last_validation = None
        db_resume.validated_at = None
    for key, value in update_data.items():
        setattr(db_resume, key, value)
    db.commit()
    db.refresh(db_resume)
    return db_resume


@router.delete("/{resume_id}")
@limiter.limit(RATE_LIMIT_GENERAL)
def delete_resume(
    request: Request,
    resume_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Delete a resume with its share links; another resume inherits the default flag."""
    db_resume = get_owned_or_404(db, Resume, resume_id, current_user, "Resume")
    was_default = db_resume.is_default
    sharing.remove_document_shares(db, current_user, "resume", resume_id)
    db.delete(db_resume)
    db.flush()

    if was_default:
        successor = user_query(db, Resume, current_user).filter(
            Resume.archived.is_(False)
        ).order_by(Resume.updated_at.desc()).first()
        if successor:
            successor.is_default = True
    db.commit()
    return {"message": "Resume deleted"}


@router.post("/{resume_id}/clone", response_model=ResumeResponse, status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
def clone_resume(
    request: Request,
    resume_id: int,
    name: Optional[str] = Query(None, max_length=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    source = get_owned_or_404(db, Resume, resume_id, current_user, "Resume")
    clone = Resume(
        user_id=current_user.id,
        name=name or f"{source.name} (Copy)",
        template_id=source.template_id,
        job_id=source.job_id,
        sections=copy.deepcopy(source.sections or {}),
        section_order=list(source.section_order) if source.section_order else None,
        source="clone",
    )
    db.add(clone)
    db.commit()
    db.refresh(clone)
    return clone


@router.post("/{resume_id}/default", response_model=ResumeResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def set_default_resume(
    request: Request,
    resume_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_resume = get_owned_or_404(db, Resume, resume_id, current_user, "Resume")
    if db_resume.archived:
        raise HTTPException(status_code=400, detail="An archived resume cannot be the default")
    user_query(db, Resume, current_user).update({Resume.is_default: False}, synchronize_session=False)
    db_resume.is_default = True
    db.commit()
    db.refresh(db_resume)
    return db_resume


@router.post("/{resume_id}/merge", response_model=ResumeResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def merge_resume(
    request: Request,
    resume_id: int,
    data: ResumeMergeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Copy the listed sections from another resume over this one's."""
    if data.source_resume_id == resume_id:
        raise HTTPException(status_code=400, detail="Cannot merge a resume into itself")
    _check_sections(data.sections)
    target = get_owned_or_404(db, Resume, resume_id, current_user, "Resume")
    source = get_owned_or_404(db, Resume, data.source_resume_id, current_user, "Source resume")

    sections = copy.deepcopy(target.sections or {})
    source_sections = source.sections or {}
    merged = []
    for key in data.sections:
        if key in source_sections:
            sections[key] = copy.deepcopy(source_sections[key])
            merged.append(key)
    if not merged:
        raise HTTPException(status_code=400, detail="Source resume has none of the requested sections")

    target.sections = sections
    target.last_validation = None
    target.validated_at = None
    db.commit()
    db.refresh(target)
    logger.info(f"Merged sections {merged} from resume {source.id} into {target.id}")
    return target


@router.post("/{resume_id}/validate")
@limiter.limit(RATE_LIMIT_EXPORT)
def validate_resume_endpoint(
    request: Request,
    resume_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Check contact details, missing information, date formats, tone and
    length. The page count comes from rendering the PDF; when rendering
    fails the length check is skipped. The result is stored on the resume.
    """
    db_resume = get_owned_or_404(db, Resume, resume_id, current_user, "Resume")
    try:
        page_count = count_pages(db_resume, db_resume.template)
    except PDFExportError as e:
        logger.warning(f"Skipping length check for resume {resume_id}: {e}")
        page_count = None

    result = validate_resume(db_resume.sections or {}, page_count)
    db_resume.last_validation = result
    db_resume.validated_at = datetime.utcnow()
    db.commit()
    return result


@router.get("/{resume_id}/export/pdf")
@limiter.limit(RATE_LIMIT_EXPORT)
def export_resume_pdf(
    request: Request,
    resume_id: int,
    template_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Render the resume to PDF with its template, or another template for a preview."""
    db_resume = get_owned_or_404(db, Resume, resume_id, current_user, "Resume")
    template = db_resume.template
    if template_id is not None:
        template = owned_or_system_query(db, ResumeTemplate, current_user).filter(
            ResumeTemplate.id == template_id
        ).first()
        if template is None:
            raise HTTPException(status_code=404, detail="Template not found")

    pdf = render_resume_pdf(db_resume, template)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{_filename(db_resume.name, "pdf")}"'}
    )


@router.get("/{resume_id}/export/txt")
@limiter.limit(RATE_LIMIT_EXPORT)
def export_resume_text(
    request: Request,
    resume_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_resume = get_owned_or_404(db, Resume, resume_id, current_user, "Resume")
    return Response(
        content=resume_to_text(db_resume, db_resume.template),
        media_type="text/plain; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{_filename(db_resume.name, "txt")}"'}
    )


# --- AI tailoring ---

def apply_tailoring(sections: dict, suggestions: dict) -> dict:
    """New sections dict with the AI summary and per-position bullets applied."""
    updated = copy.deepcopy(sections or {})
    if suggestions.get("summary"):
        updated["summary"] = suggestions["summary"]
    experience = updated.get("experience") or []
    for item in suggestions.get("experience") or []:
        index = item.get("index")
        bullets = item.get("responsibilities")
        if isinstance(index, int) and 0 <= index < len(experience) and isinstance(bullets, list) and bullets:
            experience[index] = dict(experience[index], responsibilities=[str(b) for b in bullets])
    if experience:
        updated["experience"] = experience
    return updated


@router.post("/{resume_id}/tailor")
@limiter.limit(RATE_LIMIT_AI)
async def tailor_resume(
    request: Request,
    resume_id: int,
    data: ResumeTailorRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Rewrite the summary and experience bullets for a job with Gemini.

    save_as_new=true stores the result as a new resume linked to the job;
    otherwise only the suggestions are returned.
    """
    db_resume = get_owned_or_404(db, Resume, resume_id, current_user, "Resume")
    job = get_owned_or_404(db, Job, data.job_id, current_user, "Job")
    if not ai_service.is_available():
        raise HTTPException(status_code=503, detail="AI tailoring is not available")

    job_description = "\n".join(filter(None, [job.description, "\n".join(job.requirements or [])]))
    try:
        suggestions = await ai_service.tailor_resume(
            resume_text=resume_to_text(db_resume, db_resume.template),
            job_title=job.title,
            company=job.company,
            job_description=job_description,
        )
    except AIServiceError as e:
        logger.error(f"Resume tailoring failed for resume {resume_id}: {e}")
        raise HTTPException(status_code=503, detail=f"AI tailoring failed: {e}")

    result = {"suggestions": suggestions, "resume": None}
    if data.save_as_new:
        tailored = Resume(
            user_id=current_user.id,
            name=f"{db_resume.name} - {job.company}"[:200],
            template_id=db_resume.template_id,
            job_id=job.id,
            sections=apply_tailoring(db_resume.sections, suggestions),
            section_order=db_resume.section_order,
            source="ai",
        )
        db.add(tailored)
        db.commit()
        db.refresh(tailored)
        result["resume"] = ResumeResponse.model_validate(tailored)
    return result


# --- Sharing ---

@router.post("/{resume_id}/shares", response_model=ShareResponse, status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
def share_resume(
    request: Request,
    resume_id: int,
    data: ShareCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Create a public read-only link, optionally expiring and accepting feedback."""
    get_owned_or_404(db, Resume, resume_id, current_user, "Resume")
    share = sharing.create_share(db, current_user, "resume", resume_id,
                                 data.allow_feedback, data.expires_in_days)
    return sharing.share_payload(share)


@router.get("/{resume_id}/shares", response_model=List[ShareResponse])
def list_resume_shares(
    resume_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    get_owned_or_404(db, Resume, resume_id, current_user, "Resume")
    return [sharing.share_payload(s) for s in sharing.list_shares(db, current_user, "resume", resume_id)]


@router.get("/{resume_id}/feedback", response_model=List[FeedbackResponse])
def list_resume_feedback(
    resume_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Reviewer feedback from all of this resume's share links, newest first."""
    get_owned_or_404(db, Resume, resume_id, current_user, "Resume")
    return sharing.list_feedback(db, current_user, "resume", resume_id)
