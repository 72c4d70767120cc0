"""
ApplyTrack - PDF and plain-text export.

Renders resumes and cover letters with reportlab. Resume rendering follows
the template layout: section order, primary/text colors and base font.
"""
import html
import io
import logging
from typing import Dict, List, Optional, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import HRFlowable, Paragraph, SimpleDocTemplate, Spacer

logger = logging.getLogger("applytrack.export")

DEFAULT_SECTION_ORDER = ["summary", "experience", "education", "skills", "projects", "certifications"]

SECTION_TITLES = {
    "summary": "Professional Summary",
    "experience": "Experience",
    "education": "Education",
    "skills": "Skills",
    "projects": "Projects",
    "certifications": "Certifications",
}

DEFAULT_LAYOUT = {
    "primary_color": "#1F3A5F",
    "text_color": "#222222",
    "font": "Helvetica",
}

# reportlab's built-in fonts and their bold variants
BOLD_FONTS = {
    "Helvetica": "Helvetica-Bold",
    "Times-Roman": "Times-Bold",
    "Courier": "Courier-Bold",
}


class PDFExportError(Exception):
    """Raised when a document cannot be rendered to PDF."""
    pass


def _color(value: Optional[str], fallback: str) -> colors.Color:
    try:
        return colors.HexColor(value or fallback)
    except (ValueError, TypeError):
        return colors.HexColor(fallback)


def _styles(layout: Dict) -> Dict[str, ParagraphStyle]:
    sample = getSampleStyleSheet()
    font = layout.get("font") if layout.get("font") in BOLD_FONTS else DEFAULT_LAYOUT["font"]
    bold = BOLD_FONTS[font]
    primary = _color(layout.get("primary_color"), DEFAULT_LAYOUT["primary_color"])
    text = _color(layout.get("text_color"), DEFAULT_LAYOUT["text_color"])

    return {
        "name": ParagraphStyle("name", parent=sample["Title"], fontName=bold, fontSize=22,
                               leading=26, textColor=primary, spaceAfter=2),
        "contact": ParagraphStyle("contact", parent=sample["Normal"], fontName=font, fontSize=9.5,
                                  leading=12, textColor=text, alignment=1),
        "section": ParagraphStyle("section", parent=sample["Heading3"], fontName=bold, fontSize=12,
                                  leading=15, textColor=primary, spaceBefore=8, spaceAfter=3),
        "entry": ParagraphStyle("entry", parent=sample["Normal"], fontName=bold, fontSize=10.5,
                                leading=13.5, textColor=text, spaceBefore=3),
        "body": ParagraphStyle("body", parent=sample["Normal"], fontName=font, fontSize=10,
                               leading=14, textColor=text, spaceAfter=3),
        "bullet": ParagraphStyle("bullet", parent=sample["Normal"], fontName=font, fontSize=10,
                                 leading=14, textColor=text, leftIndent=14, bulletIndent=3, spaceAfter=2),
        "_primary": primary,
    }


def _esc(value) -> str:
    return html.escape(str(value)) if value is not None else ""


def _date_range(entry: Dict) -> str:
    start = entry.get("start_date") or ""
    end = entry.get("end_date") or ("Present" if start else "")
    return f"{start} - {end}" if start else str(end)


def _contact_line(contact: Dict) -> str:
    parts = [contact.get(k) for k in ("email", "phone", "location", "linkedin", "website")]
    return "  |  ".join(p for p in parts if p)


def _skill_names(skills) -> List[str]:
    names = []
    for skill in skills or []:
        if isinstance(skill, dict):
            if skill.get("name"):
                names.append(skill["name"])
        elif skill:
            names.append(str(skill))
    return names


def _section_flowables(key: str, value, styles: Dict) -> list:
    story = []
    if key == "summary" and value:
        story.append(Paragraph(_esc(value), styles["body"]))
    elif key == "experience":
        for entry in value or []:
            heading = " - ".join(p for p in (entry.get("title"), entry.get("company")) if p)
            dates = _date_range(entry)
            if dates:
                heading = f"{heading} ({dates})" if heading else dates
            story.append(Paragraph(_esc(heading), styles["entry"]))
            if entry.get("description"):
                story.append(Paragraph(_esc(entry["description"]), styles["body"]))
            for bullet in entry.get("responsibilities") or []:
                if bullet:
                    story.append(Paragraph(_esc(bullet), styles["bullet"], bulletText="•"))
    elif key == "education":
        for entry in value or []:
            degree = " in ".join(p for p in (entry.get("degree"), entry.get("field")) if p)
            heading = " - ".join(p for p in (degree, entry.get("institution")) if p)
            story.append(Paragraph(_esc(heading), styles["entry"]))
            details = []
            if entry.get("start_date") or entry.get("end_date"):
                details.append(_date_range(entry))
            if entry.get("gpa"):
                details.append(f"GPA: {entry['gpa']}")
            if details:
                story.append(Paragraph(_esc(", ".join(details)), styles["body"]))
    elif key == "skills":
        names = _skill_names(value)
        if names:
            story.append(Paragraph(_esc(", ".join(names)), styles["body"]))
    elif key == "projects":
        for project in value or []:
            story.append(Paragraph(_esc(project.get("name") or "Project"), styles["entry"]))
            if project.get("description"):
                story.append(Paragraph(_esc(project["description"]), styles["body"]))
            tech = project.get("technologies")
            if tech:
                tech = ", ".join(tech) if isinstance(tech, list) else tech
                story.append(Paragraph(_esc(f"Technologies: {tech}"), styles["body"]))
    elif key == "certifications":
        for cert in value or []:
            line = " - ".join(str(p) for p in (cert.get("name"), cert.get("issuer"), cert.get("date")) if p)
            story.append(Paragraph(_esc(line), styles["bullet"], bulletText="•"))
    return story


def section_order(resume, template=None) -> List[str]:
    """Resume order wins over template order; unknown keys are dropped."""
    layout = (template.layout or {}) if template is not None else {}
    order = resume.section_order or layout.get("section_order") or DEFAULT_SECTION_ORDER
    return [key for key in order if key in SECTION_TITLES]


def _render(build_story, title: str) -> Tuple[bytes, int]:
    output = io.BytesIO()
    doc = SimpleDocTemplate(
        output,
        pagesize=LETTER,
        leftMargin=50,
        rightMargin=50,
        topMargin=45,
        bottomMargin=40,
        title=title,
        author="ApplyTrack",
    )
    try:
        doc.build(build_story(doc))
    except Exception as e:
        logger.error(f"PDF render failed for '{title}': {e}")
        raise PDFExportError(f"Could not render PDF: {e}")
    return output.getvalue(), doc.page


def render_resume(resume, template=None) -> Tuple[bytes, int]:
    """Render a resume; returns (pdf bytes, page count)."""
    layout = {**DEFAULT_LAYOUT, **((template.layout or {}) if template is not None else {})}
    styles = _styles(layout)
    sections = resume.sections or {}
    contact = sections.get("contact") or {}

    def story(doc):
        items = [Paragraph(_esc(contact.get("name") or resume.name), styles["name"])]
        line = _contact_line(contact)
        if line:
            items.append(Paragraph(_esc(line), styles["contact"]))
        items.append(HRFlowable(width="100%", color=styles["_primary"], thickness=1,
                                spaceBefore=4, spaceAfter=6))
        for key in section_order(resume, template):
            body = _section_flowables(key, sections.get(key), styles)
            if not body:
                continue
            items.append(Paragraph(SECTION_TITLES[key], styles["section"]))
            items.extend(body)
            items.append(Spacer(1, 4))
        return items

    return _render(story, f"{resume.name} Resume")


def render_resume_pdf(resume, template=None) -> bytes:
    return render_resume(resume, template)[0]


def count_pages(resume, template=None) -> int:
    return render_resume(resume, template)[1]


def render_cover_letter_pdf(cover_letter, sender_name: Optional[str] = None) -> bytes:
    styles = _styles(DEFAULT_LAYOUT)

    def story(doc):
        items = []
        if sender_name:
            items.append(Paragraph(_esc(sender_name), styles["entry"]))
            items.append(Spacer(1, 10))
        for paragraph in (cover_letter.content or "").split("\n\n"):
            paragraph = paragraph.strip()
            if paragraph:
                items.append(Paragraph(_esc(paragraph).replace("\n", "<br/>"), styles["body"]))
                items.append(Spacer(1, 6))
        return items

    return _render(story, cover_letter.name)[0]


# --- Plain text ---

def resume_to_text(resume, template=None) -> str:
    """Plain-text rendering in the same section order as the PDF."""
    sections = resume.sections or {}
    contact = sections.get("contact") or {}
    lines = [contact.get("name") or resume.name]
    contact_line = _contact_line(contact)
    if contact_line:
        lines.append(contact_line.replace("  |  ", " | "))

    for key in section_order(resume, template):
        value = sections.get(key)
        if not value:
            continue
        lines.extend(["", SECTION_TITLES[key].upper(), "-" * len(SECTION_TITLES[key])])
        if key == "summary":
            lines.append(str(value))
        elif key == "skills":
            lines.append(", ".join(_skill_names(value)))
        elif key == "experience":
            for entry in value:
                heading = " - ".join(p for p in (entry.get("title"), entry.get("company")) if p)
                lines.append(f"{heading} ({_date_range(entry)})" if entry.get("start_date") else heading)
                if entry.get("description"):
                    lines.append(entry["description"])
                lines.extend(f"  - {b}" for b in entry.get("responsibilities") or [] if b)
        elif key == "education":
            for entry in value:
                degree = " in ".join(p for p in (entry.get("degree"), entry.get("field")) if p)
                lines.append(" - ".join(p for p in (degree, entry.get("institution")) if p))
        elif key == "projects":
            for project in value:
                lines.append(project.get("name") or "Project")
                if project.get("description"):
                    lines.append(f"  {project['description']}")
        elif key == "certifications":
            for cert in value:
                lines.append(" - ".join(str(p) for p in (cert.get("name"), cert.get("issuer")) if p))
    return "\n".join(lines).strip() + "\n"


# Built-in resume templates seeded at startup (user_id NULL)
SYSTEM_RESUME_TEMPLATES = [
    {
        "name": "Classic",
        "template_type": "chronological",
        "description": "Experience first, navy headings, Times body.",
        "layout": {"section_order": DEFAULT_SECTION_ORDER, "primary_color": "#1F3A5F",
                   "text_color": "#222222", "font": "Times-Roman"},
    },
    {
        "name": "Modern",
        "template_type": "hybrid",
        "description": "Summary and skills up top, teal accents.",
        "layout": {"section_order": ["summary", "skills", "experience", "projects", "education", "certifications"],
                   "primary_color": "#0F766E", "text_color": "#1F2937", "font": "Helvetica"},
    },
    {
        "name": "Skills First",
        "template_type": "functional",
        "description": "Skills and projects ahead of work history, for career changers.",
        "layout": {"section_order": ["summary", "skills", "projects", "certifications", "experience", "education"],
                   "primary_color": "#7C2D12", "text_color": "#222222", "font": "Helvetica"},
    },
]
