"""
ApplyTrack - Resume import.

Turns an uploaded PDF, DOCX or TXT resume into the sections dict stored on
a Resume:

    {"contact": {...}, "summary": str, "experience": [...], "education": [...],
     "skills": [...], "projects": [...], "certifications": [...]}

PDF text is rebuilt line by line from word positions (pdfplumber), sorted
top-to-bottom, so multi-column headers come out in reading order. Lines are
then split into sections by heading keywords.
"""
import io
import logging
import re
from typing import Dict, List, Optional, Tuple

import pdfplumber
from docx import Document

logger = logging.getLogger("applytrack.resumes")

MAX_UPLOAD_BYTES = 5 * 1024 * 1024
SUPPORTED_EXTENSIONS = (".pdf", ".docx", ".txt")

# Words whose `top` differs by less than this many points share a line
LINE_TOLERANCE = 3

SECTION_KEYWORDS = {
    "summary": [
        r"^(?:professional\s+)?summary\b", r"^profile\b",
        r"^(?:career\s+)?objective\b", r"^about\s*(?:me)?\b",
    ],
    "experience": [
        r"^(?:work\s+|professional\s+)?experience\b", r"^employment(?:\s+history)?\b",
        r"^work\s+history\b", r"^career\s+history\b",
    ],
    "education": [
        r"^education\b", r"^academic\s*(?:background)?\b",
    ],
    "skills": [
        r"^(?:technical\s+|core\s+|key\s+)?skills?\b", r"^(?:technical\s+)?competenc(?:ies|y)\b",
        r"^technologies\b", r"^expertise\b",
    ],
    "projects": [
        r"^(?:personal\s+|selected\s+|side\s+)?projects?\b", r"^portfolio\b",
    ],
    "certifications": [
        r"^certifications?\b", r"^licenses?\s*(?:&|and)?\s*certifications?\b",
        r"^credentials?\b",
    ],
}

MONTH = r"(?:Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|Jun(?:e)?|Jul(?:y)?|Aug(?:ust)?|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)"
DATE_RANGE_PATTERNS = [
    re.compile(rf"({MONTH}\.?\s+\d{{4}})\s*(?:-|–|—|to)\s*(Present|Current|Now|{MONTH}\.?\s+\d{{4}})", re.I),
    re.compile(r"(\d{1,2}/\d{4})\s*(?:-|–|—|to)\s*(Present|Current|Now|\d{1,2}/\d{4})", re.I),
    re.compile(r"(\d{4})\s*(?:-|–|—|to)\s*(Present|Current|Now|\d{4})", re.I),
]

EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")
PHONE_RE = re.compile(r"(?:\+?1[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}")
LINKEDIN_RE = re.compile(r"(?:https?://)?(?:www\.)?linkedin\.com/in/[\w-]+/?", re.I)
URL_RE = re.compile(r"https?://[^\s|]+")
LOCATION_RE = re.compile(r"\b([A-Z][a-zA-Z]+(?:\s+[A-Z][a-zA-Z]+)?),\s*([A-Z]{2})\b")
BULLET_RE = re.compile(r"^[\s•\-\*▪◦→●]+")

TITLE_WORDS = (
    "engineer", "developer", "manager", "lead", "architect", "analyst", "designer",
    "intern", "director", "specialist", "consultant", "coordinator", "associate",
)
SCHOOL_WORDS = ("University", "College", "Institute", "School", "Academy")
DEGREE_RE = re.compile(
    r"(Bachelor(?:'s)?(?:\s+of\s+\w+)?|Master(?:'s)?(?:\s+of\s+\w+)?|Ph\.?D\.?|MBA|Associate(?:'s)?"
    r"|B\.?S\.?|B\.?A\.?|M\.?S\.?|M\.?A\.?)(?:\s*(?:in|,)\s*([A-Za-z &]+))?"
)


class ResumeParseError(Exception):
    """Raised when an uploaded file cannot be read as a resume."""
    pass


# --- Text extraction ---

def _lines_from_words(words: List[Dict]) -> List[str]:
    """Group pdfplumber words into lines by vertical position."""
    rows: List[Tuple[float, List[Dict]]] = []
    for word in sorted(words, key=lambda w: (round(w["top"]), w["x0"])):
        if rows and abs(rows[-1][0] - word["top"]) <= LINE_TOLERANCE:
            rows[-1][1].append(word)
        else:
            rows.append((word["top"], [word]))
    return [" ".join(w["text"] for w in sorted(row, key=lambda w: w["x0"])) for _, row in rows]


def extract_pdf_text(data: bytes) -> str:
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            pages = []
            for page in pdf.pages:
                words = page.extract_words(keep_blank_chars=False, use_text_flow=False)
                if words:
                    pages.append("\n".join(_lines_from_words(words)))
            return "\n\n".join(pages)
    except Exception as e:
        raise ResumeParseError(f"Could not read PDF: {e}")


def extract_docx_text(data: bytes) -> str:
    try:
        document = Document(io.BytesIO(data))
    except Exception as e:
        raise ResumeParseError(f"Could not read DOCX: {e}")
    return "\n".join(p.text for p in document.paragraphs)


def extract_text(filename: str, data: bytes) -> str:
    """Raw text of an uploaded file, chosen by extension."""
    if not data:
        raise ResumeParseError("Uploaded file is empty")
    if len(data) > MAX_UPLOAD_BYTES:
        raise ResumeParseError("File too large. Maximum size is 5MB")

    name = (filename or "").lower()
    if name.endswith(".pdf"):
        text = extract_pdf_text(data)
    elif name.endswith(".docx"):
        text = extract_docx_text(data)
    elif name.endswith(".txt"):
        text = data.decode("utf-8", errors="replace")
    else:
        raise ResumeParseError(f"Unsupported file format. Supported: {', '.join(SUPPORTED_EXTENSIONS)}")

    if not text.strip():
        raise ResumeParseError("No text could be extracted from the file")
    return text


# --- Section detection ---

def detect_section(line: str) -> Optional[str]:
    cleaned = line.strip().rstrip(":").lower()
    if not cleaned or len(cleaned) > 40:
        return None
    for section, patterns in SECTION_KEYWORDS.items():
        if any(re.match(p, cleaned) for p in patterns):
            return section
    return None


def split_sections(text: str) -> Dict[str, List[str]]:
    """Lines grouped under their heading; text above the first heading is 'header'."""
    grouped: Dict[str, List[str]] = {"header": []}
    current = "header"
    for line in text.splitlines():
        section = detect_section(line)
        if section:
            current = section
            grouped.setdefault(current, [])
        else:
            grouped[current].append(line)
    return grouped


def parse_date_range(text: str) -> Tuple[Optional[str], Optional[str]]:
    for pattern in DATE_RANGE_PATTERNS:
        match = pattern.search(text)
        if match:
            end = match.group(2).strip()
            if end.lower() in ("present", "current", "now"):
                end = "Present"
            return match.group(1).strip(), end
    return None, None


def _strip_bullet(line: str) -> str:
    return BULLET_RE.sub("", line).strip()


def _is_bullet(line: str) -> bool:
    return bool(BULLET_RE.match(line)) and bool(_strip_bullet(line))


def _blocks(lines: List[str]) -> List[List[str]]:
    """
    Split section lines into entries.

    A non-bullet line starts a new entry when it follows a blank line, or
    when the current entry already has bullets.
    """
    blocks: List[List[str]] = []
    current: List[str] = []
    saw_blank = False
    for raw in lines:
        line = raw.strip()
        if not line:
            saw_blank = True
            continue
        has_bullets = any(_is_bullet(l) for l in current)
        if current and not _is_bullet(line) and (saw_blank or has_bullets):
            blocks.append(current)
            current = []
        current.append(line)
        saw_blank = False
    if current:
        blocks.append(current)
    return blocks


# --- Entry parsing ---

def parse_contact(lines: List[str]) -> Dict:
    text = "\n".join(lines)
    contact = {}
    non_empty = [l.strip() for l in lines if l.strip()]
    if non_empty and not EMAIL_RE.search(non_empty[0]) and not PHONE_RE.search(non_empty[0]):
        contact["name"] = non_empty[0]

    email = EMAIL_RE.search(text)
    if email:
        contact["email"] = email.group(0)
    phone = PHONE_RE.search(text)
    if phone:
        contact["phone"] = phone.group(0).strip()
    linkedin = LINKEDIN_RE.search(text)
    if linkedin:
        contact["linkedin"] = linkedin.group(0)
    for url in URL_RE.findall(text):
        if "linkedin.com" not in url.lower():
            contact["website"] = url
            break
    location = LOCATION_RE.search(text)
    if location:
        contact["location"] = f"{location.group(1)}, {location.group(2)}"
    return contact


def _split_title_company(line: str) -> Tuple[str, str]:
    at = re.match(r"^(.+?)\s+at\s+(.+)$", line, re.I)
    if at:
        return at.group(1).strip(), at.group(2).strip()
    parts = [p.strip() for p in re.split(r"\s+[-–|,]\s+|\s*\|\s*", line) if p.strip()]
    if len(parts) >= 2:
        if any(w in parts[1].lower() for w in TITLE_WORDS) and not any(w in parts[0].lower() for w in TITLE_WORDS):
            return parts[1], parts[0]
        return parts[0], parts[1]
    return line, ""


def parse_experience(lines: List[str]) -> List[Dict]:
    entries = []
    for block in _blocks(lines):
        start, end = None, None
        heading_lines = []
        description = []
        bullets = []
        for line in block:
            if not start:
                start, end = parse_date_range(line)
                if start:
                    remainder = line
                    for pattern in DATE_RANGE_PATTERNS:
                        remainder = pattern.sub("", remainder)
                    remainder = remainder.strip(" |-–,")
                    if remainder:
                        heading_lines.append(remainder)
                    continue
            if _is_bullet(line):
                bullets.append(_strip_bullet(line))
            elif len(heading_lines) < 2 and not bullets and not description:
                heading_lines.append(line)
            else:
                description.append(line)

        if not heading_lines:
            continue
        title, company = _split_title_company(heading_lines[0])
        if not company and len(heading_lines) > 1:
            company = heading_lines[1]
        entry = {
            "title": title,
            "company": company,
            "start_date": start,
            "end_date": end,
            "description": " ".join(description) or None,
            "responsibilities": bullets[:10],
        }
        location = LOCATION_RE.search(" ".join(heading_lines))
        if location:
            entry["location"] = f"{location.group(1)}, {location.group(2)}"
        entries.append(entry)
    return entries


def parse_education(lines: List[str]) -> List[Dict]:
    entries = []
    for block in _blocks(lines):
        text = " ".join(block)
        institution = next(
            (re.split(r"\s*[,|]\s*|\s+-\s+", l)[0] for l in block if any(w in l for w in SCHOOL_WORDS)),
            block[0],
        )
        entry = {"institution": institution.strip()}
        degree = DEGREE_RE.search(text)
        if degree:
            entry["degree"] = degree.group(1).strip()
            if degree.group(2):
                entry["field"] = degree.group(2).strip()
        start, end = parse_date_range(text)
        if start:
            entry["start_date"], entry["end_date"] = start, end
        else:
            year = re.search(r"\b(19|20)\d{2}\b", text)
            if year:
                entry["end_date"] = year.group(0)
        gpa = re.search(r"GPA[:\s]*(\d+(?:\.\d+)?)", text, re.I)
        if gpa:
            entry["gpa"] = gpa.group(1)
        entries.append(entry)
    return entries


def parse_skills(lines: List[str]) -> List[str]:
    skills: List[str] = []
    seen = set()
    for line in lines:
        # "Languages: Python, Go" - drop the category label
        line = re.sub(r"^[^:]{1,30}:\s*", "", _strip_bullet(line))
        for part in re.split(r"[,;|•·]+", line):
            part = part.strip()
            if 1 < len(part) < 50 and part.lower() not in seen:
                seen.add(part.lower())
                skills.append(part)
    return skills[:50]


def parse_projects(lines: List[str]) -> List[Dict]:
    projects = []
    for block in _blocks(lines):
        project = {"name": _strip_bullet(block[0]), "description": None, "technologies": []}
        description = []
        for line in block[1:]:
            tech = re.match(r"^(?:tech(?:nologies)?|built with|stack)\s*:\s*(.+)$", _strip_bullet(line), re.I)
            if tech:
                project["technologies"] = [t.strip() for t in re.split(r"[,;|]+", tech.group(1)) if t.strip()]
                continue
            url = URL_RE.search(line)
            if url:
                project["url"] = url.group(0)
                line = line.replace(url.group(0), "")
            if _strip_bullet(line):
                description.append(_strip_bullet(line))
        project["description"] = " ".join(description) or None
        projects.append(project)
    return projects[:10]


def parse_certifications(lines: List[str]) -> List[Dict]:
    certs = []
    for line in lines:
        line = _strip_bullet(line)
        if len(line) <= 3:
            continue
        parts = [p.strip() for p in re.split(r"\s+[-–|]\s+|,\s*", line) if p.strip()]
        cert = {"name": parts[0]}
        if len(parts) > 1:
            cert["issuer"] = parts[1]
        year = re.search(r"\b(19|20)\d{2}\b", line)
        if year:
            cert["date"] = year.group(0)
        certs.append(cert)
    return certs[:20]


def parse_resume_text(text: str) -> Dict:
    """Structured sections from raw resume text."""
    grouped = split_sections(text)
    sections = {"contact": parse_contact(grouped.get("header", []))}

    if "summary" in grouped:
        sections["summary"] = " ".join(" ".join(grouped["summary"]).split())[:2000]
    if "experience" in grouped:
        sections["experience"] = parse_experience(grouped["experience"])
    if "education" in grouped:
        sections["education"] = parse_education(grouped["education"])
    if "skills" in grouped:
        sections["skills"] = parse_skills(grouped["skills"])
    if "projects" in grouped:
        sections["projects"] = parse_projects(grouped["projects"])
    if "certifications" in grouped:
        sections["certifications"] = parse_certifications(grouped["certifications"])
    return sections


def parse_resume_file(filename: str, data: bytes) -> Dict:
    """Parse an uploaded resume. Raises ResumeParseError on unreadable input."""
    text = extract_text(filename, data)
    sections = parse_resume_text(text)
    logger.info(
        f"Parsed resume '{filename}': "
        f"{len(sections.get('experience', []))} experience, "
        f"{len(sections.get('education', []))} education, "
        f"{len(sections.get('skills', []))} skills"
    )
    return sections
