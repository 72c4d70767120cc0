"""
ApplyTrack - Resume validation.

Rule-based checks over a resume's structured sections: contact details,
page length, basic grammar, professional tone, format consistency and
missing information. Every issue is a dict:

    {"category", "section", "field", "message", "severity"}

with severity one of "error", "warning", "info". A resume is valid when it
has no errors. The score starts at 100 and loses points per issue.
"""
import re
from datetime import datetime
from typing import Dict, List, Optional

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

SEVERITY_PENALTY = {'error': 10, 'warning': 3, 'info': 1}

GRAMMAR_CHECKS = [
    (re.compile(r'\b(their|there|they\'re)\b', re.I),
     lambda m: f'Check usage of "{m}" - commonly confused word', 'warning'),
    (re.compile(r'\b(your|you\'re)\b', re.I),
     lambda m: f'Check usage of "{m}" - commonly confused word', 'warning'),
    (re.compile(r'\b(its|it\'s)\b', re.I),
     lambda m: f'Check usage of "{m}" - commonly confused word', 'warning'),
    (re.compile(r'[.!?]\s+[a-z]'),
     lambda m: 'Sentence should start with a capital letter', 'error'),
    (re.compile(r'\s{2,}'),
     lambda m: 'Multiple consecutive spaces', 'warning'),
    (re.compile(r'\b(alot|skillfull)\b', re.I),
     lambda m: f'Possible spelling error: "{m}"', 'error'),
]

INFORMAL_PHRASES = [
    (r'\bkinda\b', 'somewhat', 'Too informal'),
    (r'\bgonna\b', 'going to', 'Too informal'),
    (r'\bwanna\b', 'want to', 'Too informal'),
    (r'\bgotta\b', 'have to', 'Too informal'),
    (r'\blots of\b', 'many', 'Too informal'),
    (r'\bstuff\b', 'items/things', 'Too vague'),
    (r'\bbunch of\b', 'several', 'Too informal'),
    (r'\bguys\b', 'team members', 'Too informal'),
]

FIRST_PERSON = re.compile(r'\b(I|me|my|mine|we|us|our|ours)\b', re.I)

WEAK_VERBS = [
    (r'\bhelped\b', 'assisted, supported, facilitated'),
    (r'\bdid\b', 'executed, performed, completed'),
    (r'\bwas responsible for\b', 'managed, led, oversaw'),
    (r'\bworked on\b', 'developed, created, implemented'),
]

DATE_FORMATS = [
    (re.compile(r'^[A-Z][a-z]{2}\s\d{4}$'), 'Mon YYYY'),
    (re.compile(r'^[A-Z][a-z]{3,8}\s\d{4}$'), 'Month YYYY'),
    (re.compile(r'^\d{1,2}/\d{4}$'), 'MM/YYYY'),
    (re.compile(r'^\d{4}-\d{2}$'), 'YYYY-MM'),
    (re.compile(r'^\d{4}$'), 'YYYY'),
]

PRESENT_WORDS = {'present', 'current'}


def _issue(category: str, message: str, severity: str,
           section: Optional[str] = None, field: Optional[str] = None) -> Dict:
    return {
        'category': category,
        'section': section,
        'field': field,
        'message': message,
        'severity': severity,
    }


# --- Contact details ---

def validate_email(email: Optional[str]) -> Optional[str]:
    """Error message for a bad email, or None when it is fine."""
    if not email or not email.strip():
        return "Email is required"
    if not EMAIL_PATTERN.match(email.strip()):
        return "Invalid email format"
    return None


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """Error message for a bad US phone number, or None when it is fine."""
    if not phone or not phone.strip():
        return "Phone number is required"
    digits = re.sub(r'\D', '', phone)
    if len(digits) == 11 and digits.startswith('1'):
        digits = digits[1:]
    if len(digits) != 10:
        return "Phone number must contain exactly 10 digits"
    if digits[0] in '01':
        return "Invalid area code - must start with 2-9"
    return None


def check_length(page_count: Optional[int]) -> Optional[Dict]:
    if page_count is None:
        return None
    if page_count < 1:
        return _issue('length', "Resume appears to be empty", 'error', field='page_count')
    if page_count <= 2:
        return _issue('length', f"Resume is {page_count} page(s) (optimal)", 'info', field='page_count')
    return _issue(
        'length',
        f"Resume is {page_count} pages. Consider reducing to 1-2 pages for better readability.",
        'warning', field='page_count',
    )


# --- Text checks ---

def check_grammar(text: str, section: Optional[str] = None, field: Optional[str] = None) -> List[Dict]:
    issues = []
    for pattern, message, severity in GRAMMAR_CHECKS:
        for match in pattern.finditer(text):
            issues.append(_issue('grammar', message(match.group(0)), severity, section, field))
    return issues


def check_tone(text: str, section: Optional[str] = None, field: Optional[str] = None) -> List[Dict]:
    issues = []
    for phrase, replacement, reason in INFORMAL_PHRASES:
        for match in re.finditer(phrase, text, re.I):
            issues.append(_issue(
                'tone', f'{reason}: "{match.group(0)}" - Consider using "{replacement}"',
                'warning', section, field,
            ))

    pronouns = FIRST_PERSON.findall(text)
    if pronouns:
        issues.append(_issue(
            'tone', f"Avoid first-person pronouns in resumes. Found: {', '.join(pronouns[:3])}",
            'warning', section, field,
        ))

    for verb, replacement in WEAK_VERBS:
        match = re.search(verb, text, re.I)
        if match:
            issues.append(_issue(
                'tone', f'Consider stronger action verb. Instead of "{match.group(0)}", use: {replacement}',
                'info', section, field,
            ))
    return issues


def detect_date_format(value: Optional[str]) -> str:
    if not value:
        return 'none'
    value = value.strip()
    if value.lower() in PRESENT_WORDS:
        return 'present'
    for pattern, name in DATE_FORMATS:
        if pattern.match(value):
            return name
    return 'other'


def _date_formats(entries: List[Dict]) -> set:
    formats = set()
    for entry in entries:
        for key in ('start_date', 'end_date'):
            value = entry.get(key)
            if value and str(value).strip().lower() not in PRESENT_WORDS:
                formats.add(detect_date_format(str(value)))
    return formats


def check_format_consistency(sections: Dict) -> List[Dict]:
    issues = []
    experience = sections.get('experience') or []
    education = sections.get('education') or []

    formats = _date_formats(experience)
    if len(formats) > 1:
        issue = _issue(
            'format_consistency',
            'Inconsistent date formats detected. Use consistent format throughout (e.g., "Jan 2020" or "01/2020")',
            'warning', 'experience',
        )
        issue['details'] = f"Found formats: {', '.join(sorted(formats))}"
        issues.append(issue)

    if len(_date_formats(education)) > 1:
        issues.append(_issue(
            'format_consistency',
            "Inconsistent date formats in education. Use consistent format throughout",
            'warning', 'education',
        ))

    for idx, entry in enumerate(experience):
        bullets = [b.strip() for b in entry.get('responsibilities') or [] if b and b.strip()]
        with_period = sum(1 for b in bullets if b.endswith('.'))
        if 0 < with_period < len(bullets):
            issues.append(_issue(
                'format_consistency',
                "Inconsistent punctuation in bullet points. Either use periods on all bullets or none",
                'warning', 'experience', f"experience_{idx}",
            ))
    return issues


def check_missing_info(sections: Dict) -> List[Dict]:
    issues = []
    contact = sections.get('contact') or {}

    if not (contact.get('name') or '').strip():
        issues.append(_issue('missing_info', "Name is missing from contact information",
                             'error', 'contact', 'name'))
    if not (contact.get('location') or '').strip():
        issues.append(_issue('missing_info', "Location is recommended to help recruiters find local candidates",
                             'warning', 'contact', 'location'))
    if not (contact.get('linkedin') or '').strip():
        issues.append(_issue('missing_info', "LinkedIn profile URL is recommended",
                             'info', 'contact', 'linkedin'))

    summary = (sections.get('summary') or '').strip()
    if not summary:
        issues.append(_issue('missing_info', "Professional summary is recommended to highlight your value",
                             'warning', 'summary'))
    elif len(summary) < 100:
        issues.append(_issue('missing_info', "Summary is too brief. Aim for 2-3 sentences (100+ characters)",
                             'info', 'summary'))

    experience = sections.get('experience') or []
    if not experience:
        issues.append(_issue('missing_info', "No work experience listed. Add relevant positions or internships",
                             'error', 'experience'))
    for idx, entry in enumerate(experience):
        bullets = [b for b in entry.get('responsibilities') or [] if b and b.strip()]
        label = entry.get('title') or f"#{idx + 1}"
        if not (entry.get('description') or '').strip() and not bullets:
            issues.append(_issue(
                'missing_info', f"Experience entry {label} is missing description or responsibilities",
                'warning', 'experience', f"experience_{idx}",
            ))
        elif bullets and len(bullets) < 2:
            issues.append(_issue(
                'missing_info', f"Experience entry {label} should have at least 2-3 bullet points",
                'info', 'experience', f"experience_{idx}",
            ))

    if not sections.get('education'):
        issues.append(_issue('missing_info', "No education listed. Add your degree or relevant training",
                             'warning', 'education'))

    skills = sections.get('skills') or []
    if not skills:
        issues.append(_issue('missing_info', "No skills listed. Add technical and soft skills",
                             'warning', 'skills'))
    elif len(skills) < 5:
        issues.append(_issue('missing_info', "Consider adding more skills (aim for 8-12 relevant skills)",
                             'info', 'skills'))
    return issues


def collect_text(sections: Dict) -> List[Dict]:
    """Free-text fragments worth proofreading, tagged with section and field."""
    texts = []
    if sections.get('summary'):
        texts.append({'section': 'summary', 'field': 'summary', 'text': sections['summary']})
    for idx, entry in enumerate(sections.get('experience') or []):
        if entry.get('description'):
            texts.append({'section': 'experience', 'field': f"experience_{idx}_description",
                          'text': entry['description']})
        for r_idx, bullet in enumerate(entry.get('responsibilities') or []):
            if bullet:
                texts.append({'section': 'experience', 'field': f"experience_{idx}_resp_{r_idx}",
                              'text': bullet})
    for idx, project in enumerate(sections.get('projects') or []):
        if project.get('description'):
            texts.append({'section': 'projects', 'field': f"project_{idx}_description",
                          'text': project['description']})
    return texts


def validate_resume(sections: Optional[Dict], page_count: Optional[int] = None) -> Dict:
    """
    Run every check over a resume's sections.

    Args:
        sections: Resume sections dict (contact, summary, experience, ...)
        page_count: Rendered page count, when the caller has exported a PDF

    Returns:
        Dict with is_valid, score, errors, warnings, info, summary, validated_at
    """
    sections = sections or {}
    contact = sections.get('contact') or {}
    issues: List[Dict] = []

    email_error = validate_email(contact.get('email'))
    if email_error:
        issues.append(_issue('contact_info', email_error, 'error', 'contact', 'email'))
    phone_error = validate_phone(contact.get('phone'))
    if phone_error:
        issues.append(_issue('contact_info', phone_error, 'error', 'contact', 'phone'))

    length_issue = check_length(page_count)
    if length_issue:
        issues.append(length_issue)

    fragments = collect_text(sections)
    for item in fragments:
        issues.extend(check_grammar(item['text'], item['section'], item['field']))
    issues.extend(check_missing_info(sections))
    issues.extend(check_format_consistency(sections))
    for item in fragments:
        issues.extend(check_tone(item['text'], item['section'], item['field']))

    errors = [i for i in issues if i['severity'] == 'error']
    warnings = [i for i in issues if i['severity'] == 'warning']
    info = [i for i in issues if i['severity'] == 'info']

    penalty = sum(SEVERITY_PENALTY[i['severity']] for i in issues
                  if not (i['category'] == 'length' and i['severity'] == 'info'))

    def count(category):
        return sum(1 for i in issues if i['category'] == category)

    return {
        'is_valid': not errors,
        'score': max(0, 100 - penalty),
        'errors': errors,
        'warnings': warnings,
        'info': info,
        'page_count': page_count,
        'summary': {
            'total_errors': len(errors),
            'total_warnings': len(warnings),
            'total_info': len(info),
            'contact_info_valid': not email_error and not phone_error,
            'grammar_issues': count('grammar'),
            'missing_info_count': count('missing_info'),
            'format_issues_count': count('format_consistency'),
            'tone_issues_count': count('tone'),
        },
        'validated_at': datetime.utcnow().isoformat(),
    }
