"""
ApplyTrack - Job match scoring.

Scores how well the user's profile fits a job in four categories, each
0-100, combined with weights (default skills 40, experience 30,
education 15, additional 15; weights are normalized so any positive
numbers work).

    skills      required skill ratio * 70 + preferred ratio * 30,
                minus 5 per skill held only at beginner level
    experience  50 base, +30 for years, up to +40 for relevant roles,
                +15 industry, +15 seniority
    education   40 with no education on file; otherwise 50 base,
                +30 degree (or -20 when a required degree is missing),
                +30 field of study, up to +20 for GPA
    additional  50 base, +25 location, +25 work mode, +20 salary,
                certifications and projects up to +15 each
"""
from datetime import date, datetime
from typing import Dict, List, Optional
import re
from urllib.parse import quote

from .skill_gap import extract_job_skills, level_score, LEVEL_SCORES, LEARNING_PLATFORMS

DEFAULT_WEIGHTS = {"skills": 40, "experience": 30, "education": 15, "additional": 15}

SENIORITY_LEVELS = ["entry", "mid", "senior", "lead", "executive"]

DEGREE_LEVELS = {"none": 0, "high_school": 1, "associate": 2, "bachelor": 3, "master": 4, "phd": 5}

FIELDS_OF_STUDY = [
    "computer science", "engineering", "software", "information technology",
    "mathematics", "physics", "business", "finance", "marketing", "healthcare",
    "education", "design", "data science", "artificial intelligence",
]

STOP_WORDS = {"the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with"}

YEARS_PATTERNS = [
    re.compile(r"(\d+)\+?\s*years?\s*(?:of\s+)?experience", re.IGNORECASE),
    re.compile(r"(\d+)\+?\s*years?\s*(?:in|with)", re.IGNORECASE),
    re.compile(r"minimum\s*(?:of\s+)?(\d+)\s*years?", re.IGNORECASE),
]


# --- Helpers ---

def _job_text(job) -> str:
    return f"{job.description or ''} {' '.join(job.requirements or [])}".lower()


def _parse_date(value) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt, width in (("%Y-%m-%d", 10), ("%Y-%m", 7), ("%Y", 4)):
        try:
            return datetime.strptime(text[:width], fmt).date()
        except ValueError:
            continue
    return None


def _months_between(start: Optional[date], end: Optional[date]) -> int:
    if not start:
        return 0
    end = end or datetime.utcnow().date()
    return max(0, (end.year - start.year) * 12 + (end.month - start.month))


def _position_months(position: Dict) -> int:
    end = None if position.get("current") else _parse_date(position.get("end_date"))
    return _months_between(_parse_date(position.get("start_date")), end)


def total_years(employment: List[Dict]) -> float:
    months = sum(_position_months(p) for p in employment)
    return round(months / 12, 1)


def years_required(job) -> int:
    text = _job_text(job)
    for pattern in YEARS_PATTERNS:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return 0


def _keywords(text: str) -> List[str]:
    seen = []
    for word in text.lower().split():
        if len(word) > 2 and word not in STOP_WORDS and word not in seen:
            seen.append(word)
    return seen


def relevant_positions(job, employment: List[Dict]) -> List[Dict]:
    """Past positions ranked by title keyword overlap; short unrelated stints are dropped."""
    keywords = _keywords(job.title or "")
    positions = []
    for position in employment:
        title = (position.get("title") or "").lower()
        description = (position.get("description") or "").lower()
        score = sum(2 for k in keywords if k in title) + sum(1 for k in keywords if k in description)
        relevance = "high" if score >= 4 else "medium" if score >= 2 else "low"
        months = _position_months(position)
        if relevance != "low" or months >= 6:
            positions.append({
                "title": position.get("title"),
                "company": position.get("company"),
                "duration_months": months,
                "relevance": relevance,
            })
    return positions


def seniority_from_title(title: str, years: float) -> str:
    title = (title or "").lower()
    if any(k in title for k in ("chief", "vp", "director")):
        return "executive"
    if any(k in title for k in ("lead", "principal", "architect")):
        return "lead"
    if "senior" in title or "sr." in title:
        return "senior"
    if any(k in title for k in ("junior", "jr.", "entry")):
        return "entry"
    if years >= 8:
        return "senior"
    if years >= 4:
        return "mid"
    return "entry"


def user_seniority(employment: List[Dict], years: float) -> str:
    recent = sorted(
        employment,
        key=lambda p: _parse_date(p.get("start_date")) or date.min,
        reverse=True
    )[:2]
    for position in recent:
        level = seniority_from_title(position.get("title"), 0)
        if level in ("executive", "lead", "senior"):
            return level
    return seniority_from_title("", years)


def degree_level(text: str) -> int:
    text = (text or "").lower()
    if re.search(r"\b(phd|ph\.d|doctorate)\b", text):
        return DEGREE_LEVELS["phd"]
    if re.search(r"\b(master'?s?|mba|m\.s\.)\b", text):
        return DEGREE_LEVELS["master"]
    if re.search(r"\b(bachelor'?s?|b\.s\.|b\.a\.|bs|ba)\b", text):
        return DEGREE_LEVELS["bachelor"]
    if re.search(r"\bassociate'?s?\b", text):
        return DEGREE_LEVELS["associate"]
    return DEGREE_LEVELS["none"]


def required_field(job) -> Optional[str]:
    text = _job_text(job)
    for field in FIELDS_OF_STUDY:
        if field in text:
            return field
    return None


# --- Category scores ---

def score_skills(job, profile) -> Dict:
    job_skills = extract_job_skills(job.requirements, job.description)
    if not job_skills:
        return {
            "score": 0,
            "details": {"matched": [], "missing": [], "weak": [], "matched_count": 0,
                        "total_required": 0, "note": "No recognizable skills in the job posting"},
        }

    user_map = {s["name"].lower(): s for s in (profile.skills or []) if s.get("name")}
    matched, missing, weak = [], [], []
    for skill in job_skills:
        user_skill = user_map.get(skill["name"].lower())
        if user_skill is None:
            missing.append(skill["name"])
        elif level_score(user_skill.get("level")) < LEVEL_SCORES["intermediate"]:
            weak.append({"name": skill["name"], "user_level": user_skill.get("level")})
        else:
            matched.append(skill["name"])

    required = [s["name"] for s in job_skills if s["importance"] == "required"]
    preferred = [s["name"] for s in job_skills if s["importance"] != "required"]
    required_score = (sum(1 for m in matched if m in required) / len(required) * 70) if required else 70
    preferred_score = (sum(1 for m in matched if m in preferred) / len(preferred) * 30) if preferred else 30
    score = round(required_score + preferred_score - len(weak) * 5)

    return {
        "score": max(0, min(100, score)),
        "details": {
            "matched": matched,
            "missing": missing,
            "weak": weak,
            "matched_count": len(matched),
            "total_required": len(job_skills),
        },
    }


def score_experience(job, profile) -> Dict:
    employment = profile.employment or []
    if not employment:
        return {
            "score": 0,
            "details": {"years_experience": 0, "years_required": years_required(job),
                        "relevant_positions": [], "industry_match": False, "seniority_match": False},
        }

    years = total_years(employment)
    if profile.years_experience and profile.years_experience > years:
        years = profile.years_experience
    needed = years_required(job)
    positions = relevant_positions(job, employment)

    job_industry = (job.industry or "").lower()
    industry_match = bool(job_industry) and any(
        (p.get("industry") or "").lower() == job_industry
        or (p.get("company") or "").lower() == (job.company or "").lower()
        for p in employment
    )
    job_level = SENIORITY_LEVELS.index(seniority_from_title(job.title, years))
    seniority_match = SENIORITY_LEVELS.index(user_seniority(employment, years)) >= job_level

    score = 50
    if needed == 0 or years >= needed:
        score += 30
    else:
        score += round(30 * min(1, years / needed))
    relevance_points = {"high": 15, "medium": 10, "low": 5}
    score += min(40, sum(relevance_points[p["relevance"]] for p in positions))
    if industry_match:
        score += 15
    if seniority_match:
        score += 15

    return {
        "score": min(100, score),
        "details": {
            "years_experience": years,
            "years_required": needed,
            "relevant_positions": positions,
            "industry_match": industry_match,
            "seniority_match": seniority_match,
        },
    }


def score_education(job, profile) -> Dict:
    education = profile.education or []
    if not education:
        return {
            "score": 40,
            "details": {"degree_match": False, "field_match": False, "gpa_match": False,
                        "has_required_degree": False, "education_level": "none"},
        }

    needed_level = degree_level(_job_text(job))
    highest = max(degree_level(e.get("degree")) for e in education)
    degree_match = needed_level == 0 or highest >= needed_level

    field = required_field(job)
    field_match = field is None or any(field in (e.get("field") or "").lower() for e in education)

    gpas = [float(e["gpa"]) for e in education if e.get("gpa") not in (None, "")]
    best_gpa = max(gpas) if gpas else 0

    score = 50
    if degree_match:
        score += 30
    elif needed_level:
        score -= 20
    if field_match:
        score += 30
    if best_gpa >= 3.7:
        score += 20
    elif best_gpa >= 3.5:
        score += 15
    elif best_gpa >= 3.0:
        score += 10

    level_name = next(name for name, lvl in DEGREE_LEVELS.items() if lvl == highest)
    return {
        "score": max(0, min(100, score)),
        "details": {
            "degree_match": degree_match,
            "field_match": field_match,
            "gpa_match": best_gpa >= 3.0,
            "has_required_degree": degree_match,
            "education_level": level_name,
        },
    }


def _location_match(job, profile) -> bool:
    if job.work_mode == "remote" or not job.location:
        return True
    if not profile.location:
        return False
    job_loc, user_loc = job.location.lower(), profile.location.lower()
    return job_loc in user_loc or user_loc in job_loc


def _salary_match(job, profile) -> bool:
    if not job.salary_min and not job.salary_max:
        return True
    if profile.salary_expectation_min:
        top = job.salary_max or job.salary_min
        return top >= profile.salary_expectation_min
    # No stated expectation: rough floor from years of experience (in dollars)
    expected_min = (40 + total_years(profile.employment or []) * 8) * 1000
    return not (job.salary_min and job.salary_min < expected_min * 0.8)


def score_additional(job, profile) -> Dict:
    location_match = _location_match(job, profile)
    work_mode_match = (
        not job.work_mode
        or job.work_mode == "remote"
        or not profile.preferred_work_mode
        or profile.preferred_work_mode == job.work_mode
    )
    salary_match = _salary_match(job, profile)
    certifications = len(profile.certifications or [])
    projects = len(profile.projects or [])

    score = 50
    if location_match:
        score += 25
    if work_mode_match:
        score += 25
    if salary_match:
        score += 20
    score += min(15, certifications * 5)
    score += min(15, projects * 3)

    return {
        "score": min(100, score),
        "details": {
            "location_match": location_match,
            "work_mode_match": work_mode_match,
            "salary_expectation_match": salary_match,
            "certifications": certifications,
            "projects": projects,
        },
    }


# --- Strengths, gaps, suggestions ---

def identify_strengths(analyses: Dict) -> List[Dict]:
    skills, experience = analyses["skills"], analyses["experience"]
    education, additional = analyses["education"], analyses["additional"]
    strengths = []

    if skills["score"] >= 80:
        strengths.append({
            "category": "skills", "impact": "high",
            "description": f"Strong skill match with {skills['details']['matched_count']} of "
                           f"{skills['details']['total_required']} skills",
        })
    if skills["details"]["matched"]:
        strengths.append({
            "category": "skills", "impact": "medium",
            "description": f"Key skills: {', '.join(skills['details']['matched'][:3])}",
        })
    if experience["score"] >= 80:
        strengths.append({
            "category": "experience", "impact": "high",
            "description": f"{experience['details']['years_experience']} years of experience meets the requirement",
        })
    if any(p["relevance"] == "high" for p in experience["details"]["relevant_positions"]):
        strengths.append({"category": "experience", "impact": "high",
                          "description": "Highly relevant previous positions"})
    if experience["details"]["industry_match"]:
        strengths.append({"category": "experience", "impact": "medium",
                          "description": "Industry experience matches the job"})
    if education["score"] >= 80:
        strengths.append({"category": "education", "impact": "medium",
                          "description": "Education background aligns well with requirements"})
    if education["details"]["gpa_match"]:
        strengths.append({"category": "education", "impact": "low",
                          "description": "Strong academic performance (GPA 3.0+)"})
    if additional["details"]["certifications"]:
        strengths.append({
            "category": "additional", "impact": "medium",
            "description": f"{additional['details']['certifications']} professional certification(s)",
        })
    if additional["details"]["projects"] > 2:
        strengths.append({
            "category": "additional", "impact": "medium",
            "description": f"Project portfolio with {additional['details']['projects']} projects",
        })
    return strengths


def identify_gaps(analyses: Dict) -> List[Dict]:
    skills, experience = analyses["skills"], analyses["experience"]
    education, additional = analyses["education"], analyses["additional"]
    gaps = []

    missing = skills["details"]["missing"]
    if missing:
        gaps.append({
            "category": "skills",
            "description": f"Missing skills: {', '.join(missing[:3])}",
            "severity": "critical" if skills["score"] < 50 else "important",
            "skills": missing[:3],
            "suggestion": f"Consider gaining experience in {missing[0]} through courses or projects",
        })
    weak = skills["details"]["weak"]
    if weak:
        gaps.append({
            "category": "skills",
            "description": f"Skills need strengthening: {', '.join(w['name'] for w in weak[:3])}",
            "severity": "important",
            "skills": [w["name"] for w in weak[:3]],
            "suggestion": f"Advance from {weak[0]['user_level']} to intermediate level",
        })

    details = experience["details"]
    if details["years_required"] > details["years_experience"]:
        gap = round(details["years_required"] - details["years_experience"], 1)
        gaps.append({
            "category": "experience",
            "description": f"{gap} more years of experience recommended",
            "severity": "critical" if gap > 2 else "important",
            "suggestion": "Emphasize relevant project work and internships to demonstrate practical experience",
        })
    if not details["relevant_positions"]:
        gaps.append({
            "category": "experience",
            "description": "No directly relevant previous positions",
            "severity": "important",
            "suggestion": "Highlight transferable skills and related project experience",
        })

    if not education["details"]["has_required_degree"]:
        gaps.append({
            "category": "education",
            "description": "Degree requirement not met",
            "severity": "critical",
            "suggestion": "Consider pursuing the required degree or highlighting equivalent experience",
        })
    if not education["details"]["field_match"]:
        gaps.append({
            "category": "education",
            "description": "Field of study doesn't match job requirements",
            "severity": "minor",
            "suggestion": "Obtain relevant certifications or complete specialized coursework",
        })

    if not additional["details"]["location_match"]:
        gaps.append({
            "category": "additional",
            "description": "Location doesn't match job requirements",
            "severity": "minor",
            "suggestion": "Be prepared to relocate or address location in your cover letter",
        })
    return gaps


PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}


def generate_suggestions(gaps: List[Dict], profile) -> List[Dict]:
    """Actionable suggestions, highest priority and impact first (top 10)."""
    suggestions = []
    for gap in gaps:
        if gap["category"] == "skills" and gap["severity"] == "critical":
            for skill in gap.get("skills", [])[:2]:
                suggestions.append({
                    "type": "skill",
                    "priority": "high",
                    "title": f"Learn {skill}",
                    "description": f"{skill} is a key skill for this position. Focus on this first.",
                    "estimated_impact": 10,
                    "resources": [
                        {"platform": name, "url": f"{url}{quote(skill)}"}
                        for name, url in list(LEARNING_PLATFORMS.items())[:2]
                    ],
                })
        elif gap["category"] == "skills" and "strengthening" in gap["description"]:
            suggestions.append({
                "type": "skill",
                "priority": "medium",
                "title": "Strengthen existing skills",
                "description": "Move from beginner to intermediate in your weak skills through practice projects",
                "estimated_impact": 6,
                "resources": [],
            })
        elif gap["category"] == "experience" and gap["severity"] == "critical":
            suggestions.append({
                "type": "experience",
                "priority": "medium",
                "title": "Gain relevant experience",
                "description": "Consider internships, freelance projects, or open-source contributions",
                "estimated_impact": 8,
                "resources": [],
            })
        elif gap["category"] == "education":
            critical = gap["severity"] == "critical"
            suggestions.append({
                "type": "education",
                "priority": "high" if critical else "low",
                "title": "Educational enhancement",
                "description": gap["suggestion"],
                "estimated_impact": 10 if critical else 4,
                "resources": [],
            })

    if not profile.headline or len(profile.headline) < 20:
        suggestions.append({
            "type": "profile", "priority": "low", "title": "Complete your profile",
            "description": "Add a headline that highlights your key skills and experience",
            "estimated_impact": 3, "resources": [],
        })
    if len(profile.projects or []) < 2:
        suggestions.append({
            "type": "profile", "priority": "medium", "title": "Build your portfolio",
            "description": "Add at least 2-3 relevant projects to demonstrate your skills",
            "estimated_impact": 5, "resources": [],
        })

    suggestions.sort(key=lambda s: (PRIORITY_ORDER[s["priority"]], s["estimated_impact"]), reverse=True)
    return suggestions[:10]


# --- Public API ---

def normalize_weights(weights: Optional[Dict[str, float]]) -> Dict[str, float]:
    """Fill missing categories with defaults and scale the weights to sum to 100."""
    merged = dict(DEFAULT_WEIGHTS)
    for key, value in (weights or {}).items():
        if key in merged and value is not None:
            if value < 0:
                raise ValueError(f"Weight for {key} cannot be negative")
            merged[key] = value
    total = sum(merged.values())
    if total <= 0:
        raise ValueError("At least one weight must be positive")
    return {k: v / total * 100 for k, v in merged.items()}


def calculate_job_match(job, profile, weights: Optional[Dict[str, float]] = None) -> Dict:
    """Full match report for one job against the user's profile."""
    analyses = {
        "skills": score_skills(job, profile),
        "experience": score_experience(job, profile),
        "education": score_education(job, profile),
        "additional": score_additional(job, profile),
    }
    normalized = normalize_weights(weights)
    overall = round(sum(analyses[k]["score"] * normalized[k] for k in analyses) / 100)
    gaps = identify_gaps(analyses)

    return {
        "job_id": job.id,
        "job_title": job.title,
        "company": job.company,
        "overall_score": overall,
        "category_scores": {
            key: {"score": a["score"], "weight": round(normalized[key], 1), "details": a["details"]}
            for key, a in analyses.items()
        },
        "strengths": identify_strengths(analyses),
        "gaps": gaps,
        "suggestions": generate_suggestions(gaps, profile),
        "calculated_at": datetime.utcnow(),
    }


def compare_job_matches(matches: List[Dict]) -> Dict:
    """Rank several match reports and summarize them."""
    if not matches:
        return {"total_jobs": 0, "average_score": 0, "ranked": [], "best_match": None,
                "worst_match": None, "recommendations": [], "score_distribution": {}}

    ranked = sorted(matches, key=lambda m: m["overall_score"], reverse=True)
    average = round(sum(m["overall_score"] for m in matches) / len(matches))
    best, worst = ranked[0], ranked[-1]

    recommendations = []
    if best["overall_score"] >= 75:
        recommendations.append({
            "type": "action",
            "message": f"{best['job_title']} at {best['company']} is your best match "
                       f"({best['overall_score']}%). Prioritize this application.",
        })
    if average < 60:
        recommendations.append({
            "type": "warning",
            "message": f"Your average match score is {average}%. Consider broadening your search "
                       "or building the skills that keep coming up.",
        })
    weak_skill_jobs = [m for m in matches if m["category_scores"]["skills"]["score"] < 50]
    if len(weak_skill_jobs) > len(matches) / 2:
        recommendations.append({
            "type": "improvement",
            "message": "Most of these jobs show low skill matches. Focus on skills in demand.",
        })

    def _summary(m):
        return {"job_id": m["job_id"], "job": f"{m['job_title']} at {m['company']}", "score": m["overall_score"]}

    return {
        "total_jobs": len(matches),
        "average_score": average,
        "ranked": [dict(_summary(m), rank=i) for i, m in enumerate(ranked, start=1)],
        "best_match": _summary(best),
        "worst_match": _summary(worst),
        "recommendations": recommendations,
        "score_distribution": {
            "excellent": sum(1 for m in matches if m["overall_score"] >= 85),
            "good": sum(1 for m in matches if 70 <= m["overall_score"] < 85),
            "fair": sum(1 for m in matches if 55 <= m["overall_score"] < 70),
            "poor": sum(1 for m in matches if m["overall_score"] < 55),
        },
    }
