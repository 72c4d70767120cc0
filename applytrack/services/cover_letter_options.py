"""
ApplyTrack - Cover letter tone and style options.

Option tables for tone, industry, company culture, length and writing
style, plus the template fallback used when AI generation is unavailable.
Templates use {placeholders}: name, company, role, skills, experience,
summary, opener, closer, signoff.
"""
import re
from typing import Dict, List, Optional

TONE_OPTIONS = {
    "formal": {
        "name": "Formal",
        "description": "Professional, traditional, and respectful tone",
        "guidelines": "Use formal language, avoid contractions, maintain professional distance, "
                      "and follow traditional business letter conventions.",
    },
    "casual": {
        "name": "Casual",
        "description": "Friendly, approachable, and conversational tone",
        "guidelines": "Write in a friendly, conversational manner while maintaining professionalism. "
                      "Use contractions naturally and show personality.",
    },
    "enthusiastic": {
        "name": "Enthusiastic",
        "description": "Energetic, passionate, and highly motivated tone",
        "guidelines": "Express genuine excitement for the role and company without being overly casual.",
    },
    "analytical": {
        "name": "Analytical",
        "description": "Data-driven, logical, and detail-oriented tone",
        "guidelines": "Focus on metrics and concrete results. Include quantifiable achievements "
                      "with numbers and outcomes.",
    },
    "creative": {
        "name": "Creative",
        "description": "Expressive, engaging, and personality-driven tone",
        "guidelines": "Tell a compelling story and craft memorable opening and closing statements "
                      "while staying professional.",
    },
    "technical": {
        "name": "Technical",
        "description": "Precise, detail-oriented, with technical terminology",
        "guidelines": "Reference specific technologies and methodologies and demonstrate technical depth.",
    },
    "executive": {
        "name": "Executive",
        "description": "Strategic, leadership-focused, and high-level tone",
        "guidelines": "Focus on strategic impact, leadership experience, and business outcomes.",
    },
}

INDUSTRY_SETTINGS = {
    "technology": {
        "name": "Technology",
        "keywords": ["innovation", "scalability", "agile", "digital transformation", "optimization"],
        "focus": "Technical skills, innovation, problem-solving, and adaptability to emerging technologies",
    },
    "finance": {
        "name": "Finance",
        "keywords": ["compliance", "risk management", "analysis", "regulatory", "portfolio"],
        "focus": "Analytical skills, attention to detail, regulatory knowledge, and financial acumen",
    },
    "healthcare": {
        "name": "Healthcare",
        "keywords": ["patient care", "clinical", "compliance", "quality improvement", "evidence-based"],
        "focus": "Patient outcomes, clinical expertise, regulatory compliance, and collaborative care",
    },
    "marketing": {
        "name": "Marketing",
        "keywords": ["brand", "campaign", "engagement", "data-driven", "audience"],
        "focus": "Creativity, data analysis, brand awareness, and measurable business impact",
    },
    "education": {
        "name": "Education",
        "keywords": ["learning", "student-centered", "curriculum", "assessment", "mentorship"],
        "focus": "Teaching excellence, student success, and curriculum development",
    },
    "sales": {
        "name": "Sales",
        "keywords": ["revenue", "relationships", "pipeline", "growth", "client-focused"],
        "focus": "Results achievement, relationship building, and revenue growth",
    },
    "consulting": {
        "name": "Consulting",
        "keywords": ["strategy", "solutions", "transformation", "advisory", "insights"],
        "focus": "Problem-solving, strategic thinking, and client impact",
    },
    "engineering": {
        "name": "Engineering",
        "keywords": ["design", "optimization", "efficiency", "precision", "quality"],
        "focus": "Technical expertise, quality standards, and engineering principles",
    },
    "creative": {
        "name": "Creative/Design",
        "keywords": ["innovative", "visual", "brand", "user-centered", "concept"],
        "focus": "Creative vision, portfolio work, and design thinking",
    },
    "general": {
        "name": "General/Other",
        "keywords": ["professional", "collaborative", "results-driven", "adaptable"],
        "focus": "Professional skills, adaptability, and an achievement-oriented mindset",
    },
}

COMPANY_CULTURE = {
    "startup": {
        "name": "Startup",
        "language": "Emphasize adaptability, an entrepreneurial mindset, and comfort with ambiguity.",
    },
    "corporate": {
        "name": "Corporate",
        "language": "Emphasize professionalism, cross-functional collaboration, and strategic thinking.",
    },
    "enterprise": {
        "name": "Enterprise",
        "language": "Emphasize experience with large-scale systems, stakeholder alignment, and global perspective.",
    },
    "agency": {
        "name": "Agency",
        "language": "Emphasize client management, juggling multiple projects, and deadline-driven delivery.",
    },
    "nonprofit": {
        "name": "Nonprofit",
        "language": "Emphasize mission alignment, community impact, and resourcefulness.",
    },
    "remote": {
        "name": "Remote-First",
        "language": "Emphasize self-motivation, asynchronous communication, and results-driven performance.",
    },
}

LENGTH_OPTIONS = {
    "brief": {"name": "Brief", "min_words": 250, "max_words": 300, "paragraphs": 3, "max_tokens": 600},
    "standard": {"name": "Standard", "min_words": 300, "max_words": 400, "paragraphs": 4, "max_tokens": 800},
    "detailed": {"name": "Detailed", "min_words": 400, "max_words": 500, "paragraphs": 5, "max_tokens": 1000},
}

WRITING_STYLE = {
    "direct": {
        "name": "Direct",
        "guidelines": "Use short, punchy sentences that start with strong action verbs. Avoid flowery language.",
    },
    "narrative": {
        "name": "Narrative",
        "guidelines": "Tell a cohesive story of the career journey and show progression and growth.",
    },
    "hybrid": {
        "name": "Hybrid",
        "guidelines": "Combine storytelling with direct statements and vary sentence structure.",
    },
}

TONE_PHRASES = {
    "formal": {
        "opener": "I respectfully submit my application for the {role} position at {company}.",
        "closer": "I would welcome the opportunity to discuss my qualifications at your earliest convenience.",
        "signoff": "Respectfully yours",
    },
    "casual": {
        "opener": "I was excited to see the {role} opening at {company} and knew I had to reach out.",
        "closer": "I'd love to chat more about how I could help your team.",
        "signoff": "Best",
    },
    "enthusiastic": {
        "opener": "I'm thrilled to apply for the {role} position at {company}!",
        "closer": "I can't wait to discuss how I can make an impact on your team!",
        "signoff": "With enthusiasm",
    },
    "default": {
        "opener": "I am writing to express my interest in the {role} position at {company}.",
        "closer": "I would welcome the opportunity to discuss how my experience can contribute to your team's success.",
        "signoff": "Best regards",
    },
}

DEFAULT_TEMPLATE = """Dear Hiring Manager,

{opener} {summary}

My experience with {skills} aligns well with what {company} is looking for. {experience}

{closer}

Thank you for your time and consideration.

{signoff},
{name}"""

SYSTEM_TEMPLATES = [
    {"name": "Classic Professional", "industry": "general", "tone": "formal", "content": DEFAULT_TEMPLATE},
    {
        "name": "Tech Enthusiast",
        "industry": "technology",
        "tone": "enthusiastic",
        "content": """Dear Hiring Manager,

{opener}

I build things with {skills}, and the chance to do that at {company} as a {role} is exactly what I'm looking for. {experience}

{summary}

{closer}

{signoff},
{name}""",
    },
    {
        "name": "Results Focused",
        "industry": "general",
        "tone": "analytical",
        "content": """Dear Hiring Manager,

{opener}

{experience} Across that work I have relied on {skills} to deliver measurable results.

{summary}

{closer}

{signoff},
{name}""",
    },
]

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def option_catalog() -> Dict:
    """All option tables, for the generation form."""
    return {
        "tones": {k: {"name": v["name"], "description": v["description"]} for k, v in TONE_OPTIONS.items()},
        "industries": {k: {"name": v["name"], "focus": v["focus"]} for k, v in INDUSTRY_SETTINGS.items()},
        "company_cultures": {k: v["name"] for k, v in COMPANY_CULTURE.items()},
        "lengths": LENGTH_OPTIONS,
        "writing_styles": {k: v["name"] for k, v in WRITING_STYLE.items()},
    }


def validate_options(tone: str, industry: str, company_culture: str, writing_style: str) -> List[str]:
    """Names of options that are not in the tables (empty when all valid)."""
    invalid = []
    if tone not in TONE_OPTIONS:
        invalid.append(f"tone '{tone}'")
    if industry not in INDUSTRY_SETTINGS:
        invalid.append(f"industry '{industry}'")
    if company_culture not in COMPANY_CULTURE:
        invalid.append(f"company_culture '{company_culture}'")
    if writing_style not in WRITING_STYLE:
        invalid.append(f"writing_style '{writing_style}'")
    return invalid


def tone_warnings(tone: str, industry: str, company_culture: str) -> List[str]:
    """Advisory warnings for tone choices that clash with industry or culture."""
    warnings = []
    if tone == "formal" and company_culture == "startup":
        warnings.append("Formal tone with startup culture: Consider using a more casual or enthusiastic tone for better cultural fit.")
    if tone == "casual":
        if industry in ("finance", "healthcare"):
            warnings.append("Casual tone in conservative industry: Consider using a more formal or professional tone.")
        if company_culture in ("corporate", "enterprise"):
            warnings.append("Casual tone with corporate culture: Consider balancing with professional language.")
    if tone == "creative" and industry in ("finance", "engineering"):
        warnings.append("Creative tone in technical industry: Ensure technical credibility is still emphasized.")
    if tone == "technical" and company_culture == "startup" and industry != "technology":
        warnings.append("Highly technical tone with startup culture: Consider adding enthusiasm and personality.")
    return warnings


def recommended_tone(industry: str, company_culture: str) -> str:
    if industry == "technology" and company_culture == "startup":
        return "enthusiastic"
    if industry in ("finance", "healthcare") and company_culture in ("corporate", "enterprise"):
        return "formal"
    if industry == "creative":
        return "creative"
    if industry in ("technology", "engineering"):
        return "technical"
    if company_culture in ("corporate", "enterprise"):
        return "executive"
    return "formal"


def fill_template(content: str, values: Dict[str, str]) -> str:
    """Replace {placeholders}; unknown placeholders are left as written."""
    return _PLACEHOLDER.sub(lambda m: str(values.get(m.group(1), m.group(0))), content)


def template_values(name: str, company: str, role: str, tone: str,
                    skills: Optional[List[str]] = None, summary: Optional[str] = None,
                    years_experience: Optional[float] = None) -> Dict[str, str]:
    phrases = TONE_PHRASES.get(tone, TONE_PHRASES["default"])
    skill_text = ", ".join((skills or [])[:4]) or "the skills listed in your posting"
    if years_experience:
        experience = f"I bring {years_experience:g} years of relevant experience to the role."
    else:
        experience = "I bring hands-on experience that maps directly to this role."
    return {
        "name": name or "",
        "company": company,
        "role": role,
        "skills": skill_text,
        "summary": summary or "",
        "experience": experience,
        "opener": phrases["opener"].format(role=role, company=company),
        "closer": phrases["closer"],
        "signoff": phrases["signoff"],
    }


def build_template_letter(values: Dict[str, str], template_content: Optional[str] = None) -> str:
    """Render the fallback letter, collapsing blank runs left by empty values."""
    text = fill_template(template_content or DEFAULT_TEMPLATE, values)
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()
