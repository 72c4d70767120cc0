"""
ApplyTrack - Skill extraction and skill gap analysis.

Extracts known skills from job postings, compares them against the skills
on the user's profile, and turns the gaps into prioritized learning
recommendations with course links.

Importance of a skill comes from the requirement line it appears in:
    required      - default
    preferred     - line mentions "preferred", "nice to have", or "plus"
    nice_to_have  - line mentions "bonus" or "optional"
Skills only found in the free-text description count as preferred.
"""
import re
from typing import Dict, List, Optional
from urllib.parse import quote

# Skill dictionary, grouped by category. Display names are matched
# case-insensitively on word boundaries.
SKILL_DICTIONARY = {
    'languages': [
        'JavaScript', 'Python', 'Java', 'C++', 'C#', 'Ruby', 'PHP', 'Swift', 'Kotlin', 'Go',
        'Rust', 'TypeScript', 'SQL', 'R', 'Scala', 'Perl', 'MATLAB', 'Objective-C', 'Dart', 'Elixir',
    ],
    'frameworks': [
        'React', 'Angular', 'Vue', 'Node.js', 'Express', 'Django', 'Flask', 'FastAPI', 'Spring',
        'Laravel', '.NET', 'React Native', 'Flutter', 'TensorFlow', 'PyTorch', 'Keras', 'jQuery',
        'Bootstrap', 'Tailwind',
    ],
    'databases': [
        'MongoDB', 'PostgreSQL', 'MySQL', 'Redis', 'Cassandra', 'Oracle', 'Microsoft SQL Server',
        'DynamoDB', 'Firebase', 'Elasticsearch', 'Neo4j',
    ],
    'cloud_devops': [
        'AWS', 'Azure', 'Google Cloud', 'Docker', 'Kubernetes', 'Jenkins', 'GitLab CI', 'CircleCI',
        'Terraform', 'Ansible', 'Nginx',
    ],
    'tools': [
        'Git', 'GitHub', 'Jira', 'Confluence', 'Figma', 'Sketch', 'Photoshop', 'Illustrator',
        'Power BI', 'Tableau', 'Excel', 'Salesforce',
    ],
    'practices': [
        'Agile', 'Scrum', 'Kanban', 'DevOps', 'CI/CD', 'TDD', 'Microservices', 'REST API',
        'GraphQL', 'OAuth', 'Responsive Design', 'UI/UX',
    ],
    'soft_skills': [
        'Communication', 'Leadership', 'Problem Solving', 'Critical Thinking', 'Teamwork',
        'Time Management', 'Adaptability', 'Creativity', 'Attention to Detail', 'Project Management',
    ],
    'domain': [
        'Data Analysis', 'Machine Learning', 'Artificial Intelligence', 'Blockchain', 'Cybersecurity',
        'SEO', 'Digital Marketing', 'Content Strategy', 'Financial Analysis', 'Risk Management',
    ],
}

SKILL_CATEGORY = {
    skill.lower(): category
    for category, skills in SKILL_DICTIONARY.items()
    for skill in skills
}

SKILL_IMPORTANCE = {
    'required': 10,
    'preferred': 7,
    'nice_to_have': 4,
}

LEVEL_SCORES = {
    'beginner': 1,
    'intermediate': 2,
    'advanced': 3,
    'expert': 4,
}

LEARNING_PLATFORMS = {
    'Coursera': 'https://www.coursera.org/search?query=',
    'Udemy': 'https://www.udemy.com/courses/search/?q=',
    'LinkedIn Learning': 'https://www.linkedin.com/learning/search?keywords=',
    'Pluralsight': 'https://www.pluralsight.com/search?q=',
    'edX': 'https://www.edx.org/search?q=',
}

OFFICIAL_DOCS = {
    'JavaScript': 'https://developer.mozilla.org/en-US/docs/Web/JavaScript/Guide',
    'Python': 'https://docs.python.org/3/',
    'React': 'https://react.dev/',
    'Node.js': 'https://nodejs.org/docs/',
    'TypeScript': 'https://www.typescriptlang.org/docs/',
    'Django': 'https://docs.djangoproject.com/',
    'FastAPI': 'https://fastapi.tiangolo.com/',
    'AWS': 'https://docs.aws.amazon.com/',
    'Docker': 'https://docs.docker.com/',
    'Kubernetes': 'https://kubernetes.io/docs/',
}

# Hours of study assumed per skill, by learning phase
PHASE_HOURS = {'foundation': 20, 'intermediate': 15, 'advanced': 10}
STUDY_HOURS_PER_WEEK = 10


def _skill_pattern(skill: str) -> re.Pattern:
    # \b fails next to non-word chars like "C++" or ".NET", so use lookarounds
    return re.compile(r'(?<![\w.+#])' + re.escape(skill.lower()) + r'(?![\w+#])')


_PATTERNS = {
    skill: _skill_pattern(skill)
    for skills in SKILL_DICTIONARY.values()
    for skill in skills
}


def extract_skills(text: Optional[str]) -> List[str]:
    """Return dictionary skills mentioned in text, in dictionary order."""
    if not text:
        return []
    text_lower = text.lower()
    return [skill for skill, pattern in _PATTERNS.items() if pattern.search(text_lower)]


def _importance_for_line(line: str) -> str:
    line_lower = line.lower()
    if 'preferred' in line_lower or 'nice to have' in line_lower or 'plus' in line_lower:
        return 'preferred'
    if 'bonus' in line_lower or 'optional' in line_lower:
        return 'nice_to_have'
    return 'required'


def extract_job_skills(requirements: Optional[List[str]], description: Optional[str]) -> List[Dict]:
    """
    Skills a job asks for, each tagged with importance and source.

    The first mention wins: a skill listed as required in the requirements
    is not downgraded by a later mention in the description.
    """
    found: Dict[str, Dict] = {}

    for line in requirements or []:
        importance = _importance_for_line(line)
        for skill in extract_skills(line):
            key = skill.lower()
            if key not in found:
                found[key] = {'name': skill, 'importance': importance, 'source': 'requirements'}

    for skill in extract_skills(description):
        key = skill.lower()
        if key not in found:
            found[key] = {'name': skill, 'importance': 'preferred', 'source': 'description'}

    return list(found.values())


def level_score(level: Optional[str]) -> int:
    return LEVEL_SCORES.get((level or '').lower(), 0)


def _priority(importance: str, gap: str) -> float:
    weight = SKILL_IMPORTANCE.get(importance, 5)
    return weight * (2 if gap == 'missing' else 1.5)


def analyze_skill_gap(user_skills: List[Dict], job_skills: List[Dict]) -> Dict:
    """
    Compare profile skills to job skills.

    A skill the user has below intermediate level counts as weak.
    Missing and weak lists are sorted by priority, highest first.
    """
    user_map = {s['name'].lower(): s for s in user_skills if s.get('name')}
    matched, weak, missing = [], [], []

    for job_skill in job_skills:
        user_skill = user_map.get(job_skill['name'].lower())
        if user_skill is None:
            missing.append({**job_skill, 'gap': 'missing',
                            'priority': _priority(job_skill['importance'], 'missing')})
        elif level_score(user_skill.get('level')) < LEVEL_SCORES['intermediate']:
            weak.append({**job_skill, 'gap': 'weak', 'user_level': user_skill.get('level'),
                         'priority': _priority(job_skill['importance'], 'weak')})
        else:
            matched.append({**job_skill, 'user_level': user_skill.get('level')})

    missing.sort(key=lambda s: s['priority'], reverse=True)
    weak.sort(key=lambda s: s['priority'], reverse=True)

    total = len(job_skills)
    return {
        'matched': matched,
        'weak': weak,
        'missing': missing,
        'match_percentage': round(len(matched) / total * 100) if total else 0,
        'total_required': total,
        'summary': {'matched': len(matched), 'weak': len(weak), 'missing': len(missing)},
    }


def suggest_learning_resources(skills: List[Dict]) -> List[Dict]:
    """Course search links (plus official docs where known) for each gap skill."""
    suggestions = []
    for skill in skills:
        name = skill['name']
        resources = [
            {
                'platform': platform,
                'title': f"{name} courses on {platform}",
                'url': f"{base_url}{quote(name)}",
                'type': 'course',
            }
            for platform, base_url in LEARNING_PLATFORMS.items()
        ]
        if name in OFFICIAL_DOCS:
            resources.append({
                'platform': 'Official',
                'title': f"{name} documentation",
                'url': OFFICIAL_DOCS[name],
                'type': 'documentation',
            })
        suggestions.append({
            'skill': name,
            'importance': skill.get('importance'),
            'priority': skill.get('priority'),
            'resources': resources,
        })
    return suggestions


def build_learning_path(gaps: List[Dict], user_skills: List[Dict]) -> Dict:
    """
    Group gap skills into foundation / intermediate / advanced phases.

    A skill goes past foundation when the user already holds an
    intermediate-or-better skill in the same category.
    """
    strong_categories = {
        SKILL_CATEGORY.get(s['name'].lower())
        for s in user_skills
        if s.get('name') and level_score(s.get('level')) >= LEVEL_SCORES['intermediate']
    }

    phases = {'foundation': [], 'intermediate': [], 'advanced': []}
    for gap in sorted(gaps, key=lambda g: g.get('priority', 0), reverse=True):
        if SKILL_CATEGORY.get(gap['name'].lower()) in strong_categories:
            phase = 'intermediate' if gap.get('importance') == 'required' else 'advanced'
        else:
            phase = 'foundation'
        phases[phase].append(gap['name'])

    hours = {phase: len(names) * PHASE_HOURS[phase] for phase, names in phases.items()}
    total_hours = sum(hours.values())
    return {
        'phases': phases,
        'estimated_hours': total_hours,
        'estimated_weeks': -(-total_hours // STUDY_HOURS_PER_WEEK),
        'hours_by_phase': hours,
    }


def skill_gap_report(user_skills: List[Dict], requirements: Optional[List[str]],
                     description: Optional[str]) -> Dict:
    """Full report for one job: gap analysis, resources, and a learning path."""
    job_skills = extract_job_skills(requirements, description)
    analysis = analyze_skill_gap(user_skills, job_skills)
    gaps = analysis['missing'] + analysis['weak']
    analysis['learning_resources'] = suggest_learning_resources(gaps[:10])
    analysis['learning_path'] = build_learning_path(gaps, user_skills)
    return analysis
