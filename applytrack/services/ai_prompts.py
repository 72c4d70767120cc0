"""
ApplyTrack - AI Prompt Templates

Prompt templates for the Gemini-backed features. Templates use
str.format placeholders, so literal JSON braces are doubled.

Prompts can be viewed and overridden at runtime through /api/ai/prompts;
overrides live in memory and reset on restart.
"""

# -----------------------------------------------------------------------------
# Cover Letter Generation Prompt
# -----------------------------------------------------------------------------
COVER_LETTER_PROMPT = """You are a professional career writer helping a job seeker write a compelling cover letter.

**Candidate:**
- Name: {name}
- Headline: {headline}
- Key Skills: {skills}
- Years of Experience: {years_experience}
- Summary: {summary}

**Candidate Resume:**
{resume_text}

**Target Position:**
- Company: {company_name}
- Role: {role}

**Job Description:**
{job_description}

**Style:**
- Tone: {tone} - {tone_guidelines}
- Industry: {industry} - focus on {industry_focus}. Work in keywords such as: {industry_keywords}
- Company culture: {company_culture} - {culture_language}
- Writing style: {writing_style} - {style_guidelines}
- Length: {min_words}-{max_words} words in {paragraphs} paragraphs

**Instructions:**
Draw on the candidate's real experience to write the letter. It should:
1. Open with a specific hook showing genuine interest in {company_name}
2. Highlight 2-3 experiences that match the job requirements
3. Show understanding of the company and the role
4. Close with a confident call to action

{variation_note}

Write only the cover letter (no commentary). Start with "Dear Hiring Manager," and end with the candidate's name.

Cover Letter:"""


# -----------------------------------------------------------------------------
# Resume Tailoring Prompt
# -----------------------------------------------------------------------------
RESUME_TAILORING_PROMPT = """You are an expert resume coach tailoring a resume to a specific job.

**Current Resume:**
{resume_text}

**Target Job:**
- Title: {job_title}
- Company: {company}

**Job Description:**
{job_description}

**Instructions:**
Rewrite the professional summary and the experience bullet points so they match the job's language and priorities. Keep every claim truthful to the original resume; do not invent employers, titles, or metrics.

You MUST return valid JSON with this exact structure:

{{
  "summary": "Two to three sentence tailored professional summary",
  "experience": [
    {{
      "index": 0,
      "responsibilities": ["Rewritten bullet 1", "Rewritten bullet 2"]
    }}
  ],
  "skills_to_emphasize": ["Python", "REST APIs"],
  "skills_to_add": ["Docker"],
  "match_notes": "One sentence on the biggest remaining gap"
}}

"index" is the position of the experience entry in the resume, starting at 0.

JSON Response:"""


# -----------------------------------------------------------------------------
# Interview Question Generation Prompt
# -----------------------------------------------------------------------------
INTERVIEW_QUESTIONS_PROMPT = """You are an experienced interview coach preparing a candidate.

**Interview:**
- Role: {title}
- Company: {company}
- Interview Type: {interview_type}
- Focus Areas: {focus}

**Job Description:**
{job_description}

**Instructions:**
Write {count} likely interview questions for this interview. Mix behavioral, technical and role-specific questions appropriate for the interview type.

Return a JSON object:

{{
  "questions": [
    {{
      "question": "Tell me about a time you resolved a production incident.",
      "category": "behavioral|technical|situational|company",
      "difficulty": "easy|medium|hard",
      "tips": "What a strong answer covers"
    }}
  ]
}}

JSON Response:"""


# -----------------------------------------------------------------------------
# Answer Feedback Prompt
# -----------------------------------------------------------------------------
ANSWER_FEEDBACK_PROMPT = """You are an interview coach giving feedback on a practice answer.

**Role:** {title} at {company}

**Question:**
{question}

**Candidate's Answer:**
{answer}

**Instructions:**
Evaluate the answer for relevance, structure (STAR where appropriate), specificity, and impact. Be direct and constructive.

Return a JSON object:

{{
  "score": 7,
  "strengths": ["Clear situation setup"],
  "improvements": ["Quantify the result"],
  "star_analysis": {{
    "situation": true,
    "task": true,
    "action": true,
    "result": false
  }},
  "improved_answer": "A stronger version of the answer"
}}

"score" is 1-10.

JSON Response:"""


# -----------------------------------------------------------------------------
# Job Description Analysis Prompt
# -----------------------------------------------------------------------------
JOB_ANALYSIS_PROMPT = """You are an expert career advisor analyzing job postings.

**Job Description:**
{job_description}

**Instructions:**
Analyze this job posting and extract the following information in JSON format:

{{
  "required_skills": ["skill1", "skill2"],
  "preferred_skills": ["skill1", "skill2"],
  "experience_level": "entry|mid|senior|executive",
  "years_required": null,
  "education_requirements": ["requirement1"],
  "key_responsibilities": ["responsibility1"],
  "company_culture_signals": ["signal1"],
  "red_flags": ["flag1"],
  "keywords_for_resume": ["keyword1"]
}}

Only include what is actually mentioned or strongly implied in the posting.

JSON Response:"""


# -----------------------------------------------------------------------------
# Prompt Registry - for viewing and live editing via API
# -----------------------------------------------------------------------------
ALL_PROMPTS = {
    "cover_letter": COVER_LETTER_PROMPT,
    "resume_tailoring": RESUME_TAILORING_PROMPT,
    "interview_questions": INTERVIEW_QUESTIONS_PROMPT,
    "answer_feedback": ANSWER_FEEDBACK_PROMPT,
    "job_analysis": JOB_ANALYSIS_PROMPT,
}

_PROMPT_VARIABLES = {
    "cover_letter": "COVER_LETTER_PROMPT",
    "resume_tailoring": "RESUME_TAILORING_PROMPT",
    "interview_questions": "INTERVIEW_QUESTIONS_PROMPT",
    "answer_feedback": "ANSWER_FEEDBACK_PROMPT",
    "job_analysis": "JOB_ANALYSIS_PROMPT",
}

DEFAULT_PROMPTS = dict(ALL_PROMPTS)


def get_prompt(name: str) -> str:
    """Get a prompt template by name."""
    return ALL_PROMPTS.get(name, "")


def set_prompt(name: str, template: str) -> bool:
    """Update a prompt template at runtime (resets on restart)."""
    if name not in ALL_PROMPTS:
        return False
    ALL_PROMPTS[name] = template
    globals()[_PROMPT_VARIABLES[name]] = template
    return True


def reset_prompt(name: str) -> bool:
    """Restore a prompt to its shipped text."""
    if name not in DEFAULT_PROMPTS:
        return False
    return set_prompt(name, DEFAULT_PROMPTS[name])
