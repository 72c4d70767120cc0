"""
ApplyTrack - AI Service (Google Gemini)

Thin wrapper over the Gemini generateContent REST API.

Setup:
1. Create an API key at https://aistudio.google.com
2. Set APPLYTRACK_GEMINI_API_KEY
3. Optionally pick a model with APPLYTRACK_GEMINI_MODEL

This service provides:
- AI availability checking
- Cover letter generation
- Resume tailoring (summary + bullets) for a job
- Interview question generation and answer feedback
- Job description analysis

Every generation method raises AIServiceError when Gemini cannot be
reached or answers with something unusable. Callers fall back to
templates or return 503.
"""
from typing import Any, Dict, List, Optional
import logging
import json
import re

import httpx

from ..config import settings
from . import ai_prompts
from .cover_letter_options import (
    COMPANY_CULTURE, INDUSTRY_SETTINGS, LENGTH_OPTIONS, TONE_OPTIONS, WRITING_STYLE,
)

logger = logging.getLogger("applytrack.ai")

VARIATION_NOTES = [
    "",
    "Write a distinctly different version: use a different opening hook and highlight different experiences.",
    "Write a third distinct version: lead with the candidate's strongest measurable achievement.",
]


class AIServiceError(Exception):
    """Custom exception for AI service errors."""
    pass


class AIService:
    """
    AI Service for Gemini text generation.

    Settings are read on construction; tests swap `ai_service` attributes
    or monkeypatch `_generate`.
    """

    def __init__(self):
        """Initialize AI service with settings."""
        self.base_url = settings.ai.gemini_base_url.rstrip("/")
        self.model = settings.ai.gemini_model
        self.api_key = settings.ai.gemini_api_key
        self.enabled = settings.ai.ai_enabled
        self.temperature = settings.ai.ai_temperature
        self.max_tokens = settings.ai.ai_max_tokens

    def is_available(self) -> bool:
        """AI is usable when enabled and an API key is configured."""
        return bool(self.enabled and self.api_key)

    def status(self) -> Dict:
        return {
            "enabled": self.enabled,
            "configured": bool(self.api_key),
            "available": self.is_available(),
            "provider": "gemini",
            "model": self.model,
            "fallback_to_template": settings.ai.ai_fallback_to_template,
        }

    async def _generate(
        self,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False
    ) -> str:
        """
        Call Gemini generateContent.

        Args:
            prompt: The full prompt text
            temperature: Override default temperature
            max_tokens: Override default max output tokens
            json_mode: Ask Gemini for an application/json response

        Returns:
            Generated text

        Raises:
            AIServiceError: If generation fails
        """
        if not self.is_available():
            raise AIServiceError("AI is not configured")

        generation_config: Dict[str, Any] = {
            "temperature": self.temperature if temperature is None else temperature,
            "maxOutputTokens": max_tokens or self.max_tokens,
        }
        if json_mode:
            generation_config["responseMimeType"] = "application/json"

        request_body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }

        try:
            async with httpx.AsyncClient() as client:
                logger.debug(f"Generating with model {self.model}")
                response = await client.post(
                    f"{self.base_url}/models/{self.model}:generateContent",
                    params={"key": self.api_key},
                    json=request_body,
                    timeout=60.0
                )

                if response.status_code != 200:
                    logger.error(f"Gemini error {response.status_code}: {response.text[:500]}")
                    raise AIServiceError(f"Gemini returned status {response.status_code}")

                data = response.json()
        except httpx.TimeoutException:
            logger.error("AI generation timed out")
            raise AIServiceError("AI generation timed out")
        except httpx.HTTPError as e:
            logger.error(f"Could not reach Gemini: {e}")
            raise AIServiceError("Could not reach Gemini")
        except AIServiceError:
            raise
        except Exception as e:
            logger.error(f"AI generation failed: {e}")
            raise AIServiceError(f"AI generation failed: {str(e)}")

        try:
            result = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            reason = (data.get("promptFeedback") or {}).get("blockReason") if isinstance(data, dict) else None
            logger.warning(f"Gemini returned no text (block reason: {reason})")
            raise AIServiceError("Gemini returned an empty response")

        logger.debug(f"Generated {len(result)} characters")
        return result.strip()

    def _extract_json(self, response: str) -> Dict:
        """Pull the first JSON object out of a response; {} when there is none."""
        try:
            json_match = re.search(r'\{[\s\S]*\}', response)
            if json_match:
                return json.loads(json_match.group())
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse AI JSON: {e}")
        return {}

    async def _generate_json(self, prompt: str, temperature: float = 0.4,
                             max_tokens: Optional[int] = None) -> Dict:
        response = await self._generate(prompt, temperature=temperature,
                                        max_tokens=max_tokens, json_mode=True)
        result = self._extract_json(response)
        if not result:
            raise AIServiceError("AI response was not valid JSON")
        return result

    # --- Cover letters ---

    async def generate_cover_letter(
        self,
        candidate: Dict,
        company_name: str,
        role: str,
        job_description: str = "",
        resume_text: str = "",
        tone: str = "formal",
        industry: str = "technology",
        company_culture: str = "corporate",
        length: str = "standard",
        writing_style: str = "direct",
        variation: int = 0
    ) -> str:
        """
        Generate one cover letter.

        Args:
            candidate: name, headline, skills (list), years_experience, summary
            variation: 0-based index; later variations are steered away from the first
        """
        length_opt = LENGTH_OPTIONS.get(length, LENGTH_OPTIONS["standard"])
        tone_opt = TONE_OPTIONS.get(tone, TONE_OPTIONS["formal"])
        industry_opt = INDUSTRY_SETTINGS.get(industry, INDUSTRY_SETTINGS["general"])
        culture_opt = COMPANY_CULTURE.get(company_culture, COMPANY_CULTURE["corporate"])
        style_opt = WRITING_STYLE.get(writing_style, WRITING_STYLE["direct"])

        prompt = ai_prompts.COVER_LETTER_PROMPT.format(
            name=candidate.get("name") or "",
            headline=candidate.get("headline") or "",
            skills=", ".join(candidate.get("skills") or []),
            years_experience=candidate.get("years_experience") or "",
            summary=candidate.get("summary") or "",
            resume_text=resume_text[:3000] or "Not provided",
            company_name=company_name,
            role=role,
            job_description=job_description[:3000] or "Not provided",
            tone=tone,
            tone_guidelines=tone_opt["guidelines"],
            industry=industry,
            industry_focus=industry_opt["focus"],
            industry_keywords=", ".join(industry_opt["keywords"]),
            company_culture=company_culture,
            culture_language=culture_opt["language"],
            writing_style=writing_style,
            style_guidelines=style_opt["guidelines"],
            min_words=length_opt["min_words"],
            max_words=length_opt["max_words"],
            paragraphs=length_opt["paragraphs"],
            variation_note=VARIATION_NOTES[min(variation, len(VARIATION_NOTES) - 1)],
        )

        # Later variations run a little hotter for diversity
        temperature = min(1.0, self.temperature + 0.1 * variation)
        response = await self._generate(prompt, temperature=temperature,
                                        max_tokens=length_opt["max_tokens"])
        return self._clean_cover_letter(response)

    def _clean_cover_letter(self, text: str) -> str:
        """Clean up AI-generated cover letter."""
        preambles = [
            r"^(Here'?s?|Below is|I'?ve written|This is) (a |the |your )?(tailored )?cover letter.*?:\s*",
            r"^Sure[,!]?\s*(here'?s?|I'?ll write).*?:\s*",
            r"^\*\*.*?\*\*\s*",
        ]
        for pattern in preambles:
            text = re.sub(pattern, "", text, flags=re.IGNORECASE)

        if not text.strip().startswith("Dear"):
            match = re.search(r"(Dear\s+\w+)", text, re.IGNORECASE)
            if match:
                text = text[match.start():]

        return text.strip()

    # --- Resumes ---

    async def tailor_resume(self, resume_text: str, job_title: str, company: str,
                            job_description: str) -> Dict:
        """
        Tailored summary and bullet rewrites for a job.

        Returns:
            Dict with summary, experience [{index, responsibilities}],
            skills_to_emphasize, skills_to_add, match_notes
        """
        prompt = ai_prompts.RESUME_TAILORING_PROMPT.format(
            resume_text=resume_text[:4000],
            job_title=job_title,
            company=company,
            job_description=(job_description or "Not provided")[:4000],
        )
        result = await self._generate_json(prompt, temperature=0.4, max_tokens=2048)
        if not isinstance(result.get("experience"), list):
            result["experience"] = []
        return result

    # --- Interview coaching ---

    async def interview_questions(self, title: str, company: str, interview_type: str,
                                  job_description: str = "", focus: Optional[str] = None,
                                  count: int = 8) -> List[Dict]:
        prompt = ai_prompts.INTERVIEW_QUESTIONS_PROMPT.format(
            title=title,
            company=company,
            interview_type=interview_type,
            focus=focus or "general",
            job_description=(job_description or "Not provided")[:3000],
            count=count,
        )
        result = await self._generate_json(prompt, temperature=0.6)
        questions = [q for q in result.get("questions") or [] if isinstance(q, dict) and q.get("question")]
        if not questions:
            raise AIServiceError("AI returned no interview questions")
        return questions[:count]

    async def answer_feedback(self, title: str, company: str, question: str, answer: str) -> Dict:
        prompt = ai_prompts.ANSWER_FEEDBACK_PROMPT.format(
            title=title,
            company=company,
            question=question,
            answer=answer[:6000],
        )
        result = await self._generate_json(prompt, temperature=0.3)
        try:
            result["score"] = max(1, min(10, int(result.get("score", 5))))
        except (TypeError, ValueError):
            result["score"] = 5
        return result

    # --- Jobs ---

    async def analyze_job_description(self, job_description: str) -> Dict:
        """
        Use AI to analyze a job description in depth.

        Returns:
            Dict with skills, experience level, responsibilities, culture signals, red flags
        """
        prompt = ai_prompts.JOB_ANALYSIS_PROMPT.format(job_description=job_description[:4000])
        return await self._generate_json(prompt, temperature=0.3)


# Global service instance for convenience
ai_service = AIService()
