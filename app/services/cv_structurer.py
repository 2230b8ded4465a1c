"""
CV Structuring Service - resume file -> normalized candidate profile.

PURPOSE:
1. Extract text from the uploaded file (PDF/DOCX/TXT)
2. Ask the LLM for a fixed JSON schema (JSON mode, temperature 0.1)
3. Coerce the output into JSON (never trusting it)
4. Normalize into a CandidateProfile with every key guaranteed present

The profile keeps the camelCase keys the model is asked for; they are
also the stored shape of `extracted_data` on batches and applicants.
"""

import json
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from app.core.config import get_settings
from app.core.errors import ExtractionFailed, LLMMalformedOutput
from app.services.llm_client import LLMClient, get_llm_client
from app.services.mongo_service import ParsedResumeService
from app.utils.file_upload import extract_text, truncate_text
from app.utils.json_coercion import coerce_json, is_failure

settings = get_settings()
logger = logging.getLogger(__name__)

EXPERIENCE_MONTH_FIELDS = ("professionalJob", "internship", "freelancing")


# ============================================================
# PROMPTS
# ============================================================

PROFILE_PROMPT = """You are a professional CV parser. Extract data from the CV and return a VALID JSON object.

CRITICAL INSTRUCTIONS for 'personalInfo':
You must include these specific keys for the experience chart:
- "professionalJob": Total number of months in Corporate/Full-time roles.
- "internship": Total number of months in Internship roles.
- "freelancing": Total number of months in Freelance/Contract roles.

Calculation Rule: If a role is "Aug 2024 - Present" and today is Jan 2026, that is 17 months.
Today is {today}. Count months, not years. Use 0 when a category does not apply.

Return format:
{{
  "personalInfo": {{
    "fullName": "Name here",
    "email": "Email here",
    "phone": "Phone here",
    "location": "City, Country",
    "professionalJob": 0,
    "internship": 0,
    "freelancing": 0
  }},
  "education": [{{ "degree": "", "institution": "", "gpa": "", "duration": "" }}],
  "experience": [{{ "role": "", "company": "", "years": "", "responsibilities": [] }}],
  "skills": {{ "technical": [], "soft": [], "tools": [] }}
}}"""

BASIC_PARSE_PROMPT = """Extract:

- name
- email
- phone
- skills
- summary
- education (degree, institution, year)
- experience (role, company, years)
- projects (name, domain, description, link)
- certifications (name)
- location
- github
- linkedin
- title

Return ONLY JSON."""

ACADEMIC_PARSE_PROMPT = """Extract structured academic CV info.

Return ONLY JSON:

{
  "name": "",
  "email": "",
  "phone": "",
  "citations": "",
  "impactFactor": "",
  "scholar": "",
  "education": [{"degree":"","institution":"","year":""}],
  "experience": [{"role":"","company":"","years":""}],
  "achievements": [],
  "bookAuthorship": [],
  "journalGuestEditor": [],
  "researchPublications": [],
  "msSupervised": [],
  "phdStudentsSupervised": [],
  "researchProjects": [],
  "professionalActivities": [],
  "professionalTraining": [],
  "technicalSkills": [],
  "membershipsAndOtherAssociations": [],
  "reference": []
}"""

ENRICH_PROMPT = """You are a professional resume analyst.

Return ONLY JSON:

{
  "summary_improvement": "",
  "missing_sections": [],
  "missing_details": [],
  "suggested_additions": [],
  "tone_recommendation": ""
}"""


# ============================================================
# PROFILE NORMALIZATION (single source of truth for defaults)
# ============================================================

def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _months(value: Any) -> int:
    """Non-negative integer month count; anything unusable is 0."""
    try:
        months = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, months)


def _string_list(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [_text(item) for item in value if _text(item)]


def _dict_list(value: Any) -> List[dict]:
    if isinstance(value, dict):
        value = [value]
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def normalize_profile(data: Any) -> Dict[str, Any]:
    """
    Normalize raw model output into a CandidateProfile dict.

    Defaults:
        personalInfo.fullName/email/phone/location -> ""
        personalInfo.professionalJob/internship/freelancing -> 0
        education, experience -> []
        skills.technical/soft/tools -> []
    """
    if not isinstance(data, dict):
        data = {}

    info = data.get("personalInfo")
    if not isinstance(info, dict):
        info = {}

    personal_info = {
        "fullName": _text(info.get("fullName") or info.get("name")),
        "email": _text(info.get("email")).lower(),
        "phone": _text(info.get("phone")),
        "location": _text(info.get("location")),
    }
    for field in EXPERIENCE_MONTH_FIELDS:
        personal_info[field] = _months(info.get(field))

    education = []
    for entry in _dict_list(data.get("education")):
        education.append({
            "degree": _text(entry.get("degree")),
            "institution": _text(entry.get("institution") or entry.get("university")),
            "gpa": _text(entry.get("gpa") or entry.get("cgpa")),
            "duration": _text(entry.get("duration") or entry.get("year")),
        })

    experience = []
    for entry in _dict_list(data.get("experience")):
        details = entry.get("details") if isinstance(entry.get("details"), dict) else {}
        experience.append({
            "role": _text(entry.get("role") or entry.get("position") or details.get("position")),
            "company": _text(entry.get("company") or details.get("company")),
            "years": _text(entry.get("years") or entry.get("duration")),
            "responsibilities": _string_list(
                entry.get("responsibilities") or details.get("responsibilities")
            ),
        })

    raw_skills = data.get("skills")
    if isinstance(raw_skills, list):
        raw_skills = {"technical": raw_skills}
    if not isinstance(raw_skills, dict):
        raw_skills = {}
    skills = {
        "technical": _string_list(raw_skills.get("technical")),
        "soft": _string_list(raw_skills.get("soft")),
        "tools": _string_list(raw_skills.get("tools")),
    }

    return {
        "personalInfo": personal_info,
        "education": education,
        "experience": experience,
        "skills": skills,
    }


def has_experience_months(data: Any) -> bool:
    """True when stored profile data carries all three month counters."""
    info = data.get("personalInfo") if isinstance(data, dict) else None
    return isinstance(info, dict) and all(field in info for field in EXPERIENCE_MONTH_FIELDS)


# ============================================================
# CV STRUCTURER
# ============================================================

class CvStructurer:
    """
    Extractor + LLM Gateway + Coercion -> CandidateProfile.
    """

    def __init__(self, llm_client: LLMClient = None):
        self.llm = llm_client or get_llm_client()

    def build_prompt(self, today: date = None) -> str:
        today = today or datetime.now().date()
        return PROFILE_PROMPT.format(today=today.strftime("%b %Y"))

    def structure_text(self, cv_text: str, filename: str = None) -> Dict[str, Any]:
        """Structure already-extracted text."""
        cv_text = truncate_text(cv_text, settings.parse_char_limit)
        if not cv_text.strip():
            raise ExtractionFailed(f"No readable text found in {filename or 'CV'}")

        raw = self.llm.complete(
            self.build_prompt(), cv_text, temperature=0.1, json_mode=True
        )
        parsed = coerce_json(raw)
        if is_failure(parsed) or not isinstance(parsed, dict):
            logger.warning("CV parsing returned malformed JSON (%s): %.200s", filename, raw)
            raise LLMMalformedOutput(raw_text=raw)

        return normalize_profile(parsed)

    def structure(self, content: bytes, filename: str, content_type: str = None) -> Dict[str, Any]:
        """
        Full structuring for one resume file.

        Raises:
            ExtractionFailed: no readable text
            LLMMalformedOutput: coercion failed
            LLMRateLimited / LLMTransportFailed: from the gateway
        """
        text = extract_text(content, filename, content_type)
        return self.structure_text(text, filename)


# ============================================================
# STANDALONE CV TOOLS
# ============================================================

class CvToolsService:
    """
    One-shot parsers that return the coerced JSON as-is, or the
    coercion failure marker {"error", "raw"}.
    """

    def __init__(self, llm_client: LLMClient = None):
        self.llm = llm_client or get_llm_client()

    def _ask(self, prompt: str, temperature: float = 0.0) -> Any:
        raw = self.llm.complete(None, prompt, temperature=temperature, json_mode=True)
        parsed = coerce_json(raw)
        if is_failure(parsed):
            return parsed.to_dict()
        return parsed

    def parse_basic(self, text: str) -> Any:
        if not text.strip():
            raise ExtractionFailed("No readable text found")
        return self._ask(f"{BASIC_PARSE_PROMPT}\n\nResume:\n{truncate_text(text, settings.parse_char_limit)}\n")

    def parse_academic(self, text: str) -> Any:
        if not text.strip():
            raise ExtractionFailed("No readable text found")
        return self._ask(
            f"{ACADEMIC_PARSE_PROMPT}\n\nResume:\n{truncate_text(text, settings.academic_char_limit)}\n"
        )

    def enrich(self, parsed_data: dict, selected_fields: dict) -> Dict[str, Any]:
        prompt = (
            f"{ENRICH_PROMPT}\n\nParsed CV:\n{json.dumps(parsed_data)}\n\n"
            f"User Context:\n{json.dumps(selected_fields)}\n"
        )
        enriched = self._ask(prompt, temperature=0.4)
        return {
            "status": "success",
            "combined_cv": {**parsed_data, "ai_enrichment": enriched},
            "suggestions": enriched,
        }


# ============================================================
# PORTAL RESUME INTAKE
# ============================================================

class ResumeIntakeService:
    """
    Portal resume workflow:
    1. Structure the file with the CV structurer
    2. Store the profile in MongoDB (versioned per user)
    """

    def __init__(self, structurer: CvStructurer = None):
        self.structurer = structurer or CvStructurer()
        self.parsed_resume_service = ParsedResumeService()

    def parse_and_store(
        self,
        user_id: int,
        content: bytes,
        filename: str,
        content_type: Optional[str] = None
    ) -> dict:
        profile = self.structurer.structure(content, filename, content_type)
        mongo_id = self.parsed_resume_service.insert(
            user_id=user_id, filename=filename, parsed_data=profile
        )
        logger.info("Stored parsed resume %s for user %s", mongo_id, user_id)
        return {"resume_id": mongo_id, "parsed_data": profile}


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def get_cv_structurer() -> CvStructurer:
    """Get CV structurer instance."""
    return CvStructurer()


def get_cv_tools() -> CvToolsService:
    """Get CV tools service instance."""
    return CvToolsService()


def get_resume_intake() -> ResumeIntakeService:
    """Get portal resume intake service instance."""
    return ResumeIntakeService()
