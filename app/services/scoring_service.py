"""
Scoring Engine

PURPOSE:
Combine a deterministic experience score with LLM-assessed category
scores into one composite 0-100 integer per candidate and job.

HOW IT WORKS:
1. Experience (no LLM): months per category saturate linearly
   professional  24 months -> 30 points
   freelancing   12 months ->  8 points
   internship     6 months ->  7 points
2. Everything else (LLM): skills{technical, tools, soft}, roleFit,
   education, location, other - each clamped into its cap
3. Composite: sum of the clamped parts, clamped to [0, 100], rounded

WHY SPLIT?
- Months of experience are auditable facts, so the LLM never scores them
- Qualitative fit needs judgment, but no category can dominate the total
"""

import json
import logging
import math
from typing import Any, Dict

from app.core.errors import LLMMalformedOutput
from app.services.cv_structurer import has_experience_months, normalize_profile
from app.services.llm_client import LLMClient, get_llm_client
from app.utils.json_coercion import coerce_json, is_failure

logger = logging.getLogger(__name__)


# (threshold months, cap points)
EXPERIENCE_CAPS = {
    "professional": (24, 30),
    "freelancing": (12, 8),
    "internship": (6, 7),
}
_PROFILE_MONTH_KEYS = {
    "professional": "professionalJob",
    "freelancing": "freelancing",
    "internship": "internship",
}

SKILL_CAPS = {"technical": 18, "tools": 4, "soft": 3}
CATEGORY_CAPS = {"roleFit": 10, "education": 10, "location": 5, "other": 5}

MAX_SCORE = 100


ANALYSIS_PROMPT = """You are a strict recruiter scoring a candidate against a job.

Job criteria:
{criteria}

Candidate profile:
{profile}

Rules:
- Do NOT compute experience. Experience is scored separately from months only.
- Do NOT invent numbers. Score only what the profile supports.
- Scores are raw numbers within these ranges:
  skills.technical 0-18, skills.tools 0-4, skills.soft 0-3,
  roleFit 0-10, education 0-10, location 0-5, other 0-5

Return ONLY a JSON object:
{{
  "skills": {{ "technical": 0, "tools": 0, "soft": 0 }},
  "roleFit": 0,
  "education": 0,
  "location": 0,
  "other": 0,
  "matchDetails": "",
  "strengths": [],
  "gaps": [],
  "recommendations": [],
  "matchedSkills": [],
  "experienceMatch": ""
}}"""


# ============================================================
# DETERMINISTIC HALF
# ============================================================

def clamp(value: Any, cap: float, floor: float = 0) -> float:
    """Clamp a possibly non-numeric value into [floor, cap]."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return float(floor)
    if math.isnan(number):
        return float(floor)
    return min(max(number, floor), cap)


def experience_points(months: Any, threshold: int, cap: int) -> float:
    """min(months / threshold, 1) * cap, rounded to 2 decimals."""
    ratio = min(clamp(months, float("inf")) / threshold, 1)
    return round(ratio * cap, 2)


def experience_breakdown(personal_info: dict) -> Dict[str, float]:
    """
    Per-category experience points. Each sub-cap stands alone; the
    total is not re-capped (45 is the ceiling by construction).
    """
    personal_info = personal_info or {}
    breakdown = {}
    for category, (threshold, cap) in EXPERIENCE_CAPS.items():
        months = personal_info.get(_PROFILE_MONTH_KEYS[category], 0)
        breakdown[category] = experience_points(months, threshold, cap)
    breakdown["total"] = round(sum(breakdown[c] for c in EXPERIENCE_CAPS), 2)
    return breakdown


def composite_score(parts) -> int:
    """Sum, clamp to [0, 100], round half up."""
    total = clamp(sum(parts), MAX_SCORE)
    return int(math.floor(total + 0.5))


def build_breakdown(personal_info: dict, category_scores: dict) -> Dict[str, Any]:
    """
    Combine experience months and LLM category scores into a
    ScoreBreakdown. Never fails: bad inputs clamp to 0.
    """
    category_scores = category_scores if isinstance(category_scores, dict) else {}
    experience = experience_breakdown(personal_info)

    raw_skills = category_scores.get("skills")
    raw_skills = raw_skills if isinstance(raw_skills, dict) else {}
    skills = {
        name: round(clamp(raw_skills.get(name), cap), 2)
        for name, cap in SKILL_CAPS.items()
    }
    skills["total"] = round(sum(skills[name] for name in SKILL_CAPS), 2)

    breakdown = {"experience": experience, "skills": skills}
    for name, cap in CATEGORY_CAPS.items():
        breakdown[name] = round(clamp(category_scores.get(name), cap), 2)

    breakdown["total"] = composite_score(
        [experience["total"], skills["total"]] + [breakdown[name] for name in CATEGORY_CAPS]
    )
    return breakdown


def _text_list(value: Any) -> list:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item not in (None, "")]


# ============================================================
# LLM-ASSISTED HALF
# ============================================================

class CandidateScorer:
    """
    Scores one structured profile against job criteria.

    The LLM call may raise (rate limit, transport, malformed output);
    the caller records a failed result in that case.
    """

    def __init__(self, llm_client: LLMClient = None):
        self.llm = llm_client or get_llm_client()

    def assess(self, profile: dict, criteria: dict) -> Dict[str, Any]:
        """
        Returns:
            {
                "score": 0-100,
                "score_breakdown": {...},
                "strengths": [], "gaps": [], "recommendations": [],
                "matched_skills": [], "match_details": "", "experience_match": ""
            }
        """
        prompt = ANALYSIS_PROMPT.format(
            criteria=json.dumps(criteria or {}, default=str),
            profile=json.dumps(profile, default=str),
        )
        raw = self.llm.complete(None, prompt, temperature=0.1, json_mode=True)
        result = coerce_json(raw)
        if is_failure(result) or not isinstance(result, dict):
            logger.warning("Scoring returned malformed JSON: %.200s", raw)
            raise LLMMalformedOutput(raw_text=raw)

        breakdown = build_breakdown(profile.get("personalInfo"), result)
        return {
            "score": breakdown["total"],
            "score_breakdown": breakdown,
            "match_details": str(result.get("matchDetails") or ""),
            "strengths": _text_list(result.get("strengths")),
            "gaps": _text_list(result.get("gaps")),
            "recommendations": _text_list(result.get("recommendations")),
            "matched_skills": _text_list(result.get("matchedSkills")),
            "experience_match": str(result.get("experienceMatch") or ""),
        }

    def assess_stored(self, extracted_data: dict, criteria: dict) -> Dict[str, Any]:
        """
        Score previously stored profile data (no re-extraction).
        Profiles saved before the month counters existed score 0
        experience; `profile_incomplete` makes that visible.
        """
        incomplete = not has_experience_months(extracted_data)
        analysis = self.assess(normalize_profile(extracted_data), criteria)
        analysis["score_breakdown"]["profile_incomplete"] = incomplete
        return analysis


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def get_candidate_scorer() -> CandidateScorer:
    """Get candidate scorer instance."""
    return CandidateScorer()
