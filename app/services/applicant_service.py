"""
Applicant Service - turns scored profiles into applicant records.

1. ApplicantDeduplicator  - batch results -> bulk applicants (idempotent)
2. ApplicantIntake        - single portal / bulk applicant creation
3. PortalApplicantScorer  - on-demand scoring of stored portal profiles

Identity rules per job:
- a portal applicant is unique by user
- a bulk applicant is unique by (lower-cased) email
- an email already held by ANY live applicant blocks a new bulk record
"""

import logging
import time
from typing import Callable, Dict, List, Optional

from bson import ObjectId

from app.core.config import get_settings
from app.core.errors import DuplicateApplicant, NotFound, ValidationFailed, is_rate_limit_error
from app.services import job_lookup
from app.services.mongo_service import (
    ApplicantService,
    BatchService,
    ParsedResumeService,
    SOURCE_BULK,
    SOURCE_PORTAL,
)
from app.services.scoring_service import CandidateScorer
from app.utils.gpa import best_gpa

settings = get_settings()
logger = logging.getLogger(__name__)


def _profile_email(profile: dict) -> str:
    info = (profile or {}).get("personalInfo") or {}
    return str(info.get("email") or "").strip().lower()


def _education(profile: dict) -> list:
    education = (profile or {}).get("education")
    return education if isinstance(education, list) else []


# ============================================================
# BULK APPLICANTS FROM BATCHES
# ============================================================

class ApplicantDeduplicator:
    """
    Materializes a batch's scored resumes as bulk applicants.
    Running it again on the same batch creates nothing new.
    """

    def __init__(self, applicant_service: ApplicantService = None):
        self.applicants = applicant_service or ApplicantService()

    def materialize(self, batch: dict) -> List[dict]:
        """
        Returns:
            Applicants created by this call (skipped resumes are not included)
        """
        if not batch:
            return []

        job_id = batch["job_id"]
        created = []
        for resume in batch.get("resumes", []):
            analysis = resume.get("analysis") or {}
            if not (analysis.get("locked") and analysis.get("status") == "completed"):
                continue

            profile = resume.get("extracted_data") or {}
            email = _profile_email(profile)
            if not email:
                logger.info("Skipping CV %s: no email extracted", resume.get("cv", {}).get("id"))
                continue

            existing = self.applicants.find_by_email(job_id, email)
            if existing:
                logger.debug("Skipping %s: already a %s applicant for job %s",
                             email, existing.get("source"), job_id)
                continue

            try:
                applicant = self.applicants.create(
                    job_id=job_id,
                    source=SOURCE_BULK,
                    user_id=str(ObjectId()),
                    email=email,
                    batch_id=batch.get("batch_id"),
                    extracted_data=profile,
                    score=analysis.get("score", 0),
                    score_breakdown=analysis.get("score_breakdown"),
                    gpa=best_gpa(_education(profile)),
                )
            except DuplicateApplicant:
                # Lost a race with a concurrent insert
                continue
            created.append(applicant)

        return created


# ============================================================
# SINGLE APPLICANT CREATION
# ============================================================

class ApplicantIntake:
    """Creates portal and manually-added bulk applicants."""

    def __init__(
        self,
        applicant_service: ApplicantService = None,
        parsed_resume_service: ParsedResumeService = None,
    ):
        self.applicants = applicant_service or ApplicantService()
        self.parsed_resumes = parsed_resume_service or ParsedResumeService()

    def create_portal(self, job_id: int, user_id: int, resume_url: str = None) -> dict:
        """
        A registered user applies to a job.
        The profile is copied from the user's latest parsed resume.

        Raises:
            DuplicateApplicant: already applied, or email already in the pipeline
        """
        if self.applicants.find_portal(job_id, user_id):
            raise DuplicateApplicant("You have already applied for this job.")

        latest = self.parsed_resumes.get_latest(user_id)
        profile = latest["parsed_data"] if latest else None

        email = job_lookup.fetch_user_email(user_id) or _profile_email(profile)
        if email and self.applicants.find_by_email(job_id, email):
            raise DuplicateApplicant("This candidate is already in your pipeline for this job.")

        return self.applicants.create(
            job_id=job_id,
            source=SOURCE_PORTAL,
            user_id=user_id,
            email=email,
            resume_id=latest["_id"] if latest else None,
            resume_url=resume_url,
            extracted_data=profile,
            gpa=best_gpa(_education(profile)),
        )

    def create_bulk(self, job_id: int, profile: dict, score: int = 0,
                    score_breakdown: dict = None, batch_id: str = None) -> dict:
        email = _profile_email(profile)
        if not email:
            raise ValidationFailed("Candidate email is required")
        if self.applicants.find_by_email(job_id, email):
            raise DuplicateApplicant("This candidate is already in your pipeline for this job.")

        return self.applicants.create(
            job_id=job_id,
            source=SOURCE_BULK,
            user_id=str(ObjectId()),
            email=email,
            batch_id=batch_id,
            extracted_data=profile,
            score=score,
            score_breakdown=score_breakdown,
            gpa=best_gpa(_education(profile)),
        )

    def materialize_job(self, job_id: int) -> int:
        """Run the deduplicator over every live batch of a job."""
        deduplicator = ApplicantDeduplicator(self.applicants)
        created = 0
        for batch in BatchService().list_by_job(job_id):
            created += len(deduplicator.materialize(batch))
        return created


# ============================================================
# PORTAL ON-DEMAND SCORING
# ============================================================

class PortalApplicantScorer:
    """
    Scores not-yet-scored portal applicants against stored profiles.
    Applicants with score > 0 are skipped, so re-runs are safe.
    """

    def __init__(
        self,
        scorer: CandidateScorer = None,
        applicant_service: ApplicantService = None,
        sleep: Callable[[float], None] = time.sleep,
        min_delay_ms: int = None,
    ):
        self.scorer = scorer or CandidateScorer()
        self.applicants = applicant_service or ApplicantService()
        self.sleep = sleep
        self.min_delay_ms = settings.llm_min_delay_ms if min_delay_ms is None else min_delay_ms

    def score_job(self, job_id: int, criteria: dict) -> Dict:
        """
        Returns:
            {"scored": n, "skipped": n, "failed": n, "aborted": bool, "error": str|None}
        """
        summary = {"scored": 0, "skipped": 0, "failed": 0, "aborted": False, "error": None}
        calls = 0

        for applicant in self.applicants.list_unscored_portal(job_id):
            profile = applicant.get("extracted_data")
            if not profile:
                summary["skipped"] += 1
                continue

            if calls > 0 and self.min_delay_ms > 0:
                self.sleep(self.min_delay_ms / 1000)
            calls += 1

            try:
                analysis = self.scorer.assess_stored(profile, criteria)
            except Exception as e:
                summary["failed"] += 1
                if is_rate_limit_error(e):
                    summary["aborted"] = True
                    summary["error"] = getattr(e, "message", None) or str(e)
                    logger.error("Portal scoring for job %s aborted on rate limit", job_id)
                    break
                logger.warning("Scoring applicant %s failed: %s", applicant["_id"], e)
                continue

            self.applicants.update_score(
                applicant["_id"], analysis["score"], analysis["score_breakdown"]
            )
            summary["scored"] += 1

        logger.info("Portal scoring for job %s: %s", job_id, summary)
        return summary


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def get_applicant_or_404(applicant_id: str, service: Optional[ApplicantService] = None) -> dict:
    applicant = (service or ApplicantService()).get(applicant_id)
    if applicant is None:
        raise NotFound("Applicant not found")
    return applicant
