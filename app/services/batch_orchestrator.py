"""
Batch Orchestrator

PURPOSE:
Run one screening batch: every staged CV is structured, scored,
persisted into the batch and emitted as one NDJSON line.

FLOW (strictly sequential, one CV at a time):
    staged CVs -> throttle -> structure (LLM #1) -> score (LLM #2)
               -> emit record -> persist into batch
    exhausted  -> batch completed -> materialize bulk applicants
    rate limit -> emit failure   -> batch failed -> stop

Per-CV results are CvOutcome values, so "one bad CV never aborts the
run, a rate limit always does" is a single explicit branch.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, Iterator, Optional

from app.core.config import get_settings
from app.core.errors import PipelineError, is_rate_limit_error
from app.services.applicant_service import ApplicantDeduplicator
from app.services.cv_structurer import CvStructurer
from app.services.mongo_service import BatchService
from app.services.scoring_service import CandidateScorer
from app.services.staging_store import StagedCv

settings = get_settings()
logger = logging.getLogger(__name__)


# ============================================================
# PER-CV RESULT
# ============================================================

@dataclass
class CvOutcome:
    """Result of processing one CV: success carries a profile and analysis."""
    cv: dict
    profile: Optional[dict] = None
    analysis: Dict = field(default_factory=dict)
    error: Optional[str] = None
    rate_limited: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, cv: dict, profile: dict, analysis: dict) -> "CvOutcome":
        analysis = {
            **analysis,
            "locked": True,
            "status": "completed",
            "analyzed_at": datetime.now(timezone.utc).isoformat(),
        }
        return cls(cv=cv, profile=profile, analysis=analysis)

    @classmethod
    def failure(cls, cv: dict, exc: Exception) -> "CvOutcome":
        message = exc.message if isinstance(exc, PipelineError) else str(exc)
        return cls(
            cv=cv,
            analysis={"status": "failed", "error": message},
            error=message,
            rate_limited=is_rate_limit_error(exc),
        )

    def stream_record(self) -> dict:
        """Shape emitted to the caller."""
        if self.ok:
            return {"cv": self.cv, "extractedData": self.profile, "analysis": self.analysis}
        return {"cv": self.cv, "analysis": self.analysis}

    def stored_record(self) -> dict:
        """Shape appended to batch.resumes."""
        return {"cv": self.cv, "extracted_data": self.profile, "analysis": self.analysis}


def to_ndjson(record: dict) -> str:
    return json.dumps(record, default=str) + "\n"


# ============================================================
# ORCHESTRATOR
# ============================================================

class BatchOrchestrator:
    """
    Drives a batch run. `run()` is a generator: the HTTP layer streams
    whatever it yields, so nothing happens until the caller iterates.
    """

    def __init__(
        self,
        structurer: CvStructurer = None,
        scorer: CandidateScorer = None,
        batch_service: BatchService = None,
        deduplicator=None,
        sleep: Callable[[float], None] = time.sleep,
        min_delay_ms: int = None,
    ):
        self.structurer = structurer or CvStructurer()
        self.scorer = scorer or CandidateScorer()
        self.batch_service = batch_service or BatchService()
        self.deduplicator = deduplicator
        self.sleep = sleep
        self.min_delay_ms = settings.llm_min_delay_ms if min_delay_ms is None else min_delay_ms

    def process_cv(self, cv: StagedCv, criteria: dict) -> CvOutcome:
        """Structure and score one CV; every exception becomes a failure outcome."""
        ref = cv.summary()
        try:
            profile = self.structurer.structure(cv.content, cv.filename, cv.content_type)
            analysis = self.scorer.assess(profile, criteria)
        except Exception as e:
            log = logger.error if is_rate_limit_error(e) else logger.warning
            log("CV %s (%s) failed: %s", cv.id, cv.filename, e)
            return CvOutcome.failure(ref, e)

        logger.info("CV %s (%s) scored %s", cv.id, cv.filename, analysis["score"])
        return CvOutcome.success(ref, profile, analysis)

    def run(
        self,
        batch_id: Optional[str],
        batch_name: str,
        job_id,
        criteria: dict,
        cvs: Iterable[StagedCv],
    ) -> Iterator[dict]:
        """
        Process the worklist in order and yield one stream record per CV.

        The batch is created (or reset) right before the first CV, so an
        empty worklist touches no storage.
        """
        batch = None
        for index, cv in enumerate(cvs):
            if batch is None:
                batch = self.batch_service.start_run(batch_id, job_id, batch_name)
                batch_id = batch["batch_id"]
                logger.info("Batch %s processing for job %s", batch_id, job_id)

            if index > 0 and self.min_delay_ms > 0:
                self.sleep(self.min_delay_ms / 1000)

            outcome = self.process_cv(cv, criteria)
            # Emitted before it is persisted
            yield outcome.stream_record()
            self.batch_service.append_resume(job_id, batch_id, outcome.stored_record())

            if outcome.rate_limited:
                self.batch_service.set_status(job_id, batch_id, "failed", error=outcome.error)
                logger.error("Batch %s aborted on rate limit after CV %s", batch_id, cv.id)
                return

        if batch is None:
            logger.info("Nothing staged for batch %s", batch_id or batch_name)
            return

        self.batch_service.set_status(job_id, batch_id, "completed")
        logger.info("Batch %s completed", batch_id)

        if self.deduplicator is not None:
            created = self.deduplicator.materialize(self.batch_service.get(job_id, batch_id))
            logger.info("Batch %s created %d bulk applicants", batch_id, len(created))

    def stream(self, *args, **kwargs) -> Iterator[str]:
        """`run()` encoded as newline-delimited JSON."""
        for record in self.run(*args, **kwargs):
            yield to_ndjson(record)


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def get_batch_orchestrator() -> BatchOrchestrator:
    """Orchestrator that materializes bulk applicants on completion."""
    return BatchOrchestrator(deduplicator=ApplicantDeduplicator())
