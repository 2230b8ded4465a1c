"""
Analyzer Routes - bulk CV screening

POST /analyzer/upload - Stage CV files (PDF/DOCX/TXT) into a run
POST /analyzer/analyze - Score a staged run, streamed as NDJSON
GET /analyzer/rank - Results of a batch, best score first
POST /analyzer/clear - Drop a staged run
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Depends, UploadFile, File, Form, Query
from fastapi.responses import StreamingResponse

from app.core.errors import ExtractionFailed, NotFound, ValidationFailed
from app.services import job_lookup
from app.services.batch_orchestrator import get_batch_orchestrator
from app.services.mongo_service import BatchService
from app.services.staging_store import CvStagingStore, get_staging_store
from app.utils.file_upload import extract_text, validate_upload
from app.schemas.schemas import (
    AnalyzeRequest, ClearRunRequest, RankResponse, UploadResponse, MessageResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analyzer", tags=["Analyzer"])


def rank_key(resume: dict):
    """Completed entries by score (desc), failed entries last."""
    analysis = resume.get("analysis") or {}
    completed = analysis.get("status") == "completed"
    return (0 if completed else 1, -(analysis.get("score") or 0))


@router.post("/upload", response_model=UploadResponse)
async def upload_cvs(
    files: List[UploadFile] = File(..., description="CV files (PDF, DOCX, or TXT)"),
    run_id: Optional[str] = Form(None),
    store: CvStagingStore = Depends(get_staging_store)
):
    """
    Validate and stage CVs for a screening run.

    Each file is checked on its own; a bad file is reported in
    `errors` and never fails the whole request. Uploading into an
    existing run id replaces what was staged there.
    """
    if run_id:
        store.clear(run_id)
    else:
        run_id = store.new_run_id()

    cvs, errors = [], []
    for file in files:
        try:
            content = await file.read()
            validate_upload(file.filename, content, file.content_type)
            if not extract_text(content, file.filename, file.content_type).strip():
                raise ExtractionFailed("Could not extract text from file")
        except (ValidationFailed, ExtractionFailed) as e:
            logger.info("Rejected upload %s: %s", file.filename, e.message)
            errors.append({"filename": file.filename, "error": e.message})
            continue

        cv = store.create(run_id, file.filename, content, file.content_type)
        cvs.append(cv.summary())

    return UploadResponse(
        success=len(cvs) > 0,
        run_id=run_id,
        cvs=cvs,
        errors=errors,
        summary={
            "totalFiles": len(files),
            "processedFiles": len(cvs),
            "failedFiles": len(errors),
        },
    )


@router.post("/analyze")
async def analyze_batch(
    data: AnalyzeRequest,
    store: CvStagingStore = Depends(get_staging_store)
):
    """
    Structure and score every CV staged under `run_id`.

    Response is newline-delimited JSON, one object per CV:
    - success: {cv, extractedData, analysis}
    - failure: {cv, analysis: {status: "failed", error}}
    A rate-limit failure is the last line of an aborted run.
    """
    try:
        job_id, criteria = job_lookup.resolve_job(data.job_id, data.criteria)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=e.message)

    cvs = store.list(data.run_id)
    logger.info("Analyzing %d CVs of run %s for job %s", len(cvs), data.run_id, job_id)

    orchestrator = get_batch_orchestrator()
    return StreamingResponse(
        orchestrator.stream(data.batch_id, data.batch_name, job_id, criteria, cvs),
        media_type="application/x-ndjson",
    )


@router.get("/rank", response_model=RankResponse)
async def rank_batch(job_id: int = Query(...), batch_id: str = Query(..., min_length=1)):
    """Batch results sorted by composite score, highest first."""
    batch = BatchService().get(job_id, batch_id)
    if batch is None:
        raise HTTPException(status_code=404, detail="Batch not found")

    results = sorted(batch.get("resumes", []), key=rank_key)
    return RankResponse(
        batch_id=batch["batch_id"],
        job_id=batch.get("job_id"),
        total=len(results),
        results=results,
    )


@router.post("/clear", response_model=MessageResponse)
async def clear_run(data: ClearRunRequest, store: CvStagingStore = Depends(get_staging_store)):
    """Drop every CV staged under a run id."""
    removed = store.clear(data.run_id)
    return MessageResponse(message=f"Cleared {removed} staged CVs")
