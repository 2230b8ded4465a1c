"""
Applicant Routes

POST /applicants - Portal application (user applies to a job)
POST /applicants/bulk - Add one bulk applicant from a profile
GET /applicants/job/{job_id} - List applicants of a job
GET /applicants/job/{job_id}/bulk - Materialize batches, then list bulk applicants
POST /applicants/job/{job_id}/score - Score unscored portal applicants
GET /applicants/{applicant_id} - Get applicant
PUT /applicants/{applicant_id}/status - Move applicant to a new status
DELETE /applicants/{applicant_id} - Soft delete
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from app.core.errors import DuplicateApplicant, NotFound, ValidationFailed
from app.services import job_lookup
from app.services.applicant_service import (
    ApplicantIntake, PortalApplicantScorer, get_applicant_or_404
)
from app.services.mongo_service import ApplicantService, SOURCE_BULK
from app.schemas.schemas import (
    ApplicantCreate, ApplicantListResponse, ApplicantSource, ApplicantStatusUpdate,
    BulkApplicantCreate, MessageResponse, PortalScoreRequest, PortalScoreResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/applicants", tags=["Applicants"])


@router.post("", status_code=201)
async def apply_to_job(data: ApplicantCreate):
    """
    Create a portal applicant.
    The profile is taken from the user's latest parsed resume.
    """
    try:
        return ApplicantIntake().create_portal(data.job_id, data.user_id, data.resume_url)
    except DuplicateApplicant as e:
        raise HTTPException(status_code=409, detail=e.message)


@router.post("/bulk", status_code=201)
async def add_bulk_applicant(data: BulkApplicantCreate):
    try:
        return ApplicantIntake().create_bulk(
            data.job_id,
            data.extracted_data,
            score=data.score,
            score_breakdown=data.score_breakdown,
            batch_id=data.batch_id,
        )
    except ValidationFailed as e:
        raise HTTPException(status_code=400, detail=e.message)
    except DuplicateApplicant as e:
        raise HTTPException(status_code=409, detail=e.message)


@router.get("/job/{job_id}", response_model=ApplicantListResponse)
async def list_job_applicants(job_id: int, source: Optional[ApplicantSource] = Query(None)):
    applicants = ApplicantService().list_by_job(job_id, source.value if source else None)
    return ApplicantListResponse(applicants=applicants, total=len(applicants))


@router.get("/job/{job_id}/bulk", response_model=ApplicantListResponse)
async def list_bulk_applicants(job_id: int):
    """
    Bulk applicants of a job.
    Every live batch is materialized first, so results scored but
    not yet turned into applicants show up here.
    """
    created = ApplicantIntake().materialize_job(job_id)
    if created:
        logger.info("Materialized %d bulk applicants for job %s", created, job_id)
    applicants = ApplicantService().list_by_job(job_id, SOURCE_BULK)
    return ApplicantListResponse(applicants=applicants, total=len(applicants))


@router.post("/job/{job_id}/score", response_model=PortalScoreResponse)
def score_portal_applicants(job_id: int, data: Optional[PortalScoreRequest] = None):
    """
    Score portal applicants that have no score yet, from their stored
    profiles (no re-extraction). Applicants with a score are skipped.
    """
    try:
        job_id, criteria = job_lookup.resolve_job(job_id, data.criteria if data else None)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=e.message)

    summary = PortalApplicantScorer().score_job(job_id, criteria)
    return PortalScoreResponse(job_id=job_id, **summary)


@router.get("/{applicant_id}")
async def get_applicant(applicant_id: str):
    try:
        return get_applicant_or_404(applicant_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.put("/{applicant_id}/status")
async def update_applicant_status(applicant_id: str, data: ApplicantStatusUpdate):
    """Any transition is accepted; the matching is_<status> flag is set."""
    try:
        return ApplicantService().update_status(applicant_id, data.status.value)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.delete("/{applicant_id}", response_model=MessageResponse)
async def delete_applicant(applicant_id: str, deleted_by: Optional[int] = Query(None)):
    if not ApplicantService().soft_delete(applicant_id, deleted_by=deleted_by):
        raise HTTPException(status_code=404, detail="Applicant not found")
    return MessageResponse(message="Applicant deleted")
