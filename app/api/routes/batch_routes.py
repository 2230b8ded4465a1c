"""
Batch Routes

Batch ids are unique per job, so a batch is always addressed under its job.

GET /batches/job/{job_id} - List batches of a job
GET /batches/job/{job_id}/{batch_id} - Get one batch with its results
PUT /batches/job/{job_id}/{batch_id}/resume - Update an unlocked result
POST /batches/job/{job_id}/{batch_id}/clear - Empty a batch (back to idle)
DELETE /batches/job/{job_id}/{batch_id} - Soft delete a batch
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

from app.core.errors import NotFound, ResultLocked
from app.services.mongo_service import BatchService
from app.schemas.schemas import (
    BatchResponse, BatchResumeUpdate, MessageResponse
)

router = APIRouter(prefix="/batches", tags=["Batches"])


@router.get("/job/{job_id}", response_model=List[BatchResponse])
async def list_batches(job_id: int):
    """All live batches for a job, in batch-number order."""
    return BatchService().list_by_job(job_id)


@router.get("/job/{job_id}/{batch_id}", response_model=BatchResponse)
async def get_batch(job_id: int, batch_id: str):
    batch = BatchService().get(job_id, batch_id)
    if batch is None:
        raise HTTPException(status_code=404, detail="Batch not found")
    return batch


@router.put("/job/{job_id}/{batch_id}/resume")
async def update_batch_resume(job_id: int, batch_id: str, data: BatchResumeUpdate):
    """
    Patch the analysis of one result.
    Scored (locked) results are immutable.
    """
    try:
        return BatchService().update_resume_analysis(job_id, batch_id, data.cv_id, data.analysis)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ResultLocked as e:
        raise HTTPException(status_code=409, detail=e.message)


@router.post("/job/{job_id}/{batch_id}/clear", response_model=MessageResponse)
async def clear_batch(job_id: int, batch_id: str):
    if not BatchService().clear(job_id, batch_id):
        raise HTTPException(status_code=404, detail="Batch not found")
    return MessageResponse(message="Batch cleared")


@router.delete("/job/{job_id}/{batch_id}", response_model=MessageResponse)
async def delete_batch(job_id: int, batch_id: str, deleted_by: Optional[int] = Query(None)):
    """Soft delete. The batch stays in storage with is_deleted set."""
    if not BatchService().soft_delete(job_id, batch_id, deleted_by=deleted_by):
        raise HTTPException(status_code=404, detail="Batch not found")
    return MessageResponse(message="Batch deleted")
