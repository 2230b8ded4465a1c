"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Any, Dict, Union
from datetime import datetime
from enum import Enum


# ============================================================
# ENUMS
# ============================================================

class ApplicantStatus(str, Enum):
    applied = "Applied"
    reviewed = "Reviewed"
    shortlisted = "Shortlisted"
    interviewed = "Interviewed"
    hired = "Hired"
    rejected = "Rejected"


class ApplicantSource(str, Enum):
    portal = "Portal"
    bulk = "Bulk"


class BatchStatus(str, Enum):
    idle = "idle"
    uploaded = "uploaded"
    processing = "processing"
    completed = "completed"
    failed = "failed"


# ============================================================
# ANALYZER SCHEMAS
# ============================================================

class StagedCvResponse(BaseModel):
    id: str
    filename: str
    upload_date: str

class UploadError(BaseModel):
    filename: Optional[str] = None
    error: str

class UploadSummary(BaseModel):
    totalFiles: int
    processedFiles: int
    failedFiles: int

class UploadResponse(BaseModel):
    success: bool
    run_id: str
    cvs: List[StagedCvResponse] = []
    errors: List[UploadError] = []
    summary: UploadSummary

class AnalyzeRequest(BaseModel):
    run_id: str = Field(..., min_length=1)
    batch_id: Optional[str] = None
    batch_name: str = Field(..., min_length=1, max_length=200)
    job_id: Union[int, str]
    criteria: Optional[Dict[str, Any]] = None

    @field_validator("job_id")
    @classmethod
    def job_id_not_blank(cls, v):
        if isinstance(v, str) and not v.strip():
            raise ValueError("job_id is required")
        return v

class ClearRunRequest(BaseModel):
    run_id: str = Field(..., min_length=1)

class RankResponse(BaseModel):
    batch_id: str
    job_id: Any = None
    total: int
    results: List[Dict[str, Any]]


# ============================================================
# BATCH SCHEMAS
# ============================================================

class BatchResumeUpdate(BaseModel):
    cv_id: str
    analysis: Dict[str, Any]

class BatchResponse(BaseModel):
    batch_id: str
    job_id: Any
    batch_number: int
    name: str
    status: BatchStatus
    is_idle: bool
    is_uploaded: bool
    is_processing: bool
    is_completed: bool
    is_failed: bool
    resumes: List[Dict[str, Any]] = []
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ============================================================
# APPLICANT SCHEMAS
# ============================================================

class ApplicantCreate(BaseModel):
    job_id: int
    user_id: int
    resume_url: Optional[str] = None

class BulkApplicantCreate(BaseModel):
    job_id: int
    extracted_data: Dict[str, Any]
    score: int = Field(0, ge=0, le=100)
    score_breakdown: Optional[Dict[str, Any]] = None
    batch_id: Optional[str] = None

class ApplicantStatusUpdate(BaseModel):
    status: ApplicantStatus

class PortalScoreRequest(BaseModel):
    criteria: Optional[Dict[str, Any]] = None

class PortalScoreResponse(BaseModel):
    job_id: int
    scored: int
    skipped: int
    failed: int
    aborted: bool
    error: Optional[str] = None

class ApplicantListResponse(BaseModel):
    applicants: List[Dict[str, Any]]
    total: int


# ============================================================
# RESUME SCHEMAS
# ============================================================

class ResumeUploadResponse(BaseModel):
    success: bool
    message: str
    filename: Optional[str] = None
    resume_id: Optional[str] = None
    parsed_data: Optional[dict] = None

class EnrichRequest(BaseModel):
    parsed_data: Dict[str, Any]
    selected_fields: Dict[str, Any] = {}


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True

class ErrorResponse(BaseModel):
    detail: str
    success: bool = False
