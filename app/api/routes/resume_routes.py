"""
Resume Routes

POST /resumes/upload - Portal resume upload: structure + store (PDF/DOCX/TXT)
POST /resumes/parse - One-shot basic parse
POST /resumes/parse-academic - One-shot academic CV parse
POST /resumes/enrich - Suggestions for an already-parsed CV
GET /resumes/formats - Get supported formats
"""

from fastapi import APIRouter, HTTPException, UploadFile, File, Form

from app.core.errors import ExtractionFailed
from app.services.cv_structurer import get_cv_tools, get_resume_intake
from app.utils.file_upload import extract_text, get_supported_formats, read_upload
from app.schemas.schemas import EnrichRequest, ResumeUploadResponse

router = APIRouter(prefix="/resumes", tags=["Resumes"])


async def _read_text(file: UploadFile) -> str:
    content, filename = await read_upload(file)
    text = extract_text(content, filename, file.content_type)
    if not text.strip():
        raise HTTPException(status_code=422, detail="Could not extract text from file")
    return text


@router.post("/upload", response_model=ResumeUploadResponse)
async def upload_resume(
    user_id: int = Form(...),
    file: UploadFile = File(..., description="Resume file (PDF, DOCX, or TXT)")
):
    """
    Upload and parse a portal user's resume.

    Process:
    1. Extract text from file
    2. LLM structures it into a candidate profile
    3. Store in MongoDB as the user's newest resume version
    """
    content, filename = await read_upload(file)
    try:
        result = get_resume_intake().parse_and_store(
            user_id=user_id,
            content=content,
            filename=filename,
            content_type=file.content_type,
        )
    except ExtractionFailed as e:
        raise HTTPException(status_code=422, detail=e.message)

    return ResumeUploadResponse(
        success=True,
        message="Resume parsed and stored",
        filename=filename,
        resume_id=result["resume_id"],
        parsed_data=result["parsed_data"],
    )


@router.post("/parse")
async def parse_resume(file: UploadFile = File(...)):
    """Basic parse. Returns the model's JSON, or {error, raw} when it is malformed."""
    return get_cv_tools().parse_basic(await _read_text(file))


@router.post("/parse-academic")
async def parse_academic_cv(file: UploadFile = File(...)):
    """Academic CV parse (publications, supervision, projects...)."""
    return get_cv_tools().parse_academic(await _read_text(file))


@router.post("/enrich")
async def enrich_resume(data: EnrichRequest):
    return get_cv_tools().enrich(data.parsed_data, data.selected_fields)


@router.get("/formats")
async def resume_formats():
    """Get supported resume file formats."""
    return get_supported_formats()
