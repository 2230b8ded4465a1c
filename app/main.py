"""
TalentGrid Screening Service - Main Application

FastAPI backend with:
- PostgreSQL (read-only) for jobs, companies and users
- MongoDB for batches, applicants and parsed resumes
- An OpenAI-compatible LLM (Groq) for CV structuring and scoring

Run: uvicorn app.main:app --reload
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import api_router
from app.core.config import get_settings
from app.core.errors import PipelineError
from app.db.mongodb import init_mongo_indexes

settings = get_settings()

logging.basicConfig(level=settings.log_level.upper(), format=settings.log_format)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="TalentGrid Screening Service",
    description="""
    Resume intake and batch screening for job postings.

    ## Features
    - **Analyzer**: Stage CVs, score them against a job, stream results as NDJSON
    - **Batches**: Per-job screening runs with locked, auditable results
    - **Applicants**: Portal and bulk applicants, deduplicated per job
    - **Resumes**: Portal resume parsing, academic parsing, enrichment

    ## Scoring
    - Experience (0-45): computed from months, never by the LLM
    - Skills, role fit, education, location, other: LLM-assessed, capped
    - Composite: integer 0-100
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    debug=settings.debug,
)

# CORS middleware (allow all for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    """Domain errors that escape a route keep their own status code."""
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Startup event
@app.on_event("startup")
async def startup_event():
    """Initialize MongoDB indexes on startup."""
    try:
        init_mongo_indexes()
    except Exception as e:
        logger.warning("MongoDB index initialization failed: %s", e)


@app.get("/", tags=["Health"])
async def root():
    return {"status": "healthy", "app": "TalentGrid Screening Service"}


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    from app.db.postgres import test_postgres_connection
    from app.db.mongodb import test_mongo_connection

    return {
        "status": "healthy",
        "postgres": "connected" if test_postgres_connection() else "disconnected",
        "mongodb": "connected" if test_mongo_connection() else "disconnected"
    }
