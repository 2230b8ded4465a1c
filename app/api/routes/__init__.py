"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from app.api.routes.analyzer_routes import router as analyzer_router
from app.api.routes.batch_routes import router as batch_router
from app.api.routes.applicant_routes import router as applicant_router
from app.api.routes.resume_routes import router as resume_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(analyzer_router)
api_router.include_router(batch_router)
api_router.include_router(applicant_router)
api_router.include_router(resume_router)
