"""
Schemas module - Request/Response schemas for API endpoints.

Everything lives in app.schemas.schemas; stored documents are plain
dicts shaped by app.services.mongo_service.
"""
