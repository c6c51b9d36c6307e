"""API v1 router."""
from fastapi import APIRouter

from assessment_engine.api.v1 import admin, assessments, attempts, security

api_router = APIRouter()

api_router.include_router(assessments.router, prefix="/trainee", tags=["Assessments"])
api_router.include_router(attempts.router, prefix="/trainee", tags=["Assessment Attempts"])
api_router.include_router(security.router, prefix="/trainee", tags=["Security Logging"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
