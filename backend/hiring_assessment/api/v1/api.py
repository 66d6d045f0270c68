"""
API v1 router combining all v1 endpoints.
"""
from fastapi import APIRouter
from hiring_assessment.api.v1 import admin, candidates, health, sessions

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(sessions.router, prefix="/sessions", tags=["sessions"])
api_router.include_router(
    candidates.router, prefix="/candidates", tags=["candidates"]
)
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
