"""API v1 router combining all route modules."""

from fastapi import APIRouter

from cro_audit.api.v1 import cro, funnel, health

api_router = APIRouter()

# Include health check routes (no prefix)
api_router.include_router(health.router)

# CRO audit reports
api_router.include_router(
    cro.router,
    prefix="/projects",
    tags=["cro"],
)

# GA4 funnel analytics
api_router.include_router(
    funnel.router,
    prefix="/projects",
    tags=["funnel"],
)
