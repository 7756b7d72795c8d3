"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
"""

from fastapi import APIRouter

from insights.api.routes.authorize import router as authorize_router
from insights.api.routes.health import router as health_router
from insights.api.routes.me import router as me_router
from insights.api.routes.profiles import router as profiles_router
from insights.api.routes.recovery import router as recovery_router


def create_api_router() -> APIRouter:
    """Create the API router with all routes registered."""
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(me_router, tags=["user"])
    api_router.include_router(profiles_router, tags=["profiles"])
    api_router.include_router(authorize_router, tags=["policy"])
    api_router.include_router(recovery_router, tags=["recovery"])
    return api_router


__all__ = ["create_api_router"]
