"""
Health check endpoints.

Provides system health information for monitoring.
"""

from fastapi import APIRouter
import structlog

from taletype import __version__
from taletype.core.config import settings

log = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        System health status and which API keys are configured.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "debug": settings.debug,
        "components": {
            "gemini": bool(settings.gemini_api_key),
            "anthropic": bool(settings.anthropic_api_key),
            "openai": bool(settings.openai_api_key),
        },
    }


@router.get("/health/live")
async def liveness():
    """
    Kubernetes-style liveness probe.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}
