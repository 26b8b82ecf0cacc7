"""
Health check and status endpoints.
"""
from fastapi import APIRouter

from adhd_screen.core import settings
from adhd_screen.core.datetime_utils import utc_now
from adhd_screen.core.diagnostics.pipeline import ALGORITHM_VERSION

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns basic health status of the API and the scoring algorithm version.
    """
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "algorithm_version": ALGORITHM_VERSION,
    }


@router.get("/ping")
async def ping():
    """
    Simple ping endpoint for basic connectivity testing.
    """
    return {"message": "pong"}
