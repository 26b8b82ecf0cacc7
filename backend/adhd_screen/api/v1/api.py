"""
API v1 router combining all v1 endpoints.
"""
from fastapi import APIRouter
from adhd_screen.api.v1 import health, screening

api_router = APIRouter()

# Include all v1 routers
api_router.include_router(health.router, tags=["health"])
api_router.include_router(screening.router, prefix="/screening", tags=["screening"])
