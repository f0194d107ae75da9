"""
ChainReel API routes package.

Contains all API endpoint routers for the application.
"""

from fastapi import APIRouter

from .videos import router as videos_router

# Main API router that includes all sub-routers
api_router = APIRouter()

# Include video generation and listing routes
api_router.include_router(videos_router, prefix="/videos", tags=["videos"])

__all__ = [
    "api_router",
    "videos_router",
]
