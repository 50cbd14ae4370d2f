"""
Health check and system status routes
"""

from datetime import datetime

from fastapi import APIRouter, Depends

from ...config import Settings
from ..dependencies import get_settings

router = APIRouter(tags=["System"])


@router.get("/health")
async def health_check(settings: Settings = Depends(get_settings)):
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "store": "remote" if settings.store_configured else "in-memory",
        "timestamp": datetime.now().isoformat(),
    }
