"""Health check endpoints."""

from fastapi import APIRouter

from forgebot.config import get_settings
from forgebot.utils.locks import active_session_locks

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "forgebot"}


@router.get("/health/detailed")
async def detailed_health():
    """Detailed health check with configuration info."""
    settings = get_settings()
    return {
        "status": "healthy",
        "service": "forgebot",
        "version": "0.1.0",
        "active_leases": active_session_locks(),
        "config": settings.get_safe_dict(),
    }
