"""Health check endpoint for service monitoring."""

from fastapi import APIRouter

from spc_service import __version__

router = APIRouter()


@router.get("/health")
async def health_check():
    """Return service health status for uptime monitoring."""
    return {
        "status": "healthy",
        "version": __version__,
        "service": "spc-computation",
    }
