"""Health check endpoints."""

from fastapi import APIRouter, Request

from uniquote import __version__

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "uniquote"}


@router.get("/health/detailed")
async def detailed_health(request: Request):
    """Detailed health check with configuration and engine statistics."""
    settings = request.app.state.settings
    engine = request.app.state.engine
    return {
        "status": "healthy",
        "service": "uniquote",
        "version": __version__,
        "config": settings.get_safe_dict(),
        "engine": engine.get_stats(),
    }
