"""Health check endpoint."""

from fastapi import APIRouter, Request

from donorconnect import __version__
from donorconnect.config.settings import settings

router = APIRouter(tags=["health"])


@router.get("/api/health")
async def health_check(request: Request) -> dict:
    provider = request.app.state.provider
    return {
        "status": "ok" if provider.status.initialized else "ai_offline",
        "backend": settings.SIMULATION_BACKEND,
        "version": __version__,
    }
