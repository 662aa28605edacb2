"""
Health Check Endpoint
Provides health status for Docker health checks and monitoring
"""
from fastapi import APIRouter, Request, status
from typing import Any, Dict

from app.utils.time_utils import utc_now

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(request: Request) -> Dict[str, Any]:
    """
    Health check endpoint for Docker and monitoring systems.

    Returns:
        Dict with status, timestamp and scheduler state
    """
    health: Dict[str, Any] = {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "service": "auto-dialer-backend"
    }

    container = getattr(request.app.state, "auto_call", None)
    if container is not None:
        health["auto_call_running"] = container.scheduler.running
        health["pending_polls"] = container.poller.pending_count
    else:
        health["auto_call_running"] = False

    return health


@router.get("/", status_code=status.HTTP_200_OK)
async def root() -> Dict[str, str]:
    """
    Root endpoint.

    Returns:
        Welcome message
    """
    return {
        "message": "Lead Auto-Dialer Backend",
        "version": "1.0.0",
        "docs": "/docs"
    }
