"""Health check API routes."""
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Request

from tutera import __version__
from tutera.models.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Basic health check endpoint.

    Degraded while the last poll recorded an error; unhealthy with no session.
    """
    session = getattr(request.app.state, "session", None)
    if session is None:
        return HealthResponse(
            status="unhealthy",
            version=__version__,
            timestamp=datetime.now(),
            error="Control session not initialized",
        )

    snapshot = session.snapshot()
    counts = snapshot.collections.to_dict()
    counts.pop("last_updated")
    return HealthResponse(
        status="degraded" if snapshot.error else "healthy",
        version=__version__,
        timestamp=datetime.now(),
        last_poll=snapshot.last_updated,
        error=snapshot.error,
        devices=counts,
    )


@router.get("/health/live")
async def liveness() -> dict:
    """Liveness probe.

    Returns 200 if the service is running.
    """
    return {"status": "alive"}
