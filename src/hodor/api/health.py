"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter

from hodor import __version__
from hodor.api.hook import get_deployer

router = APIRouter()

# Track start time
START_TIME = datetime.now(timezone.utc)


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """Simple health check endpoint."""
    deployer = get_deployer()
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "started_at": START_TIME.isoformat(),
        "engine": deployer.state.value,
        "pending_jobs": deployer.pending_jobs,
    }
