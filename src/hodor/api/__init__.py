"""HTTP API module for Hodor."""

from .health import router as health_router
from .hook import router as hook_router

__all__ = [
    "health_router",
    "hook_router",
]
