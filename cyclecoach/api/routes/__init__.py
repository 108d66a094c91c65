"""API routes module."""
from cyclecoach.api.routes.generation import router as generation_router
from cyclecoach.api.routes.health import router as health_router
from cyclecoach.api.routes.timeline import router as timeline_router

__all__ = [
    "generation_router",
    "health_router",
    "timeline_router",
]
