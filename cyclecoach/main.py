"""Main FastAPI application."""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cyclecoach.config.settings import get_settings
from cyclecoach.core.error_handlers import domain_error_handler
from cyclecoach.core.exceptions import DomainError
from cyclecoach.core.logging import configure_logging
from cyclecoach.db.database import close_all_engines, init_db
from cyclecoach.middleware import RequestIDMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    configure_logging()

    # Startup: Initialize database
    await init_db()

    yield
    # Shutdown: Cleanup resources
    from cyclecoach.llm import cleanup_llm_provider
    await cleanup_llm_provider()

    # Close database connections (primary and replicas)
    await close_all_engines()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Training cycle timeline and AI plan generation jobs",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainError, domain_error_handler)

    from cyclecoach.api.routes import (
        generation_router,
        health_router,
        timeline_router,
    )

    app.include_router(health_router, prefix="/health", tags=["Health"])
    app.include_router(generation_router, prefix="/generation", tags=["Generation"])
    app.include_router(timeline_router, prefix="/timeline", tags=["Timeline"])

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("cyclecoach.main:app", host="0.0.0.0", port=8000, reload=True)
