"""Health check endpoints."""
import time

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from cyclecoach.config.settings import get_settings
from cyclecoach.db.database import engine, get_replica_health_status

router = APIRouter()
settings = get_settings()


async def check_primary_health() -> tuple[bool, float]:
    start_time = time.time()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        return False, 0.0
    return True, (time.time() - start_time) * 1000


@router.get("")
async def health_check():
    healthy, response_time_ms = await check_primary_health()
    return {
        "status": "healthy" if healthy else "unhealthy",
        "app": settings.app_name,
        "database": {"healthy": healthy, "response_time_ms": round(response_time_ms, 2)},
    }


@router.get("/llm")
async def llm_health_check():
    """Check LLM provider availability."""
    from cyclecoach.llm import get_llm_provider

    provider = get_llm_provider()
    is_healthy = await provider.health_check()

    return {
        "status": "healthy" if is_healthy else "unhealthy",
        "provider": settings.llm_provider,
        "model": settings.openai_model,
    }


@router.get("/database/replicas")
async def replica_health_check():
    """Check read replica health and status."""
    status = await get_replica_health_status()

    if not status["enabled"]:
        overall_status = "disabled"
    elif status["healthy_count"] > 0:
        overall_status = "healthy"
    else:
        overall_status = "unhealthy"

    return {
        "overall_status": overall_status,
        **status,
    }
