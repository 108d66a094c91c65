"""Shared dependencies for API routes."""
from typing import Awaitable, Callable

from fastapi import Header

from cyclecoach.config.settings import get_settings
from cyclecoach.core.exceptions import AuthorizationError
from cyclecoach.services.completion_verifier import CompletionVerifier
from cyclecoach.services.generation_metrics import GenerationMetricsService
from cyclecoach.services.generation_queue import GenerationQueueManager
from cyclecoach.services.generation_worker import run_generation

settings = get_settings()

GenerationRunner = Callable[[str], Awaitable[int | None]]


async def get_current_user_id(
    x_user_id: int | None = Header(None, alias="X-User-Id"),
) -> int:
    """Resolve the calling user.

    Authentication lives upstream of this service; the gateway forwards the
    user id in X-User-Id. Falls back to default_user_id for local use.
    """
    if x_user_id is not None:
        return x_user_id
    if settings.default_user_id:
        return settings.default_user_id
    raise AuthorizationError("No user id provided", code="AUTH_001")


def get_generation_queue() -> GenerationQueueManager:
    return GenerationQueueManager()


def get_completion_verifier() -> CompletionVerifier:
    return CompletionVerifier()


def get_generation_metrics() -> GenerationMetricsService:
    return GenerationMetricsService()


def get_generation_runner() -> GenerationRunner:
    return run_generation
