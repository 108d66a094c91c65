"""Timing of generation runs, used to estimate how long the next one will take."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cyclecoach.config.settings import get_settings
from cyclecoach.core.logging import get_logger
from cyclecoach.db.database import async_session_maker
from cyclecoach.models.enums import GenerationKind
from cyclecoach.models.generation_metric import GenerationMetric
from cyclecoach.repositories.generation_metric_repository import GenerationMetricRepository

logger = get_logger(__name__)

ESTIMATE_SAMPLE_SIZE = 10


def weighted_recent_average(durations_newest_first: list[int]) -> int | None:
    """Newer samples weigh more: the newest gets weight n, the oldest 1."""
    if not durations_newest_first:
        return None
    count = len(durations_newest_first)
    weighted_sum = 0
    total_weight = 0
    for index, duration in enumerate(durations_newest_first):
        weight = count - index
        weighted_sum += duration * weight
        total_weight += weight
    return round(weighted_sum / total_weight)


class GenerationMetricsService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory or async_session_maker

    @staticmethod
    def default_duration_ms(kind: GenerationKind) -> int:
        settings = get_settings()
        if GenerationKind(kind) == GenerationKind.WORKOUT:
            return settings.default_workout_duration_ms
        return settings.default_split_duration_ms

    async def record_start(self, user_id: int, request_id: str, kind: GenerationKind) -> None:
        async with self._session_factory() as session:
            await GenerationMetricRepository(session).create(
                GenerationMetric(
                    user_id=user_id,
                    request_id=request_id,
                    kind=GenerationKind(kind).value,
                    started_at=datetime.utcnow(),
                )
            )
            await session.commit()

    async def record_completion(self, request_id: str, success: bool) -> int | None:
        """Stamp duration on the request's metric rows. Returns the duration in ms."""
        completed_at = datetime.utcnow()
        async with self._session_factory() as session:
            repo = GenerationMetricRepository(session)
            started_at = await repo.get_earliest_start(request_id)
            if started_at is None:
                logger.warning("generation_metric_missing_start", request_id=request_id)
                return None

            duration_ms = int((completed_at - started_at).total_seconds() * 1000)
            await repo.mark_complete(request_id, completed_at, duration_ms, success)
            await session.commit()

        logger.info("generation_metric_recorded", request_id=request_id, duration_ms=duration_ms, success=success)
        return duration_ms

    async def estimate_duration_ms(self, user_id: int, kind: GenerationKind) -> int:
        kind = GenerationKind(kind)
        async with self._session_factory() as session:
            durations = await GenerationMetricRepository(session).recent_successful_durations(
                user_id, kind.value, ESTIMATE_SAMPLE_SIZE
            )
        estimate = weighted_recent_average(durations)
        return estimate if estimate is not None else self.default_duration_ms(kind)

    async def average_duration_ms(self, user_id: int, kind: GenerationKind | None = None) -> int | None:
        async with self._session_factory() as session:
            durations = await GenerationMetricRepository(session).recent_successful_durations(
                user_id, GenerationKind(kind).value if kind is not None else None, ESTIMATE_SAMPLE_SIZE
            )
        if not durations:
            return None
        return round(sum(durations) / len(durations))
