from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cyclecoach.models.generation_metric import GenerationMetric
from cyclecoach.repositories.base import Repository


class GenerationMetricRepository(Repository[GenerationMetric, int]):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, id: int) -> GenerationMetric | None:
        return await self._session.get(GenerationMetric, id)

    async def create(self, entity: GenerationMetric) -> GenerationMetric:
        self._session.add(entity)
        await self._session.flush()
        return entity

    async def get_earliest_start(self, request_id: str) -> datetime | None:
        # Duplicate rows for one request are tolerated; timing uses the first start.
        result = await self._session.execute(
            select(GenerationMetric.started_at)
            .where(GenerationMetric.request_id == request_id)
            .order_by(GenerationMetric.started_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def mark_complete(
        self,
        request_id: str,
        completed_at: datetime,
        duration_ms: int,
        success: bool,
    ) -> int:
        result = await self._session.execute(
            update(GenerationMetric)
            .where(GenerationMetric.request_id == request_id)
            .values(completed_at=completed_at, duration_ms=duration_ms, success=success)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def recent_successful_durations(
        self,
        user_id: int,
        kind: str | None = None,
        limit: int = 10,
    ) -> list[int]:
        """Durations in ms, newest first."""
        query = select(GenerationMetric.duration_ms).where(
            and_(
                GenerationMetric.user_id == user_id,
                GenerationMetric.success.is_(True),
                GenerationMetric.duration_ms.is_not(None),
            )
        )
        if kind is not None:
            query = query.where(GenerationMetric.kind == kind)

        result = await self._session.execute(
            query.order_by(GenerationMetric.completed_at.desc()).limit(limit)
        )
        return [duration for duration in result.scalars().all()]
