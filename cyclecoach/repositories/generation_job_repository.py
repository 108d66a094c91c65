from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import and_, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cyclecoach.models.enums import ACTIVE_GENERATION_STATUSES, GenerationStatus
from cyclecoach.models.generation_job import GenerationJob
from cyclecoach.repositories.base import Repository


class GenerationJobRepository(Repository[GenerationJob, int]):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, id: int) -> GenerationJob | None:
        return await self._session.get(GenerationJob, id)

    async def get_by_request_id(self, request_id: str) -> GenerationJob | None:
        result = await self._session.execute(
            select(GenerationJob)
            .where(GenerationJob.request_id == request_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_active_for_user(self, user_id: int, created_after: datetime) -> GenerationJob | None:
        """Newest pending/in_progress job created after the staleness cutoff."""
        result = await self._session.execute(
            select(GenerationJob)
            .where(
                and_(
                    GenerationJob.user_id == user_id,
                    GenerationJob.status.in_(ACTIVE_GENERATION_STATUSES),
                    GenerationJob.created_at > created_after,
                )
            )
            .order_by(GenerationJob.created_at.desc(), GenerationJob.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_active_for_days(
        self,
        user_id: int,
        cycle_days: list[int],
        created_after: datetime,
    ) -> GenerationJob | None:
        result = await self._session.execute(
            select(GenerationJob)
            .where(
                and_(
                    GenerationJob.user_id == user_id,
                    GenerationJob.target_cycle_day.in_(cycle_days),
                    GenerationJob.status.in_(ACTIVE_GENERATION_STATUSES),
                    GenerationJob.created_at > created_after,
                )
            )
            .order_by(GenerationJob.created_at.desc(), GenerationJob.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_recent(self, user_id: int, limit: int = 10) -> list[GenerationJob]:
        result = await self._session.execute(
            select(GenerationJob)
            .where(GenerationJob.user_id == user_id)
            .order_by(GenerationJob.created_at.desc(), GenerationJob.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def create(self, entity: GenerationJob) -> GenerationJob:
        self._session.add(entity)
        await self._session.flush()
        return entity

    async def transition(
        self,
        request_id: str,
        allowed_from: tuple[GenerationStatus, ...],
        values: dict[str, Any],
    ) -> bool:
        """
        Apply `values` only if the job is currently in one of `allowed_from`.

        Single conditional UPDATE, so concurrent writers on the same request id
        cannot interleave and the first terminal write wins.
        """
        result = await self._session.execute(
            update(GenerationJob)
            .where(
                and_(
                    GenerationJob.request_id == request_id,
                    GenerationJob.status.in_(allowed_from),
                )
            )
            .values(updated_at=datetime.utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def delete_terminal_before(self, cutoff: datetime) -> int:
        result = await self._session.execute(
            delete(GenerationJob)
            .where(
                and_(
                    GenerationJob.status.in_((GenerationStatus.COMPLETED, GenerationStatus.FAILED)),
                    GenerationJob.created_at < cutoff,
                )
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
