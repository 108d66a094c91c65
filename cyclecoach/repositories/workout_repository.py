from __future__ import annotations

from collections import defaultdict
from datetime import datetime

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cyclecoach.models.enums import PRE_GENERATED_WORKOUT_STATUSES, WorkoutStatus
from cyclecoach.models.workout import SetLog, Workout
from cyclecoach.repositories.base import Repository


class WorkoutRepository(Repository[Workout, int]):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, id: int) -> Workout | None:
        return await self._session.get(Workout, id)

    async def create(self, entity: Workout) -> Workout:
        self._session.add(entity)
        await self._session.flush()
        return entity

    async def list_for_cycle(
        self,
        user_id: int,
        split_plan_id: int,
        completed_since: datetime,
    ) -> list[Workout]:
        """
        All workouts relevant to the current cycle in one query.

        Draft, ready and in-progress workouts are always included; completed
        workouts only when finished on or after the cycle start.
        """
        result = await self._session.execute(
            select(Workout)
            .where(
                and_(
                    Workout.user_id == user_id,
                    Workout.split_plan_id == split_plan_id,
                    Workout.cycle_day.is_not(None),
                    or_(
                        Workout.status.in_((*PRE_GENERATED_WORKOUT_STATUSES, WorkoutStatus.IN_PROGRESS)),
                        and_(
                            Workout.status == WorkoutStatus.COMPLETED,
                            Workout.completed_at >= completed_since,
                        ),
                    ),
                )
            )
            .order_by(Workout.cycle_day, Workout.created_at.desc())
        )
        return list(result.scalars().all())

    async def count_logged_sets(self, workout_ids: list[int]) -> dict[int, dict[str, int]]:
        """
        Non-skipped logged sets per workout, keyed by trimmed lower-case exercise name.

        One grouped query regardless of how many workouts or exercises are involved.
        """
        if not workout_ids:
            return {}

        normalized_name = func.lower(func.trim(SetLog.exercise_name))
        result = await self._session.execute(
            select(SetLog.workout_id, normalized_name, func.count(SetLog.id))
            .where(
                and_(
                    SetLog.workout_id.in_(workout_ids),
                    SetLog.skipped.is_(False),
                )
            )
            .group_by(SetLog.workout_id, normalized_name)
        )

        counts: dict[int, dict[str, int]] = defaultdict(dict)
        for workout_id, name, count in result.all():
            counts[workout_id][name or ""] = count
        return dict(counts)

    async def latest_id_for_day(self, user_id: int, cycle_day: int | None) -> int | None:
        """Newest workout for a cycle day; the visibility projection for workout jobs."""
        query = select(Workout.id).where(Workout.user_id == user_id)
        if cycle_day is not None:
            query = query.where(Workout.cycle_day == cycle_day)
        result = await self._session.execute(
            query.order_by(Workout.created_at.desc(), Workout.id.desc()).limit(1)
        )
        return result.scalar_one_or_none()
