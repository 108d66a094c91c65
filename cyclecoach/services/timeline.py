"""
Split Timeline

Derives the day-by-day view of the user's current training cycle: a status per
day plus, for completed days, actual volume and variance against the session's
target volume. Computed on every read and never cached.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Any, Iterable, Mapping

from cyclecoach.core.exceptions import NotFoundError
from cyclecoach.core.logging import get_logger
from cyclecoach.models.enums import WorkoutStatus
from cyclecoach.models.split_plan import SplitPlan
from cyclecoach.models.workout import Workout
from cyclecoach.repositories.split_plan_repository import SplitPlanRepository
from cyclecoach.repositories.workout_repository import WorkoutRepository
from cyclecoach.schemas.timeline import (
    CompletedWorkoutData,
    PreGeneratedWorkoutData,
    SessionDefinition,
    SplitTimelineResponse,
    TimelineDay,
    VolumeComparison,
)
from cyclecoach.services.base import BaseService
from cyclecoach.services.day_status import DayWorkouts, resolve_day_status, select_day_workouts
from cyclecoach.services.volume import calculate_actual_volume, compute_variance

logger = get_logger(__name__)


def parse_sessions(raw_sessions: Any) -> dict[int, SessionDefinition]:
    """Index session definitions by cycle day. Entries without a day are ignored."""
    sessions: dict[int, SessionDefinition] = {}
    if not isinstance(raw_sessions, list):
        return sessions

    for entry in raw_sessions:
        if not isinstance(entry, dict) or entry.get("day") is None:
            continue
        target = entry.get("targetVolume", entry.get("target_volume")) or {}
        session = SessionDefinition(
            day=int(entry["day"]),
            name=entry.get("name"),
            focus=list(entry.get("focus") or []),
            target_volume={muscle: float(sets) for muscle, sets in target.items()},
        )
        sessions.setdefault(session.day, session)
    return sessions


def group_workouts_by_day(workouts: Iterable[Workout]) -> dict[int, DayWorkouts]:
    by_day: dict[int, list[Workout]] = defaultdict(list)
    for workout in workouts:
        if workout.cycle_day is not None:
            by_day[workout.cycle_day].append(workout)
    return {day: select_day_workouts(records) for day, records in by_day.items()}


def clamp_cycle_day(current_cycle_day: int | None, cycle_days: int) -> int:
    """Keep the profile's day pointer inside `1..cycle_days`; a missing value means day 1."""
    if current_cycle_day is None:
        return 1
    clamped = max(1, min(current_cycle_day, max(1, cycle_days)))
    if clamped != current_cycle_day:
        logger.warning("cycle_day_out_of_range", current_cycle_day=current_cycle_day, cycle_days=cycle_days)
    return clamped


def _pre_generated_data(selection: DayWorkouts) -> PreGeneratedWorkoutData | None:
    if selection.pre_generated is not None:
        workout = selection.pre_generated
        status = WorkoutStatus(workout.status)
    elif selection.in_progress is not None:
        # In-progress workouts stay reachable from the day card
        workout = selection.in_progress
        status = WorkoutStatus.READY
    else:
        return None

    return PreGeneratedWorkoutData(
        id=workout.id,
        status=status,
        exercises=list(workout.exercises or []),
        name=workout.workout_name or "Workout",
    )


def assemble_timeline(
    plan: SplitPlan,
    current_cycle_day: int,
    day_workouts: Mapping[int, DayWorkouts],
    set_counts: Mapping[int, Mapping[str, int]],
    cycle_start_date: datetime | None = None,
) -> SplitTimelineResponse:
    """
    Build the timeline from already-loaded records.

    `set_counts` maps workout id to non-skipped set counts keyed by normalized
    exercise name.
    """
    sessions = parse_sessions(plan.sessions)
    days: list[TimelineDay] = []

    for day in range(1, plan.cycle_days + 1):
        session = sessions.get(day)
        selection = day_workouts.get(day) or DayWorkouts()

        status = resolve_day_status(
            day,
            current_cycle_day,
            has_completed=selection.completed is not None,
            has_pre_generated=selection.pre_generated is not None,
            has_in_progress=selection.in_progress is not None,
            is_rest_day=session is None,
        )

        completed_data = None
        if selection.completed is not None:
            completed = selection.completed
            actual = calculate_actual_volume(completed.exercises, set_counts.get(completed.id, {}))
            variance = None
            if session is not None:
                variance = {
                    muscle: VolumeComparison(**value.to_dict())
                    for muscle, value in compute_variance(session.target_volume, actual).items()
                }
            completed_data = CompletedWorkoutData(
                id=completed.id,
                completed_at=completed.completed_at,
                actual_volume=actual,
                variance=variance,
            )

        days.append(
            TimelineDay(
                day=day,
                status=status,
                session=session,
                completed_workout=completed_data,
                pre_generated_workout=_pre_generated_data(selection),
            )
        )

    return SplitTimelineResponse(
        split_plan_id=plan.id,
        split_name=plan.name,
        split_type=plan.split_type,
        cycle_days=plan.cycle_days,
        current_cycle_day=current_cycle_day,
        cycle_start_date=cycle_start_date,
        days=days,
    )


class TimelineService(BaseService):
    async def get_timeline(self, user_id: int) -> SplitTimelineResponse:
        """
        Timeline for the user's active split.

        Raises NotFoundError when the user has no active split plan.
        """
        active = await SplitPlanRepository(self._session).get_active_for_user(user_id)
        if active is None:
            raise NotFoundError("SplitPlan", "No active split plan", {"user_id": user_id})
        profile, plan = active

        current_cycle_day = clamp_cycle_day(profile.current_cycle_day, plan.cycle_days)
        cycle_start = profile.current_cycle_start_date or plan.created_at

        workout_repo = WorkoutRepository(self._session)
        workouts = await workout_repo.list_for_cycle(user_id, plan.id, cycle_start)
        day_workouts = group_workouts_by_day(workouts)

        completed_ids = [
            selection.completed.id
            for selection in day_workouts.values()
            if selection.completed is not None
        ]
        set_counts = await workout_repo.count_logged_sets(completed_ids)

        logger.debug(
            "timeline_assembled",
            user_id=user_id,
            split_plan_id=plan.id,
            workouts=len(workouts),
            completed=len(completed_ids),
        )
        return assemble_timeline(plan, current_cycle_day, day_workouts, set_counts, cycle_start)
