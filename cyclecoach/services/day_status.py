"""
Cycle day status resolution and authoritative workout selection.

Everything here is pure: the same inputs always produce the same output.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Protocol

from cyclecoach.models.enums import PRE_GENERATED_WORKOUT_STATUSES, DayStatus, WorkoutStatus


class WorkoutLike(Protocol):
    id: int
    status: WorkoutStatus
    created_at: datetime | None
    started_at: datetime | None
    completed_at: datetime | None


@dataclass(frozen=True)
class DayWorkouts:
    """Newest workout per status class for one cycle day."""

    in_progress: WorkoutLike | None = None
    completed: WorkoutLike | None = None
    pre_generated: WorkoutLike | None = None

    @property
    def authoritative(self) -> WorkoutLike | None:
        return self.in_progress or self.completed or self.pre_generated


def resolve_day_status(
    day: int,
    current_cycle_day: int,
    *,
    has_completed: bool,
    has_pre_generated: bool,
    has_in_progress: bool,
    is_rest_day: bool,
) -> DayStatus:
    # Rule order is the tie-break; do not reorder.
    if day == current_cycle_day and has_in_progress:
        return DayStatus.IN_PROGRESS
    if day == current_cycle_day and has_completed:
        return DayStatus.COMPLETED
    if day == current_cycle_day:
        return DayStatus.CURRENT
    if day < current_cycle_day or has_completed:
        return DayStatus.COMPLETED
    if is_rest_day:
        return DayStatus.REST
    if has_pre_generated:
        return DayStatus.PRE_GENERATED
    return DayStatus.UPCOMING


def status_class(workout: WorkoutLike) -> str | None:
    status = WorkoutStatus(workout.status)
    if status == WorkoutStatus.IN_PROGRESS:
        return "in_progress"
    if status == WorkoutStatus.COMPLETED:
        return "completed"
    if status in PRE_GENERATED_WORKOUT_STATUSES:
        return "pre_generated"
    return None


def recency_key(workout: WorkoutLike) -> tuple[datetime, datetime, int]:
    """
    Sort key within a status class, larger is newer.

    In-progress ranks by started_at, completed by completed_at, pre-generated by
    created_at; ties fall back to created_at then id.
    """
    klass = status_class(workout)
    if klass == "in_progress":
        primary = workout.started_at
    elif klass == "completed":
        primary = workout.completed_at
    else:
        primary = workout.created_at
    return (primary or datetime.min, workout.created_at or datetime.min, workout.id or 0)


def select_day_workouts(workouts: Iterable[WorkoutLike]) -> DayWorkouts:
    newest: dict[str, WorkoutLike] = {}
    for workout in workouts:
        klass = status_class(workout)
        if klass is None:
            continue
        current = newest.get(klass)
        if current is None or recency_key(workout) > recency_key(current):
            newest[klass] = workout

    return DayWorkouts(
        in_progress=newest.get("in_progress"),
        completed=newest.get("completed"),
        pre_generated=newest.get("pre_generated"),
    )
