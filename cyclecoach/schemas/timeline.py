"""Pydantic schemas for the split timeline endpoint."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from cyclecoach.models.enums import DayStatus, WorkoutStatus


class VolumeComparison(BaseModel):
    target: float
    actual: float
    diff: float
    percent: int


class SessionDefinition(BaseModel):
    day: int
    name: str | None = None
    focus: list[str] = Field(default_factory=list)
    target_volume: dict[str, float] = Field(default_factory=dict)


class CompletedWorkoutData(BaseModel):
    id: int
    completed_at: datetime | None = None
    actual_volume: dict[str, float] = Field(default_factory=dict)
    variance: dict[str, VolumeComparison] | None = None


class PreGeneratedWorkoutData(BaseModel):
    id: int
    status: WorkoutStatus
    exercises: list[dict[str, Any]] = Field(default_factory=list)
    name: str | None = None


class TimelineDay(BaseModel):
    day: int
    status: DayStatus
    session: SessionDefinition | None = None
    completed_workout: CompletedWorkoutData | None = None
    pre_generated_workout: PreGeneratedWorkoutData | None = None


class SplitTimelineResponse(BaseModel):
    split_plan_id: int
    split_name: str
    split_type: str | None = None
    cycle_days: int
    current_cycle_day: int
    cycle_start_date: datetime | None = None
    days: list[TimelineDay]
