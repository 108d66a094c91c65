"""Repositories package."""
from cyclecoach.repositories.base import Repository
from cyclecoach.repositories.generation_job_repository import GenerationJobRepository
from cyclecoach.repositories.generation_metric_repository import GenerationMetricRepository
from cyclecoach.repositories.split_plan_repository import SplitPlanRepository
from cyclecoach.repositories.workout_repository import WorkoutRepository

__all__ = [
    "Repository",
    "GenerationJobRepository",
    "GenerationMetricRepository",
    "SplitPlanRepository",
    "WorkoutRepository",
]
