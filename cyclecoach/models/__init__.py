"""SQLAlchemy models."""
from cyclecoach.models.enums import (
    ACTIVE_GENERATION_STATUSES,
    PRE_GENERATED_WORKOUT_STATUSES,
    DayStatus,
    GenerationKind,
    GenerationStatus,
    WorkoutStatus,
)
from cyclecoach.models.generation_job import USER_CANCELLED_MESSAGE, GenerationJob
from cyclecoach.models.generation_metric import GenerationMetric
from cyclecoach.models.split_plan import SplitPlan, UserProfile
from cyclecoach.models.workout import SetLog, Workout

__all__ = [
    "ACTIVE_GENERATION_STATUSES",
    "PRE_GENERATED_WORKOUT_STATUSES",
    "DayStatus",
    "GenerationKind",
    "GenerationStatus",
    "WorkoutStatus",
    "USER_CANCELLED_MESSAGE",
    "GenerationJob",
    "GenerationMetric",
    "SplitPlan",
    "UserProfile",
    "SetLog",
    "Workout",
]
