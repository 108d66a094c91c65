"""Enumerations shared by models, services and schemas."""
from enum import Enum


class GenerationStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (GenerationStatus.COMPLETED, GenerationStatus.FAILED)


ACTIVE_GENERATION_STATUSES = (GenerationStatus.PENDING, GenerationStatus.IN_PROGRESS)


class GenerationKind(str, Enum):
    SPLIT = "split"
    WORKOUT = "workout"
    ONBOARDING = "onboarding"


class WorkoutStatus(str, Enum):
    DRAFT = "draft"
    READY = "ready"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


PRE_GENERATED_WORKOUT_STATUSES = (WorkoutStatus.DRAFT, WorkoutStatus.READY)


class DayStatus(str, Enum):
    COMPLETED = "completed"
    IN_PROGRESS = "in_progress"
    CURRENT = "current"
    REST = "rest"
    PRE_GENERATED = "pre_generated"
    UPCOMING = "upcoming"


def enum_values(enum_cls) -> list[str]:
    """Persist enum values (not member names) in string columns."""
    return [member.value for member in enum_cls]
