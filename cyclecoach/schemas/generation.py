"""Pydantic schemas for generation job endpoints."""
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from cyclecoach.models.enums import GenerationKind, GenerationStatus


class GenerationStartRequest(BaseModel):
    """Client-initiated generation. `request_id` is generated client-side before the first call."""

    request_id: UUID
    kind: GenerationKind = GenerationKind.WORKOUT
    context: dict[str, Any] = Field(default_factory=dict)
    target_cycle_day: int | None = Field(default=None, ge=1)


class GenerationCancelRequest(BaseModel):
    reason: str | None = None


class GenerationJobResponse(BaseModel):
    request_id: str
    user_id: int
    kind: GenerationKind
    status: GenerationStatus
    progress_percent: int
    current_phase: str | None = None
    target_cycle_day: int | None = None
    owner_context: dict[str, Any] = Field(default_factory=dict)
    produced_artifact_id: int | None = None
    error_message: str | None = None
    was_cancelled: bool = False
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    estimated_duration_ms: int | None = None

    class Config:
        from_attributes = True


class GenerationSnapshotResponse(BaseModel):
    """What a poll or one stream event carries."""

    request_id: str
    status: GenerationStatus
    phase: str | None = None
    percent: int = 0
    error_message: str | None = None
    produced_artifact_id: int | None = None


class VerifyResponse(BaseModel):
    request_id: str
    artifact_id: int | None = None
    visible: bool


class GenerationHistoryResponse(BaseModel):
    items: list[GenerationJobResponse]
    total: int
    average_duration_ms: int | None = None
