from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Enum, Index, Integer, String, Text

from cyclecoach.db.database import Base
from cyclecoach.models.enums import GenerationKind, GenerationStatus, enum_values

# Reserved failure message for user-initiated cancellation
USER_CANCELLED_MESSAGE = "User cancelled generation"


class GenerationJob(Base):
    __tablename__ = "generation_jobs"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(String(36), nullable=False, unique=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    kind = Column(
        Enum(GenerationKind, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=GenerationKind.WORKOUT,
    )
    owner_context = Column(JSON, nullable=False, default=dict)
    target_cycle_day = Column(Integer, nullable=True)

    status = Column(
        Enum(GenerationStatus, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=GenerationStatus.PENDING,
    )
    progress_percent = Column(Integer, nullable=False, default=0)
    current_phase = Column(String(255), nullable=True)
    produced_artifact_id = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_generation_jobs_user_status_created", "user_id", "status", "created_at"),
    )

    @property
    def is_terminal(self) -> bool:
        return GenerationStatus(self.status).is_terminal

    @property
    def was_cancelled(self) -> bool:
        return self.status == GenerationStatus.FAILED and self.error_message == USER_CANCELLED_MESSAGE
