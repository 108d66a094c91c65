from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Enum, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from cyclecoach.db.database import Base
from cyclecoach.models.enums import WorkoutStatus, enum_values


class Workout(Base):
    __tablename__ = "workouts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    split_plan_id = Column(Integer, ForeignKey("split_plans.id", ondelete="CASCADE"), nullable=True)
    cycle_day = Column(Integer, nullable=True)
    status = Column(
        Enum(
            WorkoutStatus,
            native_enum=False,
            length=20,
            values_callable=enum_values,
        ),
        nullable=False,
        default=WorkoutStatus.DRAFT,
    )
    workout_name = Column(String(255), nullable=True)
    exercises = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    split_plan = relationship("SplitPlan", back_populates="workouts")
    set_logs = relationship("SetLog", back_populates="workout", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_workouts_user_plan_status", "user_id", "split_plan_id", "status"),
    )


class SetLog(Base):
    __tablename__ = "set_logs"

    id = Column(Integer, primary_key=True, index=True)
    workout_id = Column(Integer, ForeignKey("workouts.id", ondelete="CASCADE"), nullable=False, index=True)
    exercise_name = Column(String(255), nullable=False)
    set_number = Column(Integer, nullable=False, default=1)
    reps = Column(Integer, nullable=True)
    weight = Column(Float, nullable=True)
    skipped = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    workout = relationship("Workout", back_populates="set_logs")
