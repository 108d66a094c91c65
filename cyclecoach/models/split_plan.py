from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from cyclecoach.db.database import Base


class SplitPlan(Base):
    __tablename__ = "split_plans"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False, default="Training Split")
    split_type = Column(String(50), nullable=True)
    cycle_days = Column(Integer, nullable=False)
    # [{"day": 1, "name": "Push", "focus": [...], "targetVolume": {"chest": 10}}]
    sessions = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    workouts = relationship("Workout", back_populates="split_plan")


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, unique=True, index=True)
    current_cycle_day = Column(Integer, nullable=False, default=1)
    active_split_plan_id = Column(Integer, ForeignKey("split_plans.id", ondelete="SET NULL"), nullable=True)
    current_cycle_start_date = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    active_split_plan = relationship("SplitPlan")
