from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from cyclecoach.db.database import Base


class GenerationMetric(Base):
    __tablename__ = "generation_metrics"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    request_id = Column(String(36), nullable=False, index=True)
    kind = Column(String(20), nullable=False)
    started_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    success = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
