"""
Append-only integrity log written while trainees take assessments.
"""
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.sql import func

from assessment_engine.db.base import Base


class SecurityLog(Base):
    """Security event captured during (or just before) an attempt. Never updated."""

    __tablename__ = "security_logs"
    __table_args__ = (
        Index("ix_security_logs_assessment_trainee", "assessment_id", "trainee_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    trainee_id = Column(Integer, nullable=False, index=True)
    assessment_id = Column(Integer, ForeignKey("assessments.id"), nullable=False)
    attempt_id = Column(Integer, ForeignKey("assessment_attempts.id"), nullable=True)

    event_type = Column(String(50), nullable=False, index=True)
    severity = Column(String(20), nullable=False)  # low, medium, high, critical
    activity = Column(Text, nullable=False)

    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    additional_data = Column(JSON, nullable=True)

    event_timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
