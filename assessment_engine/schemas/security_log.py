"""
Pydantic schemas for security log ingestion and reporting.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from assessment_engine.core.integrity.events import SecurityEventType, Severity


class SecurityEventCreate(BaseModel):
    """Schema for a security event reported by the assessment client."""
    event_type: SecurityEventType
    attempt_id: Optional[int] = None
    detail: Optional[str] = Field(None, description="Extra context, e.g. the blocked shortcut")
    activity: Optional[str] = Field(None, description="Full activity text; generated when omitted")
    severity: Optional[Severity] = Field(
        None, description="Only honoured for suspicious_activity (defaults to high)"
    )
    timestamp: Optional[datetime] = Field(None, description="Client-side time of the event")
    additional_data: Optional[Dict[str, Any]] = None


class SecurityEventBulkCreate(BaseModel):
    """Schema for reporting several events at once."""
    events: List[SecurityEventCreate] = Field(..., min_length=1)


class SecurityEventAccepted(BaseModel):
    """Acknowledgement for fire-and-forget ingestion."""
    accepted: int
    dropped: int = 0


class SecurityLogOut(BaseModel):
    """Security log entry as returned to admins."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    trainee_id: int
    assessment_id: int
    attempt_id: Optional[int] = None
    event_type: str
    severity: str
    activity: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    additional_data: Optional[Dict[str, Any]] = None
    event_timestamp: datetime
    created_at: Optional[datetime] = None


class Pagination(BaseModel):
    current_page: int
    per_page: int
    total: int
    last_page: int


class SecurityLogPage(BaseModel):
    data: List[SecurityLogOut]
    pagination: Pagination


class SecurityLogFilter(BaseModel):
    """Filters accepted by the admin log queries."""
    trainee_id: Optional[int] = None
    assessment_id: Optional[int] = None
    attempt_id: Optional[int] = None
    event_type: Optional[SecurityEventType] = None
    severity: Optional[Severity] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    search: Optional[str] = None
    suspicious: Optional[bool] = Field(
        None, description="True for suspicious events only, False for normal events only"
    )


class SecurityLogsSummary(BaseModel):
    """Aggregate counts over a slice of security logs."""
    total_events: int
    suspicious_events: int
    unique_trainees: int
    unique_assessments: int
    top_activities: Dict[str, int]
