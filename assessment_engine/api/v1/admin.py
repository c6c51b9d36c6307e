"""
Admin and instructor endpoints - security log review, assessment results and
on-demand expiry of overdue attempts.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from assessment_engine.core.assessment.attempt_manager import AttemptManager
from assessment_engine.core.assessment.expiry_watchdog import ExpiryWatchdog
from assessment_engine.core.assessment.reporting import AssessmentReporter, SecurityLogReporter
from assessment_engine.core.dependencies import Principal, get_current_admin
from assessment_engine.core.integrity.events import SecurityEventType, Severity
from assessment_engine.db.base import get_db
from assessment_engine.schemas.attempt import AssessmentResults, AssessmentStats, ExpirySweepResult
from assessment_engine.schemas.security_log import (
    SecurityLogFilter,
    SecurityLogPage,
    SecurityLogsSummary,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def event_filters(
    attempt_id: Optional[int] = Query(None),
    event_type: Optional[SecurityEventType] = Query(None),
    severity: Optional[Severity] = Query(None),
    since: Optional[datetime] = Query(None, description="Events at or after this time"),
    until: Optional[datetime] = Query(None, description="Events at or before this time"),
    search: Optional[str] = Query(None, description="Matches activity text or event type"),
    suspicious: Optional[bool] = Query(None, description="true = suspicious only, false = normal only"),
) -> SecurityLogFilter:
    """Filters shared by every log listing; routes scoped by path add their own id."""
    return SecurityLogFilter(
        attempt_id=attempt_id,
        event_type=event_type,
        severity=severity,
        since=since,
        until=until,
        search=search,
        suspicious=suspicious,
    )


def log_filters(
    trainee_id: Optional[int] = Query(None),
    assessment_id: Optional[int] = Query(None),
    filters: SecurityLogFilter = Depends(event_filters),
) -> SecurityLogFilter:
    return filters.model_copy(update={"trainee_id": trainee_id, "assessment_id": assessment_id})


# ============= Security logs =============

@router.get("/security/logs", response_model=SecurityLogPage)
def list_security_logs(
    filters: SecurityLogFilter = Depends(log_filters),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    admin: Principal = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """
    List security logs across all assessments, newest first.
    """
    return SecurityLogReporter(db).list_logs(filters, page, per_page)


@router.get("/security/logs/summary", response_model=SecurityLogsSummary)
def get_security_logs_summary(
    filters: SecurityLogFilter = Depends(log_filters),
    admin: Principal = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """
    Get totals, suspicious count and most frequent activities for the
    filtered logs.
    """
    return SecurityLogReporter(db).summarize(filters)


@router.get("/assessments/{assessment_id}/security/logs", response_model=SecurityLogPage)
def list_assessment_security_logs(
    assessment_id: int,
    filters: SecurityLogFilter = Depends(event_filters),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    admin: Principal = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """
    List security logs for one assessment.
    """
    AttemptManager(db).get_assessment(assessment_id)
    filters = filters.model_copy(update={"assessment_id": assessment_id})
    return SecurityLogReporter(db).list_logs(filters, page, per_page)


@router.get("/trainees/{trainee_id}/security/logs", response_model=SecurityLogPage)
def list_trainee_security_logs(
    trainee_id: int,
    filters: SecurityLogFilter = Depends(event_filters),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    admin: Principal = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """
    List security logs for one trainee.
    """
    filters = filters.model_copy(update={"trainee_id": trainee_id})
    return SecurityLogReporter(db).list_logs(filters, page, per_page)


# ============= Results =============

@router.get("/assessments/{assessment_id}/results", response_model=AssessmentResults)
def get_assessment_results(
    assessment_id: int,
    admin: Principal = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """
    Get every trainee's attempts at an assessment, with best and latest scores.
    """
    assessment = AttemptManager(db).get_assessment(assessment_id)
    return AssessmentReporter(db).get_assessment_results(assessment)


@router.get("/assessments/{assessment_id}/stats", response_model=AssessmentStats)
def get_assessment_stats(
    assessment_id: int,
    admin: Principal = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """
    Get attempt counts, average score and pass rate for an assessment.
    """
    assessment = AttemptManager(db).get_assessment(assessment_id)
    return AssessmentReporter(db).get_assessment_stats(assessment)


# ============= Maintenance =============

@router.post("/attempts/expire-overdue", response_model=ExpirySweepResult)
def expire_overdue_attempts(
    request: Request,
    admin: Principal = Depends(get_current_admin)
):
    """
    Run one expiry sweep now instead of waiting for the background watchdog.
    """
    watchdog: ExpiryWatchdog = request.app.state.expiry_watchdog
    expired = watchdog.sweep_once()
    logger.info(f"Admin {admin.id} expired {len(expired)} overdue attempt(s)")
    return ExpirySweepResult(expired_attempt_ids=expired)
