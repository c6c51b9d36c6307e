"""
Trainee endpoints for reporting integrity events during an assessment.

Ingestion is fire-and-forget: events are queued for the background writer and
the response is always 202, whether or not the event could be queued.
"""
import logging
from typing import Iterable, Optional, Set

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from assessment_engine.core.dependencies import (
    get_client_info,
    get_current_trainee_id,
    get_security_recorder,
)
from assessment_engine.db.base import get_db
from assessment_engine.models.attempt import AssessmentAttempt
from assessment_engine.schemas.security_log import (
    SecurityEventAccepted,
    SecurityEventBulkCreate,
    SecurityEventCreate,
)
from assessment_engine.services.security_recorder import SecurityEventRecorder

logger = logging.getLogger(__name__)

router = APIRouter()


def _owned_attempt_ids(db: Session, attempt_ids: Iterable[Optional[int]], trainee_id: int, assessment_id: int) -> Set[int]:
    """Subset of `attempt_ids` that belong to this trainee and assessment."""
    wanted = {attempt_id for attempt_id in attempt_ids if attempt_id is not None}
    if not wanted:
        return set()
    rows = db.query(AssessmentAttempt.id).filter(
        AssessmentAttempt.id.in_(wanted),
        AssessmentAttempt.trainee_id == trainee_id,
        AssessmentAttempt.assessment_id == assessment_id,
    ).all()
    return {row.id for row in rows}


def _to_record_kwargs(
    event: SecurityEventCreate,
    assessment_id: int,
    trainee_id: int,
    client: dict,
    owned_attempt_ids: Set[int]
) -> dict:
    attempt_id = event.attempt_id
    if attempt_id is not None and attempt_id not in owned_attempt_ids:
        # Keep the event but do not attach it to someone else's attempt
        logger.warning(
            f"Trainee {trainee_id} reported {event.event_type.value} for attempt {attempt_id} "
            f"outside assessment {assessment_id} or not their own; storing without attempt"
        )
        attempt_id = None

    return {
        "event_type": event.event_type,
        "trainee_id": trainee_id,
        "assessment_id": assessment_id,
        "attempt_id": attempt_id,
        "detail": event.detail,
        "activity": event.activity,
        "severity": event.severity,
        "event_timestamp": event.timestamp,
        "additional_data": event.additional_data,
        **client,
    }


@router.post(
    "/assessments/{assessment_id}/security-log",
    response_model=SecurityEventAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
def record_security_event(
    assessment_id: int,
    payload: SecurityEventCreate,
    request: Request,
    trainee_id: int = Depends(get_current_trainee_id),
    recorder: SecurityEventRecorder = Depends(get_security_recorder),
    db: Session = Depends(get_db)
):
    """
    Record one integrity event (tab switch, blocked shortcut, ...).
    """
    owned = _owned_attempt_ids(db, [payload.attempt_id], trainee_id, assessment_id)
    queued = recorder.record(**_to_record_kwargs(payload, assessment_id, trainee_id, get_client_info(request), owned))
    return SecurityEventAccepted(accepted=int(queued), dropped=int(not queued))


@router.post(
    "/assessments/{assessment_id}/security-log/bulk",
    response_model=SecurityEventAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
def record_security_events_bulk(
    assessment_id: int,
    payload: SecurityEventBulkCreate,
    request: Request,
    trainee_id: int = Depends(get_current_trainee_id),
    recorder: SecurityEventRecorder = Depends(get_security_recorder),
    db: Session = Depends(get_db)
):
    """
    Record several integrity events buffered by the client.
    """
    client = get_client_info(request)
    owned = _owned_attempt_ids(db, (event.attempt_id for event in payload.events), trainee_id, assessment_id)
    queued = recorder.record_many(
        _to_record_kwargs(event, assessment_id, trainee_id, client, owned) for event in payload.events
    )
    return SecurityEventAccepted(accepted=queued, dropped=len(payload.events) - queued)
