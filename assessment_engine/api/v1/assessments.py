"""
Trainee endpoints for assessments - details, eligibility summary, starting
or resuming an attempt and attempt history.
"""
from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from assessment_engine.core.assessment.attempt_manager import AttemptManager
from assessment_engine.core.assessment.reporting import (
    AssessmentReporter,
    assessment_to_public,
    attempt_to_out,
    questions_for_attempt,
)
from assessment_engine.core.dependencies import (
    get_attempt_manager,
    get_client_info,
    get_current_trainee_id,
)
from assessment_engine.db.base import get_db
from assessment_engine.schemas.assessment import AssessmentDetail, TraineeAssessmentSummary
from assessment_engine.schemas.attempt import AttemptOut, StartAttemptResponse, TraineeAssessmentStats
from assessment_engine.schemas.common import ErrorResponse

router = APIRouter()


# ============= Trainee-wide views =============
# Declared before /assessments/{assessment_id} so the literal paths win

@router.get("/assessments/history", response_model=List[AttemptOut])
def get_my_attempt_history(
    trainee_id: int = Depends(get_current_trainee_id),
    db: Session = Depends(get_db)
):
    """
    Get every attempt of the current trainee, newest first.
    """
    attempts = AssessmentReporter(db).get_attempt_history(trainee_id)
    return [attempt_to_out(attempt) for attempt in attempts]


@router.get("/assessments/stats", response_model=TraineeAssessmentStats)
def get_my_assessment_stats(
    trainee_id: int = Depends(get_current_trainee_id),
    db: Session = Depends(get_db)
):
    """
    Get the current trainee's overall assessment statistics.
    """
    return AssessmentReporter(db).get_trainee_stats(trainee_id)


# ============= Single assessment =============

@router.get("/assessments/{assessment_id}", response_model=AssessmentDetail)
def get_assessment(
    assessment_id: int,
    trainee_id: int = Depends(get_current_trainee_id),
    manager: AttemptManager = Depends(get_attempt_manager)
):
    """
    Get assessment configuration together with the trainee's attempt summary.
    """
    assessment = manager.get_assessment(assessment_id)
    summary = AssessmentReporter(manager.db).get_trainee_assessment_summary(assessment, trainee_id)
    return AssessmentDetail(assessment=assessment_to_public(assessment), summary=summary)


@router.get("/assessments/{assessment_id}/summary", response_model=TraineeAssessmentSummary)
def get_assessment_summary(
    assessment_id: int,
    trainee_id: int = Depends(get_current_trainee_id),
    manager: AttemptManager = Depends(get_attempt_manager)
):
    """
    Get attempts used, attempts remaining, best score and whether a new
    attempt can be started.
    """
    assessment = manager.get_assessment(assessment_id)
    return AssessmentReporter(manager.db).get_trainee_assessment_summary(assessment, trainee_id)


@router.post(
    "/assessments/{assessment_id}/start",
    response_model=StartAttemptResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"model": ErrorResponse, "description": "No attempts remaining"},
        404: {"model": ErrorResponse, "description": "Assessment not found"},
        409: {"model": ErrorResponse, "description": "Another start is already in progress"},
    },
)
def start_or_resume_attempt(
    assessment_id: int,
    request: Request,
    trainee_id: int = Depends(get_current_trainee_id),
    manager: AttemptManager = Depends(get_attempt_manager)
):
    """
    Start a new attempt, or resume the one already in progress.

    Questions are returned without correct answers; each one carries the
    trainee's auto-saved answer when resuming.

    Raises:
        404: Assessment not found
        403: No attempts remaining
    """
    client = get_client_info(request)
    attempt, resumed = manager.start_or_resume(
        assessment_id,
        trainee_id,
        ip_address=client["ip_address"],
        user_agent=client["user_agent"],
    )
    assessment = attempt.assessment
    out = attempt_to_out(attempt, manager)

    return StartAttemptResponse(
        attempt=out,
        resumed=resumed,
        assessment=assessment_to_public(assessment),
        questions=questions_for_attempt(attempt),
        time_limit=assessment.time_limit,
        time_remaining=out.time_remaining,
        instructions=assessment.instructions,
    )


@router.get("/assessments/{assessment_id}/history", response_model=List[AttemptOut])
def get_assessment_attempt_history(
    assessment_id: int,
    trainee_id: int = Depends(get_current_trainee_id),
    manager: AttemptManager = Depends(get_attempt_manager)
):
    """
    Get the trainee's attempts at one assessment, newest first.
    """
    manager.get_assessment(assessment_id)
    attempts = AssessmentReporter(manager.db).get_attempt_history(trainee_id, assessment_id)
    return [attempt_to_out(attempt, manager) for attempt in attempts]
