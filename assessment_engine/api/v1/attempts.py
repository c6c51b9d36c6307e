"""
Trainee endpoints for a single attempt - auto-save, submit and results.
"""
from fastapi import APIRouter, Depends, HTTPException, status

from assessment_engine.core.assessment.attempt_manager import AttemptManager
from assessment_engine.core.assessment.reporting import (
    answer_key,
    assessment_to_public,
    attempt_to_out,
)
from assessment_engine.core.dependencies import get_attempt_manager, get_current_trainee_id
from assessment_engine.schemas.attempt import (
    AnswerSaved,
    AnswerSubmit,
    AttemptOut,
    AttemptResult,
    AttemptSubmit,
)

router = APIRouter()


@router.post("/assessment-attempts/{attempt_id}/answers", response_model=AnswerSaved)
def save_answer(
    attempt_id: int,
    payload: AnswerSubmit,
    trainee_id: int = Depends(get_current_trainee_id),
    manager: AttemptManager = Depends(get_attempt_manager)
):
    """
    Auto-save one answer while the attempt is in progress.

    Raises:
        404: Attempt not found
        409: Attempt already submitted or expired
        422: Question is not part of this assessment
    """
    manager.save_answer(attempt_id, trainee_id, payload.question_id, payload.answer_data)
    return AnswerSaved(message="Answer saved", question_id=payload.question_id)


@router.post("/assessment-attempts/{attempt_id}/submit", response_model=AttemptOut)
def submit_attempt(
    attempt_id: int,
    payload: AttemptSubmit,
    trainee_id: int = Depends(get_current_trainee_id),
    manager: AttemptManager = Depends(get_attempt_manager)
):
    """
    Submit an attempt for scoring.

    Submitting an attempt that is already finished returns the stored result.
    """
    answers = {answer.question_id: answer.answer_data for answer in payload.answers}
    attempt = manager.submit(attempt_id, answers, trainee_id=trainee_id)
    return attempt_to_out(attempt, manager)


@router.get("/assessment-attempts/{attempt_id}", response_model=AttemptOut)
def get_attempt(
    attempt_id: int,
    trainee_id: int = Depends(get_current_trainee_id),
    manager: AttemptManager = Depends(get_attempt_manager)
):
    """Get an attempt with its answers and remaining time."""
    attempt = manager.get_attempt(attempt_id, trainee_id)
    return attempt_to_out(attempt, manager)


@router.get("/assessment-attempts/{attempt_id}/result", response_model=AttemptResult)
def get_attempt_result(
    attempt_id: int,
    trainee_id: int = Depends(get_current_trainee_id),
    manager: AttemptManager = Depends(get_attempt_manager)
):
    """
    Get the result of a finished attempt.

    Correct answers and explanations are included only when the assessment
    shows results immediately.
    """
    attempt = manager.get_attempt(attempt_id, trainee_id)
    if not attempt.is_terminal:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Attempt not submitted yet")

    assessment = attempt.assessment
    result = AttemptResult(attempt=attempt_to_out(attempt), assessment=assessment_to_public(assessment))
    if assessment.show_results_immediately:
        result.correct_answers, result.explanations = answer_key(assessment)
    return result
