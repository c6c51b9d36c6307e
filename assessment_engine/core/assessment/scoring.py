"""
Scoring engine for assessment attempts.

Pure functions mapping submitted answers onto question definitions. Nothing in
this module touches the database: callers build `QuestionDefinition` snapshots
first, so a score always reflects the questions as they were at the moment of
submission.
"""
import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from assessment_engine.core.exceptions import ScoringDataMissing

logger = logging.getLogger(__name__)


class QuestionType(str, Enum):
    """Supported question variants."""
    MULTIPLE_CHOICE = "multiple_choice"   # exactly one correct option
    CHECKBOX = "checkbox"                 # one or more correct options, all-or-nothing
    IDENTIFICATION = "identification"     # free text, trimmed and case-insensitive


@dataclass(frozen=True)
class OptionDefinition:
    """Snapshot of a single answer option."""
    id: int
    is_correct: bool


@dataclass(frozen=True)
class QuestionDefinition:
    """
    Snapshot of a question used for scoring.

    `options` only matters for multiple choice and checkbox questions,
    `correct_answer` only for identification questions.
    """
    id: int
    question_type: QuestionType
    points: float
    options: Tuple[OptionDefinition, ...] = ()
    correct_answer: Optional[str] = None

    @property
    def correct_option_ids(self) -> FrozenSet[int]:
        return frozenset(option.id for option in self.options if option.is_correct)


@dataclass
class QuestionResult:
    """Outcome for one question."""
    question_id: int
    is_correct: bool
    points_earned: float
    points_possible: float
    answered: bool


@dataclass
class ScoreResult:
    """Aggregate outcome of scoring an attempt."""
    per_question: List[QuestionResult]
    score: float
    total_points: float
    percentage: float
    missing_question_ids: List[int] = field(default_factory=list)

    def result_for(self, question_id: int) -> Optional[QuestionResult]:
        for result in self.per_question:
            if result.question_id == question_id:
                return result
        return None


# ============= Answer extraction =============

def _as_option_id(value: Any) -> Optional[int]:
    """An option id is an int or an integral string; anything else is malformed."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def _extract_option_id(answer: Any) -> Optional[int]:
    if isinstance(answer, Mapping):
        answer = answer.get("option_id", answer.get("selected_option_id"))
    if isinstance(answer, (list, tuple)):
        # A single-element list is tolerated for multiple choice
        if len(answer) != 1:
            return None
        answer = answer[0]
    return _as_option_id(answer)


def _extract_option_ids(answer: Any) -> Optional[FrozenSet[int]]:
    if isinstance(answer, Mapping):
        answer = answer.get("option_ids", answer.get("selected_option_ids"))
    if answer is None or isinstance(answer, (str, bool)):
        return None
    if isinstance(answer, int):
        answer = [answer]
    if not isinstance(answer, (list, tuple, set, frozenset)):
        return None
    ids = [_as_option_id(value) for value in answer]
    if not ids or None in ids:
        return None
    return frozenset(ids)


def _extract_text(answer: Any) -> Optional[str]:
    if isinstance(answer, Mapping):
        answer = answer.get("text", answer.get("answer"))
    if isinstance(answer, (int, float)) and not isinstance(answer, bool):
        answer = str(answer)
    if answer is None or not isinstance(answer, str):
        return None
    return answer if answer.strip() else None


def _normalize_text(value: str) -> str:
    return value.strip().casefold()


# ============= Per-variant evaluators =============
# Each evaluator returns None for an unanswered question, else whether the
# answer earns full credit.

def _evaluate_multiple_choice(question: QuestionDefinition, answer: Any) -> Optional[bool]:
    correct_ids = question.correct_option_ids
    if len(correct_ids) != 1:
        raise ScoringDataMissing(
            question.id, f"Multiple choice question {question.id} has {len(correct_ids)} correct options"
        )
    selected = _extract_option_id(answer)
    if selected is None:
        return None
    return selected in correct_ids


def _evaluate_checkbox(question: QuestionDefinition, answer: Any) -> Optional[bool]:
    correct_ids = question.correct_option_ids
    if not correct_ids:
        raise ScoringDataMissing(question.id, f"Checkbox question {question.id} has no correct options")
    selected = _extract_option_ids(answer)
    if selected is None:
        return None
    # No partial credit: the selection must match exactly
    return selected == correct_ids


def _evaluate_identification(question: QuestionDefinition, answer: Any) -> Optional[bool]:
    if not question.correct_answer or not question.correct_answer.strip():
        raise ScoringDataMissing(
            question.id, f"Identification question {question.id} has no stored correct answer"
        )
    submitted = _extract_text(answer)
    if submitted is None:
        return None
    return _normalize_text(submitted) == _normalize_text(question.correct_answer)


Evaluator = Callable[[QuestionDefinition, Any], Optional[bool]]

_EVALUATORS: Dict[QuestionType, Evaluator] = {
    QuestionType.MULTIPLE_CHOICE: _evaluate_multiple_choice,
    QuestionType.CHECKBOX: _evaluate_checkbox,
    QuestionType.IDENTIFICATION: _evaluate_identification,
}

_unhandled = set(QuestionType) - set(_EVALUATORS)
if _unhandled:
    raise RuntimeError(f"No evaluator registered for question types: {sorted(t.value for t in _unhandled)}")


# ============= Public API =============

def calculate_percentage(score: float, total_points: float) -> float:
    """
    Whole-number percentage of `score` over `total_points`, rounded half up.

    A total of zero points yields 0 rather than a division error.
    """
    if total_points <= 0:
        return 0.0
    raw = Decimal(str(score)) * 100 / Decimal(str(total_points))
    return float(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_passed(percentage: float, passing_score: float) -> bool:
    """Pass boundary is inclusive."""
    return percentage >= passing_score


def evaluate_question(question: QuestionDefinition, answer: Any) -> QuestionResult:
    """
    Score a single question.

    Inconsistent question data (`ScoringDataMissing`) is logged and scored as
    zero so that one broken question never blocks the whole submission.
    """
    points = float(question.points)
    try:
        outcome = _EVALUATORS[question.question_type](question, answer)
    except ScoringDataMissing as e:
        logger.warning("Scoring question %s as zero: %s", question.id, e.message)
        outcome = False if answer is not None else None

    is_correct = bool(outcome)
    return QuestionResult(
        question_id=question.id,
        is_correct=is_correct,
        points_earned=points if is_correct else 0.0,
        points_possible=points,
        answered=outcome is not None,
    )


def score_answers(
    questions: Sequence[QuestionDefinition],
    answers: Mapping[int, Any],
) -> ScoreResult:
    """
    Score a set of answers against question definitions.

    Args:
        questions: Snapshot of every question in the assessment
        answers: question_id -> submitted answer_data

    Returns:
        ScoreResult with one entry per question (unanswered questions score
        zero), the points earned, the total available and the percentage.
        Answers for question ids absent from the snapshot are listed in
        `missing_question_ids` and otherwise ignored.
    """
    known_ids = {question.id for question in questions}
    missing = []
    for question_id in answers:
        if question_id not in known_ids:
            error = ScoringDataMissing(question_id, f"Question {question_id} is not part of the assessment snapshot")
            logger.warning("Ignoring answer: %s", error.message)
            missing.append(question_id)

    per_question = [evaluate_question(question, answers.get(question.id)) for question in questions]
    score = sum(result.points_earned for result in per_question)
    total_points = sum(float(question.points) for question in questions)

    return ScoreResult(
        per_question=per_question,
        score=score,
        total_points=total_points,
        percentage=calculate_percentage(score, total_points),
        missing_question_ids=missing,
    )
