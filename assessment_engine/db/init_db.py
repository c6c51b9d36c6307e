"""
Database initialization and seeding.
"""
import logging

from sqlalchemy.orm import Session

from assessment_engine.models.assessment import Assessment, Question, QuestionOption

logger = logging.getLogger(__name__)

DEMO_ASSESSMENT_TITLE = "Maritime Safety Basics"


def init_db(db: Session) -> Assessment:
    """
    Seed a demo assessment covering every question type.

    Args:
        db: Database session

    Returns:
        The demo assessment (existing or newly created)
    """
    assessment = db.query(Assessment).filter(Assessment.title == DEMO_ASSESSMENT_TITLE).first()
    if assessment:
        logger.info(f"Demo assessment already present (id={assessment.id})")
        return assessment

    assessment = Assessment(
        course_id=1,
        title=DEMO_ASSESSMENT_TITLE,
        description="Short check of basic shipboard safety knowledge.",
        instructions="Answer every question. Switching tabs is logged.",
        time_limit=10,
        passing_score=70,
        max_attempts=2,
        show_results_immediately=True,
    )

    muster = Question(
        question_text="Which signal calls all crew to the muster station?",
        question_type="multiple_choice",
        points=1,
        order=1,
        explanation="Seven short blasts followed by one long blast is the general emergency alarm.",
    )
    muster.options = [
        QuestionOption(text="Seven short blasts and one long blast", is_correct=True, order=1),
        QuestionOption(text="Three long blasts", is_correct=False, order=2),
        QuestionOption(text="One continuous blast", is_correct=False, order=3),
    ]

    fire = Question(
        question_text="Which of these are classes of fire?",
        question_type="checkbox",
        points=2,
        order=2,
        explanation="Class A covers ordinary combustibles and class B flammable liquids.",
    )
    fire.options = [
        QuestionOption(text="Class A", is_correct=True, order=1),
        QuestionOption(text="Class B", is_correct=True, order=2),
        QuestionOption(text="Class Z", is_correct=False, order=3),
    ]

    side = Question(
        question_text="What is the right-hand side of a vessel, facing forward, called?",
        question_type="identification",
        points=1,
        order=3,
        correct_answer="Starboard",
    )

    assessment.questions = [muster, fire, side]
    db.add(assessment)
    db.commit()
    db.refresh(assessment)
    logger.info(f"Demo assessment created (id={assessment.id})")
    return assessment
