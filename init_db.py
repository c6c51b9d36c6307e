"""
Script to create the assessment tables and seed a demo assessment.
"""
import logging

from assessment_engine.db.base import engine, SessionLocal
from assessment_engine.db.init_db import init_db
from assessment_engine.models import Base

logging.basicConfig(level=logging.INFO, format='%(levelname)s:\t%(name)s\t%(message)s')
logger = logging.getLogger("init_db")


def init() -> None:
    """Initialize database."""
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        assessment = init_db(db)
    finally:
        db.close()

    logger.info(f"Database ready; demo assessment id={assessment.id}")


if __name__ == "__main__":
    init()
