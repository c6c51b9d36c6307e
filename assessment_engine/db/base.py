"""
Database session and base configuration.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from assessment_engine.core.config import settings


def _build_engine(url: str):
    if url.startswith("sqlite"):
        # In-memory databases must share a single connection across threads
        if url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(url, connect_args={"check_same_thread": False})

    if settings.ENV == "production":
        return create_engine(
            url,
            poolclass=NullPool,
            pool_pre_ping=True,
            connect_args={
                "options": "-c statement_timeout=30000"  # 30s timeout
            }
        )

    # Development: Use small pool
    return create_engine(
        url,
        pool_size=5,
        max_overflow=0,
        pool_pre_ping=True,
        pool_recycle=3600
    )


engine = _build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
