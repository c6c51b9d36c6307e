"""
Shared pytest fixtures for the assessment engine test suite.

Everything runs against a single in-memory SQLite database; the background
recorder and watchdog threads are never started, tests drain the recorder
queue and run expiry sweeps explicitly instead.
Factory helpers live in tests/factories.py so they can be imported
directly by test modules as well as being used here.
"""
import os
import sys

_tests_dir = os.path.dirname(__file__)
if _tests_dir not in sys.path:
    sys.path.insert(0, _tests_dir)

# Configure before the application settings are first imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENABLE_EXPIRY_WATCHDOG"] = "false"
os.environ["SECURITY_LOG_ENABLED"] = "true"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SUBMISSION_GRACE_SECONDS"] = "30"


import pytest
from fastapi.testclient import TestClient

from factories import auth_headers

from assessment_engine.core.assessment.expiry_watchdog import ExpiryWatchdog
from assessment_engine.db.base import SessionLocal, engine
from assessment_engine.main import app
from assessment_engine.models import Base
from assessment_engine.services.security_recorder import SecurityEventRecorder


# ─── database ────────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


# ─── background workers (never started as threads) ───────────────────────────

@pytest.fixture
def recorder():
    return SecurityEventRecorder(SessionLocal, max_queue_size=100)


@pytest.fixture
def watchdog(recorder):
    return ExpiryWatchdog(SessionLocal, interval_seconds=0.05, recorder=recorder)


# ─── HTTP ────────────────────────────────────────────────────────────────────

@pytest.fixture
def client(recorder, watchdog):
    # No context manager: startup hooks (and their threads) stay off
    app.state.security_recorder = recorder
    app.state.expiry_watchdog = watchdog
    return TestClient(app)


@pytest.fixture
def trainee_headers():
    return auth_headers(101)


@pytest.fixture
def other_trainee_headers():
    return auth_headers(202)


@pytest.fixture
def admin_headers():
    return auth_headers(1, role="admin")
