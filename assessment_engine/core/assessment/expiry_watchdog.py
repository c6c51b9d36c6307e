"""
Background sweep that expires overdue attempts.

Clients cannot be trusted to report their own expiry (closing the tab is
enough to avoid it), so time-boxed attempts are closed server-side.
"""
import logging
import threading
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from assessment_engine.core.assessment.attempt_manager import AttemptManager
from assessment_engine.models.assessment import Assessment
from assessment_engine.models.attempt import AssessmentAttempt, AttemptStatus
from assessment_engine.services.security_recorder import SecurityEventRecorder
from assessment_engine.utils.datetime_helpers import utcnow

logger = logging.getLogger(__name__)


class ExpiryWatchdog:
    """Periodically expires in-progress attempts whose time limit has passed."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        interval_seconds: float = 5.0,
        recorder: Optional[SecurityEventRecorder] = None,
        clock: Callable[[], datetime] = utcnow,
        grace_seconds: int = 0,
    ):
        self._session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.recorder = recorder
        self.grace_seconds = grace_seconds
        self.clock = clock
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def sweep_once(self, now: Optional[datetime] = None) -> List[int]:
        """
        Expire every attempt past its deadline plus the submission grace period.

        Args:
            now: Reference time (defaults to the watchdog clock)

        Returns:
            IDs of the attempts this sweep expired. Attempts that a concurrent
            submit finalized first are not included.
        """
        now = now or self.clock()
        expired_ids = []
        db = self._session_factory()
        try:
            manager = AttemptManager(db, self.recorder, clock=lambda: now)
            candidates = db.query(AssessmentAttempt).join(
                Assessment, Assessment.id == AssessmentAttempt.assessment_id
            ).filter(
                AssessmentAttempt.status == AttemptStatus.IN_PROGRESS.value,
                Assessment.time_limit.isnot(None),
            ).all()

            for attempt in candidates:
                if not manager.is_overdue(attempt, now, self.grace_seconds):
                    continue
                try:
                    _, expired_now = manager.try_expire(attempt.id)
                except Exception as e:
                    db.rollback()
                    logger.error(f"Failed to expire attempt {attempt.id}: {e}")
                    continue
                if expired_now:
                    expired_ids.append(attempt.id)

            if expired_ids:
                logger.info(f"Expired {len(expired_ids)} overdue attempt(s): {expired_ids}")
            return expired_ids
        finally:
            db.close()

    def _run(self) -> None:
        logger.info(f"Expiry watchdog started (interval {self.interval_seconds}s)")
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.sweep_once()
            except Exception as e:
                logger.error(f"Expiry sweep failed: {e}")
        logger.info("Expiry watchdog stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="attempt-expiry-watchdog", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
