"""
Fire-and-forget recorder for assessment integrity events.

`record()` only builds the log entry and puts it on a bounded in-memory queue;
a background thread drains the queue and writes each entry with its own
database session. Nothing on this path raises back into the caller: a full
queue drops the event, a failed write is logged and skipped.
"""
import logging
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional

from sqlalchemy.orm import Session

from assessment_engine.core.exceptions import RecorderWriteFailed
from assessment_engine.core.integrity.events import (
    SecurityEventType,
    Severity,
    describe_event,
    resolve_severity,
)
from assessment_engine.models.security_log import SecurityLog
from assessment_engine.utils.datetime_helpers import as_utc, utcnow

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass
class SecurityEvent:
    """Fully resolved entry waiting to be written."""
    event_type: str
    severity: str
    trainee_id: int
    assessment_id: int
    activity: str
    event_timestamp: datetime
    attempt_id: Optional[int] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    additional_data: Optional[Dict[str, Any]] = field(default=None)


class SecurityEventRecorder:
    """
    Append-only security log writer.

    Every call carries its own trainee/assessment/attempt context; the
    recorder keeps no per-assessment state, so one instance is shared by all
    requests.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        max_queue_size: int = 1000,
        enabled: bool = True,
    ):
        self._session_factory = session_factory
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=max_queue_size)
        self._enabled = enabled
        self._thread: Optional[threading.Thread] = None
        self.dropped_events = 0
        self.failed_writes = 0

    # ============= Ingestion =============

    def record(
        self,
        event_type: SecurityEventType,
        trainee_id: int,
        assessment_id: int,
        attempt_id: Optional[int] = None,
        *,
        detail: Optional[str] = None,
        activity: Optional[str] = None,
        severity: Optional[Severity] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        event_timestamp: Optional[datetime] = None,
        additional_data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Queue a security event for writing.

        Returns:
            True if the event was queued, False if it was dropped
        """
        if not self._enabled:
            return False

        try:
            event_type = SecurityEventType(event_type)
            timestamp = as_utc(event_timestamp) or utcnow()
            event = SecurityEvent(
                event_type=event_type.value,
                severity=resolve_severity(event_type, Severity(severity) if severity else None).value,
                trainee_id=trainee_id,
                assessment_id=assessment_id,
                attempt_id=attempt_id,
                activity=activity or describe_event(event_type, timestamp, detail),
                event_timestamp=timestamp,
                ip_address=ip_address,
                user_agent=user_agent,
                additional_data=additional_data,
            )
            self._queue.put_nowait(event)
            return True
        except queue.Full:
            self.dropped_events += 1
            logger.warning(
                f"Security log queue full, dropping {event_type} for trainee {trainee_id} "
                f"on assessment {assessment_id}"
            )
            return False
        except Exception as e:
            # Integrity logging must never break the assessment flow
            self.dropped_events += 1
            logger.error(f"Could not record security event {event_type!r}: {e}")
            return False

    def record_many(self, events: Iterable[Dict[str, Any]]) -> int:
        """
        Queue several events; each dict holds `record()` keyword arguments.

        Returns:
            Number of events queued
        """
        return sum(1 for event in events if self.record(**event))

    # ============= Writing =============

    def _write(self, event: SecurityEvent) -> None:
        try:
            db = self._session_factory()
        except Exception as e:
            raise RecorderWriteFailed(f"Could not open a database session: {e}") from e

        try:
            db.add(SecurityLog(
                trainee_id=event.trainee_id,
                assessment_id=event.assessment_id,
                attempt_id=event.attempt_id,
                event_type=event.event_type,
                severity=event.severity,
                activity=event.activity,
                ip_address=event.ip_address,
                user_agent=event.user_agent,
                additional_data=event.additional_data,
                event_timestamp=event.event_timestamp,
            ))
            db.commit()
        except Exception as e:
            db.rollback()
            raise RecorderWriteFailed(str(e)) from e
        finally:
            db.close()

    def _write_safely(self, event: SecurityEvent) -> None:
        try:
            self._write(event)
        except RecorderWriteFailed as e:
            self.failed_writes += 1
            logger.error(
                f"Failed to persist security event {event.event_type} for trainee "
                f"{event.trainee_id} on assessment {event.assessment_id}: {e.message}"
            )
        except Exception as e:
            self.failed_writes += 1
            logger.error(f"Unexpected error persisting security event {event.event_type}: {e}")

    def drain(self) -> int:
        """
        Write every queued event in the calling thread.

        Returns:
            Number of events taken off the queue
        """
        processed = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return processed
            try:
                if item is not _STOP:
                    self._write_safely(item)
                    processed += 1
            finally:
                self._queue.task_done()

    def _run(self) -> None:
        logger.info("Security log writer started")
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    break
                self._write_safely(item)
            finally:
                self._queue.task_done()
        logger.info("Security log writer stopped")

    # ============= Lifecycle =============

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background writer thread."""
        if self.is_running:
            return
        self._thread = threading.Thread(target=self._run, name="security-log-writer", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the writer thread, then flush whatever is still queued."""
        if self._thread is not None:
            # Blocking put: the stop marker must not be dropped on a full queue
            self._queue.put(_STOP)
            self._thread.join(timeout)
            self._thread = None
        self.drain()
