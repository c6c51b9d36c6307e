"""
Stateless aggregation over a slice of security log entries.
"""
from collections import Counter
from typing import Iterable, List, Protocol

from assessment_engine.core.integrity.events import ACTIVITY_TIMESTAMP_SEPARATOR, is_suspicious
from assessment_engine.schemas.security_log import SecurityLogsSummary


class LogEntry(Protocol):
    trainee_id: int
    assessment_id: int
    event_type: str
    severity: str
    activity: str


def activity_key(activity: str) -> str:
    """Activity description with the trailing " at <timestamp>" removed."""
    return activity.rsplit(ACTIVITY_TIMESTAMP_SEPARATOR, 1)[0]


def filter_suspicious(logs: Iterable[LogEntry]) -> List[LogEntry]:
    return [log for log in logs if is_suspicious(log.event_type, log.severity)]


def filter_by_activity(logs: Iterable[LogEntry], term: str) -> List[LogEntry]:
    """Case-insensitive match on either the activity text or the event type."""
    needle = term.lower()
    return [
        log for log in logs
        if needle in log.activity.lower() or needle in log.event_type.lower()
    ]


def summarize_security_logs(logs: Iterable[LogEntry]) -> SecurityLogsSummary:
    """
    Fold a slice of security logs into summary counts.

    Args:
        logs: Any iterable of log entries (ORM rows or schema objects)

    Returns:
        SecurityLogsSummary with totals, distinct trainee/assessment counts
        and a frequency table of activity descriptions
    """
    entries = list(logs)
    top_activities = Counter(activity_key(log.activity) for log in entries)

    return SecurityLogsSummary(
        total_events=len(entries),
        suspicious_events=len(filter_suspicious(entries)),
        unique_trainees=len({log.trainee_id for log in entries}),
        unique_assessments=len({log.assessment_id for log in entries}),
        top_activities=dict(top_activities.most_common()),
    )
