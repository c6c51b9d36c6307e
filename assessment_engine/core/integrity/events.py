"""
Integrity event taxonomy.

Severity is fixed per event type at recording time; only
`suspicious_activity` accepts a caller-supplied severity.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional


class SecurityEventType(str, Enum):
    ASSESSMENT_STARTED = "assessment_started"
    ASSESSMENT_COMPLETED = "assessment_completed"
    TAB_SWITCH = "tab_switch"
    WINDOW_FOCUS_LOST = "window_focus_lost"
    RIGHT_CLICK_BLOCKED = "right_click_blocked"
    SHORTCUT_BLOCKED = "shortcut_blocked"
    FULLSCREEN_DENIED = "fullscreen_denied"
    COPY_ATTEMPT = "copy_attempt"
    PASTE_ATTEMPT = "paste_attempt"
    DEVELOPER_TOOLS = "developer_tools"
    MULTIPLE_TABS = "multiple_tabs"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


EVENT_SEVERITY: Dict[SecurityEventType, Severity] = {
    SecurityEventType.ASSESSMENT_STARTED: Severity.LOW,
    SecurityEventType.ASSESSMENT_COMPLETED: Severity.LOW,
    SecurityEventType.TAB_SWITCH: Severity.MEDIUM,
    SecurityEventType.WINDOW_FOCUS_LOST: Severity.MEDIUM,
    SecurityEventType.RIGHT_CLICK_BLOCKED: Severity.LOW,
    SecurityEventType.SHORTCUT_BLOCKED: Severity.LOW,
    SecurityEventType.FULLSCREEN_DENIED: Severity.MEDIUM,
    SecurityEventType.COPY_ATTEMPT: Severity.MEDIUM,
    SecurityEventType.PASTE_ATTEMPT: Severity.MEDIUM,
    SecurityEventType.DEVELOPER_TOOLS: Severity.HIGH,
    SecurityEventType.MULTIPLE_TABS: Severity.HIGH,
    SecurityEventType.SUSPICIOUS_ACTIVITY: Severity.HIGH,
}

SUSPICIOUS_EVENT_TYPES: FrozenSet[str] = frozenset({
    SecurityEventType.TAB_SWITCH.value,
    SecurityEventType.RIGHT_CLICK_BLOCKED.value,
    SecurityEventType.SHORTCUT_BLOCKED.value,
    SecurityEventType.FULLSCREEN_DENIED.value,
    SecurityEventType.WINDOW_FOCUS_LOST.value,
    SecurityEventType.COPY_ATTEMPT.value,
    SecurityEventType.PASTE_ATTEMPT.value,
    SecurityEventType.DEVELOPER_TOOLS.value,
    SecurityEventType.MULTIPLE_TABS.value,
    SecurityEventType.SUSPICIOUS_ACTIVITY.value,
})

SUSPICIOUS_SEVERITIES: FrozenSet[str] = frozenset({
    Severity.MEDIUM.value,
    Severity.HIGH.value,
    Severity.CRITICAL.value,
})

ACTIVITY_TIMESTAMP_SEPARATOR = " at "


def resolve_severity(event_type: SecurityEventType, requested: Optional[Severity] = None) -> Severity:
    """Look up the severity for an event type."""
    if event_type is SecurityEventType.SUSPICIOUS_ACTIVITY and requested is not None:
        return requested
    return EVENT_SEVERITY[event_type]


def describe_event(event_type: SecurityEventType, timestamp: datetime, detail: Optional[str] = None) -> str:
    """
    Build the activity text stored with an event.

    Examples: "tab_switch at 2025-01-01T10:00:00+00:00",
    "shortcut_blocked: Ctrl+C at 2025-01-01T10:00:00+00:00".
    """
    label = event_type.value if not detail else f"{event_type.value}: {detail}"
    return f"{label}{ACTIVITY_TIMESTAMP_SEPARATOR}{timestamp.isoformat()}"


def is_suspicious(event_type: str, severity: str) -> bool:
    return event_type in SUSPICIOUS_EVENT_TYPES or severity in SUSPICIOUS_SEVERITIES
