"""
Assessment attempt engine: eligibility, lifecycle, scoring, expiry and reporting.
"""
from .eligibility_checker import EligibilityChecker, EligibilityResult
from .attempt_manager import AttemptManager
from .expiry_watchdog import ExpiryWatchdog
from .reporting import AssessmentReporter, SecurityLogReporter

__all__ = [
    "EligibilityChecker",
    "EligibilityResult",
    "AttemptManager",
    "ExpiryWatchdog",
    "AssessmentReporter",
    "SecurityLogReporter",
]
