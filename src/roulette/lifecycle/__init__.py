"""Review lifecycle for Roulette.

Reviewer signals on an assignment's notification thread drive its status;
every signal is kept in an audit log from which status can be re-derived.
"""

from roulette.lifecycle.signals import (
    DEFAULT_SIGNAL_MAP,
    REJECTION_SIGNALS,
    REVIEW_START_SIGNALS,
    STATUS_PRIORITY,
    ReviewSignal,
    derive_status,
    resolve_target,
)
from roulette.lifecycle.state_machine import (
    VALID_TRANSITIONS,
    AssignmentLocks,
    AssignmentStateMachine,
    InvalidTransitionError,
    ReconciliationReport,
    SignalOutcome,
    SignalOutcomeKind,
    allowed_sources,
    response_time_minutes,
    validate_transition,
)

__all__ = [
    "DEFAULT_SIGNAL_MAP",
    "REJECTION_SIGNALS",
    "REVIEW_START_SIGNALS",
    "STATUS_PRIORITY",
    "ReviewSignal",
    "derive_status",
    "resolve_target",
    "VALID_TRANSITIONS",
    "AssignmentLocks",
    "AssignmentStateMachine",
    "InvalidTransitionError",
    "ReconciliationReport",
    "SignalOutcome",
    "SignalOutcomeKind",
    "allowed_sources",
    "response_time_minutes",
    "validate_transition",
]
