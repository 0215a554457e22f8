"""Problem rule engine for Roulette.

Detects stalled, repeatedly rejected, churning and ancient assignments and
posts threaded notifications about them.
"""

from roulette.rules.conditions import (
    CONDITION_EVALUATORS,
    describe_problem,
    evaluate_condition,
    last_activity_at,
)
from roulette.rules.engine import (
    SEVERITY_ICONS,
    DetectionStats,
    ProblemDetector,
    format_problem_message,
)
from roulette.rules.scheduler import ProblemSweepScheduler

__all__ = [
    "CONDITION_EVALUATORS",
    "describe_problem",
    "evaluate_condition",
    "last_activity_at",
    "SEVERITY_ICONS",
    "DetectionStats",
    "ProblemDetector",
    "format_problem_message",
    "ProblemSweepScheduler",
]
