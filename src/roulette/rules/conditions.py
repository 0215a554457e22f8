"""Problem rule conditions for Roulette.

Each condition type maps to one pure evaluator taking the assignment, the
rule's threshold and the evaluation time. Adding a condition type means
adding one entry to CONDITION_EVALUATORS (and one to describe_problem).
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import structlog

from roulette.database.models.assignment import Assignment
from roulette.database.models.base import as_utc
from roulette.database.models.rule import ConditionType, ProblemRule

logger = structlog.get_logger(__name__)

Evaluator = Callable[[Assignment, float, datetime], bool]


def hours_between(start: datetime, end: datetime) -> float:
    """Elapsed hours from ``start`` to ``end``."""
    return (as_utc(end) - as_utc(start)).total_seconds() / 3600


def last_activity_at(assignment: Assignment) -> datetime:
    """Most recent activity anchor: first review, assignment, or creation."""
    return assignment.first_review_activity_at or assignment.assigned_at or assignment.created_at


def _no_activity_for(assignment: Assignment, value: float, now: datetime) -> bool:
    return hours_between(last_activity_at(assignment), now) >= value


def _rejection_count_gte(assignment: Assignment, value: float, now: datetime) -> bool:
    return assignment.rejection_count >= value


def _reviewer_changes_gte(assignment: Assignment, value: float, now: datetime) -> bool:
    return assignment.reviewer_change_count >= value


def _total_age_gte(assignment: Assignment, value: float, now: datetime) -> bool:
    return hours_between(assignment.created_at, now) >= value


CONDITION_EVALUATORS: dict[ConditionType, Evaluator] = {
    ConditionType.no_activity_for: _no_activity_for,
    ConditionType.rejection_count_gte: _rejection_count_gte,
    ConditionType.reviewer_changes_gte: _reviewer_changes_gte,
    ConditionType.total_age_gte: _total_age_gte,
}


def parse_condition_type(value: str | ConditionType) -> ConditionType | None:
    """Parse a stored condition type, or None if it is not known."""
    try:
        return ConditionType(str(getattr(value, "value", value)).lower())
    except ValueError:
        return None


def evaluate_condition(
    assignment: Assignment,
    condition_type: str | ConditionType,
    value: float,
    now: datetime,
) -> bool:
    """Evaluate one condition against an assignment.

    Unknown condition types never trigger; they are logged as a
    configuration warning.

    Args:
        assignment: Assignment to test.
        condition_type: Stored condition type.
        value: Threshold in hours or counts.
        now: Evaluation time.

    Returns:
        True if the condition holds.
    """
    parsed = parse_condition_type(condition_type)
    if parsed is None:
        logger.warning("unknown_condition_type", condition_type=str(condition_type))
        return False
    return CONDITION_EVALUATORS[parsed](assignment, value, now)


def describe_problem(rule: ProblemRule, assignment: Assignment) -> str:
    """Human-readable details of why a rule triggered."""
    threshold = f"{rule.condition_value:g}"
    condition_type = parse_condition_type(rule.condition_type)

    if condition_type == ConditionType.no_activity_for:
        return f"No review activity for {threshold}+ hours"
    if condition_type == ConditionType.rejection_count_gte:
        return f"Rejected {assignment.rejection_count} times (threshold: {threshold})"
    if condition_type == ConditionType.reviewer_changes_gte:
        return (
            f"Reviewer changed {assignment.reviewer_change_count} times "
            f"(threshold: {threshold})"
        )
    if condition_type == ConditionType.total_age_gte:
        return f"PR open for {threshold}+ hours"
    return rule.description or rule.name
