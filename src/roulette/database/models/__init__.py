"""SQLAlchemy ORM models for Roulette.

This module defines the database schema including reviewers, repositories,
assignments, the reaction audit log, problem rules, and signal mappings.

All models use SQLAlchemy 2.0 declarative style with Mapped[] type annotations.
"""

from roulette.database.models.assignment import (
    LOAD_STATUSES,
    OPEN_STATUSES,
    Assignment,
    AssignmentStatus,
    Complexity,
    ReactionEvent,
    SignalAction,
)
from roulette.database.models.base import Base, TimestampMixin, as_utc, utcnow
from roulette.database.models.repository import Repository, RepositoryReviewer
from roulette.database.models.reviewer import AvailabilityStatus, Reviewer, ReviewerSkill
from roulette.database.models.rule import (
    AssignmentProblem,
    ConditionType,
    ProblemRule,
    Severity,
)
from roulette.database.models.signal_mapping import StatusSignalMapping

__all__ = [
    "Base",
    "TimestampMixin",
    "utcnow",
    "as_utc",
    "Reviewer",
    "ReviewerSkill",
    "AvailabilityStatus",
    "Repository",
    "RepositoryReviewer",
    "Assignment",
    "AssignmentStatus",
    "Complexity",
    "OPEN_STATUSES",
    "LOAD_STATUSES",
    "ReactionEvent",
    "SignalAction",
    "ProblemRule",
    "AssignmentProblem",
    "ConditionType",
    "Severity",
    "StatusSignalMapping",
]
