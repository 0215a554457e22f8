"""Database layer for Roulette.

This module handles database connections, session management, and provides
the SQLAlchemy async engine configuration.

Public API:
    get_engine: Create an AsyncEngine from DatabaseConfig.
    get_session_factory: Create an async_sessionmaker from an engine.
    Base: SQLAlchemy declarative base for all models.
"""

from roulette.database.connection import get_engine, get_session_factory
from roulette.database.models import (
    Assignment,
    AssignmentProblem,
    AssignmentStatus,
    AvailabilityStatus,
    Base,
    Complexity,
    ProblemRule,
    ReactionEvent,
    Repository,
    RepositoryReviewer,
    Reviewer,
    ReviewerSkill,
    StatusSignalMapping,
    TimestampMixin,
)

__all__ = [
    "get_engine",
    "get_session_factory",
    "Base",
    "TimestampMixin",
    "Reviewer",
    "ReviewerSkill",
    "AvailabilityStatus",
    "Repository",
    "RepositoryReviewer",
    "Assignment",
    "AssignmentStatus",
    "Complexity",
    "ReactionEvent",
    "ProblemRule",
    "AssignmentProblem",
    "StatusSignalMapping",
]
