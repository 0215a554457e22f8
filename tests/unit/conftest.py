"""Shared fixtures for unit tests.

Builds transient (never persisted) model instances and scoring inputs so
pure logic can be exercised without a database.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from roulette.assignment.load import calculate_cognitive_load
from roulette.assignment.scorer import ReviewerProfile, WorkItem
from roulette.database.models import (
    Assignment,
    AssignmentStatus,
    Complexity,
    ProblemRule,
    Repository,
    Reviewer,
    Severity,
)

# A Wednesday, 12:00 UTC: inside default working hours for UTC reviewers
NOON_WEDNESDAY = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation time inside default working hours."""
    return NOON_WEDNESDAY


@pytest.fixture
def make_profile() -> Callable[..., ReviewerProfile]:
    """Factory for reviewer profiles with sensible defaults."""

    def _make(**overrides: Any) -> ReviewerProfile:
        values: dict[str, Any] = {
            "reviewer_id": uuid.uuid4(),
            "display_name": "Reviewer",
            "slack_id": f"U{uuid.uuid4().hex[:8].upper()}",
            "weight": 1.0,
            "max_concurrent": 5,
        }
        values.update(overrides)
        return ReviewerProfile(**values)

    return _make


@pytest.fixture
def make_work_item() -> Callable[..., WorkItem]:
    """Factory for work items with sensible defaults."""

    def _make(**overrides: Any) -> WorkItem:
        values: dict[str, Any] = {
            "repository_id": uuid.uuid4(),
            "author_id": uuid.uuid4(),
        }
        values.update(overrides)
        return WorkItem(**values)

    return _make


@pytest.fixture
def empty_load():
    """Cognitive load of a reviewer with nothing open."""
    return calculate_cognitive_load([])


@pytest.fixture
def make_assignment(now: datetime) -> Callable[..., Assignment]:
    """Factory for transient assignments with relations attached."""

    def _make(**overrides: Any) -> Assignment:
        author = Reviewer(id=uuid.uuid4(), slack_id="UAUTHOR", display_name="Author")
        repository = Repository(id=uuid.uuid4(), full_name="acme/widgets")
        values: dict[str, Any] = {
            "id": uuid.uuid4(),
            "pr_url": "https://github.com/acme/widgets/pull/42",
            "pr_number": 42,
            "repository_id": repository.id,
            "repository": repository,
            "author_id": author.id,
            "author": author,
            "reviewer": None,
            "status": AssignmentStatus.assigned,
            "complexity": Complexity.medium,
            "skills_required": [],
            "rejection_count": 0,
            "reviewer_change_count": 0,
            "review_cycle_count": 0,
            "created_at": now - timedelta(hours=1),
            "assigned_at": now - timedelta(hours=1),
            "first_review_activity_at": None,
            "problem_signals": [],
        }
        values.update(overrides)
        return Assignment(**values)

    return _make


@pytest.fixture
def make_rule() -> Callable[..., ProblemRule]:
    """Factory for transient problem rules."""

    def _make(**overrides: Any) -> ProblemRule:
        values: dict[str, Any] = {
            "id": uuid.uuid4(),
            "name": "stalled_review",
            "description": "No review activity for 48 hours",
            "condition_type": "no_activity_for",
            "condition_value": 48.0,
            "severity": Severity.warning,
            "auto_notify": True,
            "is_active": True,
        }
        values.update(overrides)
        return ProblemRule(**values)

    return _make
