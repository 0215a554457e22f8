"""Problem detection models for Roulette.

Defines configurable ProblemRule conditions and the AssignmentProblem
records marking where a rule currently holds (or used to hold) for an
assignment. At most one unresolved AssignmentProblem may exist per
(assignment, rule) pair, enforced by a partial unique index.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from roulette.database.models.base import Base, TimestampMixin, utcnow


class ConditionType(str, enum.Enum):
    """Condition kinds a problem rule can test."""

    no_activity_for = "no_activity_for"
    rejection_count_gte = "rejection_count_gte"
    reviewer_changes_gte = "reviewer_changes_gte"
    total_age_gte = "total_age_gte"


class Severity(str, enum.Enum):
    """Severity attached to a triggered rule."""

    warning = "warning"
    problem = "problem"
    critical = "critical"


class ProblemRule(TimestampMixin, Base):
    """A named condition evaluated against open assignments.

    ``condition_type`` is stored as free text so a rule written by a newer
    deployment does not break loading; unknown types evaluate as not
    triggered.

    Attributes:
        name: Unique rule name, also used as the problem signal name.
        description: Optional human description.
        condition_type: One of ConditionType values.
        condition_value: Threshold (hours or counts).
        severity: Notification severity.
        auto_notify: Post a notification when the rule triggers.
        is_active: Inactive rules are not evaluated.
    """

    __tablename__ = "problem_rules"

    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    condition_type: Mapped[str] = mapped_column(Text, nullable=False)
    condition_value: Mapped[float] = mapped_column(Float, nullable=False)
    severity: Mapped[Severity] = mapped_column(default=Severity.warning, nullable=False)
    auto_notify: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class AssignmentProblem(TimestampMixin, Base):
    """A triggered (or historically resolved) rule violation.

    Attributes:
        assignment_id: Foreign key to the assignment.
        rule_id: Foreign key to the rule.
        triggered_at: When the rule started to hold.
        resolved_at: When it stopped holding; None while active.
        notified: Whether a notification was delivered.
    """

    __tablename__ = "assignment_problems"

    assignment_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("assignments.id"),
        nullable=False,
    )
    rule_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("problem_rules.id"),
        nullable=False,
    )
    triggered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    notified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    rule: Mapped[ProblemRule] = relationship("ProblemRule", lazy="selectin")

    __table_args__ = (
        Index("ix_assignment_problems_assignment_id", "assignment_id"),
        Index(
            "uq_assignment_problems_open",
            "assignment_id",
            "rule_id",
            unique=True,
            postgresql_where=text("resolved_at IS NULL"),
            sqlite_where=text("resolved_at IS NULL"),
        ),
    )


# Rules seeded into a fresh installation
DEFAULT_PROBLEM_RULES: list[dict[str, object]] = [
    {
        "name": "stalled_review",
        "description": "No review activity for 48 hours",
        "severity": Severity.warning,
        "condition_type": ConditionType.no_activity_for.value,
        "condition_value": 48,
        "auto_notify": True,
    },
    {
        "name": "stalled_critical",
        "description": "No review activity for 72 hours",
        "severity": Severity.problem,
        "condition_type": ConditionType.no_activity_for.value,
        "condition_value": 72,
        "auto_notify": True,
    },
    {
        "name": "multiple_rejections",
        "description": "Rejected 3 or more times",
        "severity": Severity.problem,
        "condition_type": ConditionType.rejection_count_gte.value,
        "condition_value": 3,
        "auto_notify": True,
    },
    {
        "name": "reviewer_churn",
        "description": "Reviewer changed 2 or more times",
        "severity": Severity.warning,
        "condition_type": ConditionType.reviewer_changes_gte.value,
        "condition_value": 2,
        "auto_notify": False,
    },
    {
        "name": "ancient_pr",
        "description": "Open for more than 7 days",
        "severity": Severity.critical,
        "condition_type": ConditionType.total_age_gte.value,
        "condition_value": 168,
        "auto_notify": True,
    },
]
