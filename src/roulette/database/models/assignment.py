"""Assignment and reaction audit-log models for Roulette.

Defines the Assignment table, one unit of review work tracked through its
status lifecycle, and the append-only ReactionEvent table recording every
raw external signal received for an assignment.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from roulette.database.models.base import Base, TimestampMixin
from roulette.database.models.repository import Repository
from roulette.database.models.reviewer import Reviewer


class AssignmentStatus(str, enum.Enum):
    """State machine for assignment lifecycle.

    States:
        pending: Work item detected, no reviewer selected yet.
        assigned: Reviewer selected, review not started.
        in_review: Reviewer signalled they are reviewing.
        changes_requested: Reviewer rejected the current revision.
        approved: Reviewer approved; the review is complete.
        declined: Reviewer declined; handled by reassignment flows.
        expired: Closed by the retention policy.
    """

    pending = "pending"
    assigned = "assigned"
    in_review = "in_review"
    changes_requested = "changes_requested"
    approved = "approved"
    declined = "declined"
    expired = "expired"


OPEN_STATUSES = (
    AssignmentStatus.pending,
    AssignmentStatus.assigned,
    AssignmentStatus.in_review,
    AssignmentStatus.changes_requested,
)

# Statuses that count toward a reviewer's cognitive load
LOAD_STATUSES = (AssignmentStatus.assigned, AssignmentStatus.in_review)


class Complexity(str, enum.Enum):
    """Effort class of a work item."""

    trivial = "trivial"
    small = "small"
    medium = "medium"
    large = "large"
    complex = "complex"


class SignalAction(str, enum.Enum):
    """Polarity of an external signal."""

    added = "added"
    removed = "removed"


class Assignment(TimestampMixin, Base):
    """A unit of review work.

    Attributes:
        pr_url: Source URL of the work item.
        pr_number: Number of the work item within its repository.
        repository_id: Foreign key to the repository.
        author_id: Foreign key to the authoring person.
        reviewer_id: Foreign key to the assigned reviewer, None until selected.
        status: Current lifecycle state.
        complexity: Effort class used for cognitive load.
        skills_required: Skill names the work item needs.
        rejection_count: Number of rejection signals from the reviewer.
        reviewer_change_count: Number of times the reviewer was replaced.
        review_cycle_count: Number of in_review -> changes_requested cycles.
        assigned_at: When the current reviewer was assigned.
        first_review_activity_at: First review-start signal.
        completed_at: When the assignment was approved.
        slack_channel_id: Channel of the assignment notification.
        slack_message_ts: Message timestamp used to correlate signals.
        problem_signals: Names of currently triggered problem rules.
    """

    __tablename__ = "assignments"

    pr_url: Mapped[str] = mapped_column(Text, nullable=False)
    pr_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    repository_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("repositories.id"),
        nullable=False,
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("reviewers.id"),
        nullable=False,
    )
    reviewer_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("reviewers.id"),
        nullable=True,
    )
    status: Mapped[AssignmentStatus] = mapped_column(
        default=AssignmentStatus.pending,
        nullable=False,
    )
    complexity: Mapped[Complexity] = mapped_column(
        default=Complexity.medium,
        nullable=False,
    )
    skills_required: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    rejection_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reviewer_change_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    review_cycle_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    first_review_activity_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    slack_channel_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    slack_message_ts: Mapped[str | None] = mapped_column(Text, nullable=True)
    problem_signals: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    # Relationships
    repository: Mapped[Repository] = relationship("Repository", lazy="selectin")
    author: Mapped[Reviewer] = relationship(
        "Reviewer",
        foreign_keys=[author_id],
        lazy="selectin",
    )
    reviewer: Mapped[Reviewer | None] = relationship(
        "Reviewer",
        foreign_keys=[reviewer_id],
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_assignments_status", "status"),
        Index("ix_assignments_reviewer_status", "reviewer_id", "status"),
        Index("ix_assignments_message", "slack_channel_id", "slack_message_ts"),
    )


class ReactionEvent(TimestampMixin, Base):
    """Append-only record of one raw external signal.

    Rows are never updated or deleted; Assignment.status is a projection of
    the reviewer's events and can be rebuilt from them.

    Attributes:
        assignment_id: Foreign key to the assignment the signal targets.
        actor_id: Chat identity of whoever sent the signal.
        signal: Signal name as received (e.g. "eyes").
        action: Added or removed.
        is_reviewer: Whether the actor was the assigned reviewer.
    """

    __tablename__ = "reaction_events"

    assignment_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("assignments.id"),
        nullable=False,
    )
    actor_id: Mapped[str] = mapped_column(Text, nullable=False)
    signal: Mapped[str] = mapped_column(Text, nullable=False)
    action: Mapped[SignalAction] = mapped_column(nullable=False)
    is_reviewer: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (Index("ix_reaction_events_assignment_id", "assignment_id"),)
