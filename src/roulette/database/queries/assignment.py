"""Assignment query functions for Roulette.

Provides async functions for creating and reading assignments, appending to
the reaction audit log, and the atomic status/counter updates driven by
reviewer signals. Counter changes are expressed as SQL-side increments so
concurrent writers never lose an update.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from roulette.database.models.assignment import (
    OPEN_STATUSES,
    Assignment,
    AssignmentStatus,
    Complexity,
    ReactionEvent,
    SignalAction,
)
from roulette.database.models.base import utcnow

logger = structlog.get_logger(__name__)


async def create_assignment(
    session: AsyncSession,
    repository_id: UUID,
    author_id: UUID,
    pr_url: str,
    pr_number: int | None = None,
    complexity: Complexity = Complexity.medium,
    skills_required: Sequence[str] | None = None,
    slack_channel_id: str | None = None,
    slack_message_ts: str | None = None,
) -> Assignment:
    """Create a new pending assignment for a detected work item.

    Args:
        session: Active async database session.
        repository_id: Repository the work item belongs to.
        author_id: Author of the work item.
        pr_url: Source URL of the work item.
        pr_number: Optional number within the repository.
        complexity: Effort class of the work item.
        skills_required: Skill names the work item needs.
        slack_channel_id: Optional notification channel.
        slack_message_ts: Optional notification message timestamp.

    Returns:
        The newly created Assignment instance.
    """
    assignment = Assignment(
        repository_id=repository_id,
        author_id=author_id,
        pr_url=pr_url,
        pr_number=pr_number,
        complexity=complexity,
        skills_required=list(skills_required or []),
        slack_channel_id=slack_channel_id,
        slack_message_ts=slack_message_ts,
        status=AssignmentStatus.pending,
        rejection_count=0,
        reviewer_change_count=0,
        review_cycle_count=0,
        problem_signals=[],
    )
    session.add(assignment)
    await session.flush()
    await session.refresh(assignment)

    logger.info(
        "assignment_created",
        assignment_id=str(assignment.id),
        repository_id=str(repository_id),
        pr_url=pr_url,
        complexity=complexity.value,
    )
    return assignment


async def get_assignment(
    session: AsyncSession,
    assignment_id: UUID,
) -> Assignment | None:
    """Retrieve an assignment by ID."""
    stmt = select(Assignment).where(Assignment.id == assignment_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_assignment_by_message(
    session: AsyncSession,
    channel_id: str,
    message_ts: str,
) -> Assignment | None:
    """Find the assignment whose notification message a signal targets.

    Args:
        session: Active async database session.
        channel_id: Channel the message was posted in.
        message_ts: Timestamp identifier of the message.

    Returns:
        The matching Assignment, or None when the message is unrelated.
    """
    stmt = (
        select(Assignment)
        .where(Assignment.slack_channel_id == channel_id)
        .where(Assignment.slack_message_ts == message_ts)
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_open_assignments(
    session: AsyncSession,
    statuses: Collection[AssignmentStatus] = OPEN_STATUSES,
) -> list[Assignment]:
    """List assignments whose status is in the given set, oldest first."""
    stmt = (
        select(Assignment)
        .where(Assignment.status.in_(list(statuses)))
        .order_by(Assignment.created_at.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def assign_reviewer(
    session: AsyncSession,
    assignment: Assignment,
    reviewer_id: UUID,
    now: datetime | None = None,
) -> Assignment:
    """Point an assignment at a reviewer and move it to ``assigned``.

    Replacing a different, previously assigned reviewer increments the
    reviewer-change counter in the same UPDATE.

    Args:
        session: Active async database session.
        assignment: Assignment to update.
        reviewer_id: Newly selected reviewer.
        now: Assignment time, defaults to the current UTC time.

    Returns:
        The refreshed Assignment instance.
    """
    now = now or utcnow()
    previous_reviewer_id = assignment.reviewer_id

    stmt = (
        update(Assignment)
        .where(Assignment.id == assignment.id)
        .values(
            reviewer_id=reviewer_id,
            status=AssignmentStatus.assigned,
            assigned_at=now,
            reviewer_change_count=case(
                (
                    Assignment.reviewer_id.is_not(None) & (Assignment.reviewer_id != reviewer_id),
                    Assignment.reviewer_change_count + 1,
                ),
                else_=Assignment.reviewer_change_count,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    await session.execute(stmt)
    await session.refresh(assignment)

    logger.info(
        "reviewer_assigned",
        assignment_id=str(assignment.id),
        reviewer_id=str(reviewer_id),
        previous_reviewer_id=str(previous_reviewer_id) if previous_reviewer_id else None,
        reviewer_change_count=assignment.reviewer_change_count,
    )
    return assignment


async def set_message_ref(
    session: AsyncSession,
    assignment_id: UUID,
    channel_id: str,
    message_ts: str,
) -> None:
    """Store the notification message used to correlate reviewer signals."""
    stmt = (
        update(Assignment)
        .where(Assignment.id == assignment_id)
        .values(slack_channel_id=channel_id, slack_message_ts=message_ts)
        .execution_options(synchronize_session=False)
    )
    await session.execute(stmt)


async def record_reaction_event(
    session: AsyncSession,
    assignment_id: UUID,
    actor_id: str,
    signal: str,
    action: SignalAction,
    is_reviewer: bool,
) -> ReactionEvent:
    """Append one raw signal to the audit log.

    Returns:
        The newly created ReactionEvent.
    """
    event = ReactionEvent(
        assignment_id=assignment_id,
        actor_id=actor_id,
        signal=signal,
        action=action,
        is_reviewer=is_reviewer,
    )
    session.add(event)
    await session.flush()

    logger.debug(
        "reaction_event_recorded",
        assignment_id=str(assignment_id),
        signal=signal,
        action=action.value,
        is_reviewer=is_reviewer,
    )
    return event


async def list_reviewer_events(
    session: AsyncSession,
    assignment_id: UUID,
) -> list[ReactionEvent]:
    """List the assigned reviewer's audit-log events, oldest first."""
    stmt = (
        select(ReactionEvent)
        .where(ReactionEvent.assignment_id == assignment_id)
        .where(ReactionEvent.is_reviewer.is_(True))
        .order_by(ReactionEvent.created_at.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def apply_status_signal(
    session: AsyncSession,
    assignment_id: UUID,
    target: AssignmentStatus,
    allowed_from: Collection[AssignmentStatus],
    now: datetime,
    starts_review: bool = False,
    counts_rejection: bool = False,
) -> bool:
    """Atomically apply a signal-driven status change.

    A single conditional UPDATE sets the status and derived fields:

    - a review-start signal stamps first_review_activity_at if unset.
    - a rejection signal increments rejection_count, and review_cycle_count
      when the row was ``in_review`` before this update.
    - ``approved`` stamps completed_at if unset.

    The row only changes when its current status is in ``allowed_from``.

    Args:
        session: Active async database session.
        assignment_id: Assignment to update.
        target: Status the signal maps to.
        allowed_from: Statuses the transition may start from.
        now: Timestamp for stamped fields.
        starts_review: The signal opens a review.
        counts_rejection: The signal is a rejection.

    Returns:
        True if the row was updated, False if its status no longer allows
        the transition.
    """
    values: dict[str, Any] = {"status": target}

    if starts_review:
        values["first_review_activity_at"] = func.coalesce(
            Assignment.first_review_activity_at, now
        )
    if counts_rejection:
        values["rejection_count"] = Assignment.rejection_count + 1
        values["review_cycle_count"] = case(
            (
                Assignment.status == AssignmentStatus.in_review,
                Assignment.review_cycle_count + 1,
            ),
            else_=Assignment.review_cycle_count,
        )
    if target == AssignmentStatus.approved:
        values["completed_at"] = func.coalesce(Assignment.completed_at, now)

    stmt = (
        update(Assignment)
        .where(Assignment.id == assignment_id)
        .where(Assignment.status.in_(list(allowed_from)))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return bool(result.rowcount)


async def add_problem_signal(
    session: AsyncSession,
    assignment: Assignment,
    name: str,
) -> None:
    """Add a triggered rule name to the assignment's problem signals."""
    signals = list(assignment.problem_signals or [])
    if name not in signals:
        assignment.problem_signals = [*signals, name]
        await session.flush()


async def remove_problem_signal(
    session: AsyncSession,
    assignment: Assignment,
    name: str,
) -> None:
    """Remove a resolved rule name from the assignment's problem signals."""
    signals = list(assignment.problem_signals or [])
    if name in signals:
        assignment.problem_signals = [s for s in signals if s != name]
        await session.flush()
