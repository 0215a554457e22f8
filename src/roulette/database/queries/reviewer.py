"""Reviewer and repository query functions for Roulette.

Provides async functions for reading the candidate pool of a repository,
the workload and recent-assignment data selection needs, and the admin
operations that onboard, tune, and offboard reviewers.
"""

from __future__ import annotations

from collections.abc import Collection
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from roulette.config import (
    MAX_MAX_CONCURRENT,
    MAX_WEIGHT,
    MIN_MAX_CONCURRENT,
    MIN_WEIGHT,
    SelectionConfig,
)
from roulette.database.models.assignment import LOAD_STATUSES, Assignment, Complexity
from roulette.database.models.repository import Repository, RepositoryReviewer
from roulette.database.models.reviewer import AvailabilityStatus, Reviewer

logger = structlog.get_logger(__name__)


def validate_weight(weight: float) -> float:
    """Reject reviewer weights outside the configured bounds."""
    if weight < MIN_WEIGHT or weight > MAX_WEIGHT:
        raise ValueError(f"Weight must be between {MIN_WEIGHT} and {MAX_WEIGHT}")
    return weight


def validate_max_concurrent(max_concurrent: int) -> int:
    """Reject reviewer capacities outside the configured bounds."""
    if max_concurrent < MIN_MAX_CONCURRENT or max_concurrent > MAX_MAX_CONCURRENT:
        raise ValueError(
            f"Max concurrent must be between {MIN_MAX_CONCURRENT} and {MAX_MAX_CONCURRENT}"
        )
    return max_concurrent


async def get_repository(
    session: AsyncSession,
    repository_id: UUID,
) -> Repository | None:
    """Retrieve a repository by ID.

    Args:
        session: Active async database session.
        repository_id: UUID of the repository to retrieve.

    Returns:
        The Repository instance if found, None otherwise.
    """
    stmt = select(Repository).where(Repository.id == repository_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_eligible_links(
    session: AsyncSession,
    repository_id: UUID,
    author_id: UUID,
    exclude_reviewer_ids: Collection[UUID] = (),
) -> list[RepositoryReviewer]:
    """Get the active reviewer links that form a repository's candidate pool.

    The author, soft-retired reviewers, and reviewers marked unavailable are
    excluded. Reviewers on leave are returned so selection can report why
    they were disqualified.

    Args:
        session: Active async database session.
        repository_id: Repository the work item belongs to.
        author_id: Author of the work item, never a candidate.
        exclude_reviewer_ids: Additional reviewers to leave out (e.g. the
            reviewer being replaced).

    Returns:
        RepositoryReviewer links with reviewer and skills eagerly loaded.
    """
    stmt = (
        select(RepositoryReviewer)
        .join(Reviewer, RepositoryReviewer.reviewer_id == Reviewer.id)
        .where(RepositoryReviewer.repository_id == repository_id)
        .where(RepositoryReviewer.is_active.is_(True))
        .where(Reviewer.id != author_id)
        .where(Reviewer.deleted_at.is_(None))
        .where(Reviewer.availability_status != AvailabilityStatus.unavailable)
    )
    if exclude_reviewer_ids:
        stmt = stmt.where(Reviewer.id.not_in(list(exclude_reviewer_ids)))

    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_open_complexities(
    session: AsyncSession,
    reviewer_id: UUID,
) -> list[Complexity]:
    """Get the complexity of every assignment currently loading a reviewer.

    Args:
        session: Active async database session.
        reviewer_id: Reviewer to inspect.

    Returns:
        One Complexity per assigned or in-review assignment.
    """
    stmt = (
        select(Assignment.complexity)
        .where(Assignment.reviewer_id == reviewer_id)
        .where(Assignment.status.in_(LOAD_STATUSES))
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_recent_assignment_counts(
    session: AsyncSession,
    repository_id: UUID,
    since: datetime,
) -> dict[UUID, int]:
    """Count assignments per reviewer in a repository since a point in time.

    Args:
        session: Active async database session.
        repository_id: Repository to count within.
        since: Only assignments assigned at or after this time count.

    Returns:
        Mapping of reviewer ID to assignment count. Reviewers without recent
        assignments are absent.
    """
    stmt = (
        select(Assignment.reviewer_id, func.count(Assignment.id))
        .where(Assignment.repository_id == repository_id)
        .where(Assignment.assigned_at >= since)
        .where(Assignment.reviewer_id.is_not(None))
        .group_by(Assignment.reviewer_id)
    )
    result = await session.execute(stmt)
    return {reviewer_id: count for reviewer_id, count in result.all()}


async def add_repository_reviewer(
    session: AsyncSession,
    repository_id: UUID,
    reviewer_id: UUID,
    weight: float | None = None,
    max_concurrent: int | None = None,
    defaults: SelectionConfig | None = None,
) -> RepositoryReviewer:
    """Onboard a reviewer to a repository, reactivating an earlier link.

    Weight and capacity fall back to the repository defaults, then to the
    selection configuration defaults.

    Args:
        session: Active async database session.
        repository_id: Repository to onboard to.
        reviewer_id: Reviewer being onboarded.
        weight: Optional explicit weight.
        max_concurrent: Optional explicit capacity.
        defaults: Selection configuration supplying global defaults.

    Returns:
        The active RepositoryReviewer link.

    Raises:
        ValueError: If the repository does not exist or a bound is violated.
    """
    repository = await get_repository(session, repository_id)
    if repository is None:
        raise ValueError(f"Repository {repository_id} not found")

    defaults = defaults or SelectionConfig()
    resolved_weight = validate_weight(
        weight
        if weight is not None
        else repository.default_weight or defaults.default_weight
    )
    resolved_max = validate_max_concurrent(
        max_concurrent
        if max_concurrent is not None
        else repository.default_max_concurrent or defaults.default_max_concurrent
    )

    stmt = select(RepositoryReviewer).where(
        RepositoryReviewer.repository_id == repository_id,
        RepositoryReviewer.reviewer_id == reviewer_id,
    )
    link = (await session.execute(stmt)).scalar_one_or_none()

    if link is None:
        link = RepositoryReviewer(
            repository_id=repository_id,
            reviewer_id=reviewer_id,
            weight=resolved_weight,
            max_concurrent=resolved_max,
            is_active=True,
        )
        session.add(link)
    else:
        link.weight = resolved_weight
        link.max_concurrent = resolved_max
        link.is_active = True

    await session.flush()

    logger.info(
        "repository_reviewer_onboarded",
        repository_id=str(repository_id),
        reviewer_id=str(reviewer_id),
        weight=resolved_weight,
        max_concurrent=resolved_max,
    )
    return link


async def update_repository_reviewer(
    session: AsyncSession,
    link_id: UUID,
    weight: float | None = None,
    max_concurrent: int | None = None,
    is_active: bool | None = None,
) -> RepositoryReviewer:
    """Update the tuning of a reviewer within one repository.

    Args:
        session: Active async database session.
        link_id: UUID of the RepositoryReviewer link.
        weight: New weight in [0.5, 2.0].
        max_concurrent: New capacity in [1, 20].
        is_active: New active flag.

    Returns:
        The updated RepositoryReviewer link.

    Raises:
        ValueError: If the link is missing, nothing is updated, or a bound
            is violated.
    """
    updates: dict[str, Any] = {}
    if weight is not None:
        updates["weight"] = validate_weight(weight)
    if max_concurrent is not None:
        updates["max_concurrent"] = validate_max_concurrent(max_concurrent)
    if is_active is not None:
        updates["is_active"] = is_active

    if not updates:
        raise ValueError("No valid fields to update")

    link = await session.get(RepositoryReviewer, link_id)
    if link is None:
        raise ValueError(f"Repository reviewer {link_id} not found")

    before = {"weight": link.weight, "max_concurrent": link.max_concurrent, "is_active": link.is_active}
    for field, value in updates.items():
        setattr(link, field, value)
    await session.flush()

    logger.info(
        "repository_reviewer_updated",
        link_id=str(link_id),
        before=before,
        after=updates,
    )
    return link


async def deactivate_repository_reviewer(
    session: AsyncSession,
    repository_id: UUID,
    reviewer_id: UUID,
) -> bool:
    """Offboard a reviewer from a repository without deleting the link.

    Returns:
        True if an active link was deactivated, False if none existed.
    """
    stmt = select(RepositoryReviewer).where(
        RepositoryReviewer.repository_id == repository_id,
        RepositoryReviewer.reviewer_id == reviewer_id,
        RepositoryReviewer.is_active.is_(True),
    )
    link = (await session.execute(stmt)).scalar_one_or_none()
    if link is None:
        return False

    link.is_active = False
    await session.flush()

    logger.info(
        "repository_reviewer_offboarded",
        repository_id=str(repository_id),
        reviewer_id=str(reviewer_id),
    )
    return True
