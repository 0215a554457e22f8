"""Problem rule query functions for Roulette.

Provides async functions for reading active rules and for the
create-or-resolve bookkeeping of AssignmentProblem rows. Opening a problem
is a conditional insert against the partial unique index on unresolved
(assignment, rule) pairs, so overlapping sweeps can never create duplicates.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from roulette.database.models.rule import DEFAULT_PROBLEM_RULES, AssignmentProblem, ProblemRule

logger = structlog.get_logger(__name__)


async def list_active_rules(session: AsyncSession) -> list[ProblemRule]:
    """List all active problem rules ordered by name."""
    stmt = select(ProblemRule).where(ProblemRule.is_active.is_(True)).order_by(ProblemRule.name)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_open_problems(
    session: AsyncSession,
    assignment_id: UUID,
) -> dict[UUID, AssignmentProblem]:
    """Get the unresolved problems of an assignment keyed by rule ID."""
    stmt = (
        select(AssignmentProblem)
        .where(AssignmentProblem.assignment_id == assignment_id)
        .where(AssignmentProblem.resolved_at.is_(None))
    )
    result = await session.execute(stmt)
    return {problem.rule_id: problem for problem in result.scalars().all()}


async def open_problem(
    session: AsyncSession,
    assignment_id: UUID,
    rule_id: UUID,
    now: datetime,
) -> AssignmentProblem | None:
    """Record that a rule started to hold for an assignment.

    Uses ``INSERT ... ON CONFLICT DO NOTHING`` on PostgreSQL and SQLite and a
    savepoint-guarded insert elsewhere; either way the unique index decides.

    Args:
        session: Active async database session.
        assignment_id: Assignment the rule triggered on.
        rule_id: Rule that triggered.
        now: Trigger timestamp.

    Returns:
        The new AssignmentProblem, or None if an unresolved problem for the
        same pair already exists.
    """
    values: dict[str, Any] = {
        "id": uuid.uuid4(),
        "assignment_id": assignment_id,
        "rule_id": rule_id,
        "triggered_at": now,
        "notified": False,
        "created_at": now,
        "updated_at": now,
    }
    dialect = session.get_bind().dialect.name

    if dialect in ("postgresql", "sqlite"):
        insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
        stmt = (
            insert(AssignmentProblem)
            .values(**values)
            .on_conflict_do_nothing(
                index_elements=["assignment_id", "rule_id"],
                index_where=AssignmentProblem.resolved_at.is_(None),
            )
            .returning(AssignmentProblem.id)
        )
        problem_id = (await session.execute(stmt)).scalar_one_or_none()
        if problem_id is None:
            return None
        return await session.get(AssignmentProblem, problem_id)

    problem = AssignmentProblem(**values)
    try:
        async with session.begin_nested():
            session.add(problem)
    except IntegrityError:
        return None
    return problem


async def resolve_problem(
    session: AsyncSession,
    problem_id: UUID,
    now: datetime,
) -> bool:
    """Stamp resolved_at on a still-open problem.

    Returns:
        True if the problem was open and is now resolved.
    """
    stmt = (
        update(AssignmentProblem)
        .where(AssignmentProblem.id == problem_id)
        .where(AssignmentProblem.resolved_at.is_(None))
        .values(resolved_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return bool(result.rowcount)


async def mark_problem_notified(session: AsyncSession, problem_id: UUID) -> None:
    """Flag a problem as having had its notification delivered."""
    stmt = (
        update(AssignmentProblem)
        .where(AssignmentProblem.id == problem_id)
        .values(notified=True)
        .execution_options(synchronize_session=False)
    )
    await session.execute(stmt)


async def seed_problem_rules(session: AsyncSession) -> int:
    """Insert or refresh the default problem rules, keyed by name.

    Returns:
        Number of rules written.
    """
    for definition in DEFAULT_PROBLEM_RULES:
        stmt = select(ProblemRule).where(ProblemRule.name == definition["name"])
        rule = (await session.execute(stmt)).scalar_one_or_none()
        if rule is None:
            session.add(ProblemRule(**definition, is_active=True))
        else:
            for field, value in definition.items():
                setattr(rule, field, value)

    await session.flush()
    logger.info("problem_rules_seeded", count=len(DEFAULT_PROBLEM_RULES))
    return len(DEFAULT_PROBLEM_RULES)
