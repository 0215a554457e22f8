"""Pytest fixtures for integration tests.

Provides async database fixtures for testing query functions and the
services built on them against a file-backed SQLite database. A file is
used rather than ``:memory:`` so that concurrent sessions see the same
data, as they would against PostgreSQL in production.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from roulette.config import DatabaseConfig
from roulette.database.connection import get_engine, get_session_factory
from roulette.database.models import (
    Assignment,
    AssignmentStatus,
    Base,
    Complexity,
    Repository,
    RepositoryReviewer,
    Reviewer,
    ReviewerSkill,
)
from roulette.database.queries.assignment import create_assignment

# A Wednesday, 12:00 UTC: inside default working hours for UTC reviewers
NOON_WEDNESDAY = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)


@dataclass
class Team:
    """A repository with an author and three reviewers onboarded."""

    repository: Repository
    author: Reviewer
    senior: Reviewer
    mid: Reviewer
    junior: Reviewer

    @property
    def reviewers(self) -> list[Reviewer]:
        return [self.senior, self.mid, self.junior]


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation time inside default working hours."""
    return NOON_WEDNESDAY


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a SQLite async engine on a temporary file.

    Yields:
        Configured AsyncEngine with all tables created.
    """
    test_engine = get_engine(DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'roulette.db'}"))

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to the test engine."""
    return get_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a new async database session for each test.

    The session is automatically rolled back after the test completes
    to ensure test isolation.
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def team(session_factory: async_sessionmaker[AsyncSession]) -> Team:
    """Persist a repository, an author, and three onboarded reviewers.

    The senior reviewer (weight 2.0) knows python well, the mid reviewer
    (weight 1.2) knows python a little, the junior reviewer (weight 0.8)
    knows only sql.
    """
    async with session_factory() as session:
        async with session.begin():
            repository = Repository(full_name="acme/widgets", require_senior_complex=True)
            author = Reviewer(slack_id="UAUTHOR", display_name="Author")
            senior = Reviewer(
                slack_id="USENIOR",
                display_name="Senior",
                skills=[ReviewerSkill(name="python", proficiency=5)],
            )
            mid = Reviewer(
                slack_id="UMID",
                display_name="Mid",
                skills=[ReviewerSkill(name="python", proficiency=2)],
            )
            junior = Reviewer(
                slack_id="UJUNIOR",
                display_name="Junior",
                skills=[ReviewerSkill(name="sql", proficiency=4)],
            )
            session.add_all([repository, author, senior, mid, junior])
            await session.flush()

            for reviewer, weight in ((author, 1.0), (senior, 2.0), (mid, 1.2), (junior, 0.8)):
                session.add(
                    RepositoryReviewer(
                        repository_id=repository.id,
                        reviewer_id=reviewer.id,
                        weight=weight,
                        max_concurrent=5,
                        is_active=True,
                    )
                )

    return Team(repository=repository, author=author, senior=senior, mid=mid, junior=junior)


@pytest_asyncio.fixture
async def make_assignment(session_factory: async_sessionmaker[AsyncSession], team: Team, now: datetime):
    """Factory persisting assignments for the team's repository."""
    counter = iter(range(100, 1000))

    async def _make(
        reviewer: Reviewer | None = None,
        status: AssignmentStatus | None = None,
        complexity: Complexity = Complexity.medium,
        assigned_at: datetime | None = None,
        created_at: datetime | None = None,
        channel: str | None = "C123",
        **values,
    ) -> Assignment:
        number = next(counter)
        async with session_factory() as session:
            async with session.begin():
                assignment = await create_assignment(
                    session,
                    repository_id=team.repository.id,
                    author_id=team.author.id,
                    pr_url=f"https://github.com/acme/widgets/pull/{number}",
                    pr_number=number,
                    complexity=complexity,
                    slack_channel_id=channel,
                    slack_message_ts=f"1700000000.{number:06d}" if channel else None,
                )
                if reviewer is not None:
                    assignment.reviewer_id = reviewer.id
                    assignment.status = AssignmentStatus.assigned
                    assignment.assigned_at = assigned_at or now - timedelta(hours=1)
                if status is not None:
                    assignment.status = status
                if created_at is not None:
                    assignment.created_at = created_at
                for field, value in values.items():
                    setattr(assignment, field, value)
                await session.flush()
                await session.refresh(assignment)
        return assignment

    return _make
