"""Repository and reviewer-scope models for Roulette.

A Repository is the scope reviewers are onboarded to. RepositoryReviewer
links carry the per-repository weight and capacity overrides used by
selection; offboarding deactivates the link instead of deleting it.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Float, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from roulette.database.models.base import Base, TimestampMixin
from roulette.database.models.reviewer import Reviewer


class Repository(TimestampMixin, Base):
    """A source repository whose work items are assigned to reviewers.

    Attributes:
        full_name: Owner-qualified repository name ("org/repo").
        require_senior_complex: Only senior reviewers (weight >= 1.2) may
            review large and complex work.
        default_weight: Weight given to reviewers onboarded to this repository.
        default_max_concurrent: Capacity given to reviewers onboarded here.
        is_active: Whether work for this repository is still assigned.
    """

    __tablename__ = "repositories"

    full_name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    require_senior_complex: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    default_weight: Mapped[float | None] = mapped_column(Float, nullable=True)
    default_max_concurrent: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class RepositoryReviewer(TimestampMixin, Base):
    """Link between a reviewer and a repository they review for.

    Attributes:
        repository_id: Foreign key to the repository.
        reviewer_id: Foreign key to the reviewer.
        weight: Seniority weight in [0.5, 2.0].
        max_concurrent: Maximum open reviews in [1, 20].
        is_active: False once the reviewer is offboarded.
    """

    __tablename__ = "repository_reviewers"

    repository_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("repositories.id"),
        nullable=False,
    )
    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("reviewers.id"),
        nullable=False,
    )
    weight: Mapped[float] = mapped_column(Float, default=1.0, nullable=False)
    max_concurrent: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    repository: Mapped[Repository] = relationship("Repository", lazy="selectin")
    reviewer: Mapped[Reviewer] = relationship("Reviewer", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("repository_id", "reviewer_id", name="uq_repository_reviewers_pair"),
        Index("ix_repository_reviewers_repository_id", "repository_id"),
    )
