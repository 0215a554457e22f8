"""Reviewer models for Roulette.

Defines the people who author and review work, their availability and
working-hours window, and their skill proficiencies. Reviewer rows are
never deleted; administrators soft-retire them through ``deleted_at``.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from roulette.database.models.base import Base, TimestampMixin

DEFAULT_WORKING_DAYS = ["monday", "tuesday", "wednesday", "thursday", "friday"]


class AvailabilityStatus(str, enum.Enum):
    """Self-reported availability of a reviewer.

    States:
        available: Accepting reviews.
        busy: Accepting reviews at reduced priority.
        on_leave: Away; never selected.
        unavailable: Not accepting reviews; never selected.
    """

    available = "available"
    busy = "busy"
    on_leave = "on_leave"
    unavailable = "unavailable"


class Reviewer(TimestampMixin, Base):
    """A person who can author or review work.

    Attributes:
        slack_id: Chat identity used to attribute external signals.
        display_name: Human readable name.
        availability_status: Current availability.
        timezone: IANA timezone name of the working-hours window.
        working_hours_start: Local start of the working day ("HH:MM").
        working_hours_end: Local end of the working day ("HH:MM").
        working_days: Lower-case weekday names the reviewer works on.
        deleted_at: Soft-retirement timestamp, None while active.
        skills: Skill proficiencies (1-5).
    """

    __tablename__ = "reviewers"

    slack_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    availability_status: Mapped[AvailabilityStatus] = mapped_column(
        default=AvailabilityStatus.available,
        nullable=False,
    )
    timezone: Mapped[str] = mapped_column(Text, default="UTC", nullable=False)
    working_hours_start: Mapped[str] = mapped_column(Text, default="09:00", nullable=False)
    working_hours_end: Mapped[str] = mapped_column(Text, default="18:00", nullable=False)
    working_days: Mapped[list[str]] = mapped_column(
        JSON,
        default=lambda: list(DEFAULT_WORKING_DAYS),
        nullable=False,
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    skills: Mapped[list["ReviewerSkill"]] = relationship(
        "ReviewerSkill",
        back_populates="reviewer",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class ReviewerSkill(TimestampMixin, Base):
    """A skill held by a reviewer with a proficiency level from 1 to 5."""

    __tablename__ = "reviewer_skills"

    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("reviewers.id"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    proficiency: Mapped[int] = mapped_column(Integer, default=3, nullable=False)

    reviewer: Mapped[Reviewer] = relationship("Reviewer", back_populates="skills")

    __table_args__ = (UniqueConstraint("reviewer_id", "name", name="uq_reviewer_skills_name"),)
