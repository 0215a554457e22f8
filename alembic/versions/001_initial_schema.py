"""Initial Roulette schema.

Creates reviewers and their skills, repositories and their reviewer pools,
assignments with the reaction audit log, problem rules with the problems
they raise, and the status signal mapping overrides. Open problems are
unique per (assignment, rule) through a partial index on
``resolved_at IS NULL``.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ASSIGNMENT_STATUSES = (
    "pending",
    "assigned",
    "in_review",
    "changes_requested",
    "approved",
    "declined",
    "expired",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "reviewers",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("slack_id", sa.Text(), nullable=False, unique=True),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column(
            "availability_status",
            sa.Enum("available", "busy", "on_leave", "unavailable", name="availabilitystatus"),
            nullable=False,
            server_default="available",
        ),
        sa.Column("timezone", sa.Text(), nullable=False, server_default="UTC"),
        sa.Column("working_hours_start", sa.Text(), nullable=False, server_default="09:00"),
        sa.Column("working_hours_end", sa.Text(), nullable=False, server_default="18:00"),
        sa.Column("working_days", sa.JSON(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "reviewer_skills",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("reviewer_id", sa.Uuid(), sa.ForeignKey("reviewers.id"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("proficiency", sa.Integer(), nullable=False, server_default="3"),
        *_timestamps(),
        sa.UniqueConstraint("reviewer_id", "name", name="uq_reviewer_skills_name"),
    )

    op.create_table(
        "repositories",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("full_name", sa.Text(), nullable=False, unique=True),
        sa.Column("require_senior_complex", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("default_weight", sa.Float(), nullable=True),
        sa.Column("default_max_concurrent", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "repository_reviewers",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("repository_id", sa.Uuid(), sa.ForeignKey("repositories.id"), nullable=False),
        sa.Column("reviewer_id", sa.Uuid(), sa.ForeignKey("reviewers.id"), nullable=False),
        sa.Column("weight", sa.Float(), nullable=False, server_default="1.0"),
        sa.Column("max_concurrent", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("repository_id", "reviewer_id", name="uq_repository_reviewers_pair"),
    )
    op.create_index("ix_repository_reviewers_repository_id", "repository_reviewers", ["repository_id"])

    op.create_table(
        "assignments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("pr_url", sa.Text(), nullable=False),
        sa.Column("pr_number", sa.Integer(), nullable=True),
        sa.Column("repository_id", sa.Uuid(), sa.ForeignKey("repositories.id"), nullable=False),
        sa.Column("author_id", sa.Uuid(), sa.ForeignKey("reviewers.id"), nullable=False),
        sa.Column("reviewer_id", sa.Uuid(), sa.ForeignKey("reviewers.id"), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*ASSIGNMENT_STATUSES, name="assignmentstatus"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "complexity",
            sa.Enum("trivial", "small", "medium", "large", "complex", name="complexity"),
            nullable=False,
            server_default="medium",
        ),
        sa.Column("skills_required", sa.JSON(), nullable=False),
        sa.Column("rejection_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reviewer_change_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("review_cycle_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("first_review_activity_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("slack_channel_id", sa.Text(), nullable=True),
        sa.Column("slack_message_ts", sa.Text(), nullable=True),
        sa.Column("problem_signals", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_assignments_status", "assignments", ["status"])
    op.create_index("ix_assignments_reviewer_status", "assignments", ["reviewer_id", "status"])
    op.create_index("ix_assignments_message", "assignments", ["slack_channel_id", "slack_message_ts"])

    op.create_table(
        "reaction_events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("assignment_id", sa.Uuid(), sa.ForeignKey("assignments.id"), nullable=False),
        sa.Column("actor_id", sa.Text(), nullable=False),
        sa.Column("signal", sa.Text(), nullable=False),
        sa.Column("action", sa.Enum("added", "removed", name="signalaction"), nullable=False),
        sa.Column("is_reviewer", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_reaction_events_assignment_id", "reaction_events", ["assignment_id"])

    op.create_table(
        "problem_rules",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("condition_type", sa.Text(), nullable=False),
        sa.Column("condition_value", sa.Float(), nullable=False),
        sa.Column(
            "severity",
            sa.Enum("warning", "problem", "critical", name="severity"),
            nullable=False,
            server_default="warning",
        ),
        sa.Column("auto_notify", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "assignment_problems",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("assignment_id", sa.Uuid(), sa.ForeignKey("assignments.id"), nullable=False),
        sa.Column("rule_id", sa.Uuid(), sa.ForeignKey("problem_rules.id"), nullable=False),
        sa.Column("triggered_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notified", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_assignment_problems_assignment_id", "assignment_problems", ["assignment_id"])
    op.create_index(
        "uq_assignment_problems_open",
        "assignment_problems",
        ["assignment_id", "rule_id"],
        unique=True,
        postgresql_where=sa.text("resolved_at IS NULL"),
        sqlite_where=sa.text("resolved_at IS NULL"),
    )

    op.create_table(
        "status_signal_mappings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "status",
            sa.Enum(*ASSIGNMENT_STATUSES, name="assignmentstatus", create_type=False),
            nullable=False,
            unique=True,
        ),
        sa.Column("signals", sa.JSON(), nullable=False),
        sa.Column("display_emoji", sa.Text(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("status_signal_mappings")
    op.drop_index("uq_assignment_problems_open", table_name="assignment_problems")
    op.drop_index("ix_assignment_problems_assignment_id", table_name="assignment_problems")
    op.drop_table("assignment_problems")
    op.drop_table("problem_rules")
    op.drop_index("ix_reaction_events_assignment_id", table_name="reaction_events")
    op.drop_table("reaction_events")
    op.drop_index("ix_assignments_message", table_name="assignments")
    op.drop_index("ix_assignments_reviewer_status", table_name="assignments")
    op.drop_index("ix_assignments_status", table_name="assignments")
    op.drop_table("assignments")
    op.drop_index("ix_repository_reviewers_repository_id", table_name="repository_reviewers")
    op.drop_table("repository_reviewers")
    op.drop_table("repositories")
    op.drop_table("reviewer_skills")
    op.drop_table("reviewers")

    for enum_name in ("severity", "signalaction", "complexity", "assignmentstatus", "availabilitystatus"):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
