"""Problem detection sweep for Roulette.

Every open assignment is evaluated against every active rule. A rule that
starts to hold opens an AssignmentProblem (at most one unresolved per
assignment and rule) and may post a notification; a rule that stops
holding resolves it. Each assignment is processed in its own transaction,
so an aborted or failing sweep leaves everything already processed
consistent, and notifications are only sent after that transaction commits.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from roulette.database.models.assignment import OPEN_STATUSES, Assignment
from roulette.database.models.base import utcnow
from roulette.database.models.rule import ProblemRule, Severity
from roulette.database.queries.assignment import (
    add_problem_signal,
    get_assignment,
    list_open_assignments,
    remove_problem_signal,
)
from roulette.database.queries.rule import (
    get_open_problems,
    list_active_rules,
    mark_problem_notified,
    open_problem,
    resolve_problem,
)
from roulette.integrations.notifier import Notifier
from roulette.logging import correlation_scope
from roulette.rules.conditions import describe_problem, evaluate_condition

logger = structlog.get_logger(__name__)

SEVERITY_ICONS: dict[Severity, str] = {
    Severity.warning: "⚠️",
    Severity.problem: "🔴",
    Severity.critical: "🚨",
}


class DetectionStats(BaseModel):
    """Aggregate counters of one detection sweep.

    Attributes:
        checked: Open assignments evaluated
        triggered: Problems opened
        resolved: Problems resolved
        notified: Notifications delivered
        errors: Assignments or notifications that failed
        duration_seconds: Wall-clock duration of the sweep
    """

    checked: int = Field(default=0, ge=0)
    triggered: int = Field(default=0, ge=0)
    resolved: int = Field(default=0, ge=0)
    notified: int = Field(default=0, ge=0)
    errors: int = Field(default=0, ge=0)
    duration_seconds: float = Field(default=0.0, ge=0.0)


@dataclass
class ProblemNotification:
    """A notification to deliver once its problem is committed."""

    problem_id: UUID
    rule_name: str
    channel: str
    text: str
    thread_ts: str | None = None


@dataclass
class AssignmentEvaluation:
    """Changes made while evaluating one assignment."""

    triggered: int = 0
    resolved: int = 0
    notifications: list[ProblemNotification] = field(default_factory=list)


def format_problem_message(rule: ProblemRule, assignment: Assignment) -> str:
    """Build the chat message announcing a triggered rule."""
    icon = SEVERITY_ICONS.get(rule.severity, SEVERITY_ICONS[Severity.warning])

    label = assignment.repository.full_name if assignment.repository else "PR"
    if assignment.pr_number is not None:
        label = f"{label}#{assignment.pr_number}"

    if assignment.reviewer is not None:
        reviewer = f"<@{assignment.reviewer.slack_id}>"
    else:
        reviewer = "Unassigned"

    return (
        f"{icon} *Problem Detected*\n\n"
        f"*PR:* <{assignment.pr_url}|{label}>\n"
        f"*Issue:* {rule.name}\n"
        f"*Details:* {describe_problem(rule, assignment)}\n"
        f"*Reviewer:* {reviewer}\n"
        f"*Author:* <@{assignment.author.slack_id}>"
    )


class ProblemDetector:
    """Runs the problem rules over all open assignments.

    This class handles:
    - Opening and resolving AssignmentProblem rows idempotently
    - Keeping the assignment's problem signal list in step
    - Delivering notifications for auto-notify rules
    - Counting what happened for observability
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the detector.

        Args:
            session_factory: Factory for database sessions.
            notifier: Chat notifier; without one nothing is posted.
            clock: Source of the current time.
        """
        self.session_factory = session_factory
        self.notifier = notifier
        self.clock = clock
        self.logger = logger.bind(component="ProblemDetector")

    async def run(self) -> DetectionStats:
        """Run one detection sweep.

        Notifications are only attempted through an enabled notifier; with
        none (or a disabled one) problems are still opened and resolved but
        never marked notified.

        Returns:
            DetectionStats for the sweep.
        """
        started = time.monotonic()
        now = self.clock()
        stats = DetectionStats()
        notifier = self.notifier if self.notifier is not None and self.notifier.enabled else None

        with correlation_scope(f"sweep-{int(now.timestamp())}"):
            try:
                await self._sweep(stats, now, notifier)
            finally:
                stats.duration_seconds = time.monotonic() - started

            self.logger.info("problem_detection_complete", **stats.model_dump())
        return stats

    async def _sweep(
        self,
        stats: DetectionStats,
        now: datetime,
        notifier: Notifier | None,
    ) -> None:
        async with self.session_factory() as session:
            rules = await list_active_rules(session)
            if not rules:
                self.logger.debug("no_active_problem_rules")
                return
            assignment_ids = [a.id for a in await list_open_assignments(session)]

        stats.checked = len(assignment_ids)
        self.logger.info(
            "problem_detection_started",
            assignments=stats.checked,
            rules=len(rules),
            notifications=notifier is not None,
        )

        for assignment_id in assignment_ids:
            try:
                evaluation = await self._evaluate_assignment(assignment_id, rules, now)
            except Exception as e:
                stats.errors += 1
                self.logger.error(
                    "problem_evaluation_error",
                    assignment_id=str(assignment_id),
                    error=str(e),
                    exc_info=True,
                )
                continue

            stats.triggered += evaluation.triggered
            stats.resolved += evaluation.resolved
            if notifier is None:
                continue
            for notification in evaluation.notifications:
                if await self._notify(notifier, notification):
                    stats.notified += 1
                else:
                    stats.errors += 1

    async def _evaluate_assignment(
        self,
        assignment_id: UUID,
        rules: Sequence[ProblemRule],
        now: datetime,
    ) -> AssignmentEvaluation:
        evaluation = AssignmentEvaluation()

        async with self.session_factory() as session:
            async with session.begin():
                assignment = await get_assignment(session, assignment_id)
                if assignment is None or assignment.status not in OPEN_STATUSES:
                    return evaluation

                open_problems = await get_open_problems(session, assignment_id)

                for rule in rules:
                    holds = evaluate_condition(
                        assignment, rule.condition_type, rule.condition_value, now
                    )
                    existing = open_problems.get(rule.id)

                    if holds and existing is None:
                        problem = await open_problem(session, assignment_id, rule.id, now)
                        if problem is None:
                            # A concurrent sweep opened it first
                            continue
                        await add_problem_signal(session, assignment, rule.name)
                        evaluation.triggered += 1
                        self.logger.info(
                            "problem_triggered",
                            assignment_id=str(assignment_id),
                            pr_url=assignment.pr_url,
                            rule=rule.name,
                            severity=rule.severity.value,
                        )

                        if rule.auto_notify and assignment.slack_channel_id:
                            evaluation.notifications.append(
                                ProblemNotification(
                                    problem_id=problem.id,
                                    rule_name=rule.name,
                                    channel=assignment.slack_channel_id,
                                    text=format_problem_message(rule, assignment),
                                    thread_ts=assignment.slack_message_ts,
                                )
                            )

                    elif not holds and existing is not None:
                        if not await resolve_problem(session, existing.id, now):
                            continue
                        await remove_problem_signal(session, assignment, rule.name)
                        evaluation.resolved += 1
                        self.logger.info(
                            "problem_resolved",
                            assignment_id=str(assignment_id),
                            pr_url=assignment.pr_url,
                            rule=rule.name,
                        )

        return evaluation

    async def _notify(self, notifier: Notifier, notification: ProblemNotification) -> bool:
        """Deliver one notification and flag its problem as notified."""
        try:
            sent = await notifier.post_message(
                notification.channel,
                notification.text,
                thread_ts=notification.thread_ts,
            )
        except Exception as e:
            self.logger.error(
                "problem_notification_error",
                rule=notification.rule_name,
                error=str(e),
                exc_info=True,
            )
            return False

        if not sent:
            self.logger.warning("problem_notification_failed", rule=notification.rule_name)
            return False

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    await mark_problem_notified(session, notification.problem_id)
        except Exception as e:
            self.logger.error(
                "problem_mark_notified_error",
                problem_id=str(notification.problem_id),
                error=str(e),
                exc_info=True,
            )
            return False

        self.logger.info(
            "problem_notification_sent",
            rule=notification.rule_name,
            channel=notification.channel,
        )
        return True
