"""Reviewer selection for Roulette.

The selector builds a repository's candidate pool, recomputes every
candidate's cognitive load concurrently, scores candidates sequentially and
picks uniformly at random among the close contenders near the top score.
Expected refusals (unknown repository, empty or fully disqualified pool) are
returned as results; storage failures raise SelectionError.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Callable, Collection, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from roulette.assignment.load import CognitiveLoad, fetch_cognitive_load
from roulette.assignment.scorer import (
    SCORE_WEIGHTS,
    Candidate,
    ReviewerProfile,
    WorkItem,
    score_candidate,
)
from roulette.config import SelectionConfig
from roulette.database.models.assignment import AssignmentStatus
from roulette.database.models.base import utcnow
from roulette.database.queries.assignment import assign_reviewer, get_assignment
from roulette.database.queries.reviewer import (
    get_eligible_links,
    get_recent_assignment_counts,
    get_repository,
)
from roulette.lifecycle.state_machine import InvalidTransitionError, validate_transition

logger = structlog.get_logger(__name__)


class SelectionOutcome(str, Enum):
    """How a selection ended."""

    SELECTED = "selected"
    NOT_FOUND = "not_found"
    NO_CANDIDATES = "no_candidates"
    ALL_DISQUALIFIED = "all_disqualified"


class SelectionError(Exception):
    """Raised when a selection cannot complete because storage failed.

    Attributes:
        repository_id: Repository the selection was for, if known.
    """

    def __init__(self, message: str, repository_id: UUID | None = None):
        self.repository_id = repository_id
        super().__init__(message)


@dataclass
class SelectionResult:
    """Outcome of one selection.

    Attributes:
        outcome: Selected or the refusal kind
        reason: Human-readable justification or refusal
        selected: Chosen candidate when outcome is SELECTED
        candidates: Every scored or disqualified candidate, best first
        warning: Non-blocking note about the chosen candidate
        errors: Candidates skipped because scoring raised
    """

    outcome: SelectionOutcome
    reason: str
    selected: Candidate | None = None
    candidates: list[Candidate] = field(default_factory=list)
    warning: str | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.outcome == SelectionOutcome.SELECTED


def pick_reviewer(
    candidates: Sequence[Candidate],
    margin: float,
    rng: random.Random,
    errors: list[str] | None = None,
) -> SelectionResult:
    """Rank scored candidates and pick one among the close contenders.

    Args:
        candidates: Scored and disqualified candidates of one pool.
        margin: Absolute score distance from the top that still counts as
            a close contender.
        rng: Random source for the tie-break.
        errors: Scoring failures to carry into the result.

    Returns:
        SelectionResult with every candidate sorted by score, best first.
    """
    errors = list(errors or [])
    ranked = sorted(candidates, key=lambda c: c.total_score, reverse=True)
    qualified = [c for c in ranked if c.eligible]

    if not qualified:
        reasons = [f"{c.profile.display_name}: {c.disqualify_reason}" for c in ranked]
        reasons.extend(errors)
        return SelectionResult(
            outcome=SelectionOutcome.ALL_DISQUALIFIED,
            reason=f"All reviewers disqualified: {'; '.join(reasons)}",
            candidates=ranked,
            errors=errors,
        )

    top_score = qualified[0].total_score
    contenders = [c for c in qualified if c.total_score >= top_score - margin]
    selected = rng.choice(contenders)

    if len(contenders) > 1:
        reason = f"Selected from {len(contenders)} equally qualified candidates"
    else:
        reason = f"Best match (score: {selected.total_score * 100:.0f}%)"

    return SelectionResult(
        outcome=SelectionOutcome.SELECTED,
        reason=reason,
        selected=selected,
        candidates=ranked,
        warning=selected.warning,
        errors=errors,
    )


class ReviewerSelector:
    """Selects the best reviewer for a work item.

    This class handles:
    - Loading the candidate pool and the fairness history
    - Concurrent, bounded cognitive load lookups
    - Scoring and the randomized close-contender pick
    - Persisting the choice on an existing assignment
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: SelectionConfig | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the selector.

        Args:
            session_factory: Factory for database sessions.
            config: Selection tuning (defaults if None).
            rng: Random source for tie-breaks; pass a seeded one for
                reproducible selections.
            clock: Source of the current time.
        """
        self.session_factory = session_factory
        self.config = config or SelectionConfig()
        self.rng = rng or random.Random()
        self.clock = clock
        self.logger = logger.bind(component="ReviewerSelector")

    async def select(
        self,
        work_item: WorkItem,
        exclude_reviewer_ids: Collection[UUID] = (),
        now: datetime | None = None,
    ) -> SelectionResult:
        """Select a reviewer for a work item without persisting anything.

        Args:
            work_item: The work that needs a reviewer.
            exclude_reviewer_ids: Reviewers to leave out besides the author.
            now: Evaluation time, defaults to the clock.

        Returns:
            SelectionResult with the chosen candidate or a refusal.

        Raises:
            SelectionError: If a storage lookup fails or times out.
        """
        now = now or self.clock()
        since = now - timedelta(days=self.config.fairness_window_days)

        try:
            async with self.session_factory() as session:
                repository = await asyncio.wait_for(
                    get_repository(session, work_item.repository_id),
                    timeout=self.config.storage_timeout_seconds,
                )
                if repository is None:
                    self.logger.info(
                        "selection_repository_not_found",
                        repository_id=str(work_item.repository_id),
                    )
                    return SelectionResult(
                        outcome=SelectionOutcome.NOT_FOUND, reason="Repository not found"
                    )

                links = await asyncio.wait_for(
                    get_eligible_links(
                        session,
                        work_item.repository_id,
                        work_item.author_id,
                        exclude_reviewer_ids,
                    ),
                    timeout=self.config.storage_timeout_seconds,
                )
                recent_counts = await asyncio.wait_for(
                    get_recent_assignment_counts(session, work_item.repository_id, since),
                    timeout=self.config.storage_timeout_seconds,
                )
                require_senior_complex = repository.require_senior_complex
                profiles = [ReviewerProfile.from_link(link) for link in links]
        except (SQLAlchemyError, OSError, TimeoutError) as e:
            self.logger.error(
                "selection_storage_error",
                repository_id=str(work_item.repository_id),
                error=str(e),
            )
            raise SelectionError(
                f"Failed to load candidate pool: {e}", work_item.repository_id
            ) from e

        if not profiles:
            self.logger.info(
                "selection_no_candidates", repository_id=str(work_item.repository_id)
            )
            return SelectionResult(
                outcome=SelectionOutcome.NO_CANDIDATES,
                reason="No eligible reviewers found for this repository",
            )

        loads = await self._fetch_loads(work_item.repository_id, [p.reviewer_id for p in profiles])

        counts = list(recent_counts.values())
        avg_recent = sum(counts) / len(counts) if counts else 0.0
        max_recent = max(counts) if counts else 0

        candidates: list[Candidate] = []
        errors: list[str] = []
        for profile in profiles:
            try:
                candidates.append(
                    score_candidate(
                        profile,
                        loads[profile.reviewer_id],
                        work_item,
                        require_senior_complex,
                        recent_counts.get(profile.reviewer_id, 0),
                        avg_recent,
                        max_recent,
                        now,
                    )
                )
            except Exception as e:
                self.logger.error(
                    "candidate_scoring_error",
                    reviewer_id=str(profile.reviewer_id),
                    error=str(e),
                    exc_info=True,
                )
                errors.append(f"{profile.display_name}: scoring failed ({e})")

        result = pick_reviewer(candidates, self.config.close_contender_margin, self.rng, errors)

        if result.selected is not None:
            self.logger.info(
                "reviewer_selected",
                repository_id=str(work_item.repository_id),
                reviewer_id=str(result.selected.profile.reviewer_id),
                score=round(result.selected.total_score, 4),
                candidate_count=len(result.candidates),
                reason=result.reason,
                warning=result.warning,
            )
        else:
            self.logger.info(
                "selection_all_disqualified",
                repository_id=str(work_item.repository_id),
                candidate_count=len(result.candidates),
            )
        return result

    async def _fetch_loads(
        self,
        repository_id: UUID,
        reviewer_ids: list[UUID],
    ) -> dict[UUID, CognitiveLoad]:
        """Recompute every candidate's load, each in its own session."""
        semaphore = asyncio.Semaphore(self.config.load_concurrency)

        async def fetch(reviewer_id: UUID) -> CognitiveLoad:
            async with semaphore:
                async with self.session_factory() as session:
                    return await asyncio.wait_for(
                        fetch_cognitive_load(session, reviewer_id),
                        timeout=self.config.storage_timeout_seconds,
                    )

        try:
            results = await asyncio.gather(*(fetch(rid) for rid in reviewer_ids))
        except (SQLAlchemyError, OSError, TimeoutError) as e:
            self.logger.error(
                "selection_load_lookup_error",
                repository_id=str(repository_id),
                error=str(e),
            )
            raise SelectionError(f"Failed to load reviewer workload: {e}", repository_id) from e

        return dict(zip(reviewer_ids, results, strict=True))

    async def assign(self, assignment_id: UUID, now: datetime | None = None) -> SelectionResult:
        """Select and persist a reviewer for an existing assignment.

        On reassignment the current reviewer is excluded from the pool.

        Args:
            assignment_id: Assignment that needs a reviewer.
            now: Evaluation and assignment time, defaults to the clock.

        Returns:
            SelectionResult; NOT_FOUND for an unknown assignment.

        Raises:
            SelectionError: If a storage lookup fails or times out.
            InvalidTransitionError: If the assignment's status cannot move
                to ``assigned``.
        """
        now = now or self.clock()

        async with self.session_factory() as session:
            assignment = await get_assignment(session, assignment_id)
            if assignment is None:
                return SelectionResult(
                    outcome=SelectionOutcome.NOT_FOUND, reason="Assignment not found"
                )
            if not validate_transition(assignment.status, AssignmentStatus.assigned):
                raise InvalidTransitionError(
                    assignment.status, AssignmentStatus.assigned, str(assignment_id)
                )
            work_item = WorkItem.from_assignment(assignment)
            exclude = [assignment.reviewer_id] if assignment.reviewer_id else []

        result = await self.select(work_item, exclude, now)
        if result.selected is None:
            return result

        async with self.session_factory() as session:
            async with session.begin():
                assignment = await get_assignment(session, assignment_id)
                if assignment is None:
                    return SelectionResult(
                        outcome=SelectionOutcome.NOT_FOUND, reason="Assignment not found"
                    )
                if not validate_transition(assignment.status, AssignmentStatus.assigned):
                    raise InvalidTransitionError(
                        assignment.status, AssignmentStatus.assigned, str(assignment_id)
                    )
                await assign_reviewer(
                    session, assignment, result.selected.profile.reviewer_id, now
                )

        return result


def format_selection_summary(result: SelectionResult) -> str:
    """Render a multi-line, human-readable summary of a selection."""
    lines: list[str] = []

    if result.selected is not None:
        chosen = result.selected
        lines.append(
            f"Selected: {chosen.profile.display_name} "
            f"(score: {chosen.total_score * 100:.1f}%)"
        )
        lines.append(f"Reason: {result.reason}")
        for name, weight in SCORE_WEIGHTS.items():
            value = getattr(chosen.scores, name)
            lines.append(f"  {name:<13} {value * 100:5.1f}% x {weight:.2f}")
        lines.append(
            f"  cognitive load {chosen.load.total_load:.2f} "
            f"({chosen.load.status.value}, {chosen.pending_reviews} pending)"
        )
        if result.warning:
            lines.append(f"Warning: {result.warning}")
    else:
        lines.append(f"No reviewer selected: {result.reason}")

    if result.candidates:
        lines.append("")
        lines.append("Candidates:")
        for candidate in result.candidates:
            if candidate.eligible:
                lines.append(
                    f"  {candidate.profile.display_name}: "
                    f"{candidate.total_score * 100:.1f}%"
                )
            else:
                lines.append(
                    f"  {candidate.profile.display_name}: {candidate.disqualify_reason}"
                )

    for error in result.errors:
        lines.append(f"Error: {error}")

    return "\n".join(lines)
