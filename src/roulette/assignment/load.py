"""Cognitive load model for Roulette.

Turns a reviewer's open assignments into a load figure that reflects
review effort rather than ticket count: every assigned or in-review
assignment contributes a weight according to its complexity class.

Load is never cached. It is recomputed from the currently open assignments
on every selection so two selections can never disagree about a stale
counter.

Thresholds:
    optimal:    load <= 2.0
    elevated:   2.0 < load <= 3.0
    high:       3.0 < load < 5.0 (soft threshold, reduced priority)
    overloaded: load >= 5.0 (hard threshold, no more work)
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from uuid import UUID

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from roulette.database.models.assignment import Complexity
from roulette.database.queries.reviewer import get_open_complexities

logger = structlog.get_logger(__name__)

COMPLEXITY_WEIGHTS: dict[Complexity, float] = {
    Complexity.trivial: 0.25,
    Complexity.small: 0.5,
    Complexity.medium: 1.0,
    Complexity.large: 2.0,
    Complexity.complex: 3.0,
}
DEFAULT_COMPLEXITY_WEIGHT = 1.0

OPTIMAL_LOAD = 2.0
SOFT_LOAD = 3.0
HARD_LOAD = 5.0


class LoadStatus(str, Enum):
    """Classification of a reviewer's cognitive load."""

    OPTIMAL = "optimal"
    ELEVATED = "elevated"
    HIGH = "high"
    OVERLOADED = "overloaded"


class CognitiveLoad(BaseModel):
    """Cognitive load of one reviewer.

    Attributes:
        total_load: Sum of complexity weights of open assignments
        pending_count: Raw number of open assignments
        breakdown: Open assignment count per complexity class
        status: Classification against the load thresholds
        can_accept_more: False once the hard threshold is reached
        warning_message: Human-readable note for high and overloaded loads
    """

    total_load: float = Field(default=0.0, ge=0.0)
    pending_count: int = Field(default=0, ge=0)
    breakdown: dict[str, int] = Field(default_factory=dict)
    status: LoadStatus = Field(default=LoadStatus.OPTIMAL)
    can_accept_more: bool = Field(default=True)
    warning_message: str | None = Field(default=None)


def _as_complexity(value: Complexity | str | None) -> Complexity | None:
    if isinstance(value, Complexity):
        return value
    if value is None:
        return None
    try:
        return Complexity(str(value).lower())
    except ValueError:
        return None


def complexity_weight(value: Complexity | str | None) -> float:
    """Weight one open assignment contributes; unknown classes count as medium."""
    complexity = _as_complexity(value)
    if complexity is None:
        return DEFAULT_COMPLEXITY_WEIGHT
    return COMPLEXITY_WEIGHTS[complexity]


def classify_load(total_load: float) -> LoadStatus:
    """Classify a numeric load against the documented thresholds."""
    if total_load >= HARD_LOAD:
        return LoadStatus.OVERLOADED
    if total_load > SOFT_LOAD:
        return LoadStatus.HIGH
    if total_load > OPTIMAL_LOAD:
        return LoadStatus.ELEVATED
    return LoadStatus.OPTIMAL


def calculate_cognitive_load(complexities: Iterable[Complexity | str | None]) -> CognitiveLoad:
    """Compute cognitive load from the complexities of open assignments.

    Args:
        complexities: One entry per assigned or in-review assignment.

    Returns:
        CognitiveLoad with total, raw count, breakdown, and status.
    """
    breakdown = {complexity.value: 0 for complexity in Complexity}
    total_load = 0.0
    pending_count = 0

    for value in complexities:
        pending_count += 1
        total_load += complexity_weight(value)
        complexity = _as_complexity(value)
        if complexity is not None:
            breakdown[complexity.value] += 1

    status = classify_load(total_load)
    warning_message = None
    if status == LoadStatus.OVERLOADED:
        warning_message = f"At capacity (cognitive load: {total_load:.1f})"
    elif status == LoadStatus.HIGH:
        warning_message = f"Approaching capacity (cognitive load: {total_load:.1f})"

    return CognitiveLoad(
        total_load=total_load,
        pending_count=pending_count,
        breakdown=breakdown,
        status=status,
        can_accept_more=status != LoadStatus.OVERLOADED,
        warning_message=warning_message,
    )


async def fetch_cognitive_load(session: AsyncSession, reviewer_id: UUID) -> CognitiveLoad:
    """Recompute a reviewer's cognitive load from storage."""
    complexities = await get_open_complexities(session, reviewer_id)
    load = calculate_cognitive_load(complexities)

    logger.debug(
        "cognitive_load_calculated",
        reviewer_id=str(reviewer_id),
        total_load=load.total_load,
        pending_count=load.pending_count,
        status=load.status.value,
    )
    return load
