"""Candidate scoring for reviewer selection.

For one work item, every candidate reviewer either receives a
disqualification reason or a composite score in [0, 1] built from five
normalized sub-scores:

    weight        seniority weight / 2.0
    workload      piecewise-linear in cognitive load
    expertise     coverage and proficiency of required skills
    fairness      recent assignment volume against the pool average
    availability  availability status times a working-hours factor

Disqualification is a cascade where the first match wins: overload,
capacity, seniority for large/complex work, then leave/unavailability.
Everything in this module is pure; storage access lives in the selector.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field

from roulette.assignment.load import HARD_LOAD, OPTIMAL_LOAD, SOFT_LOAD, CognitiveLoad
from roulette.database.models.assignment import Assignment, Complexity
from roulette.database.models.repository import RepositoryReviewer
from roulette.database.models.reviewer import DEFAULT_WORKING_DAYS, AvailabilityStatus

# Fixed composite weights. Workload carries the largest share and
# availability the smallest (tie-breaker only).
SCORE_WEIGHTS: dict[str, float] = {
    "weight": 0.25,
    "workload": 0.30,
    "expertise": 0.25,
    "fairness": 0.15,
    "availability": 0.05,
}

MAX_REVIEWER_WEIGHT = 2.0
SENIOR_WEIGHT_THRESHOLD = 1.2
COMPLEXITY_REQUIRES_SENIOR = frozenset({Complexity.large, Complexity.complex})

STATUS_SCORES: dict[AvailabilityStatus, float] = {
    AvailabilityStatus.available: 1.0,
    AvailabilityStatus.busy: 0.5,
    AvailabilityStatus.on_leave: 0.0,
    AvailabilityStatus.unavailable: 0.0,
}
BLOCKED_STATUSES = frozenset({AvailabilityStatus.on_leave, AvailabilityStatus.unavailable})

NEUTRAL_EXPERTISE = 0.5
NO_MATCH_EXPERTISE = 0.1
FAIRNESS_FLOOR = 0.2
TIMEZONE_FALLBACK_SCORE = 0.8

MINUTES_PER_DAY = 24 * 60


@dataclass
class ReviewerProfile:
    """Everything scoring needs to know about one candidate.

    Attributes:
        reviewer_id: Reviewer primary key
        display_name: Human readable name
        slack_id: Chat identity
        weight: Repository-specific seniority weight (0.5-2.0)
        max_concurrent: Repository-specific capacity
        availability: Current availability status
        timezone: IANA timezone of the working-hours window
        working_hours_start: Local start of day ("HH:MM")
        working_hours_end: Local end of day ("HH:MM")
        working_days: Lower-case weekday names
        skills: Skill name (lower-case) to proficiency 1-5
    """

    reviewer_id: UUID
    display_name: str
    slack_id: str
    weight: float
    max_concurrent: int
    availability: AvailabilityStatus = AvailabilityStatus.available
    timezone: str = "UTC"
    working_hours_start: str = "09:00"
    working_hours_end: str = "18:00"
    working_days: list[str] = field(default_factory=lambda: list(DEFAULT_WORKING_DAYS))
    skills: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_link(cls, link: RepositoryReviewer) -> ReviewerProfile:
        """Build a profile from a repository link with its reviewer loaded."""
        reviewer = link.reviewer
        return cls(
            reviewer_id=reviewer.id,
            display_name=reviewer.display_name,
            slack_id=reviewer.slack_id,
            weight=link.weight,
            max_concurrent=link.max_concurrent,
            availability=reviewer.availability_status,
            timezone=reviewer.timezone,
            working_hours_start=reviewer.working_hours_start,
            working_hours_end=reviewer.working_hours_end,
            working_days=list(reviewer.working_days or DEFAULT_WORKING_DAYS),
            skills={skill.name.lower(): skill.proficiency for skill in reviewer.skills},
        )


class WorkItem(BaseModel):
    """A unit of work that needs a reviewer.

    Attributes:
        repository_id: Repository the work belongs to
        author_id: Author, never a candidate
        skills_required: Skill names the work needs
        complexity: Effort class
        pr_number: Optional number within the repository
        pr_url: Optional source URL
    """

    repository_id: UUID
    author_id: UUID
    skills_required: list[str] = Field(default_factory=list)
    complexity: Complexity = Complexity.medium
    pr_number: int | None = None
    pr_url: str | None = None

    @classmethod
    def from_assignment(cls, assignment: Assignment) -> WorkItem:
        """Describe an existing assignment as a work item."""
        return cls(
            repository_id=assignment.repository_id,
            author_id=assignment.author_id,
            skills_required=list(assignment.skills_required or []),
            complexity=assignment.complexity,
            pr_number=assignment.pr_number,
            pr_url=assignment.pr_url,
        )


class ScoreBreakdown(BaseModel):
    """The five normalized sub-scores of a candidate."""

    weight: float = 0.0
    workload: float = 0.0
    expertise: float = 0.0
    fairness: float = 0.0
    availability: float = 0.0


class WorkingHoursCheck(BaseModel):
    """Result of comparing the current time with a working-hours window."""

    in_hours: bool
    score: float
    message: str | None = None


@dataclass
class Candidate:
    """A scored (or disqualified) reviewer for one work item."""

    profile: ReviewerProfile
    load: CognitiveLoad
    scores: ScoreBreakdown = field(default_factory=ScoreBreakdown)
    total_score: float = 0.0
    disqualify_reason: str | None = None
    warning: str | None = None

    @property
    def eligible(self) -> bool:
        return self.disqualify_reason is None

    @property
    def pending_reviews(self) -> int:
        return self.load.pending_count


def expertise_score(skills: Mapping[str, int], skills_required: Sequence[str]) -> float:
    """Score how well a reviewer's skills cover the required ones.

    Returns 0.5 when nothing is required, 0.1 when no required skill
    matches, otherwise ``coverage * 0.5 + avg_proficiency * 0.5``.
    """
    if not skills_required:
        return NEUTRAL_EXPERTISE

    normalized = {name.lower(): level for name, level in skills.items()}
    matched = [
        normalized[required.lower()] / 5
        for required in skills_required
        if required.lower() in normalized
    ]
    if not matched:
        return NO_MATCH_EXPERTISE

    coverage = len(matched) / len(skills_required)
    avg_proficiency = sum(matched) / len(matched)
    return coverage * 0.5 + avg_proficiency * 0.5


def workload_score(cognitive_load: float, pending_count: int, max_concurrent: int) -> float:
    """Inverse workload score: 1.0 when lightly loaded, 0.0 at capacity."""
    if pending_count >= max_concurrent:
        return 0.0
    if cognitive_load >= HARD_LOAD:
        return 0.0
    if cognitive_load <= OPTIMAL_LOAD:
        return 1.0
    if cognitive_load <= SOFT_LOAD:
        position = (cognitive_load - OPTIMAL_LOAD) / (SOFT_LOAD - OPTIMAL_LOAD)
        return 1.0 - position * 0.5
    position = (cognitive_load - SOFT_LOAD) / (HARD_LOAD - SOFT_LOAD)
    return 0.5 - position * 0.5


def fairness_score(recent_count: int, avg_count: float, max_count: int) -> float:
    """Favor reviewers at or below the pool's average recent volume."""
    if max_count == 0:
        return 1.0

    deviation = recent_count - avg_count
    if deviation <= 0:
        return 1.0
    if deviation >= avg_count:
        return FAIRNESS_FLOOR
    return max(FAIRNESS_FLOOR, 1 - deviation / (avg_count * 2))


def parse_time(value: str) -> int:
    """Parse "HH:MM" into minutes since midnight."""
    hours, _, minutes = value.partition(":")
    return int(hours) * 60 + int(minutes or 0)


def check_working_hours(profile: ReviewerProfile, now: datetime) -> WorkingHoursCheck:
    """Compare ``now`` with the reviewer's local working window.

    Inside the window scores 1.0; within one hour of it 0.6; within two
    hours 0.4; otherwise, or on a non-working day, 0.2. A timezone or
    window that cannot be resolved assumes availability with 0.8.
    """
    try:
        local = now.astimezone(ZoneInfo(profile.timezone or "UTC"))
        start = parse_time(profile.working_hours_start or "09:00")
        end = parse_time(profile.working_hours_end or "18:00")
    except (ZoneInfoNotFoundError, ValueError):
        return WorkingHoursCheck(in_hours=True, score=TIMEZONE_FALLBACK_SCORE)

    weekday = local.strftime("%A").lower()
    working_days = [day.lower() for day in (profile.working_days or DEFAULT_WORKING_DAYS)]
    if weekday not in working_days:
        return WorkingHoursCheck(
            in_hours=False, score=0.2, message=f"Not a working day ({weekday})"
        )

    current = local.hour * 60 + local.minute
    if start <= end:
        inside = start <= current <= end
    else:
        inside = current >= start or current <= end
    if inside:
        return WorkingHoursCheck(in_hours=True, score=1.0)

    minutes_outside = min((start - current) % MINUTES_PER_DAY, (current - end) % MINUTES_PER_DAY)
    if minutes_outside <= 60:
        return WorkingHoursCheck(in_hours=False, score=0.6, message="Just outside working hours")
    if minutes_outside <= 120:
        return WorkingHoursCheck(in_hours=False, score=0.4, message="Outside working hours")
    return WorkingHoursCheck(in_hours=False, score=0.2, message="Well outside working hours")


def availability_score(profile: ReviewerProfile, hours: WorkingHoursCheck) -> float:
    """Availability status base score times the working-hours factor."""
    base = STATUS_SCORES.get(profile.availability, 0.5)
    if base == 0:
        return 0.0
    return base * hours.score


def composite_score(scores: ScoreBreakdown) -> float:
    """Weighted sum of the five sub-scores."""
    return math.fsum(getattr(scores, name) * weight for name, weight in SCORE_WEIGHTS.items())


def disqualification_reason(
    profile: ReviewerProfile,
    load: CognitiveLoad,
    complexity: Complexity,
    require_senior_complex: bool,
) -> str | None:
    """Return the first hard eligibility failure, or None when eligible.

    Order: cognitive overload, raw capacity, seniority, availability.
    """
    if load.total_load >= HARD_LOAD:
        return f"overloaded (cognitive load: {load.total_load:.1f})"
    if load.pending_count >= profile.max_concurrent:
        return f"at max capacity ({load.pending_count}/{profile.max_concurrent})"
    if (
        require_senior_complex
        and complexity in COMPLEXITY_REQUIRES_SENIOR
        and profile.weight < SENIOR_WEIGHT_THRESHOLD
    ):
        return f"junior cannot review {complexity.value}"
    if profile.availability in BLOCKED_STATUSES:
        return f"reviewer is {profile.availability.value.replace('_', ' ')}"
    return None


def score_candidate(
    profile: ReviewerProfile,
    load: CognitiveLoad,
    work_item: WorkItem,
    require_senior_complex: bool,
    recent_count: int,
    avg_recent: float,
    max_recent: int,
    now: datetime,
) -> Candidate:
    """Produce the eligibility verdict and composite score for one reviewer.

    Args:
        profile: Candidate reviewer.
        load: Freshly computed cognitive load of the candidate.
        work_item: Work being assigned.
        require_senior_complex: Repository's seniority rule.
        recent_count: Candidate's assignments in the fairness window.
        avg_recent: Average recent count across reviewers with history.
        max_recent: Maximum recent count across reviewers with history.
        now: Current time, used for working hours.

    Returns:
        A Candidate; disqualified candidates carry zero scores and a reason.
    """
    reason = disqualification_reason(
        profile, load, work_item.complexity, require_senior_complex
    )
    if reason is not None:
        return Candidate(profile=profile, load=load, disqualify_reason=reason)

    hours = check_working_hours(profile, now)
    scores = ScoreBreakdown(
        weight=profile.weight / MAX_REVIEWER_WEIGHT,
        workload=workload_score(load.total_load, load.pending_count, profile.max_concurrent),
        expertise=expertise_score(profile.skills, work_item.skills_required),
        fairness=fairness_score(recent_count, avg_recent, max_recent),
        availability=availability_score(profile, hours),
    )
    return Candidate(
        profile=profile,
        load=load,
        scores=scores,
        total_score=composite_score(scores),
        warning=None if hours.in_hours else hours.message,
    )
