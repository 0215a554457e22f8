"""Unit tests for candidate scoring.

Tests cover:
- Composite weight invariants
- Each normalized sub-score
- Working-hours evaluation across timezones
- The disqualification cascade and its order
- Concrete end-to-end scoring scenarios
"""

from __future__ import annotations

import math
from datetime import datetime, timezone

import pytest

from roulette.assignment.load import calculate_cognitive_load
from roulette.assignment.scorer import (
    SCORE_WEIGHTS,
    ScoreBreakdown,
    check_working_hours,
    composite_score,
    disqualification_reason,
    expertise_score,
    fairness_score,
    score_candidate,
    workload_score,
)
from roulette.database.models import AvailabilityStatus, Complexity


class TestScoreWeights:
    def test_weights_sum_to_one(self) -> None:
        assert math.fsum(SCORE_WEIGHTS.values()) == 1.0

    def test_workload_has_largest_weight(self) -> None:
        others = [w for name, w in SCORE_WEIGHTS.items() if name != "workload"]
        assert all(SCORE_WEIGHTS["workload"] > w for w in others)

    def test_availability_has_smallest_weight(self) -> None:
        others = [w for name, w in SCORE_WEIGHTS.items() if name != "availability"]
        assert all(SCORE_WEIGHTS["availability"] < w for w in others)

    def test_composite_of_perfect_scores(self) -> None:
        perfect = ScoreBreakdown(
            weight=1.0, workload=1.0, expertise=1.0, fairness=1.0, availability=1.0
        )
        assert composite_score(perfect) == pytest.approx(1.0)


class TestExpertiseScore:
    def test_no_required_skills_is_neutral(self) -> None:
        assert expertise_score({"python": 5}, []) == 0.5

    def test_no_match(self) -> None:
        assert expertise_score({"go": 5}, ["python", "sql"]) == 0.1

    def test_full_coverage_full_proficiency(self) -> None:
        assert expertise_score({"python": 5, "sql": 5}, ["python", "sql"]) == pytest.approx(1.0)

    def test_partial_coverage(self) -> None:
        # coverage 1/2, proficiency 3/5
        score = expertise_score({"python": 3}, ["python", "sql"])
        assert score == pytest.approx(0.5 * 0.5 + 0.6 * 0.5)

    def test_case_insensitive(self) -> None:
        assert expertise_score({"Python": 5}, ["PYTHON"]) == pytest.approx(1.0)


class TestWorkloadScore:
    @pytest.mark.parametrize(
        "load,expected",
        [
            (0.0, 1.0),
            (2.0, 1.0),
            (2.5, 0.75),
            (3.0, 0.5),
            (4.0, 0.25),
            (5.0, 0.0),
            (7.0, 0.0),
        ],
    )
    def test_piecewise_curve(self, load: float, expected: float) -> None:
        assert workload_score(load, 1, 10) == pytest.approx(expected)

    def test_zero_at_capacity(self) -> None:
        assert workload_score(0.5, 2, 2) == 0.0


class TestFairnessScore:
    def test_no_history(self) -> None:
        assert fairness_score(0, 0.0, 0) == 1.0

    def test_at_or_below_average(self) -> None:
        assert fairness_score(2, 3.0, 5) == 1.0
        assert fairness_score(3, 3.0, 5) == 1.0

    def test_above_average_scaled(self) -> None:
        # deviation 1 against average 4
        assert fairness_score(5, 4.0, 5) == pytest.approx(1 - 1 / 8)

    def test_floor(self) -> None:
        assert fairness_score(10, 2.0, 10) == 0.2


class TestWorkingHours:
    def test_inside_hours(self, make_profile, now: datetime) -> None:
        check = check_working_hours(make_profile(), now)
        assert check.in_hours is True
        assert check.score == 1.0
        assert check.message is None

    def test_just_outside(self, make_profile) -> None:
        at = datetime(2026, 10, 14, 18, 30, tzinfo=timezone.utc)
        check = check_working_hours(make_profile(), at)
        assert check.in_hours is False
        assert check.score == 0.6
        assert check.message == "Just outside working hours"

    def test_within_two_hours(self, make_profile) -> None:
        at = datetime(2026, 10, 14, 7, 30, tzinfo=timezone.utc)
        assert check_working_hours(make_profile(), at).score == 0.4

    def test_well_outside(self, make_profile) -> None:
        at = datetime(2026, 10, 14, 23, 0, tzinfo=timezone.utc)
        assert check_working_hours(make_profile(), at).score == 0.2

    def test_non_working_day(self, make_profile) -> None:
        saturday = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
        check = check_working_hours(make_profile(), saturday)
        assert check.score == 0.2
        assert "saturday" in check.message

    def test_uses_reviewer_timezone(self, make_profile, now: datetime) -> None:
        # 12:00 UTC is 21:00 in Tokyo
        check = check_working_hours(make_profile(timezone="Asia/Tokyo"), now)
        assert check.in_hours is False

    def test_overnight_window(self, make_profile) -> None:
        profile = make_profile(working_hours_start="22:00", working_hours_end="06:00")
        at = datetime(2026, 10, 14, 23, 30, tzinfo=timezone.utc)
        assert check_working_hours(profile, at).in_hours is True

    @pytest.mark.parametrize("tz", ["Mars/Olympus_Mons", "Not/AZone"])
    def test_unknown_timezone_falls_back(self, make_profile, now: datetime, tz: str) -> None:
        check = check_working_hours(make_profile(timezone=tz), now)
        assert check.in_hours is True
        assert check.score == 0.8

    def test_malformed_window_falls_back(self, make_profile, now: datetime) -> None:
        check = check_working_hours(make_profile(working_hours_start="nine"), now)
        assert check.score == 0.8


class TestDisqualification:
    def test_overload_first(self, make_profile) -> None:
        load = calculate_cognitive_load([Complexity.complex, Complexity.complex])
        reason = disqualification_reason(
            make_profile(max_concurrent=2, availability=AvailabilityStatus.on_leave),
            load,
            Complexity.complex,
            True,
        )
        assert reason == "overloaded (cognitive load: 6.0)"

    def test_capacity(self, make_profile) -> None:
        load = calculate_cognitive_load([Complexity.trivial, Complexity.trivial])
        reason = disqualification_reason(
            make_profile(max_concurrent=2), load, Complexity.medium, False
        )
        assert reason == "at max capacity (2/2)"

    @pytest.mark.parametrize("complexity", [Complexity.large, Complexity.complex])
    def test_junior_on_complex_work(self, make_profile, empty_load, complexity) -> None:
        reason = disqualification_reason(make_profile(weight=1.0), empty_load, complexity, True)
        assert reason == f"junior cannot review {complexity.value}"

    def test_senior_rule_off(self, make_profile, empty_load) -> None:
        reason = disqualification_reason(
            make_profile(weight=1.0), empty_load, Complexity.complex, False
        )
        assert reason is None

    def test_senior_threshold_inclusive(self, make_profile, empty_load) -> None:
        reason = disqualification_reason(
            make_profile(weight=1.2), empty_load, Complexity.complex, True
        )
        assert reason is None

    @pytest.mark.parametrize(
        "status,expected",
        [
            (AvailabilityStatus.on_leave, "reviewer is on leave"),
            (AvailabilityStatus.unavailable, "reviewer is unavailable"),
        ],
    )
    def test_availability(self, make_profile, empty_load, status, expected) -> None:
        reason = disqualification_reason(
            make_profile(availability=status), empty_load, Complexity.small, False
        )
        assert reason == expected

    def test_busy_is_eligible(self, make_profile, empty_load) -> None:
        reason = disqualification_reason(
            make_profile(availability=AvailabilityStatus.busy),
            empty_load,
            Complexity.small,
            False,
        )
        assert reason is None


class TestScoreCandidate:
    def test_senior_idle_reviewer_scenario(
        self, make_profile, make_work_item, empty_load, now: datetime
    ) -> None:
        profile = make_profile(weight=2.0, max_concurrent=10)
        work_item = make_work_item(skills_required=[], complexity=Complexity.medium)

        candidate = score_candidate(profile, empty_load, work_item, False, 0, 0.0, 0, now)

        assert candidate.eligible
        assert candidate.scores.weight == 1.0
        assert candidate.scores.workload == 1.0
        assert candidate.scores.expertise == 0.5
        assert candidate.scores.fairness == 1.0
        assert candidate.scores.availability == 1.0
        assert candidate.total_score == pytest.approx(
            0.25 * 1.0 + 0.30 * 1.0 + 0.25 * 0.5 + 0.15 * 1.0 + 0.05 * 1.0
        )
        assert candidate.warning is None

    def test_overloaded_reviewer_scenario(
        self, make_profile, make_work_item, now: datetime
    ) -> None:
        load = calculate_cognitive_load([Complexity.complex, Complexity.complex])

        candidate = score_candidate(
            make_profile(max_concurrent=10), load, make_work_item(), False, 0, 0.0, 0, now
        )

        assert not candidate.eligible
        assert "cognitive load" in candidate.disqualify_reason
        assert candidate.total_score == 0.0

    def test_warning_outside_hours(self, make_profile, make_work_item, empty_load) -> None:
        evening = datetime(2026, 10, 14, 18, 45, tzinfo=timezone.utc)

        candidate = score_candidate(
            make_profile(), empty_load, make_work_item(), False, 0, 0.0, 0, evening
        )

        assert candidate.eligible
        assert candidate.warning == "Just outside working hours"
        assert candidate.scores.availability == pytest.approx(0.6)

    def test_busy_halves_availability(
        self, make_profile, make_work_item, empty_load, now: datetime
    ) -> None:
        candidate = score_candidate(
            make_profile(availability=AvailabilityStatus.busy),
            empty_load,
            make_work_item(),
            False,
            0,
            0.0,
            0,
            now,
        )
        assert candidate.scores.availability == 0.5

    def test_scores_stay_normalized(
        self, make_profile, make_work_item, now: datetime
    ) -> None:
        load = calculate_cognitive_load([Complexity.medium, Complexity.large])
        candidate = score_candidate(
            make_profile(weight=0.5, skills={"python": 1}),
            load,
            make_work_item(skills_required=["python", "rust"]),
            False,
            4,
            2.0,
            4,
            now,
        )
        for value in candidate.scores.model_dump().values():
            assert 0.0 <= value <= 1.0
        assert 0.0 <= candidate.total_score <= 1.0
