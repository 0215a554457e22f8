"""Unit tests for the cognitive load model."""

from __future__ import annotations

import random
import uuid
from unittest.mock import AsyncMock, patch

import pytest

from roulette.assignment.load import (
    COMPLEXITY_WEIGHTS,
    LoadStatus,
    calculate_cognitive_load,
    classify_load,
    complexity_weight,
    fetch_cognitive_load,
)
from roulette.database.models import Complexity


class TestComplexityWeights:
    def test_weights(self) -> None:
        assert COMPLEXITY_WEIGHTS == {
            Complexity.trivial: 0.25,
            Complexity.small: 0.5,
            Complexity.medium: 1.0,
            Complexity.large: 2.0,
            Complexity.complex: 3.0,
        }

    @pytest.mark.parametrize("value", [None, "gigantic", ""])
    def test_unknown_complexity_counts_as_medium(self, value: str | None) -> None:
        assert complexity_weight(value) == 1.0

    def test_string_values_accepted(self) -> None:
        assert complexity_weight("LARGE") == 2.0


class TestClassifyLoad:
    @pytest.mark.parametrize(
        "load,expected",
        [
            (0.0, LoadStatus.OPTIMAL),
            (2.0, LoadStatus.OPTIMAL),
            (2.25, LoadStatus.ELEVATED),
            (3.0, LoadStatus.ELEVATED),
            (3.5, LoadStatus.HIGH),
            (4.99, LoadStatus.HIGH),
            (5.0, LoadStatus.OVERLOADED),
            (9.0, LoadStatus.OVERLOADED),
        ],
    )
    def test_thresholds(self, load: float, expected: LoadStatus) -> None:
        assert classify_load(load) == expected


class TestCalculateCognitiveLoad:
    def test_empty(self) -> None:
        load = calculate_cognitive_load([])
        assert load.total_load == 0.0
        assert load.pending_count == 0
        assert load.status == LoadStatus.OPTIMAL
        assert load.can_accept_more is True
        assert load.warning_message is None

    def test_two_complex_assignments_overload(self) -> None:
        load = calculate_cognitive_load([Complexity.complex, Complexity.complex])

        assert load.total_load == 6.0
        assert load.status == LoadStatus.OVERLOADED
        assert load.can_accept_more is False
        assert "cognitive load: 6.0" in load.warning_message

    def test_breakdown(self) -> None:
        load = calculate_cognitive_load(
            [Complexity.small, Complexity.small, Complexity.large, "unknown"]
        )

        assert load.pending_count == 4
        assert load.total_load == 0.5 + 0.5 + 2.0 + 1.0
        assert load.breakdown["small"] == 2
        assert load.breakdown["large"] == 1
        assert load.breakdown["medium"] == 0
        assert load.status == LoadStatus.HIGH
        assert load.warning_message.startswith("Approaching capacity")

    def test_monotonic_in_added_work(self) -> None:
        rng = random.Random(7)
        complexities = list(Complexity)
        for _ in range(50):
            open_items = [rng.choice(complexities) for _ in range(rng.randint(0, 6))]
            before = calculate_cognitive_load(open_items)
            after = calculate_cognitive_load([*open_items, rng.choice(complexities)])
            assert after.total_load >= before.total_load
            assert after.pending_count == before.pending_count + 1


class TestFetchCognitiveLoad:
    @pytest.mark.asyncio
    async def test_recomputes_from_open_assignments(self) -> None:
        session = AsyncMock()
        reviewer_id = uuid.uuid4()

        with patch(
            "roulette.assignment.load.get_open_complexities",
            AsyncMock(return_value=[Complexity.medium, Complexity.large]),
        ) as mock_query:
            load = await fetch_cognitive_load(session, reviewer_id)

        mock_query.assert_awaited_once_with(session, reviewer_id)
        assert load.total_load == 3.0
        assert load.status == LoadStatus.ELEVATED
