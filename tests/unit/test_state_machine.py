"""Unit tests for the assignment state machine.

Tests cover:
- Valid state transitions
- Invalid state transition handling
- Response time calculation
- Signal routing that needs no storage writes
- The per-assignment lock registry
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from roulette.database.models import AssignmentStatus
from roulette.lifecycle.signals import ReviewSignal
from roulette.lifecycle.state_machine import (
    VALID_TRANSITIONS,
    AssignmentLocks,
    AssignmentStateMachine,
    InvalidTransitionError,
    SignalOutcomeKind,
    allowed_sources,
    response_time_minutes,
    validate_transition,
)

MACHINE = "roulette.lifecycle.state_machine"


def _session_factory() -> MagicMock:
    session = AsyncMock()
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = session
    factory.return_value.__aexit__.return_value = False
    return factory


def _signal(**overrides) -> ReviewSignal:
    values = {
        "channel_id": "C123",
        "message_ts": "1700000000.000100",
        "actor_id": "UREVIEWER",
        "signal": "eyes",
        "action": "added",
    }
    values.update(overrides)
    return ReviewSignal(**values)


class TestValidTransitions:
    """Test the VALID_TRANSITIONS mapping and validation."""

    def test_valid_transitions_definition(self):
        """Verify VALID_TRANSITIONS includes all AssignmentStatus values."""
        assert set(VALID_TRANSITIONS.keys()) == set(AssignmentStatus)

    @pytest.mark.parametrize(
        "current,target,expected",
        [
            # Valid transitions
            (AssignmentStatus.pending, AssignmentStatus.assigned, True),
            (AssignmentStatus.assigned, AssignmentStatus.in_review, True),
            (AssignmentStatus.assigned, AssignmentStatus.approved, True),
            (AssignmentStatus.in_review, AssignmentStatus.changes_requested, True),
            (AssignmentStatus.changes_requested, AssignmentStatus.in_review, True),
            (AssignmentStatus.changes_requested, AssignmentStatus.changes_requested, True),
            (AssignmentStatus.in_review, AssignmentStatus.assigned, True),
            (AssignmentStatus.declined, AssignmentStatus.assigned, True),
            # Invalid transitions
            (AssignmentStatus.pending, AssignmentStatus.in_review, False),
            (AssignmentStatus.pending, AssignmentStatus.approved, False),
            (AssignmentStatus.approved, AssignmentStatus.in_review, False),
            (AssignmentStatus.approved, AssignmentStatus.changes_requested, False),
            (AssignmentStatus.expired, AssignmentStatus.assigned, False),
            (AssignmentStatus.declined, AssignmentStatus.approved, False),
        ],
    )
    def test_validate_transition(self, current, target, expected):
        assert validate_transition(current, target) is expected

    def test_terminal_states(self):
        assert VALID_TRANSITIONS[AssignmentStatus.approved] == set()
        assert VALID_TRANSITIONS[AssignmentStatus.expired] == set()

    def test_allowed_sources(self):
        assert allowed_sources(AssignmentStatus.in_review) == frozenset(
            {
                AssignmentStatus.assigned,
                AssignmentStatus.in_review,
                AssignmentStatus.changes_requested,
            }
        )
        assert AssignmentStatus.pending in allowed_sources(AssignmentStatus.assigned)
        assert allowed_sources(AssignmentStatus.pending) == frozenset()


class TestInvalidTransitionError:
    def test_message_with_assignment(self):
        error = InvalidTransitionError(
            AssignmentStatus.approved, AssignmentStatus.in_review, "abc"
        )
        assert str(error) == "Invalid transition from approved to in_review for assignment abc"
        assert error.current == AssignmentStatus.approved
        assert error.target == AssignmentStatus.in_review

    def test_message_without_assignment(self):
        error = InvalidTransitionError(AssignmentStatus.pending, AssignmentStatus.approved)
        assert str(error) == "Invalid transition from pending to approved"


class TestResponseTime:
    def test_from_first_activity(self, make_assignment, now: datetime):
        assignment = make_assignment(
            assigned_at=now - timedelta(hours=5),
            first_review_activity_at=now - timedelta(minutes=90),
        )
        assert response_time_minutes(assignment, now) == 90

    def test_falls_back_to_assigned_at(self, make_assignment, now: datetime):
        assignment = make_assignment(assigned_at=now - timedelta(minutes=30))
        assert response_time_minutes(assignment, now) == 30

    def test_naive_timestamps_treated_as_utc(self, make_assignment, now: datetime):
        naive = (now - timedelta(minutes=45)).replace(tzinfo=None)
        assignment = make_assignment(assigned_at=naive)
        assert response_time_minutes(assignment, now) == 45

    def test_unassigned(self, make_assignment, now: datetime):
        assert response_time_minutes(make_assignment(assigned_at=None), now) is None

    def test_never_negative(self, make_assignment, now: datetime):
        assignment = make_assignment(assigned_at=now + timedelta(minutes=5))
        assert response_time_minutes(assignment, now) == 0


class TestAssignmentLocks:
    def test_same_lock_per_assignment(self):
        locks = AssignmentLocks()
        assignment_id = uuid.uuid4()

        first = locks.lock_for(assignment_id)
        assert locks.lock_for(assignment_id) is first
        assert locks.lock_for(uuid.uuid4()) is not first


class TestHandleSignalRouting:
    @pytest.mark.asyncio
    async def test_non_message_item_ignored(self):
        factory = _session_factory()
        machine = AssignmentStateMachine(factory)

        outcome = await machine.handle_signal(_signal(item_type="file"))

        assert outcome.kind == SignalOutcomeKind.IGNORED
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_message_not_found(self):
        machine = AssignmentStateMachine(_session_factory())

        with patch(f"{MACHINE}.get_assignment_by_message", AsyncMock(return_value=None)):
            outcome = await machine.handle_signal(_signal())

        assert outcome.kind == SignalOutcomeKind.NOT_FOUND
        assert outcome.reason == "no assignment for this message"
        assert not outcome.transitioned

    @pytest.mark.asyncio
    async def test_completion_sink_failure_is_contained(self):
        sink = AsyncMock()
        sink.emit.side_effect = RuntimeError("sink down")
        machine = AssignmentStateMachine(_session_factory(), completion_sink=sink)
        event = MagicMock(assignment_id=uuid.uuid4())

        await machine._emit_completion(event)

        sink.emit.assert_awaited_once_with(event)
