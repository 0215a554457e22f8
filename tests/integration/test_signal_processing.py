"""Integration tests for reviewer signal processing.

Drives AssignmentStateMachine against a real database: transitions and
their counters, the audit log, ignored and rejected signals, completion
events, concurrent signals, and reconciliation.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy import select

from roulette.database.models import (
    Assignment,
    AssignmentStatus,
    ReactionEvent,
    StatusSignalMapping,
)
from roulette.integrations.stats import CompletionEvent
from roulette.lifecycle.signals import ReviewSignal
from roulette.lifecycle.state_machine import AssignmentStateMachine, SignalOutcomeKind


class Clock:
    """Settable time source."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


def _signal(assignment: Assignment, name: str, actor: str = "USENIOR", action: str = "added"):
    return ReviewSignal(
        channel_id=assignment.slack_channel_id,
        message_ts=assignment.slack_message_ts,
        actor_id=actor,
        signal=name,
        action=action,
    )


async def _reload(session_factory, assignment_id) -> Assignment:
    async with session_factory() as session:
        return await session.get(Assignment, assignment_id)


@pytest.fixture
def clock(now: datetime) -> Clock:
    return Clock(now)


@pytest_asyncio.fixture
async def assigned(team, make_assignment, now: datetime) -> Assignment:
    return await make_assignment(reviewer=team.senior, assigned_at=now - timedelta(hours=2))


@pytest.mark.asyncio
async def test_eyes_starts_review(session_factory, assigned, clock: Clock) -> None:
    machine = AssignmentStateMachine(session_factory, clock=clock)

    outcome = await machine.handle_signal(_signal(assigned, "eyes"))

    assert outcome.kind == SignalOutcomeKind.TRANSITIONED
    assert outcome.previous_status == AssignmentStatus.assigned
    assert outcome.new_status == AssignmentStatus.in_review
    stored = await _reload(session_factory, assigned.id)
    assert stored.status == AssignmentStatus.in_review
    assert stored.first_review_activity_at is not None


@pytest.mark.asyncio
async def test_first_activity_stamped_once(session_factory, assigned, clock: Clock) -> None:
    machine = AssignmentStateMachine(session_factory, clock=clock)

    await machine.handle_signal(_signal(assigned, "eyes"))
    first = (await _reload(session_factory, assigned.id)).first_review_activity_at
    clock.advance(hours=1)
    await machine.handle_signal(_signal(assigned, "x"))
    await machine.handle_signal(_signal(assigned, "speech_balloon"))

    assert (await _reload(session_factory, assigned.id)).first_review_activity_at == first


@pytest.mark.asyncio
async def test_comment_moves_to_review_without_stamping_activity(
    session_factory, assigned, clock: Clock
) -> None:
    machine = AssignmentStateMachine(session_factory, clock=clock)

    outcome = await machine.handle_signal(_signal(assigned, "comment"))

    assert outcome.new_status == AssignmentStatus.in_review
    stored = await _reload(session_factory, assigned.id)
    assert stored.status == AssignmentStatus.in_review
    assert stored.first_review_activity_at is None

    await machine.handle_signal(_signal(assigned, "looking"))
    assert (await _reload(session_factory, assigned.id)).first_review_activity_at is not None


@pytest.mark.asyncio
async def test_remapped_signal_does_not_count_as_rejection(
    session_factory, assigned, clock: Clock
) -> None:
    async with session_factory() as session:
        async with session.begin():
            session.add_all(
                [
                    StatusSignalMapping(
                        status=AssignmentStatus.in_review, signals=["eyes"], sort_order=1
                    ),
                    StatusSignalMapping(
                        status=AssignmentStatus.changes_requested,
                        signals=["thumbsdown", "blocked"],
                        sort_order=2,
                    ),
                ]
            )
    machine = AssignmentStateMachine(session_factory, clock=clock)
    await machine.handle_signal(_signal(assigned, "eyes"))

    outcome = await machine.handle_signal(_signal(assigned, "thumbsdown"))

    assert outcome.new_status == AssignmentStatus.changes_requested
    stored = await _reload(session_factory, assigned.id)
    assert stored.rejection_count == 0
    assert stored.review_cycle_count == 0

    await machine.handle_signal(_signal(assigned, "blocked"))
    assert (await _reload(session_factory, assigned.id)).rejection_count == 1

@pytest.mark.asyncio
async def test_rejection_cycle_counters(session_factory, assigned, clock: Clock) -> None:
    machine = AssignmentStateMachine(session_factory, clock=clock)

    await machine.handle_signal(_signal(assigned, "eyes"))
    outcome = await machine.handle_signal(_signal(assigned, "x"))

    assert outcome.new_status == AssignmentStatus.changes_requested
    stored = await _reload(session_factory, assigned.id)
    assert stored.rejection_count == 1
    assert stored.review_cycle_count == 1

    # Rejecting again straight from changes_requested is not a new cycle
    await machine.handle_signal(_signal(assigned, "no_entry"))
    stored = await _reload(session_factory, assigned.id)
    assert stored.rejection_count == 2
    assert stored.review_cycle_count == 1


@pytest.mark.asyncio
async def test_removed_signal_changes_nothing(session_factory, assigned, clock: Clock) -> None:
    machine = AssignmentStateMachine(session_factory, clock=clock)
    await machine.handle_signal(_signal(assigned, "eyes"))

    outcome = await machine.handle_signal(_signal(assigned, "eyes", action="removed"))

    assert outcome.kind == SignalOutcomeKind.RECORDED
    assert outcome.reason == "removed signals do not change status"
    assert (await _reload(session_factory, assigned.id)).status == AssignmentStatus.in_review


@pytest.mark.asyncio
async def test_non_reviewer_signal_only_audited(session_factory, assigned, clock: Clock) -> None:
    machine = AssignmentStateMachine(session_factory, clock=clock)

    outcome = await machine.handle_signal(_signal(assigned, "white_check_mark", actor="UAUTHOR"))

    assert outcome.kind == SignalOutcomeKind.RECORDED
    assert outcome.reason == "signal is not from the assigned reviewer"
    assert (await _reload(session_factory, assigned.id)).status == AssignmentStatus.assigned

    async with session_factory() as session:
        events = list((await session.execute(select(ReactionEvent))).scalars().all())
    assert len(events) == 1
    assert events[0].is_reviewer is False
    assert events[0].actor_id == "UAUTHOR"


@pytest.mark.asyncio
async def test_unmapped_signal_recorded(session_factory, assigned, clock: Clock) -> None:
    machine = AssignmentStateMachine(session_factory, clock=clock)

    outcome = await machine.handle_signal(_signal(assigned, "tada"))

    assert outcome.kind == SignalOutcomeKind.RECORDED
    assert outcome.reason == "signal is not mapped to a status"


@pytest.mark.asyncio
async def test_unknown_message(session_factory, assigned, clock: Clock) -> None:
    machine = AssignmentStateMachine(session_factory, clock=clock)
    signal = ReviewSignal(
        channel_id="C999", message_ts="1.0", actor_id="USENIOR", signal="eyes", action="added"
    )

    outcome = await machine.handle_signal(signal)

    assert outcome.kind == SignalOutcomeKind.NOT_FOUND


@pytest.mark.asyncio
async def test_approval_is_terminal_and_emits_completion(
    session_factory, assigned, clock: Clock
) -> None:
    sink = AsyncMock()
    sink.emit.return_value = True
    machine = AssignmentStateMachine(session_factory, completion_sink=sink, clock=clock)

    await machine.handle_signal(_signal(assigned, "eyes"))
    clock.advance(minutes=45)
    outcome = await machine.handle_signal(_signal(assigned, "white_check_mark"))

    assert outcome.new_status == AssignmentStatus.approved
    sink.emit.assert_awaited_once()
    event = sink.emit.await_args.args[0]
    assert isinstance(event, CompletionEvent)
    assert event.assignment_id == assigned.id
    assert event.reviewer_id == assigned.reviewer_id
    assert event.response_time_minutes == 45
    stored = await _reload(session_factory, assigned.id)
    assert stored.completed_at is not None

    late = await machine.handle_signal(_signal(assigned, "eyes"))
    assert late.kind == SignalOutcomeKind.RECORDED
    assert late.reason.startswith("Invalid transition from approved to in_review")
    assert (await _reload(session_factory, assigned.id)).status == AssignmentStatus.approved
    sink.emit.assert_awaited_once()


@pytest.mark.asyncio
async def test_failing_sink_keeps_approval(session_factory, assigned, clock: Clock) -> None:
    sink = AsyncMock()
    sink.emit.side_effect = RuntimeError("webhook down")
    machine = AssignmentStateMachine(session_factory, completion_sink=sink, clock=clock)

    outcome = await machine.handle_signal(_signal(assigned, "white_check_mark"))

    assert outcome.transitioned
    assert (await _reload(session_factory, assigned.id)).status == AssignmentStatus.approved


@pytest.mark.asyncio
async def test_concurrent_rejections_both_counted(
    session_factory, team, make_assignment, clock: Clock
) -> None:
    assignment = await make_assignment(reviewer=team.senior, status=AssignmentStatus.in_review)
    machine = AssignmentStateMachine(session_factory, clock=clock)

    outcomes = await asyncio.gather(
        machine.handle_signal(_signal(assignment, "x")),
        machine.handle_signal(_signal(assignment, "no_entry")),
    )

    assert all(o.transitioned for o in outcomes)
    stored = await _reload(session_factory, assignment.id)
    assert stored.rejection_count == 2
    assert stored.review_cycle_count == 1


@pytest.mark.asyncio
async def test_reconcile_detects_drift(session_factory, assigned, clock: Clock) -> None:
    machine = AssignmentStateMachine(session_factory, clock=clock)

    await machine.handle_signal(_signal(assigned, "eyes"))
    await machine.handle_signal(_signal(assigned, "x"))
    report = await machine.reconcile(assigned.id)

    assert report.in_sync is True
    assert report.derived_status == AssignmentStatus.changes_requested
    assert report.event_count == 2

    await machine.handle_signal(_signal(assigned, "x", action="removed"))
    report = await machine.reconcile(assigned.id)

    assert report.in_sync is False
    assert report.cached_status == AssignmentStatus.changes_requested
    assert report.derived_status == AssignmentStatus.in_review
    # Reconciliation never writes
    assert (await _reload(session_factory, assigned.id)).status == AssignmentStatus.changes_requested


@pytest.mark.asyncio
async def test_reconcile_without_signals(session_factory, assigned, clock: Clock) -> None:
    report = await AssignmentStateMachine(session_factory, clock=clock).reconcile(assigned.id)

    assert report.derived_status is None
    assert report.in_sync is True


@pytest.mark.asyncio
async def test_reconcile_unknown_assignment(session_factory, clock: Clock) -> None:
    assert await AssignmentStateMachine(session_factory, clock=clock).reconcile(uuid.uuid4()) is None
