"""Assignment state machine for Roulette.

This module implements the review lifecycle: the authoritative table of
status transitions and the processing of reviewer signals that drive an
assignment from ``assigned`` through ``in_review`` and
``changes_requested`` to ``approved``.

Signals for the same assignment are serialized by a per-assignment lock;
counters are additionally incremented inside a single conditional UPDATE
so separate processes cannot lose updates either.
"""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from uuid import UUID

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from roulette.database.models.assignment import Assignment, AssignmentStatus, SignalAction
from roulette.database.models.base import as_utc, utcnow
from roulette.database.queries.assignment import (
    apply_status_signal,
    get_assignment,
    get_assignment_by_message,
    list_reviewer_events,
    record_reaction_event,
)
from roulette.database.queries.signal import load_signal_map
from roulette.integrations.stats import CompletionEvent, CompletionSink, NullCompletionSink
from roulette.lifecycle.signals import (
    REJECTION_SIGNALS,
    REVIEW_START_SIGNALS,
    ReviewSignal,
    derive_status,
    resolve_target,
)
from roulette.logging import (
    bind_assignment_context,
    bind_signal_context,
    clear_signal_context,
    correlation_scope,
)

logger = structlog.get_logger(__name__)


class InvalidTransitionError(Exception):
    """Raised when an invalid status transition is attempted.

    Attributes:
        current: The current assignment status.
        target: The attempted target status.
        assignment_id: The ID of the assignment that failed to transition.
    """

    def __init__(
        self,
        current: AssignmentStatus,
        target: AssignmentStatus,
        assignment_id: str | None = None,
    ):
        self.current = current
        self.target = target
        self.assignment_id = assignment_id
        msg = f"Invalid transition from {current.value} to {target.value}"
        if assignment_id:
            msg += f" for assignment {assignment_id}"
        super().__init__(msg)


_ACTIVE_TARGETS = {
    AssignmentStatus.assigned,
    AssignmentStatus.in_review,
    AssignmentStatus.changes_requested,
    AssignmentStatus.approved,
    AssignmentStatus.declined,
    AssignmentStatus.expired,
}

# Authoritative status graph. ``assigned`` as a target covers reassignment.
VALID_TRANSITIONS: dict[AssignmentStatus, set[AssignmentStatus]] = {
    AssignmentStatus.pending: {AssignmentStatus.assigned, AssignmentStatus.expired},
    AssignmentStatus.assigned: set(_ACTIVE_TARGETS),
    AssignmentStatus.in_review: set(_ACTIVE_TARGETS),
    AssignmentStatus.changes_requested: set(_ACTIVE_TARGETS),
    AssignmentStatus.approved: set(),  # Terminal state - no transitions allowed
    AssignmentStatus.declined: {AssignmentStatus.assigned, AssignmentStatus.expired},
    AssignmentStatus.expired: set(),  # Terminal state - no transitions allowed
}


def validate_transition(current: AssignmentStatus, target: AssignmentStatus) -> bool:
    """Validate if a status transition is allowed.

    Args:
        current: Current assignment status.
        target: Target assignment status.

    Returns:
        True if the transition is valid according to VALID_TRANSITIONS.
    """
    return target in VALID_TRANSITIONS.get(current, set())


def allowed_sources(target: AssignmentStatus) -> frozenset[AssignmentStatus]:
    """Every status from which ``target`` may be reached."""
    return frozenset(
        status for status, targets in VALID_TRANSITIONS.items() if target in targets
    )


def response_time_minutes(assignment: Assignment, now: datetime) -> int | None:
    """Minutes from first review activity (or assignment) to ``now``."""
    started = assignment.first_review_activity_at or assignment.assigned_at
    if started is None:
        return None
    return max(0, round((as_utc(now) - as_utc(started)).total_seconds() / 60))


class SignalOutcomeKind(str, Enum):
    """What processing a signal did."""

    TRANSITIONED = "transitioned"
    RECORDED = "recorded"
    IGNORED = "ignored"
    NOT_FOUND = "not_found"


class SignalOutcome(BaseModel):
    """Result of processing one reviewer signal.

    Attributes:
        kind: Transitioned, recorded without effect, ignored, or not found
        assignment_id: Assignment the signal was correlated with
        signal: Signal name
        previous_status: Status before processing
        new_status: Status after processing
        reason: Why no transition happened, if none did
    """

    kind: SignalOutcomeKind
    assignment_id: UUID | None = None
    signal: str
    previous_status: AssignmentStatus | None = None
    new_status: AssignmentStatus | None = None
    reason: str | None = None

    @property
    def transitioned(self) -> bool:
        return self.kind == SignalOutcomeKind.TRANSITIONED


class ReconciliationReport(BaseModel):
    """Comparison of an assignment's cached status with its derived one."""

    assignment_id: UUID
    cached_status: AssignmentStatus
    derived_status: AssignmentStatus | None = None
    event_count: int = Field(default=0, ge=0)
    in_sync: bool = True


class AssignmentLocks:
    """Registry of per-assignment locks.

    Locks are held weakly, so an entry disappears once no coroutine holds
    or waits on it.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def lock_for(self, assignment_id: UUID) -> asyncio.Lock:
        """Return the lock guarding ``assignment_id``, creating it if needed."""
        lock = self._locks.get(assignment_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[assignment_id] = lock
        return lock


class AssignmentStateMachine:
    """Processes reviewer signals into status transitions.

    This class handles:
    - Correlating a signal with its assignment through the message reference
    - Recording every signal in the audit log
    - Applying mapped status transitions for the assigned reviewer
    - Emitting completion events when an assignment is approved
    - Reconciling cached status against the audit log
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        completion_sink: CompletionSink | None = None,
        locks: AssignmentLocks | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the state machine.

        Args:
            session_factory: Factory for database sessions.
            completion_sink: Receiver of completion events (logs only if None).
            locks: Shared lock registry, one per process is enough.
            clock: Source of the current time.
        """
        self.session_factory = session_factory
        self.completion_sink = completion_sink or NullCompletionSink()
        self.locks = locks or AssignmentLocks()
        self.clock = clock
        self.logger = logger.bind(component="AssignmentStateMachine")

    async def handle_signal(self, signal: ReviewSignal) -> SignalOutcome:
        """Process one external signal.

        Args:
            signal: The incoming signal.

        Returns:
            SignalOutcome describing what happened. Storage errors propagate
            and leave nothing written.
        """
        if signal.item_type != "message":
            self.logger.debug("signal_ignored", item_type=signal.item_type, signal=signal.signal)
            return SignalOutcome(
                kind=SignalOutcomeKind.IGNORED,
                signal=signal.signal,
                reason=f"unsupported item type: {signal.item_type}",
            )

        with correlation_scope(f"signal-{signal.channel_id}-{signal.message_ts}"):
            bind_signal_context(signal.signal, signal.actor_id, signal.action.value)
            try:
                return await self._handle_message_signal(signal)
            finally:
                clear_signal_context()

    async def _handle_message_signal(self, signal: ReviewSignal) -> SignalOutcome:
        async with self.session_factory() as session:
            assignment = await get_assignment_by_message(
                session, signal.channel_id, signal.message_ts
            )

        if assignment is None:
            self.logger.debug(
                "signal_unmatched",
                channel_id=signal.channel_id,
                message_ts=signal.message_ts,
                signal=signal.signal,
            )
            return SignalOutcome(
                kind=SignalOutcomeKind.NOT_FOUND,
                signal=signal.signal,
                reason="no assignment for this message",
            )

        assignment_id = assignment.id
        bind_assignment_context(
            str(assignment_id),
            repository_id=str(assignment.repository_id),
            reviewer_id=str(assignment.reviewer_id) if assignment.reviewer_id else None,
        )

        async with self.locks.lock_for(assignment_id):
            outcome, completed = await self._process_locked(assignment_id, signal)

        if completed is not None:
            await self._emit_completion(completed)
        return outcome

    async def _process_locked(
        self,
        assignment_id: UUID,
        signal: ReviewSignal,
    ) -> tuple[SignalOutcome, CompletionEvent | None]:
        async with self.session_factory() as session:
            async with session.begin():
                assignment = await get_assignment(session, assignment_id)
                if assignment is None:
                    return (
                        SignalOutcome(
                            kind=SignalOutcomeKind.NOT_FOUND,
                            signal=signal.signal,
                            reason="assignment disappeared",
                        ),
                        None,
                    )

                previous = assignment.status
                is_reviewer = (
                    assignment.reviewer is not None
                    and assignment.reviewer.slack_id == signal.actor_id
                )
                await record_reaction_event(
                    session,
                    assignment_id=assignment_id,
                    actor_id=signal.actor_id,
                    signal=signal.signal,
                    action=signal.action,
                    is_reviewer=is_reviewer,
                )

                def recorded(reason: str) -> tuple[SignalOutcome, None]:
                    return (
                        SignalOutcome(
                            kind=SignalOutcomeKind.RECORDED,
                            assignment_id=assignment_id,
                            signal=signal.signal,
                            previous_status=previous,
                            new_status=previous,
                            reason=reason,
                        ),
                        None,
                    )

                if not is_reviewer:
                    return recorded("signal is not from the assigned reviewer")

                if signal.action == SignalAction.removed:
                    # Removal is audited only; status is never rolled back.
                    return recorded("removed signals do not change status")

                signal_map = await load_signal_map(session)
                target = resolve_target(signal.signal, signal_map)
                if target is None:
                    return recorded("signal is not mapped to a status")

                if not validate_transition(previous, target):
                    error = InvalidTransitionError(previous, target, str(assignment_id))
                    self.logger.warning("signal_transition_rejected", error=str(error))
                    return recorded(str(error))

                now = self.clock()
                applied = await apply_status_signal(
                    session,
                    assignment_id,
                    target,
                    allowed_sources(target),
                    now,
                    starts_review=signal.signal in REVIEW_START_SIGNALS,
                    counts_rejection=(
                        target == AssignmentStatus.changes_requested
                        and signal.signal in REJECTION_SIGNALS
                    ),
                )
                if not applied:
                    return recorded("status changed before the signal was applied")

                await session.refresh(assignment)

            self.logger.info(
                "assignment_transitioned",
                assignment_id=str(assignment_id),
                signal=signal.signal,
                from_status=previous.value,
                to_status=target.value,
                rejection_count=assignment.rejection_count,
                review_cycle_count=assignment.review_cycle_count,
            )

            completed = None
            if target == AssignmentStatus.approved and assignment.reviewer_id is not None:
                completed = CompletionEvent(
                    assignment_id=assignment_id,
                    reviewer_id=assignment.reviewer_id,
                    repository_id=assignment.repository_id,
                    completed_at=as_utc(assignment.completed_at or now),
                    response_time_minutes=response_time_minutes(assignment, now),
                )

            return (
                SignalOutcome(
                    kind=SignalOutcomeKind.TRANSITIONED,
                    assignment_id=assignment_id,
                    signal=signal.signal,
                    previous_status=previous,
                    new_status=target,
                ),
                completed,
            )

    async def _emit_completion(self, event: CompletionEvent) -> None:
        try:
            delivered = await self.completion_sink.emit(event)
        except Exception as e:
            self.logger.error(
                "completion_emit_error",
                assignment_id=str(event.assignment_id),
                error=str(e),
                exc_info=True,
            )
            return

        if not delivered:
            self.logger.warning("completion_not_delivered", assignment_id=str(event.assignment_id))

    async def reconcile(self, assignment_id: UUID) -> ReconciliationReport | None:
        """Compare an assignment's cached status with the one derived from its log.

        Nothing is written; drift is only reported.

        Args:
            assignment_id: Assignment to inspect.

        Returns:
            ReconciliationReport, or None if the assignment does not exist.
        """
        async with self.session_factory() as session:
            assignment = await get_assignment(session, assignment_id)
            if assignment is None:
                return None
            events = await list_reviewer_events(session, assignment_id)
            signal_map = await load_signal_map(session)

        derived = derive_status(events, signal_map)
        if derived is None:
            in_sync = assignment.status not in set(signal_map.values())
        else:
            in_sync = derived == assignment.status

        report = ReconciliationReport(
            assignment_id=assignment_id,
            cached_status=assignment.status,
            derived_status=derived,
            event_count=len(events),
            in_sync=in_sync,
        )
        if not in_sync:
            self.logger.warning(
                "assignment_status_drift",
                assignment_id=str(assignment_id),
                cached_status=assignment.status.value,
                derived_status=derived.value if derived else None,
            )
        return report
