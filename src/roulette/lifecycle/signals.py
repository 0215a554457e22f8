"""Reviewer signal definitions for Roulette.

A signal is a status-bearing action a person takes on an assignment's
notification thread (in practice an emoji reaction). This module holds the
built-in signal-name to status mapping, the input model for an incoming
signal, and the pure derivation that rebuilds an assignment's status from
its audit log.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol

from pydantic import BaseModel, Field

from roulette.database.models.assignment import AssignmentStatus, SignalAction
from roulette.database.models.signal_mapping import (
    DEFAULT_SIGNAL_MAP,
    DEFAULT_SIGNAL_MAPPINGS,
    REJECTION_SIGNALS,
    REVIEW_START_SIGNALS,
)

# Highest priority first, used when several signals are active at once
STATUS_PRIORITY: tuple[AssignmentStatus, ...] = (
    AssignmentStatus.approved,
    AssignmentStatus.changes_requested,
    AssignmentStatus.in_review,
)


class ReviewSignal(BaseModel):
    """An incoming external signal on an assignment message.

    Attributes:
        channel_id: Channel containing the reacted-to message
        message_ts: Timestamp identifier of the message
        actor_id: Chat identity of whoever sent the signal
        signal: Signal name without decoration (e.g. "eyes")
        action: Added or removed
        item_type: Kind of item the signal is attached to
    """

    channel_id: str = Field(description="Channel of the target message")
    message_ts: str = Field(description="Timestamp of the target message")
    actor_id: str = Field(description="Identity of the signalling person")
    signal: str = Field(description="Signal name")
    action: SignalAction = Field(description="Added or removed")
    item_type: str = Field(default="message", description="Kind of target item")


class SignalRecord(Protocol):
    """Shape of an audit-log entry used by derive_status."""

    signal: str
    action: SignalAction


def resolve_target(signal: str, signal_map: Mapping[str, AssignmentStatus]) -> AssignmentStatus | None:
    """Look up the status a signal name maps to, or None if unmapped."""
    return signal_map.get(signal)


def derive_status(
    events: Iterable[SignalRecord],
    signal_map: Mapping[str, AssignmentStatus],
) -> AssignmentStatus | None:
    """Rebuild the signal-driven status from an ordered audit log.

    Events are replayed oldest to newest; an added signal becomes active
    and a removal of the same signal cancels it. Among the signals still
    active, the mapped status with the highest priority wins
    (approved > changes_requested > in_review).

    Args:
        events: The assigned reviewer's events, oldest first.
        signal_map: Signal name to status mapping.

    Returns:
        The derived status, or None if no mapped signal is active.
    """
    active: set[str] = set()
    for event in events:
        if event.action == SignalAction.added:
            active.add(event.signal)
        else:
            active.discard(event.signal)

    active_statuses = {signal_map[s] for s in active if s in signal_map}
    for status in STATUS_PRIORITY:
        if status in active_statuses:
            return status
    return None
