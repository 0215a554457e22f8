"""Status signal mapping model for Roulette.

Administrators can override which signal names move an assignment to
which status. When no active mapping rows exist the built-in defaults in
``roulette.lifecycle.signals`` apply.
"""

from __future__ import annotations

from sqlalchemy import JSON, Boolean, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from roulette.database.models.assignment import AssignmentStatus
from roulette.database.models.base import Base, TimestampMixin


class StatusSignalMapping(TimestampMixin, Base):
    """Signal names that drive an assignment into one target status.

    Attributes:
        status: Target status (unique per row).
        signals: Signal names mapped to the status.
        display_emoji: Emoji shown for the status in messages.
        sort_order: Application order; later rows win on duplicate names.
        is_active: Inactive rows are ignored.
    """

    __tablename__ = "status_signal_mappings"

    status: Mapped[AssignmentStatus] = mapped_column(nullable=False, unique=True)
    signals: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    display_emoji: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


# Built-in mappings, used when no active StatusSignalMapping rows exist.
# Entries are (status, signal names, display emoji, sort order).
DEFAULT_SIGNAL_MAPPINGS: list[tuple[AssignmentStatus, list[str], str, int]] = [
    (
        AssignmentStatus.in_review,
        ["eyes", "eyeglasses", "speech_balloon", "comment", "looking"],
        "\U0001f440",
        1,
    ),
    (
        AssignmentStatus.changes_requested,
        ["x", "no_entry", "no_entry_sign", "blocked"],
        "❌",
        2,
    ),
    (
        AssignmentStatus.approved,
        ["white_check_mark", "heavy_check_mark", "checkmark", "+1", "thumbsup", "approved"],
        "✅",
        3,
    ),
]

DEFAULT_SIGNAL_MAP: dict[str, AssignmentStatus] = {
    signal: status for status, signals, _, _ in DEFAULT_SIGNAL_MAPPINGS for signal in signals
}

# Signals that open a review and stamp first review activity. Other
# in_review signals (comments) move status without resetting activity clocks.
REVIEW_START_SIGNALS: frozenset[str] = frozenset({"eyes", "eyeglasses", "looking"})

# Signals counted as rejections when they move an assignment to changes_requested
REJECTION_SIGNALS: frozenset[str] = frozenset({"x", "no_entry", "no_entry_sign", "blocked"})
