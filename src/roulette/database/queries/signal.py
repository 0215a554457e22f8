"""Status signal mapping query functions for Roulette."""

from __future__ import annotations

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from roulette.database.models.assignment import AssignmentStatus
from roulette.database.models.signal_mapping import (
    DEFAULT_SIGNAL_MAP,
    DEFAULT_SIGNAL_MAPPINGS,
    StatusSignalMapping,
)

logger = structlog.get_logger(__name__)


async def load_signal_map(session: AsyncSession) -> dict[str, AssignmentStatus]:
    """Load the signal-name to status map, falling back to the defaults.

    Args:
        session: Active async database session.

    Returns:
        Mapping built from the active override rows in sort order, or a copy
        of DEFAULT_SIGNAL_MAP when no active rows exist.
    """
    stmt = (
        select(StatusSignalMapping)
        .where(StatusSignalMapping.is_active.is_(True))
        .order_by(StatusSignalMapping.sort_order.asc())
    )
    mappings = list((await session.execute(stmt)).scalars().all())

    if not mappings:
        return dict(DEFAULT_SIGNAL_MAP)

    signal_map: dict[str, AssignmentStatus] = {}
    for mapping in mappings:
        for signal in mapping.signals:
            signal_map[signal] = mapping.status
    return signal_map


async def seed_signal_mappings(session: AsyncSession) -> int:
    """Insert or refresh the default signal mappings.

    Returns:
        Number of mappings written.
    """
    for status, signals, display_emoji, sort_order in DEFAULT_SIGNAL_MAPPINGS:
        stmt = select(StatusSignalMapping).where(StatusSignalMapping.status == status)
        mapping = (await session.execute(stmt)).scalar_one_or_none()
        if mapping is None:
            session.add(
                StatusSignalMapping(
                    status=status,
                    signals=list(signals),
                    display_emoji=display_emoji,
                    sort_order=sort_order,
                    is_active=True,
                )
            )
        else:
            mapping.signals = list(signals)
            mapping.display_emoji = display_emoji
            mapping.sort_order = sort_order

    await session.flush()
    logger.info("signal_mappings_seeded", count=len(DEFAULT_SIGNAL_MAPPINGS))
    return len(DEFAULT_SIGNAL_MAPPINGS)
