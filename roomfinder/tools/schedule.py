"""Single-room schedule check, used when the caller names a specific room."""

from __future__ import annotations

import logging

from roomfinder.calendar_providers.base import (
    CalendarProvider,
    ScheduleSummary,
    TimeWindow,
)

logger = logging.getLogger(__name__)


async def summarize_schedule(
    provider: CalendarProvider,
    token: str,
    room_address: str,
    window: TimeWindow,
) -> ScheduleSummary:
    """Return how many meetings ``room_address`` has in ``window``.

    Provider errors propagate unchanged; nothing is retried.
    """
    summary = await provider.get_schedule(token, room_address, window)
    logger.debug(
        "Schedule for %s: %d meeting(s)", summary.room_address, summary.busy_count
    )
    return summary
