"""Availability resolver: find one free room among many calendars.

For one requested window the resolver checks every candidate room
calendar concurrently and settles on a single answer:

  * the first calendar to report no busy intervals wins (``RoomFound``),
  * every check busy, or a mix of busy and failed  -> ``NoRoomFree``,
  * every check failed                               -> ``ResolutionFailed``.

"First" means first to respond, so with several free rooms the winner
depends on call latency, not on the order of the candidate list.
Checks still in flight when the answer is settled are cancelled and
their outcomes ignored.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable, Optional, Sequence

from roomfinder.calendar_providers.base import (
    CalendarProvider,
    RoomCalendar,
    TimeWindow,
)
from roomfinder.calendar_providers.errors import CalendarError
from roomfinder.models.outcomes import (
    AvailabilityOutcome,
    Busy,
    Failed,
    Free,
    NoRoomFree,
    ResolutionFailed,
    ResolutionResult,
    RoomFound,
)

log = logging.getLogger("roomfinder.availability")

OutcomeListener = Callable[[AvailabilityOutcome], None]


class _Resolution:
    """Resolve-once cell plus the completion tally for one ``resolve`` call."""

    def __init__(self, total: int) -> None:
        self.total = total
        self.unusable = 0
        self.failures = 0
        self.last_error: Optional[CalendarError] = None
        self.future: asyncio.Future[ResolutionResult] = (
            asyncio.get_running_loop().create_future()
        )

    @property
    def settled(self) -> bool:
        return self.future.done()

    def settle(self, result: ResolutionResult) -> bool:
        """Set the result unless one is already set. Returns True if this call won."""
        if self.future.done():
            return False
        self.future.set_result(result)
        return True

    def abort(self, exc: BaseException) -> None:
        if not self.future.done():
            self.future.set_exception(exc)

    def record(self, outcome: AvailabilityOutcome) -> None:
        if isinstance(outcome, Free):
            self.settle(
                RoomFound(
                    owner_name=outcome.calendar.owner_name,
                    owner_address=outcome.calendar.owner_address,
                )
            )
            return

        self.unusable += 1
        if isinstance(outcome, Failed):
            self.failures += 1
            self.last_error = outcome.error

        if self.unusable < self.total:
            return
        if self.failures == self.total:
            self.settle(ResolutionFailed(error=self.last_error))
        else:
            self.settle(NoRoomFree())


class AvailabilityResolver:
    """Fan out availability checks and settle on the first free room.

    Args:
        provider: Calendar backend used for every check.
        on_outcome: Optional listener called with each per-calendar
            outcome as it arrives, including ones that arrive after the
            result is settled.  Errors it raises are logged and do not
            affect the result.
    """

    def __init__(
        self,
        provider: CalendarProvider,
        on_outcome: Optional[OutcomeListener] = None,
    ) -> None:
        self._provider = provider
        self._on_outcome = on_outcome

    async def resolve(
        self,
        token: str,
        window: TimeWindow,
        candidate_names: Iterable[str],
        calendars: Sequence[RoomCalendar],
    ) -> ResolutionResult:
        """Return the first free candidate room for ``window``.

        Calendars whose owner is not in ``candidate_names`` are never
        queried.  With no calendar left to query the result is
        ``NoRoomFree`` and no remote call is made.
        """
        names = set(candidate_names)
        candidates = [c for c in calendars if c.owner_name in names]

        if not candidates:
            log.info(
                "No candidate rooms among %d calendar(s); nothing to check",
                len(calendars),
            )
            return NoRoomFree()

        resolution = _Resolution(total=len(candidates))
        tasks = [
            asyncio.create_task(
                self._check(resolution, token, window, calendar),
                name=f"availability:{calendar.owner_name}",
            )
            for calendar in candidates
        ]
        log.debug(
            "Dispatched %d availability check(s), skipped %d calendar(s)",
            len(tasks),
            len(calendars) - len(candidates),
        )

        try:
            result = await resolution.future
        finally:
            pending = [t for t in tasks if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        self._log_result(result, resolution)
        return result

    async def find_room(
        self,
        token: str,
        window: TimeWindow,
        candidate_names: Iterable[str],
    ) -> ResolutionResult:
        """List the user's calendars, then ``resolve`` over them.

        A failure to list calendars is reported as ``ResolutionFailed``.
        """
        try:
            calendars = await self._provider.list_calendars(token)
        except CalendarError as exc:
            log.warning("Could not list calendars: %s", exc)
            return ResolutionFailed(error=exc)
        return await self.resolve(token, window, candidate_names, calendars)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _check(
        self,
        resolution: _Resolution,
        token: str,
        window: TimeWindow,
        calendar: RoomCalendar,
    ) -> None:
        outcome: AvailabilityOutcome
        try:
            intervals = await self._provider.get_busy_intervals(
                token, calendar.id, window
            )
        except CalendarError as exc:
            log.warning(
                "Availability check failed for %s: %s", calendar.owner_name, exc
            )
            outcome = Failed(calendar=calendar, error=exc)
        except Exception as exc:
            # Not a calendar failure: surface it to the caller of resolve().
            resolution.abort(exc)
            return
        else:
            if intervals:
                outcome = Busy(calendar=calendar, intervals=tuple(intervals))
            else:
                outcome = Free(calendar=calendar)

        if resolution.settled:
            log.debug(
                "Discarding late outcome for %s: %s",
                calendar.owner_name,
                type(outcome).__name__,
            )
        else:
            resolution.record(outcome)

        # The listener runs after recording so it can never stall resolution.
        if self._on_outcome is not None:
            try:
                self._on_outcome(outcome)
            except Exception:
                log.exception("Outcome listener failed for %s", calendar.owner_name)

    @staticmethod
    def _log_result(result: ResolutionResult, resolution: _Resolution) -> None:
        if isinstance(result, RoomFound):
            log.info("Room found: %s", result.owner_name)
        elif isinstance(result, ResolutionFailed):
            log.warning(
                "All %d availability check(s) failed; last error: %s",
                resolution.total,
                result.error,
            )
        else:
            log.info(
                "No room free (%d checked, %d failed)",
                resolution.total,
                resolution.failures,
            )
