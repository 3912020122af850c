"""Booking committer: turn a confirmed room into exactly one calendar event.

There is no retry and no idempotency key.  Confirming the same room and
window twice creates two events; callers that need de-duplication must
track what they already booked.
"""

from __future__ import annotations

import logging

from roomfinder.calendar_providers.base import (
    Attendee,
    CalendarEvent,
    CalendarProvider,
    TimeWindow,
)
from roomfinder.calendar_providers.errors import CalendarError
from roomfinder.config import settings
from roomfinder.models.booking import BookingRequest
from roomfinder.models.outcomes import Booked, BookingFailed, BookingResult

logger = logging.getLogger(__name__)


class BookingCommitter:
    """Create the meeting event for a resolved room.

    The room is invited as the single required attendee; the event
    itself lands on the authenticated user's calendar.
    """

    def __init__(
        self,
        provider: CalendarProvider,
        subject: str | None = None,
        body: str | None = None,
    ) -> None:
        self._provider = provider
        self._subject = subject or settings.booking_subject
        self._body = body if body is not None else settings.booking_body

    async def book(
        self,
        token: str,
        owner_address: str,
        owner_name: str,
        window: TimeWindow,
    ) -> BookingResult:
        return await self.commit(
            BookingRequest(
                token=token,
                owner_address=owner_address,
                owner_name=owner_name,
                window=window,
            )
        )

    async def commit(self, request: BookingRequest) -> BookingResult:
        """Issue one ``create_event`` call for ``request``."""
        event = CalendarEvent(
            subject=self._subject,
            start=request.window.start,
            end=request.window.end,
            body=self._body,
            attendees=[
                Attendee(address=request.owner_address, name=request.owner_name)
            ],
        )

        try:
            event_id = await self._provider.create_event(request.token, event)
        except CalendarError as exc:
            logger.warning("Booking %s failed: %s", request.owner_name, exc)
            return BookingFailed(error=exc)

        logger.info(
            "Booked %s from %s to %s",
            request.owner_name,
            request.window.start.isoformat(),
            request.window.end.isoformat(),
        )
        return Booked(event_id=event_id)
