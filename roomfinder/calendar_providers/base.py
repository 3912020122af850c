"""Abstract base class for calendar providers.

Defines the interface the room finder needs from a calendar backend:
listing room calendars, reading busy intervals, creating events and
summarizing a single room's schedule.  All operations are single-shot
remote calls; implementations raise ``TransportError`` or ``ApiError``
and never retry.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class TimeWindow:
    """A timezone-aware ``[start, end)`` range."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("TimeWindow bounds must be timezone-aware")
        if self.start >= self.end:
            raise ValueError(
                f"TimeWindow start {self.start.isoformat()} must be before "
                f"end {self.end.isoformat()}"
            )


@dataclass(frozen=True)
class Interval:
    """A busy range reported by the calendar service."""

    start: datetime
    end: datetime


@dataclass(frozen=True)
class RoomCalendar:
    """One bookable room calendar."""

    id: str
    owner_name: str
    owner_address: str


@dataclass(frozen=True)
class ScheduleSummary:
    """Meetings found on one room's schedule within a window."""

    room_address: str
    busy_count: int
    first_busy_start: Optional[datetime] = None

    @property
    def is_free(self) -> bool:
        return self.busy_count == 0


@dataclass
class Attendee:
    address: str
    name: str = ""
    required: bool = True


@dataclass
class CalendarEvent:
    """Represents a calendar event to be created."""

    subject: str
    start: datetime
    end: datetime
    body: str = ""
    attendees: list[Attendee] = field(default_factory=list)


class CalendarProvider(ABC):
    """Abstract calendar backend.

    Every method takes the caller's access token explicitly; providers
    hold no per-user state and may be shared between concurrent requests.
    """

    @abstractmethod
    async def list_calendars(self, token: str) -> list[RoomCalendar]:
        """Return every calendar visible to the authenticated user."""

    @abstractmethod
    async def get_busy_intervals(
        self, token: str, calendar_id: str, window: TimeWindow
    ) -> list[Interval]:
        """Return the busy intervals of one calendar within ``window``.

        An empty list means the calendar is free for the whole window.
        """

    @abstractmethod
    async def create_event(self, token: str, event: CalendarEvent) -> str:
        """Create an event on the user's calendar.

        Returns:
            The provider-specific event id.
        """

    @abstractmethod
    async def get_schedule(
        self, token: str, address: str, window: TimeWindow
    ) -> ScheduleSummary:
        """Summarize the schedule of the mailbox at ``address``."""
