"""Result variants produced by the resolver and the booking committer.

Each family is a plain ``Union`` of frozen dataclasses so callers can
dispatch with ``isinstance`` or ``match``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from roomfinder.calendar_providers.base import Interval, RoomCalendar
from roomfinder.calendar_providers.errors import CalendarError


# ── Per-calendar outcome ────────────────────────────────────────────


@dataclass(frozen=True)
class Free:
    calendar: RoomCalendar


@dataclass(frozen=True)
class Busy:
    calendar: RoomCalendar
    intervals: tuple[Interval, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Failed:
    calendar: RoomCalendar
    error: CalendarError


AvailabilityOutcome = Union[Free, Busy, Failed]


# ── Resolution ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class RoomFound:
    owner_name: str
    owner_address: str


@dataclass(frozen=True)
class NoRoomFree:
    pass


@dataclass(frozen=True)
class ResolutionFailed:
    """Every dispatched availability check failed; ``error`` is the last one."""

    error: CalendarError


ResolutionResult = Union[RoomFound, NoRoomFree, ResolutionFailed]


# ── Booking ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Booked:
    event_id: str = ""


@dataclass(frozen=True)
class BookingFailed:
    error: CalendarError


BookingResult = Union[Booked, BookingFailed]
