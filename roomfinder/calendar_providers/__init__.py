"""Calendar provider abstractions and implementations."""

from .base import (
    CalendarProvider,
    Interval,
    RoomCalendar,
    ScheduleSummary,
    TimeWindow,
)
from .errors import ApiError, CalendarError, TransportError

__all__ = [
    "ApiError",
    "CalendarError",
    "CalendarProvider",
    "Interval",
    "RoomCalendar",
    "ScheduleSummary",
    "TimeWindow",
    "TransportError",
]
