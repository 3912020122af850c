"""Room finder operations: resolve, book and check one room."""

from .availability import AvailabilityResolver
from .booking import BookingCommitter
from .schedule import summarize_schedule

__all__ = ["AvailabilityResolver", "BookingCommitter", "summarize_schedule"]
