"""Data models for the room finder."""

from .booking import BookingRequest
from .outcomes import (
    AvailabilityOutcome,
    Booked,
    BookingFailed,
    BookingResult,
    Busy,
    Failed,
    Free,
    NoRoomFree,
    ResolutionFailed,
    ResolutionResult,
    RoomFound,
)

__all__ = [
    "AvailabilityOutcome",
    "Booked",
    "BookingFailed",
    "BookingRequest",
    "BookingResult",
    "Busy",
    "Failed",
    "Free",
    "NoRoomFree",
    "ResolutionFailed",
    "ResolutionResult",
    "RoomFound",
]
