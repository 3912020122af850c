"""Pydantic model for a confirmed booking."""

from pydantic import BaseModel

from roomfinder.calendar_providers.base import TimeWindow


class BookingRequest(BaseModel):
    """A room the caller agreed to book, for one window."""

    token: str
    owner_address: str
    owner_name: str
    window: TimeWindow
