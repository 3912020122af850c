"""Errors raised by calendar providers.

  CalendarError    base class, never raised directly
  TransportError   connect / timeout / unparseable response
  ApiError         the calendar service answered with an error payload
"""

from __future__ import annotations


class CalendarError(Exception):
    """Base class for calendar provider failures."""


class TransportError(CalendarError):
    """The request never produced a usable response."""


class ApiError(CalendarError):
    """The calendar service reported a logical error."""

    def __init__(
        self,
        message: str,
        code: str = "",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code

    def __str__(self) -> str:
        if self.code:
            return f"{self.code}: {self.message}"
        return self.message
