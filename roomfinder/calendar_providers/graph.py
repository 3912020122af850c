"""Microsoft Graph calendar provider.

Talks to the Graph REST API with the caller's delegated bearer token.
Each public method is one HTTP request bounded by a timeout (calendar
listing issues one per result page); nothing is retried here.

Graph returns event times as ``{"dateTime": ..., "timeZone": ...}``.
We ask for UTC via the ``Prefer: outlook.timezone`` header so naive
values can always be read as UTC.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from roomfinder.config import settings

from .base import (
    CalendarEvent,
    CalendarProvider,
    Interval,
    RoomCalendar,
    ScheduleSummary,
    TimeWindow,
)
from .errors import ApiError, TransportError

logger = logging.getLogger(__name__)

_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


class GraphCalendarProvider(CalendarProvider):
    """CalendarProvider backed by Microsoft Graph."""

    def __init__(
        self,
        base_url: str | None = None,
        beta_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (base_url or settings.graph_base_url).rstrip("/")
        self._beta_url = (beta_url or settings.graph_beta_url).rstrip("/")
        self._timeout = timeout or settings.graph_timeout_seconds
        # Optional shared client; when absent each call opens its own.
        self._client = client

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        token: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Issue one authenticated request and return the decoded body.

        Raises:
            TransportError: connection failure, timeout or a body that
                is not a JSON object.
            ApiError: the body carries an ``error`` object or the HTTP
                status signals failure.
        """
        headers = {
            "Authorization": f"Bearer {token}",
            "Prefer": 'outlook.timezone="UTC"',
        }
        try:
            if self._client is not None:
                response = await self._client.request(
                    method, url, headers=headers, params=params, json=json,
                    timeout=self._timeout,
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.request(
                        method, url, headers=headers, params=params, json=json,
                    )
        except httpx.TimeoutException as exc:
            raise TransportError(f"{method} {url} timed out") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            if response.is_error:
                raise ApiError(
                    f"HTTP {response.status_code}",
                    status_code=response.status_code,
                ) from exc
            raise TransportError(
                f"{method} {url} returned a non-JSON body"
            ) from exc

        if isinstance(payload, dict) and payload.get("error"):
            error = payload["error"]
            if isinstance(error, dict):
                raise ApiError(
                    error.get("message") or "Unknown Graph error",
                    code=error.get("code", ""),
                    status_code=response.status_code,
                )
            raise ApiError(str(error), status_code=response.status_code)

        if response.is_error:
            raise ApiError(
                f"HTTP {response.status_code}", status_code=response.status_code
            )

        if not isinstance(payload, dict):
            raise TransportError(f"{method} {url} returned an unexpected body")

        return payload

    @staticmethod
    def _to_graph_datetime(dt: datetime) -> str:
        """Naive UTC ISO string, paired with ``timeZone: UTC`` by callers."""
        return dt.astimezone(timezone.utc).replace(tzinfo=None).isoformat()

    @staticmethod
    def _parse_graph_datetime(value: dict[str, Any] | str) -> datetime:
        """Parse a Graph ``dateTimeTimeZone`` (or bare string) into UTC."""
        raw = value.get("dateTime", "") if isinstance(value, dict) else value
        try:
            parsed = datetime.fromisoformat(_EXCESS_FRACTION.sub(r"\1", raw))
        except (TypeError, ValueError) as exc:
            raise TransportError(f"Unparseable Graph timestamp: {raw!r}") from exc
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    @staticmethod
    def _to_room_calendar(item: dict[str, Any]) -> Optional[RoomCalendar]:
        owner = item.get("owner") or {}
        if not item.get("id") or not owner.get("name"):
            return None
        return RoomCalendar(
            id=str(item["id"]),
            owner_name=owner["name"],
            owner_address=owner.get("address", ""),
        )

    # ------------------------------------------------------------------
    # CalendarProvider interface
    # ------------------------------------------------------------------

    async def list_calendars(self, token: str) -> list[RoomCalendar]:
        """Read every page of the user's calendars, following ``@odata.nextLink``."""
        calendars: list[RoomCalendar] = []
        url: Optional[str] = f"{self._beta_url}/me/calendars"
        while url:
            payload = await self._request("GET", url, token)
            for item in payload.get("value", []):
                calendar = self._to_room_calendar(item)
                if calendar is None:
                    logger.debug("Skipping calendar without owner: %s", item.get("id"))
                    continue
                calendars.append(calendar)
            url = payload.get("@odata.nextLink")
        return calendars

    async def get_busy_intervals(
        self, token: str, calendar_id: str, window: TimeWindow
    ) -> list[Interval]:
        """Read ``calendarView`` for the window; every event is a busy interval."""
        payload = await self._request(
            "GET",
            f"{self._base_url}/me/calendars/{calendar_id}/calendarView",
            token,
            params={
                "startDateTime": window.start.astimezone(timezone.utc).isoformat(),
                "endDateTime": window.end.astimezone(timezone.utc).isoformat(),
            },
        )
        events = payload.get("value")
        if not isinstance(events, list):
            raise TransportError(
                f"calendarView for {calendar_id} is missing a value list"
            )
        return [
            Interval(
                start=self._parse_graph_datetime(event.get("start", {})),
                end=self._parse_graph_datetime(event.get("end", {})),
            )
            for event in events
        ]

    async def create_event(self, token: str, event: CalendarEvent) -> str:
        body: dict[str, Any] = {
            "subject": event.subject,
            "start": {
                "dateTime": self._to_graph_datetime(event.start),
                "timeZone": "UTC",
            },
            "end": {
                "dateTime": self._to_graph_datetime(event.end),
                "timeZone": "UTC",
            },
        }
        if event.body:
            body["body"] = {"contentType": "Text", "content": event.body}
        if event.attendees:
            body["attendees"] = [
                {
                    "type": "required" if attendee.required else "optional",
                    "emailAddress": {
                        "address": attendee.address,
                        "name": attendee.name,
                    },
                }
                for attendee in event.attendees
            ]

        result = await self._request(
            "POST", f"{self._base_url}/me/events", token, json=body
        )
        event_id = result.get("id", "")
        logger.info("Created event %s (%s)", event_id, event.subject)
        return event_id

    async def get_schedule(
        self, token: str, address: str, window: TimeWindow
    ) -> ScheduleSummary:
        body = {
            "schedules": [address],
            "startTime": {
                "dateTime": self._to_graph_datetime(window.start),
                "timeZone": "UTC",
            },
            "endTime": {
                "dateTime": self._to_graph_datetime(window.end),
                "timeZone": "UTC",
            },
            "availabilityViewInterval": settings.schedule_interval_minutes,
        }
        payload = await self._request(
            "POST", f"{self._beta_url}/me/calendar/getSchedule", token, json=body
        )

        schedules = payload.get("value") or []
        if not schedules:
            raise ApiError(f"No schedule returned for {address}")
        schedule = schedules[0]
        if schedule.get("error"):
            error = schedule["error"]
            if isinstance(error, dict):
                raise ApiError(
                    error.get("message") or "Schedule unavailable",
                    code=error.get("responseCode", ""),
                )
            raise ApiError(str(error))

        items = schedule.get("scheduleItems", [])
        starts = [self._parse_graph_datetime(item.get("start", {})) for item in items]
        return ScheduleSummary(
            room_address=schedule.get("scheduleId", address),
            busy_count=len(items),
            first_busy_start=min(starts) if starts else None,
        )
