"""Voice skill adapter: maps already-parsed intents onto the room finder.

The conversational platform does the language understanding and slot
elicitation.  This module receives the resulting intent with its slot
values and the user's access token, runs the matching operation and
returns the text to speak.

The skill is stateless: the chosen room and window are returned in
``SkillResponse.session`` and must be sent back with the next request
(e.g. the ``AMAZON.YesIntent`` that confirms the booking).

Intents:
  LaunchRequest           greeting
  FindRoom                Date, StartTime, Duration -> resolve a free room
  CheckRoom               Room, Date               -> one room's schedule for the day
  AMAZON.YesIntent        book the room offered by FindRoom
  AMAZON.NoIntent         decline the offer
  AMAZON.HelpIntent       usage hint
  AMAZON.Cancel/StopIntent
  SessionEndedRequest
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, time, timedelta
from typing import Any, Awaitable, Callable, Optional, Sequence
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field

from roomfinder.calendar_providers.base import CalendarProvider, TimeWindow
from roomfinder.calendar_providers.errors import CalendarError
from roomfinder.config import settings
from roomfinder.models.outcomes import Booked, ResolutionFailed, RoomFound
from roomfinder.tools.availability import AvailabilityResolver
from roomfinder.tools.booking import BookingCommitter
from roomfinder.tools.schedule import summarize_schedule

log = logging.getLogger("roomfinder.skill")

HELP_TEXT = "Say room finder to find and book a room"
NOT_UNDERSTOOD = "Sorry, I can't understand the command. Please say again."

_ISO_DURATION = re.compile(r"^PT(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?$")


class SkillRequest(BaseModel):
    """One turn from the conversational platform, slots already filled."""

    application_id: str = ""
    request_type: str
    intent: str = ""
    dialog_state: str = "COMPLETED"
    slots: dict[str, str] = Field(default_factory=dict)
    access_token: str = ""
    session: dict[str, Any] = Field(default_factory=dict)


class SkillResponse(BaseModel):
    speech: str = ""
    reprompt: str = ""
    card_title: str = ""
    directive: str = ""  # "" | Dialog.Delegate | LinkAccount
    should_end_session: Optional[bool] = None
    session: dict[str, Any] = Field(default_factory=dict)


def redact_address(value: str) -> str:
    """Mask a mailbox address for logging, keeping first 3 chars and the domain."""
    local, _, domain = value.partition("@")
    if len(local) <= 3:
        return "***@" + domain if domain else "***"
    return local[:3] + "***" + ("@" + domain if domain else "")


def parse_duration(value: str) -> timedelta:
    """Accept plain minutes (``"30"``) or an ISO-8601 ``PT#H#M`` duration."""
    value = value.strip()
    if value.isdigit():
        minutes = int(value)
    else:
        match = _ISO_DURATION.match(value.upper())
        if not match or not any(match.groupdict().values()):
            raise ValueError(f"Unsupported duration: {value!r}")
        minutes = int(match["hours"] or 0) * 60 + int(match["minutes"] or 0)
    if minutes <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return timedelta(minutes=minutes)


def window_from_slots(
    date_str: str,
    start_str: str,
    duration: timedelta,
    tz: str | None = None,
) -> TimeWindow:
    """Build a meeting window from ``YYYY-MM-DD`` and ``HH:MM`` in the meeting timezone."""
    local_tz = ZoneInfo(tz or settings.meeting_timezone)
    start = datetime.strptime(f"{date_str} {start_str}", "%Y-%m-%d %H:%M").replace(
        tzinfo=local_tz
    )
    return TimeWindow(start=start, end=start + duration)


def day_window(date_str: str, tz: str | None = None) -> TimeWindow:
    local_tz = ZoneInfo(tz or settings.meeting_timezone)
    day = datetime.strptime(date_str, "%Y-%m-%d").date()
    start = datetime.combine(day, time.min, tzinfo=local_tz)
    return TimeWindow(start=start, end=start + timedelta(days=1))


class RoomFinderSkill:
    """Dispatch skill requests to the resolver, committer and schedule check.

    Typical use::

        skill = RoomFinderSkill(GraphCalendarProvider())
        response = await skill.handle(request)
    """

    def __init__(
        self,
        provider: CalendarProvider,
        candidate_names: Sequence[str] | None = None,
        timezone_name: str | None = None,
    ) -> None:
        self._provider = provider
        self._candidates = list(
            candidate_names if candidate_names is not None else settings.candidate_rooms
        )
        self._tz = timezone_name or settings.meeting_timezone
        self._resolver = AvailabilityResolver(provider)
        self._committer = BookingCommitter(provider)

        self._intents: dict[str, Callable[[SkillRequest], Awaitable[SkillResponse]]] = {
            "FindRoom": self._find_room,
            "CheckRoom": self._check_room,
            "BookRoom": self._book_room,
            "AMAZON.YesIntent": self._book_room,
            "AMAZON.NoIntent": self._decline,
            "AMAZON.HelpIntent": self._help,
            "AMAZON.CancelIntent": self._goodbye,
            "AMAZON.StopIntent": self._goodbye,
        }

    async def handle(self, request: SkillRequest) -> SkillResponse:
        """Handle one turn. Unexpected failures become a spoken apology."""
        if settings.skill_app_id and request.application_id != settings.skill_app_id:
            raise PermissionError(
                f"Request for unknown application {request.application_id!r}"
            )

        try:
            if request.request_type == "LaunchRequest":
                return self._launch()
            if request.request_type == "SessionEndedRequest":
                return SkillResponse(should_end_session=True)
            if request.request_type == "IntentRequest":
                handler = self._intents.get(request.intent)
                if handler is not None:
                    return await handler(request)
            log.info(
                "Unhandled request %s/%s", request.request_type, request.intent
            )
            return SkillResponse(speech=NOT_UNDERSTOOD, reprompt=NOT_UNDERSTOOD)
        except Exception:
            log.exception("Error handling %s/%s", request.request_type, request.intent)
            return SkillResponse(
                speech=NOT_UNDERSTOOD,
                reprompt=NOT_UNDERSTOOD,
                session=request.session,
            )

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    @staticmethod
    def _launch() -> SkillResponse:
        text = "Welcome to Room Finder, what would you like to do?"
        return SkillResponse(speech=text, reprompt=text, card_title="Room Finder")

    @staticmethod
    def _link_account() -> SkillResponse:
        return SkillResponse(
            speech="Please link your work account in the companion app to use Room Finder.",
            directive="LinkAccount",
            should_end_session=True,
        )

    async def _find_room(self, request: SkillRequest) -> SkillResponse:
        if request.dialog_state != "COMPLETED":
            return SkillResponse(directive="Dialog.Delegate", session=request.session)
        if not request.access_token:
            return self._link_account()

        try:
            window = window_from_slots(
                request.slots["Date"],
                request.slots["StartTime"],
                parse_duration(request.slots["Duration"]),
                self._tz,
            )
        except (KeyError, ValueError) as exc:
            log.info("Bad FindRoom slots %s: %s", request.slots, exc)
            return SkillResponse(
                speech="Sorry, I didn't get the date, time and length of the meeting. Please say again.",
                reprompt=HELP_TEXT,
            )

        result = await self._resolver.find_room(
            request.access_token, window, self._candidates
        )

        if isinstance(result, RoomFound):
            session = {
                **request.session,
                "start": window.start.isoformat(),
                "end": window.end.isoformat(),
                "owner_name": result.owner_name,
                "owner_address": result.owner_address,
            }
            return SkillResponse(
                speech=f"{result.owner_name} is available, would you like to book it?",
                should_end_session=False,
                session=session,
            )
        if isinstance(result, ResolutionFailed):
            return SkillResponse(
                speech="Sorry, I couldn't check the rooms right now. Please try again.",
                should_end_session=True,
            )
        return SkillResponse(
            speech="No rooms are available at this time. Try again with another time.",
            should_end_session=True,
        )

    async def _book_room(self, request: SkillRequest) -> SkillResponse:
        if not request.access_token:
            return self._link_account()

        session = request.session
        try:
            owner_name = session["owner_name"]
            owner_address = session["owner_address"]
            window = TimeWindow(
                start=datetime.fromisoformat(session["start"]),
                end=datetime.fromisoformat(session["end"]),
            )
        except (KeyError, ValueError):
            return SkillResponse(
                speech="There is no room waiting to be booked. " + HELP_TEXT + ".",
                reprompt=HELP_TEXT,
            )

        log.info("Booking %s (%s)", owner_name, redact_address(owner_address))
        result = await self._committer.book(
            request.access_token, owner_address, owner_name, window
        )
        if isinstance(result, Booked):
            text = f"{owner_name} is now booked!"
            return SkillResponse(
                speech=text, card_title=text, should_end_session=True
            )
        return SkillResponse(
            speech=f"Sorry, I couldn't book {owner_name}. Please try again.",
            reprompt="Would you like me to try booking it again?",
            should_end_session=False,
            session=session,
        )

    async def _check_room(self, request: SkillRequest) -> SkillResponse:
        if not request.access_token:
            return self._link_account()

        room_name = request.slots.get("Room", "")
        try:
            window = day_window(request.slots["Date"], self._tz)
        except (KeyError, ValueError):
            return SkillResponse(
                speech="Which day should I check? Please say again.",
                reprompt=HELP_TEXT,
            )

        try:
            calendars = await self._provider.list_calendars(request.access_token)
            room = next(
                (c for c in calendars if c.owner_name.lower() == room_name.lower()),
                None,
            )
            if room is None:
                return SkillResponse(
                    speech=f"I couldn't find a room called {room_name}.",
                    should_end_session=True,
                )
            summary = await summarize_schedule(
                self._provider, request.access_token, room.owner_address, window
            )
        except CalendarError as exc:
            log.warning("Schedule check for %s failed: %s", room_name, exc)
            return SkillResponse(
                speech="Sorry, I couldn't check that room right now. Please try again.",
                should_end_session=True,
            )

        if summary.is_free:
            text = f"{room.owner_name} has no meetings that day."
        else:
            first = summary.first_busy_start.astimezone(ZoneInfo(self._tz))
            text = (
                f"{room.owner_name} has {summary.busy_count} meeting(s) that day, "
                f"the first at {first.strftime('%I:%M %p')}."
            )
        return SkillResponse(speech=text, should_end_session=True)

    @staticmethod
    async def _decline(request: SkillRequest) -> SkillResponse:
        return SkillResponse(
            speech="Okay, I won't book it. " + HELP_TEXT + " when you're ready.",
            should_end_session=True,
        )

    @staticmethod
    async def _help(request: SkillRequest) -> SkillResponse:
        return SkillResponse(speech=HELP_TEXT, reprompt=HELP_TEXT, card_title=HELP_TEXT)

    @staticmethod
    async def _goodbye(request: SkillRequest) -> SkillResponse:
        return SkillResponse(speech="Goodbye!", card_title="Goodbye!", should_end_session=True)
