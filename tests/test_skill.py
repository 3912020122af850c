"""Tests for the voice skill adapter: slot parsing and intent handling."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from roomfinder.calendar_providers.base import (
    CalendarProvider,
    Interval,
    RoomCalendar,
    ScheduleSummary,
)
from roomfinder.calendar_providers.errors import ApiError, TransportError
from roomfinder.config import settings
from roomfinder.skill import (
    NOT_UNDERSTOOD,
    RoomFinderSkill,
    SkillRequest,
    day_window,
    parse_duration,
    redact_address,
    window_from_slots,
)

TZ = "America/Toronto"
ROOM_A = RoomCalendar(id="cal-a", owner_name="First Room", owner_address="first@x.com")
ROOM_B = RoomCalendar(id="cal-b", owner_name="Second Room", owner_address="second@x.com")
BUSY = [
    Interval(
        start=datetime(2026, 3, 16, 13, 0, tzinfo=timezone.utc),
        end=datetime(2026, 3, 16, 14, 0, tzinfo=timezone.utc),
    )
]


@pytest.fixture
def provider():
    mock = AsyncMock(spec=CalendarProvider)
    mock.list_calendars.return_value = [ROOM_A, ROOM_B]
    return mock


@pytest.fixture
def skill(provider):
    return RoomFinderSkill(
        provider, candidate_names=["First Room", "Second Room"], timezone_name=TZ
    )


def intent(name, slots=None, session=None, token="tok", dialog_state="COMPLETED"):
    return SkillRequest(
        request_type="IntentRequest",
        intent=name,
        slots=slots or {},
        session=session or {},
        access_token=token,
        dialog_state=dialog_state,
    )


FIND_SLOTS = {"Date": "2026-03-16", "StartTime": "09:00", "Duration": "PT30M"}


# ── Slot helpers ───────────────────────────────────────────────────


class TestSlotParsing:
    def test_minutes(self):
        assert parse_duration("45") == timedelta(minutes=45)

    def test_iso_duration(self):
        assert parse_duration("PT1H30M") == timedelta(minutes=90)
        assert parse_duration("PT2H") == timedelta(hours=2)
        assert parse_duration("pt15m") == timedelta(minutes=15)

    @pytest.mark.parametrize("value", ["", "PT", "P1D", "PT0M", "0", "soon"])
    def test_invalid_duration(self, value):
        with pytest.raises(ValueError):
            parse_duration(value)

    def test_window_from_slots(self):
        window = window_from_slots("2026-03-16", "09:00", timedelta(minutes=30), TZ)
        assert window.start.astimezone(timezone.utc) == datetime(
            2026, 3, 16, 13, 0, tzinfo=timezone.utc
        )
        assert window.end - window.start == timedelta(minutes=30)

    def test_window_from_bad_time(self):
        with pytest.raises(ValueError):
            window_from_slots("2026-03-16", "9 o'clock", timedelta(minutes=30), TZ)

    def test_day_window(self):
        window = day_window("2026-03-16", TZ)
        assert window.start.hour == 0
        assert window.end - window.start == timedelta(days=1)

    def test_redact_address(self):
        assert redact_address("firstroom@x.com") == "fir***@x.com"
        assert redact_address("ab@x.com") == "***@x.com"


# ── Request routing ────────────────────────────────────────────────


class TestRouting:
    async def test_launch(self, skill):
        response = await skill.handle(SkillRequest(request_type="LaunchRequest"))
        assert "Welcome" in response.speech
        assert response.reprompt

    async def test_session_ended(self, skill):
        response = await skill.handle(SkillRequest(request_type="SessionEndedRequest"))
        assert response.should_end_session is True
        assert response.speech == ""

    async def test_unknown_intent(self, skill):
        response = await skill.handle(intent("OrderPizza"))
        assert response.speech == NOT_UNDERSTOOD

    async def test_help_and_stop(self, skill):
        help_response = await skill.handle(intent("AMAZON.HelpIntent"))
        assert "room finder" in help_response.speech.lower()
        stop = await skill.handle(intent("AMAZON.StopIntent"))
        assert stop.speech == "Goodbye!"
        assert stop.should_end_session is True

    async def test_wrong_application_rejected(self, skill, monkeypatch):
        monkeypatch.setattr(settings, "skill_app_id", "amzn1.ask.skill.expected")
        with pytest.raises(PermissionError):
            await skill.handle(
                SkillRequest(request_type="LaunchRequest", application_id="other")
            )

    async def test_unexpected_error_becomes_apology(self, skill, provider):
        provider.list_calendars.side_effect = RuntimeError("bug")
        response = await skill.handle(intent("FindRoom", FIND_SLOTS))
        assert response.speech == NOT_UNDERSTOOD


# ── FindRoom ───────────────────────────────────────────────────────


class TestFindRoom:
    async def test_delegates_until_dialog_complete(self, skill, provider):
        response = await skill.handle(
            intent("FindRoom", {"Date": "2026-03-16"}, dialog_state="IN_PROGRESS")
        )
        assert response.directive == "Dialog.Delegate"
        provider.list_calendars.assert_not_awaited()

    async def test_missing_token_asks_for_account_link(self, skill, provider):
        response = await skill.handle(intent("FindRoom", FIND_SLOTS, token=""))
        assert response.directive == "LinkAccount"
        provider.list_calendars.assert_not_awaited()

    async def test_room_offered_and_kept_in_session(self, skill, provider):
        provider.get_busy_intervals.side_effect = (
            lambda token, calendar_id, window: BUSY if calendar_id == "cal-a" else []
        )

        response = await skill.handle(intent("FindRoom", FIND_SLOTS))

        assert response.speech == "Second Room is available, would you like to book it?"
        assert response.should_end_session is False
        assert response.session["owner_name"] == "Second Room"
        assert response.session["owner_address"] == "second@x.com"
        start = datetime.fromisoformat(response.session["start"])
        end = datetime.fromisoformat(response.session["end"])
        assert start.astimezone(timezone.utc) == datetime(2026, 3, 16, 13, 0, tzinfo=timezone.utc)
        assert end - start == timedelta(minutes=30)

    async def test_no_room_free(self, skill, provider):
        provider.get_busy_intervals.return_value = BUSY
        response = await skill.handle(intent("FindRoom", FIND_SLOTS))
        assert response.speech.startswith("No rooms are available")
        assert response.should_end_session is True

    async def test_all_checks_failed(self, skill, provider):
        provider.get_busy_intervals.side_effect = TransportError("timed out")
        response = await skill.handle(intent("FindRoom", FIND_SLOTS))
        assert "couldn't check the rooms" in response.speech

    async def test_bad_slots(self, skill, provider):
        response = await skill.handle(
            intent("FindRoom", {"Date": "2026-03-16", "StartTime": "09:00", "Duration": "forever"})
        )
        assert "didn't get" in response.speech
        provider.list_calendars.assert_not_awaited()


# ── Booking confirmation ───────────────────────────────────────────


BOOKING_SESSION = {
    "owner_name": "Second Room",
    "owner_address": "second@x.com",
    "start": "2026-03-16T09:00:00-04:00",
    "end": "2026-03-16T09:30:00-04:00",
}


class TestBookRoom:
    async def test_yes_books_session_room(self, skill, provider):
        provider.create_event.return_value = "evt-1"

        response = await skill.handle(intent("AMAZON.YesIntent", session=BOOKING_SESSION))

        assert response.speech == "Second Room is now booked!"
        assert response.should_end_session is True
        provider.create_event.assert_awaited_once()
        _, event = provider.create_event.await_args.args
        assert event.attendees[0].address == "second@x.com"
        assert event.end - event.start == timedelta(minutes=30)

    async def test_booking_failure_keeps_session(self, skill, provider):
        provider.create_event.side_effect = ApiError("denied")

        response = await skill.handle(intent("AMAZON.YesIntent", session=BOOKING_SESSION))

        assert "couldn't book Second Room" in response.speech
        assert response.should_end_session is False
        assert response.session == BOOKING_SESSION

    async def test_yes_without_offer(self, skill, provider):
        response = await skill.handle(intent("AMAZON.YesIntent"))
        assert "no room waiting" in response.speech
        provider.create_event.assert_not_awaited()

    async def test_no_declines(self, skill, provider):
        response = await skill.handle(intent("AMAZON.NoIntent", session=BOOKING_SESSION))
        assert response.should_end_session is True
        provider.create_event.assert_not_awaited()


# ── CheckRoom ──────────────────────────────────────────────────────


class TestCheckRoom:
    async def test_free_room(self, skill, provider):
        provider.get_schedule.return_value = ScheduleSummary(
            room_address="first@x.com", busy_count=0
        )
        response = await skill.handle(
            intent("CheckRoom", {"Room": "first room", "Date": "2026-03-16"})
        )
        assert response.speech == "First Room has no meetings that day."
        address = provider.get_schedule.await_args.args[1]
        assert address == "first@x.com"

    async def test_busy_room_reports_first_meeting(self, skill, provider):
        provider.get_schedule.return_value = ScheduleSummary(
            room_address="first@x.com",
            busy_count=2,
            first_busy_start=datetime(2026, 3, 16, 14, 0, tzinfo=timezone.utc),
        )
        response = await skill.handle(
            intent("CheckRoom", {"Room": "First Room", "Date": "2026-03-16"})
        )
        assert "2 meeting(s)" in response.speech
        assert "10:00 AM" in response.speech

    async def test_unknown_room(self, skill, provider):
        response = await skill.handle(
            intent("CheckRoom", {"Room": "Broom Closet", "Date": "2026-03-16"})
        )
        assert "couldn't find a room called Broom Closet" in response.speech
        provider.get_schedule.assert_not_awaited()

    async def test_schedule_error(self, skill, provider):
        provider.get_schedule.side_effect = ApiError("Mailbox not found")
        response = await skill.handle(
            intent("CheckRoom", {"Room": "First Room", "Date": "2026-03-16"})
        )
        assert "couldn't check that room" in response.speech
