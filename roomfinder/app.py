"""FastAPI application: HTTP endpoints for the room finder.

Endpoints:

  GET  /health            Health check
  POST /skill             Voice-skill turn (SkillRequest -> SkillResponse)
  POST /rooms/find        Resolve a free candidate room for a window
  POST /rooms/book        Book a room for a window
  POST /rooms/schedule    Summarize one room's schedule for a window

The /rooms endpoints take the user's calendar access token as a bearer
token in the Authorization header.
"""

from __future__ import annotations

from dotenv import load_dotenv
load_dotenv()

import logging
import time
from datetime import datetime
from typing import Optional

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from roomfinder.auth import require_access_token
from roomfinder.calendar_providers.base import CalendarProvider, TimeWindow
from roomfinder.calendar_providers.errors import CalendarError
from roomfinder.calendar_providers.graph import GraphCalendarProvider
from roomfinder.config import settings
from roomfinder.models.outcomes import (
    Booked,
    ResolutionFailed,
    ResolutionResult,
    RoomFound,
)
from roomfinder.skill import RoomFinderSkill, SkillRequest, SkillResponse
from roomfinder.tools.availability import AvailabilityResolver
from roomfinder.tools.booking import BookingCommitter
from roomfinder.tools.schedule import summarize_schedule

log = logging.getLogger("roomfinder.app")

_START_TIME = time.time()


# ── Request bodies ─────────────────────────────────────────────────


class WindowBody(BaseModel):
    start: datetime
    end: datetime

    def to_window(self) -> TimeWindow:
        try:
            return TimeWindow(start=self.start, end=self.end)
        except ValueError as exc:
            raise HTTPException(
                status_code=422, detail=str(exc)
            )


class FindRoomBody(WindowBody):
    candidates: Optional[list[str]] = None


class BookRoomBody(WindowBody):
    owner_address: str
    owner_name: str


class ScheduleBody(WindowBody):
    room_address: str


def _resolution_payload(result: ResolutionResult) -> dict:
    if isinstance(result, RoomFound):
        return {
            "status": "room_found",
            "owner_name": result.owner_name,
            "owner_address": result.owner_address,
        }
    if isinstance(result, ResolutionFailed):
        return {"status": "resolution_failed", "error": str(result.error)}
    return {"status": "no_room_free"}


def create_app(provider: CalendarProvider | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    for warning in settings.validate_startup():
        log.warning(warning)

    provider = provider or GraphCalendarProvider()
    resolver = AvailabilityResolver(provider)
    committer = BookingCommitter(provider)
    skill = RoomFinderSkill(provider)

    app = FastAPI(
        title="Room Finder",
        description="Find and book free meeting rooms from a voice assistant",
        version="0.1.0",
    )

    @app.get("/health")
    async def health() -> JSONResponse:
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({"status": "ok", "uptime": uptime})

    # ── Voice skill ────────────────────────────────────────────

    @app.post("/skill", response_model=SkillResponse)
    async def skill_turn(request: SkillRequest) -> SkillResponse:
        try:
            return await skill.handle(request)
        except PermissionError as exc:
            log.warning("Rejected skill request: %s", exc)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))

    # ── Rooms ──────────────────────────────────────────────────

    @app.post("/rooms/find")
    async def find_room(
        body: FindRoomBody, token: str = Depends(require_access_token)
    ) -> JSONResponse:
        window = body.to_window()
        candidates = body.candidates if body.candidates is not None else settings.candidate_rooms
        result = await resolver.find_room(token, window, candidates)
        return JSONResponse(_resolution_payload(result))

    @app.post("/rooms/book")
    async def book_room(
        body: BookRoomBody, token: str = Depends(require_access_token)
    ) -> JSONResponse:
        window = body.to_window()
        result = await committer.book(token, body.owner_address, body.owner_name, window)
        if isinstance(result, Booked):
            return JSONResponse({"status": "booked", "event_id": result.event_id})
        return JSONResponse(
            {"status": "booking_failed", "error": str(result.error)},
            status_code=status.HTTP_502_BAD_GATEWAY,
        )

    @app.post("/rooms/schedule")
    async def room_schedule(
        body: ScheduleBody, token: str = Depends(require_access_token)
    ) -> JSONResponse:
        window = body.to_window()
        try:
            summary = await summarize_schedule(provider, token, body.room_address, window)
        except CalendarError as exc:
            log.warning("Schedule lookup failed: %s", exc)
            return JSONResponse(
                {"status": "schedule_failed", "error": str(exc)},
                status_code=status.HTTP_502_BAD_GATEWAY,
            )
        return JSONResponse(
            {
                "room_address": summary.room_address,
                "busy_count": summary.busy_count,
                "is_free": summary.is_free,
                "first_busy_start": (
                    summary.first_busy_start.isoformat()
                    if summary.first_busy_start
                    else None
                ),
            }
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "roomfinder.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
