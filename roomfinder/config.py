"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("roomfinder.config")


class Settings(BaseSettings):
    # Microsoft Graph
    graph_base_url: str = "https://graph.microsoft.com/v1.0"
    # calendar owners are only returned by the beta endpoint
    graph_beta_url: str = "https://graph.microsoft.com/beta"
    graph_timeout_seconds: float = 8.0

    # Rooms
    candidate_rooms: list[str] = ["First Room", "Second Room", "Third Room"]
    meeting_timezone: str = "America/Toronto"
    schedule_interval_minutes: int = 15

    # Booking
    booking_subject: str = "Alexa's Meeting"
    booking_body: str = "This meeting was booked by Alexa."

    # Skill
    skill_app_id: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []

        if self.graph_timeout_seconds <= 0:
            raise ValueError("GRAPH_TIMEOUT_SECONDS must be positive.")

        if not self.candidate_rooms:
            warnings.append(
                "CANDIDATE_ROOMS is empty. Every room search will report no room free."
            )

        if not self.skill_app_id:
            warnings.append(
                "SKILL_APP_ID not set. Skill requests are accepted from any application."
            )

        return warnings


settings = Settings()
