"""Kiosk configuration loaded from environment variables.

Command-line flags in scripts/run_display.py override these values.
"""

from datetime import datetime

from pydantic import Field
from pydantic_settings import BaseSettings

NOW_LAYOUT = "%Y-%m-%d %H:%M:%S"
SIMULATION_LAYOUT = "%Y-%m-%d %H:%M %z"


class KioskConfig(BaseSettings):
    """Kiosk configuration loaded from environment variables.

    Settings are loaded from KIOSK_* environment variables with sensible
    defaults. For local development, create a .env file in the project root.
    """

    # Indico settings
    indico_host: str = Field(
        default="indico.in2p3.fr",
        description="Indico server exporting the event timetable",
    )
    event_id: int = Field(
        default=12779,
        description="Indico event id to display",
    )
    fetch_timeout_seconds: float = Field(
        default=30.0,
        description="HTTP timeout for one timetable download",
    )

    # Agenda clock
    agenda_timezone: str = Field(
        default="Europe/Paris",
        description="IANA timezone the agenda clock runs in",
    )
    agenda_now: str = Field(
        default="",
        description="Start the agenda clock at this local time (YYYY-MM-DD HH:MM:SS)",
    )
    tick_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Seconds between two broadcast snapshots",
    )
    simulate: bool = Field(
        default=False,
        description="Replay the event in accelerated time instead of following the wall clock",
    )
    simulation_start: str = Field(
        default="2016-09-26 14:45 +0200",
        description="First instant of the replayed window (YYYY-MM-DD HH:MM +ZZZZ)",
    )
    simulation_end: str = Field(
        default="2016-09-29 12:12 +0200",
        description="Last instant of the replayed window before wrapping",
    )

    # Broadcast
    subscriber_queue_size: int = Field(
        default=256,
        gt=0,
        description="Pending snapshots a viewer may lag behind before being dropped",
    )

    # HTTP server
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=80, description="Bind port")
    page_title: str = Field(
        default="JI-2016 Web Display",
        description="Title of the kiosk page",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "KIOSK_",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def simulation_window(self) -> tuple[datetime, datetime]:
        """Parse the replay boundaries into aware datetimes."""
        start = datetime.strptime(self.simulation_start, SIMULATION_LAYOUT)
        end = datetime.strptime(self.simulation_end, SIMULATION_LAYOUT)
        if end <= start:
            raise ValueError(
                f"simulation_end {self.simulation_end!r} is not after "
                f"simulation_start {self.simulation_start!r}"
            )
        return start, end


_config: KioskConfig | None = None


def get_config() -> KioskConfig:
    """Get the kiosk configuration loaded from the environment.

    Returns:
        KioskConfig: cached configuration instance
    """
    global _config
    if _config is None:
        _config = KioskConfig()
    return _config
