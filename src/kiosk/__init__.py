"""Live agenda kiosk display for an Indico event.

Fetches the event timetable, projects "what is happening now" every clock
tick and pushes the rendered agenda to every connected display over a
WebSocket.
"""

from src.kiosk.agenda import AgendaSnapshot, project
from src.kiosk.clock import ClockDriver, SimulationWindow
from src.kiosk.hub import BroadcastHub
from src.kiosk.models import Contribution, Day, Presenter, Session, TimeSpan, TimeTable
from src.kiosk.store import TimetableStore
from src.kiosk.subscriber import Subscriber

__all__ = [
    "AgendaSnapshot",
    "BroadcastHub",
    "ClockDriver",
    "Contribution",
    "Day",
    "Presenter",
    "Session",
    "SimulationWindow",
    "Subscriber",
    "TimeSpan",
    "TimeTable",
    "TimetableStore",
    "project",
]
