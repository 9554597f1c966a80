"""Builders for timetables used across the test suite."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from src.kiosk.models import Contribution, Day, Presenter, Session, TimeSpan, TimeTable

PARIS = ZoneInfo("Europe/Paris")
EVENT_DAY = date(2016, 9, 27)


def at(hour: int, minute: int = 0, second: int = 0, day: date = EVENT_DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, second, tzinfo=PARIS)


def span(
    id: str,
    start: datetime,
    end: datetime,
    *,
    title: str | None = None,
    room: str = "",
    duration: timedelta | None = None,
) -> TimeSpan:
    return TimeSpan(
        id=id,
        title=title if title is not None else id,
        room=room,
        start=start,
        end=end,
        duration=duration,
    )


def contribution(
    id: str,
    start: datetime,
    end: datetime,
    *,
    title: str | None = None,
    presenters: tuple[Presenter, ...] = (),
) -> Contribution:
    return Contribution(span=span(id, start, end, title=title), presenters=presenters)


def session(
    id: str,
    start: datetime,
    end: datetime,
    contributions: list[Contribution] | tuple[Contribution, ...] = (),
    *,
    title: str | None = None,
    room: str = "",
) -> Session:
    return Session(
        span=span(id, start, end, title=title, room=room),
        contributions=tuple(contributions),
    )


def back_to_back_contributions(
    prefix: str, start: datetime, count: int, minutes: int = 20
) -> list[Contribution]:
    step = timedelta(minutes=minutes)
    return [
        contribution(f"{prefix}{i}", start + i * step, start + (i + 1) * step)
        for i in range(count)
    ]


def back_to_back_sessions(start: datetime, count: int, minutes: int = 60) -> list[Session]:
    step = timedelta(minutes=minutes)
    return [
        session(f"s{i}", start + i * step, start + (i + 1) * step)
        for i in range(count)
    ]


def timetable(
    sessions: list[Session], *, day: date = EVENT_DAY, id: int = 12779
) -> TimeTable:
    return TimeTable(id=id, url="https://indico.example/event", days=[Day(date=day, sessions=sessions)])
