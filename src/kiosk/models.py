"""Pydantic models for the event timetable.

A TimeTable is a tree Day -> Session -> Contribution -> Presenter. All models
are frozen and hold tuples, so one fetched table is immutable; the store
replaces it wholesale on refresh.

Sessions and contributions share their timing fields through a composed
TimeSpan rather than through a common base class.
"""

import datetime as dt

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class TimeSpan(BaseModel):
    """Identity and timing of one timetable entry.

    Indico exports these fields identically for sessions and contributions.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    description: str = ""
    location: str = ""
    room: str = ""
    start: AwareDatetime
    end: AwareDatetime
    # None means "not supplied"; resolved to end - start below
    duration: dt.timedelta | None = Field(default=None, validate_default=True)

    @field_validator("duration", mode="after")
    @classmethod
    def _resolve_duration(
        cls, value: dt.timedelta | None, info: ValidationInfo
    ) -> dt.timedelta | None:
        if value is not None:
            return value
        start = info.data.get("start")
        end = info.data.get("end")
        if start is None or end is None:
            return value
        return end - start

    def is_active_at(self, now: dt.datetime) -> bool:
        """True when now falls strictly inside (start, end)."""
        return self.start < now < self.end


class Presenter(BaseModel):
    """A speaker attached to a contribution."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = ""
    affiliation: str = ""
    email: str = ""
    kind: str = Field(default="", alias="_type")  # Indico "_type", e.g. "ContributionParticipation"


class Contribution(BaseModel):
    """A talk, poster or other item scheduled inside a session."""

    model_config = ConfigDict(frozen=True)

    span: TimeSpan
    url: str = ""
    presenters: tuple[Presenter, ...] = ()


def _session_key(session: "Session") -> tuple[dt.datetime, dt.datetime, str]:
    return (session.span.start, session.span.end, session.span.id)


class Session(BaseModel):
    """A scheduled block (session, plenary or break) on one day.

    Contributions are kept sorted by start time; a session without
    contributions is valid.
    """

    model_config = ConfigDict(frozen=True)

    span: TimeSpan
    contributions: tuple[Contribution, ...] = ()

    @field_validator("contributions", mode="after")
    @classmethod
    def _order_contributions(
        cls, value: tuple[Contribution, ...]
    ) -> tuple[Contribution, ...]:
        return tuple(sorted(value, key=lambda c: (c.span.start, c.span.id)))


class Day(BaseModel):
    """All sessions of one calendar date, ordered by (start, end, id)."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    sessions: tuple[Session, ...] = ()

    @field_validator("sessions", mode="after")
    @classmethod
    def _order_sessions(cls, value: tuple[Session, ...]) -> tuple[Session, ...]:
        return tuple(sorted(value, key=_session_key))


class TimeTable(BaseModel):
    """The full schedule of one event, days ordered by date.

    Days sharing a calendar date are merged on construction.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    url: str = ""
    days: tuple[Day, ...] = ()

    @field_validator("days", mode="after")
    @classmethod
    def _merge_days(cls, value: tuple[Day, ...]) -> tuple[Day, ...]:
        by_date: dict[dt.date, list[Session]] = {}
        for day in value:
            by_date.setdefault(day.date, []).extend(day.sessions)
        return tuple(
            Day(date=date, sessions=sessions)
            for date, sessions in sorted(by_date.items())
        )

    def day_for(self, date: dt.date) -> Day | None:
        """Return the Day scheduled on a calendar date, if any."""
        for day in self.days:
            if day.date == date:
                return day
        return None
