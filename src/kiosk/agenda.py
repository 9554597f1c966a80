"""Agenda projector: what is happening at one instant, trimmed for a kiosk screen.

project() maps (timetable, now) to an AgendaSnapshot. It is a pure function:
the same inputs always produce an equal snapshot.

Display-window policy applied to the day's session list:
  - at most one session is kept before the first running one;
  - at most 4 sessions are kept after the last running one, the rest are
    collapsed into one "..." entry;
  - inside a running session, finished contributions are dropped and at most
    3 contributions are kept after the last running one, the rest are
    collapsed into one "..." entry.
When nothing is running, no past trim happens and the future trim counts
from the first session of the day.
"""

from collections.abc import Sequence
from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict

from src.kiosk.models import Contribution, Session, TimeTable

TIME_LAYOUT = "%H:%M"
LABEL_LAYOUT = "%Y-%m-%d -- %H:%M:%S"
ELLIPSIS_TITLE = "..."

SESSION_CONTEXT_BEFORE = 1
SESSIONS_AFTER_ACTIVE = 4
CONTRIBUTIONS_AFTER_ACTIVE = 3

CURRENT_SESSION_MARKER = "current-session"
CURRENT_CONTRIBUTION_MARKER = "current-contribution"


class PresenterView(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    affiliation: str = ""
    email: str = ""


class ContributionView(BaseModel):
    """One contribution line of the running session."""

    model_config = ConfigDict(frozen=True)

    title: str
    start: str
    stop: str
    duration: timedelta | None = None
    presenters: tuple[PresenterView, ...] = ()
    active: bool = False
    merged: bool = False  # synthetic "..." entry standing for several items

    @property
    def marker(self) -> str:
        return CURRENT_CONTRIBUTION_MARKER if self.active else ""


class SessionView(BaseModel):
    """One session heading; only running sessions carry contributions."""

    model_config = ConfigDict(frozen=True)

    title: str
    room: str = ""
    start: str
    stop: str
    duration: timedelta | None = None
    contributions: tuple[ContributionView, ...] = ()
    active: bool = False
    merged: bool = False

    @property
    def marker(self) -> str:
        return CURRENT_SESSION_MARKER if self.active else ""


class AgendaSnapshot(BaseModel):
    """Display-ready projection of the timetable for one instant."""

    model_config = ConfigDict(frozen=True)

    label: str
    sessions: tuple[SessionView, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.sessions


def project(table: TimeTable, now: datetime) -> AgendaSnapshot:
    """Build the trimmed agenda snapshot of `table` at instant `now`.

    Args:
        table: Timetable to project (typically a read-locked store snapshot).
        now: Timezone-aware instant, in an offset comparable to the table's.

    Returns:
        The snapshot; without sessions when no day matches now's date.
    """
    label = now.strftime(LABEL_LAYOUT)
    day = table.day_for(now.date())
    if day is None:
        return AgendaSnapshot(label=label)

    views = [_session_view(session, now) for session in day.sessions]
    return AgendaSnapshot(label=label, sessions=tuple(_trim_sessions(views)))


def _session_view(session: Session, now: datetime) -> SessionView:
    span = session.span
    active = span.is_active_at(now)
    contributions: list[ContributionView] = []
    if active:
        for contribution in session.contributions:
            if contribution.span.end < now:
                continue
            contributions.append(_contribution_view(contribution, now))
        contributions = _trim_contributions(contributions)

    return SessionView(
        title=span.title,
        room=span.room,
        start=span.start.strftime(TIME_LAYOUT),
        stop=span.end.strftime(TIME_LAYOUT),
        duration=span.duration,
        contributions=tuple(contributions),
        active=active,
    )


def _contribution_view(contribution: Contribution, now: datetime) -> ContributionView:
    span = contribution.span
    return ContributionView(
        title=span.title,
        start=span.start.strftime(TIME_LAYOUT),
        stop=span.end.strftime(TIME_LAYOUT),
        duration=span.duration,
        presenters=tuple(
            PresenterView(name=p.name, affiliation=p.affiliation, email=p.email)
            for p in contribution.presenters
        ),
        active=span.is_active_at(now),
    )


def _active_indices(items: Sequence[SessionView] | Sequence[ContributionView]) -> list[int]:
    return [i for i, item in enumerate(items) if item.active]


def _trim_contributions(views: list[ContributionView]) -> list[ContributionView]:
    active = _active_indices(views)
    anchor = active[-1] if active else 0
    keep = anchor + 1 + CONTRIBUTIONS_AFTER_ACTIVE
    if len(views) <= keep:
        return views

    collapsed = views[keep:]
    durations = [v.duration for v in collapsed if v.duration is not None]
    merged = ContributionView(
        title=ELLIPSIS_TITLE,
        start=collapsed[0].start,
        stop=collapsed[-1].stop,
        duration=sum(durations, timedelta()),
        merged=True,
    )
    return [*views[:keep], merged]


def _trim_sessions(views: list[SessionView]) -> list[SessionView]:
    active = _active_indices(views)

    # future trim first, so indices still refer to the full day
    anchor = active[-1] if active else 0
    keep = anchor + 1 + SESSIONS_AFTER_ACTIVE
    if len(views) > keep:
        collapsed = views[keep:]
        merged = SessionView(
            title=ELLIPSIS_TITLE,
            start=collapsed[0].start,
            stop=collapsed[-1].stop,
            merged=True,
        )
        views = [*views[:keep], merged]

    if active:
        first = max(0, active[0] - SESSION_CONTEXT_BEFORE)
        views = views[first:]
    return views
