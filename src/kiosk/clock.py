"""Clock driver: advances the agenda's virtual "now" and publishes one snapshot per tick.

Two modes:
  - real time: now follows the wall clock (plus an offset set by set_now());
  - simulation: now jumps by an hour-dependent step every tick and wraps
    around a replay window, to demo a multi-day event in a few minutes.

set_now(), resync() and stop() are messages to the control inbox; only run()
touches the clock state, so an override never races a tick.
"""

import asyncio
import enum
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo

from src.kiosk.agenda import AgendaSnapshot, project
from src.kiosk.hub import BroadcastHub
from src.kiosk.logging import get_logger
from src.kiosk.store import TimetableStore

logger = get_logger(__name__)

Renderer = Callable[[AgendaSnapshot], str]
WallClock = Callable[[tzinfo], datetime]

WRAP_OFFSET = timedelta(seconds=10)


def system_clock(tz: tzinfo) -> datetime:
    return datetime.now(tz)


def _shift(instant: datetime, delta: timedelta, tz: tzinfo) -> datetime:
    """Move an instant by an absolute amount of time, reported in tz.

    Arithmetic happens in UTC so a DST change never adds or loses an hour.
    """
    return (instant.astimezone(timezone.utc) + delta).astimezone(tz)


def _elapsed(later: datetime, earlier: datetime) -> timedelta:
    return later.astimezone(timezone.utc) - earlier.astimezone(timezone.utc)


def simulation_step(now: datetime) -> timedelta:
    """Virtual time skipped per tick: coarse at night, fine during the day's sessions."""
    hour = now.hour
    if hour < 8:
        return timedelta(hours=1)
    if hour <= 18:
        return timedelta(minutes=3)
    if hour <= 22:
        return timedelta(minutes=30)
    return timedelta(hours=1)


@dataclass(frozen=True)
class SimulationWindow:
    """Replay boundaries; leaving them wraps now back to start."""

    start: datetime
    end: datetime

    def wrap(self, now: datetime) -> datetime:
        if now > self.end or now < self.start:
            return self.start + WRAP_OFFSET
        return now


class _Command(enum.Enum):
    SET_NOW = "set_now"
    RESYNC = "resync"
    STOP = "stop"


@dataclass(frozen=True)
class _Control:
    command: _Command
    instant: datetime | None = None


class ClockDriver:
    """Ticks the agenda clock and hands rendered snapshots to the hub."""

    def __init__(
        self,
        store: TimetableStore,
        hub: BroadcastHub,
        render: Renderer,
        *,
        timezone: tzinfo,
        now: datetime | None = None,
        tick_seconds: float = 1.0,
        simulation: SimulationWindow | None = None,
        wall_clock: WallClock = system_clock,
    ) -> None:
        """Initialize the driver.

        Args:
            store: Timetable store read on every tick.
            hub: Hub receiving the rendered payloads.
            render: Turns a snapshot into the transport payload.
            timezone: Zone the agenda clock reports instants in.
            now: Initial virtual instant. Defaults to the wall clock in
                real-time mode and to the window start in simulation mode.
            tick_seconds: Real seconds between two ticks.
            simulation: Replay window; None selects real-time mode.
            wall_clock: Source of wall-clock instants (tests inject a fake).
        """
        self.store = store
        self.hub = hub
        self.render = render
        self.timezone = timezone
        self.tick_seconds = tick_seconds
        self.simulation = simulation
        self._wall_clock = wall_clock
        self._inbox: asyncio.Queue[_Control] = asyncio.Queue()
        self._offset = timedelta()
        self._virtual: datetime | None = None
        self.ticks = 0
        self.skipped = 0

        if simulation is not None:
            self._virtual = (now or simulation.start).astimezone(timezone)
        elif now is not None:
            self._offset = _elapsed(now, self._wall_clock(timezone))

    @property
    def mode(self) -> str:
        return "simulation" if self.simulation is not None else "realtime"

    @property
    def now(self) -> datetime:
        """Current virtual instant, without advancing it."""
        if self._virtual is not None:
            return self._virtual
        return _shift(self._wall_clock(self.timezone), self._offset, self.timezone)

    def set_now(self, instant: datetime) -> None:
        """Request the virtual clock to jump to an instant."""
        self._inbox.put_nowait(_Control(_Command.SET_NOW, instant))

    def resync(self) -> None:
        """Request the virtual clock to jump back to the wall clock."""
        self._inbox.put_nowait(_Control(_Command.RESYNC))

    def stop(self) -> None:
        self._inbox.put_nowait(_Control(_Command.STOP))

    def advance(self) -> datetime:
        """Move the clock forward by one tick and return the new instant."""
        if self.simulation is None:
            return self.now
        current = self._virtual
        stepped = _shift(current, simulation_step(current), self.timezone)
        self._virtual = self.simulation.wrap(stepped).astimezone(self.timezone)
        return self._virtual

    def tick(self) -> str | None:
        """Advance, project, render and publish one snapshot.

        Returns:
            The published payload, or None when the tick was skipped.
        """
        now = self.advance()
        self.ticks += 1
        try:
            with self.store.snapshot() as table:
                snapshot = project(table, now)
            payload = self.render(snapshot)
        except Exception as e:
            self.skipped += 1
            logger.error(
                "tick_failed",
                now=now.isoformat(),
                error=str(e),
                type=type(e).__name__,
                exc_info=True,
            )
            return None

        self.hub.publish(payload)
        return payload

    def _apply(self, control: _Control) -> None:
        if control.command is _Command.SET_NOW:
            instant = control.instant.astimezone(self.timezone)
            if self.simulation is not None:
                self._virtual = instant
            else:
                self._offset = _elapsed(instant, self._wall_clock(self.timezone))
            logger.info("clock_set", now=instant.isoformat(), mode=self.mode)
        elif control.command is _Command.RESYNC:
            wall = self._wall_clock(self.timezone)
            if self.simulation is not None:
                self._virtual = self.simulation.wrap(wall).astimezone(self.timezone)
            self._offset = timedelta()
            logger.info("clock_resynced", now=self.now.isoformat(), mode=self.mode)

    async def run(self) -> None:
        """Tick at a fixed cadence, handling control messages in between."""
        loop = asyncio.get_running_loop()
        logger.info(
            "clock_started",
            mode=self.mode,
            now=self.now.isoformat(),
            tick_seconds=self.tick_seconds,
        )
        next_tick = loop.time() + self.tick_seconds
        while True:
            timeout = max(0.0, next_tick - loop.time())
            try:
                control = await asyncio.wait_for(self._inbox.get(), timeout=timeout)
            except asyncio.TimeoutError:
                self.tick()
                next_tick += self.tick_seconds
                # realign after a stalled loop
                if next_tick < loop.time():
                    next_tick = loop.time() + self.tick_seconds
                continue

            if control.command is _Command.STOP:
                logger.info("clock_stopped", ticks=self.ticks, skipped=self.skipped)
                return
            self._apply(control)
