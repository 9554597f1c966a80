"""Timetable store: the one piece of state shared by the refresh path and the clock.

The active TimeTable is swapped atomically under a readers/writer lock.
Readers hold the read lock for the duration of one projection; the writer
holds the write lock only for the reference swap. The network fetch of a
refresh happens before the lock is taken, so a slow Indico server never
stalls the clock.
"""

import asyncio
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from src.kiosk.logging import get_logger
from src.kiosk.models import TimeTable

logger = get_logger(__name__)

Fetcher = Callable[[int], TimeTable]


class ReadWriteLock:
    """Many concurrent readers or one writer.

    Writer-preferring: once a writer is waiting, new readers queue behind it,
    so a refresh is never starved by a steady stream of projections.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class TimetableStore:
    """Owns the active TimeTable and serializes its replacement against readers."""

    def __init__(self, table: TimeTable, fetcher: Fetcher | None = None) -> None:
        """Initialize the store.

        Args:
            table: Initially served timetable.
            fetcher: Callable returning a freshly fetched TimeTable for an
                event id. Required by refresh().
        """
        self._table = table
        self._fetcher = fetcher
        self._lock = ReadWriteLock()

    @property
    def current(self) -> TimeTable:
        with self._lock.read():
            return self._table

    @contextmanager
    def snapshot(self) -> Iterator[TimeTable]:
        """Yield the active timetable, read-locked until the block exits."""
        with self._lock.read():
            yield self._table

    def replace(self, table: TimeTable) -> None:
        """Atomically swap the active timetable."""
        with self._lock.write():
            previous = self._table
            self._table = table
        logger.debug(
            "timetable_replaced",
            event_id=table.id,
            previous_days=len(previous.days),
            days=len(table.days),
        )

    def refresh(self) -> TimeTable:
        """Fetch the current event's timetable and swap it in.

        Returns:
            The newly active TimeTable.

        Raises:
            RuntimeError: If the store was built without a fetcher.
            FetchError: If the download or parse failed. The previous
                timetable keeps serving.
        """
        if self._fetcher is None:
            raise RuntimeError("timetable store has no fetcher configured")

        event_id = self.current.id
        logger.info("timetable_refresh_started", event_id=event_id)
        try:
            table = self._fetcher(event_id)
        except Exception as e:
            logger.warning(
                "timetable_refresh_failed",
                event_id=event_id,
                error=str(e),
                type=type(e).__name__,
            )
            raise

        self.replace(table)
        logger.info("timetable_refresh_done", event_id=event_id, days=len(table.days))
        return table

    async def refresh_async(self) -> TimeTable:
        """Run refresh() in a worker thread so the event loop never does I/O."""
        return await asyncio.to_thread(self.refresh)
