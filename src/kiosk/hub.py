"""Broadcast hub: the single owner of the viewer registry.

Register, unregister and publish requests all go through one intake queue
and are handled one at a time by run(), so registry mutation and fan-out
never interleave. Publishing never waits on a viewer: each subscriber gets a
non-blocking offer, and one whose queue is full is dropped on the spot.

Example:
    hub = BroadcastHub()
    task = asyncio.create_task(hub.run())
    hub.publish("<h1>...</h1>")
    ...
    hub.stop()
    await task
"""

import asyncio
import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

from src.kiosk.logging import get_logger

if TYPE_CHECKING:
    from src.kiosk.subscriber import Subscriber

logger = get_logger(__name__)


class HubEventKind(enum.Enum):
    REGISTER = "register"
    UNREGISTER = "unregister"
    PUBLISH = "publish"
    STOP = "stop"


@dataclass(frozen=True)
class HubEvent:
    kind: HubEventKind
    subscriber: "Subscriber | None" = None
    payload: str | None = None


class BroadcastHub:
    """Serial coordinator fanning payloads out to registered subscribers."""

    def __init__(self) -> None:
        self._events: asyncio.Queue[HubEvent] = asyncio.Queue()
        self._subscribers: set["Subscriber"] = set()
        self._published = 0
        self._evicted = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def stats(self) -> dict[str, int]:
        return {
            "subscribers": len(self._subscribers),
            "published": self._published,
            "evicted": self._evicted,
        }

    def register(self, subscriber: "Subscriber") -> None:
        self._events.put_nowait(HubEvent(HubEventKind.REGISTER, subscriber=subscriber))

    def unregister(self, subscriber: "Subscriber") -> None:
        self._events.put_nowait(HubEvent(HubEventKind.UNREGISTER, subscriber=subscriber))

    def publish(self, payload: str) -> None:
        self._events.put_nowait(HubEvent(HubEventKind.PUBLISH, payload=payload))

    def stop(self) -> None:
        """Ask run() to close every subscriber and return."""
        self._events.put_nowait(HubEvent(HubEventKind.STOP))

    async def drain(self) -> None:
        """Wait until every event enqueued so far has been handled."""
        await self._events.join()

    async def run(self) -> None:
        """Handle intake events in arrival order until stop() is processed."""
        logger.info("hub_started")
        while True:
            event = await self._events.get()
            try:
                if event.kind is HubEventKind.STOP:
                    self._close_all()
                    logger.info("hub_stopped", published=self._published)
                    return
                self._handle(event)
            finally:
                self._events.task_done()

    def _handle(self, event: HubEvent) -> None:
        if event.kind is HubEventKind.REGISTER:
            if event.subscriber in self._subscribers:
                logger.warning("subscriber_already_registered", subscriber=event.subscriber.name)
                return
            self._subscribers.add(event.subscriber)
            logger.info(
                "subscriber_registered",
                subscriber=event.subscriber.name,
                active=len(self._subscribers),
            )
        elif event.kind is HubEventKind.UNREGISTER:
            if event.subscriber not in self._subscribers:
                return
            self._subscribers.discard(event.subscriber)
            event.subscriber.close()
            logger.info(
                "subscriber_unregistered",
                subscriber=event.subscriber.name,
                active=len(self._subscribers),
            )
        elif event.kind is HubEventKind.PUBLISH:
            self._fan_out(event.payload)

    def _fan_out(self, payload: str) -> None:
        self._published += 1
        # closed viewers are on their way out through unregister, not overflow
        live = [s for s in self._subscribers if not s.closed]
        slow = [s for s in live if not s.offer(payload)]
        for subscriber in slow:
            self._subscribers.discard(subscriber)
            subscriber.close()
            self._evicted += 1
            logger.info(
                "subscriber_evicted",
                subscriber=subscriber.name,
                reason="queue_full",
                active=len(self._subscribers),
            )

    def _close_all(self) -> None:
        for subscriber in self._subscribers:
            subscriber.close()
        self._subscribers.clear()

        # Events arriving after stop() are acknowledged but ignored
        while True:
            try:
                self._events.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._events.task_done()
