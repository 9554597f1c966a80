"""Subscriber session: one connected viewer and its outbound queue.

The hub offers payloads without waiting; the session's delivery loop drains
them in FIFO order onto the transport. A failed write ends the loop, after
which the session unregisters itself and releases its transport.
"""

import asyncio
import itertools
from typing import Protocol

from fastapi import WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

from src.kiosk.hub import BroadcastHub
from src.kiosk.logging import get_logger

logger = get_logger(__name__)

DEFAULT_QUEUE_SIZE = 256

_CLOSED = object()
_ids = itertools.count(1)

_DISCONNECT_ERRORS = (
    WebSocketDisconnect,
    ConnectionResetError,
    BrokenPipeError,
    EOFError,
)

_DISCONNECT_MESSAGES = (
    "websocket is not connected",
    "cannot call \"send\" once a close message has been sent",
    "unexpected asgi message 'websocket.send'",
    "cannot call \"receive\" once a disconnect message has been received",
)


def is_expected_disconnect(exc: BaseException) -> bool:
    """Return True when the exception represents a viewer going away."""
    if isinstance(exc, _DISCONNECT_ERRORS):
        return True
    if isinstance(exc, RuntimeError):
        message = str(exc).strip().lower()
        return any(fragment in message for fragment in _DISCONNECT_MESSAGES)
    return False


class Transport(Protocol):
    """Outbound half of a viewer connection."""

    async def send(self, payload: str) -> None: ...

    async def close(self) -> None: ...


class WebSocketTransport:
    """Transport over an accepted FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    async def send(self, payload: str) -> None:
        await self.websocket.send_text(payload)

    async def close(self) -> None:
        if WebSocketState.DISCONNECTED in (
            self.websocket.client_state,
            self.websocket.application_state,
        ):
            return
        try:
            await self.websocket.close()
        except Exception as e:
            if not is_expected_disconnect(e):
                raise

    def __repr__(self) -> str:
        client = self.websocket.client
        return f"{client.host}:{client.port}" if client else "websocket"


class Subscriber:
    """Per-viewer bounded queue plus the loop delivering it to the transport."""

    def __init__(
        self,
        hub: BroadcastHub,
        transport: Transport,
        maxsize: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self.hub = hub
        self.transport = transport
        self.name = f"viewer-{next(_ids)}[{transport!r}]"
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._sending: asyncio.Task[None] | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def offer(self, payload: str) -> bool:
        """Enqueue a payload without waiting.

        Returns:
            False when the queue is full or already closed.
        """
        if self._closed:
            return False
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> None:
        """Stop the delivery loop; payloads still queued are discarded.

        A send stuck on a stalled viewer is cancelled, so run() always gets
        to release the transport.
        """
        if self._closed:
            return
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)
        if self._sending is not None and not self._sending.done():
            self._sending.cancel()

    async def run(self) -> None:
        """Register with the hub and deliver payloads until closed or broken."""
        self.hub.register(self)
        try:
            while True:
                payload = await self._queue.get()
                if payload is _CLOSED:
                    break
                self._sending = asyncio.ensure_future(self.transport.send(payload))
                try:
                    await self._sending
                except asyncio.CancelledError:
                    if not self._closed or asyncio.current_task().cancelling():
                        raise
                    logger.info("viewer_send_cancelled", subscriber=self.name)
                    break
                except Exception as e:
                    if is_expected_disconnect(e):
                        logger.info("viewer_disconnected", subscriber=self.name)
                    else:
                        logger.warning(
                            "viewer_send_failed",
                            subscriber=self.name,
                            error=str(e),
                            type=type(e).__name__,
                        )
                    break
        finally:
            self._sending = None
            self.hub.unregister(self)
            await self.transport.close()
