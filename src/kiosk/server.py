"""FastAPI application serving the kiosk page and the live agenda WebSocket.

Endpoints:
- GET  /                   -> kiosk page (connects to /data)
- WS   /data               -> one rendered agenda fragment per clock tick
- POST /refresh-timetable  -> re-fetch the timetable and swap it in
- POST /resync-clock       -> jump the agenda clock back to wall-clock time
- GET  /healthz            -> liveness + broadcast counters

The store, hub and clock driver are built per application in create_app()
and live on app.state; nothing is a module-level singleton.

Usage:
    uvicorn --factory src.kiosk.server:create_app
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse

from src.kiosk.clock import ClockDriver, SimulationWindow, WallClock, system_clock
from src.kiosk.config import NOW_LAYOUT, KioskConfig, get_config
from src.kiosk.errors import FetchError
from src.kiosk.hub import BroadcastHub
from src.kiosk.indico import IndicoFetcher
from src.kiosk.logging import get_logger
from src.kiosk.render import render_agenda, render_page
from src.kiosk.store import Fetcher, TimetableStore
from src.kiosk.subscriber import Subscriber, WebSocketTransport, is_expected_disconnect

logger = get_logger(__name__)


def _initial_now(config: KioskConfig, tz: ZoneInfo) -> datetime | None:
    if not config.agenda_now:
        return None
    return datetime.strptime(config.agenda_now, NOW_LAYOUT).replace(tzinfo=tz)


async def _close_on_disconnect(websocket: WebSocket, subscriber: Subscriber) -> None:
    """Stop the viewer's delivery loop as soon as the browser closes the socket.

    Viewers never send anything; incoming text frames are ignored.
    """
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    except Exception as e:
        if not is_expected_disconnect(e):
            logger.warning(
                "viewer_receive_failed",
                subscriber=subscriber.name,
                error=str(e),
                type=type(e).__name__,
            )
    logger.info("viewer_closed_socket", subscriber=subscriber.name)
    subscriber.close()


def create_app(
    config: KioskConfig | None = None,
    *,
    fetcher: Fetcher | None = None,
    wall_clock: WallClock = system_clock,
) -> FastAPI:
    """Build the kiosk application.

    Args:
        config: Kiosk settings. Defaults to the environment configuration.
        fetcher: Timetable fetcher. Defaults to the configured Indico server.
        wall_clock: Wall-clock source handed to the clock driver.
    """
    config = config or get_config()
    fetcher = fetcher or IndicoFetcher(config.indico_host, config.fetch_timeout_seconds)
    tz = ZoneInfo(config.agenda_timezone)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "kiosk_starting",
            event_id=config.event_id,
            indico_host=config.indico_host,
            simulate=config.simulate,
        )
        # Startup fails when the first fetch does: there is nothing to display
        table = await asyncio.to_thread(fetcher, config.event_id)

        store = TimetableStore(table, fetcher=fetcher)
        hub = BroadcastHub()
        simulation = None
        if config.simulate:
            simulation = SimulationWindow(*config.simulation_window())
        driver = ClockDriver(
            store,
            hub,
            render_agenda,
            timezone=tz,
            now=_initial_now(config, tz),
            tick_seconds=config.tick_seconds,
            simulation=simulation,
            wall_clock=wall_clock,
        )

        app.state.config = config
        app.state.store = store
        app.state.hub = hub
        app.state.driver = driver

        hub_task = asyncio.create_task(hub.run(), name="broadcast-hub")
        clock_task = asyncio.create_task(driver.run(), name="clock-driver")
        try:
            yield
        finally:
            driver.stop()
            hub.stop()
            await asyncio.gather(clock_task, hub_task, return_exceptions=True)
            logger.info("kiosk_stopped", **hub.stats)

    app = FastAPI(title=config.page_title, lifespan=lifespan)

    @app.get("/", response_class=HTMLResponse)
    async def index(request: Request) -> HTMLResponse:
        scheme = "wss" if request.url.scheme == "https" else "ws"
        ws_url = f"{scheme}://{request.url.netloc}/data"
        return HTMLResponse(render_page(ws_url, config.page_title))

    @app.get("/healthz")
    async def healthz(request: Request) -> dict:
        driver: ClockDriver = request.app.state.driver
        return {
            "status": "ok",
            "event_id": request.app.state.store.current.id,
            "mode": driver.mode,
            "now": driver.now.isoformat(),
            **request.app.state.hub.stats,
        }

    @app.websocket("/data")
    async def data(websocket: WebSocket) -> None:
        await websocket.accept()
        subscriber = Subscriber(
            websocket.app.state.hub,
            WebSocketTransport(websocket),
            maxsize=config.subscriber_queue_size,
        )
        watcher = asyncio.create_task(_close_on_disconnect(websocket, subscriber))
        try:
            await subscriber.run()
        finally:
            watcher.cancel()
            await asyncio.gather(watcher, return_exceptions=True)

    @app.post("/refresh-timetable")
    async def refresh_timetable(request: Request) -> PlainTextResponse:
        store: TimetableStore = request.app.state.store
        event_id = store.current.id
        try:
            await store.refresh_async()
        except FetchError as e:
            return PlainTextResponse(f"{e}\n", status_code=500)
        return PlainTextResponse(f"timetable-{event_id} refreshed\n")

    @app.post("/resync-clock", status_code=202)
    async def resync_clock(request: Request) -> JSONResponse:
        driver: ClockDriver = request.app.state.driver
        driver.resync()
        return JSONResponse({"status": "accepted"}, status_code=202)

    return app
