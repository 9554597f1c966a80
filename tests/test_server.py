"""End-to-end tests of the FastAPI application with a fake timetable source."""

from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient

from src.kiosk.config import KioskConfig
from src.kiosk.errors import PermanentError
from src.kiosk.models import TimeTable
from src.kiosk.server import create_app
from tests.factories import at, back_to_back_contributions, session, timetable


class _FakeWallClock:
    def __init__(self, instant) -> None:
        self.instant = instant

    def __call__(self, tz):
        return self.instant.astimezone(tz)


class _ScriptedFetcher:
    """Returns the queued tables in order, raising queued exceptions."""

    def __init__(self, *results) -> None:
        self.results = list(results)
        self.calls: list[int] = []

    def __call__(self, event_id: int) -> TimeTable:
        self.calls.append(event_id)
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def _table(title: str = "Dev-1") -> TimeTable:
    return timetable(
        [session("s1", at(10), at(11), back_to_back_contributions("c", at(10), 3), title=title)]
    )


def _config(**overrides) -> KioskConfig:
    values = {"indico_host": "indico.example", "tick_seconds": 0.05, "page_title": "JI-2016 Web Display"}
    values.update(overrides)
    return KioskConfig(**values)


def _client(fetcher: _ScriptedFetcher, **overrides) -> TestClient:
    app = create_app(_config(**overrides), fetcher=fetcher, wall_clock=_FakeWallClock(at(10, 30)))
    return TestClient(app)


def test_index_serves_page_pointing_at_data_socket() -> None:
    with _client(_ScriptedFetcher(_table())) as client:
        response = client.get("/")

    assert response.status_code == 200
    assert 'new WebSocket("ws://testserver/data")' in response.text
    assert "<title>JI-2016 Web Display</title>" in response.text


def test_healthz_reports_clock_and_hub() -> None:
    with _client(_ScriptedFetcher(_table())) as client:
        body = client.get("/healthz").json()

    assert body["status"] == "ok"
    assert body["event_id"] == 12779
    assert body["mode"] == "realtime"
    assert body["now"] == at(10, 30).isoformat()
    assert {"subscribers", "published", "evicted"} <= body.keys()


def test_viewer_receives_rendered_agenda() -> None:
    with _client(_ScriptedFetcher(_table())) as client:
        with client.websocket_connect("/data") as ws:
            fragment = ws.receive_text()

    assert fragment.startswith('<h1 id="agenda-day">2016-09-27 -- 10:30:00</h1>')
    assert '<h2 id="current-session">Dev-1 (10:00 - 11:00)</h2>' in fragment


def test_agenda_now_setting_shifts_the_clock() -> None:
    with _client(_ScriptedFetcher(_table()), agenda_now="2016-09-27 10:45:00") as client:
        body = client.get("/healthz").json()
    assert body["now"] == at(10, 45).isoformat()


def test_refresh_swaps_timetable_for_viewers() -> None:
    fetcher = _ScriptedFetcher(_table(), _table(title="Dev-1 (moved)"))
    with _client(fetcher) as client:
        response = client.post("/refresh-timetable")
        assert response.status_code == 200
        assert response.text == "timetable-12779 refreshed\n"

        with client.websocket_connect("/data") as ws:
            fragment = ws.receive_text()

    assert fetcher.calls == [12779, 12779]
    assert "Dev-1 (moved)" in fragment


def test_failed_refresh_keeps_serving_previous_table() -> None:
    fetcher = _ScriptedFetcher(_table(), PermanentError("indico answered 404 for https://indico.example"))
    with _client(fetcher) as client:
        response = client.post("/refresh-timetable")
        assert response.status_code == 500
        assert "indico answered 404" in response.text

        with client.websocket_connect("/data") as ws:
            fragment = ws.receive_text()

    assert "Dev-1 (10:00 - 11:00)" in fragment


def test_resync_is_accepted() -> None:
    with _client(_ScriptedFetcher(_table()), agenda_now="2016-09-27 08:00:00") as client:
        response = client.post("/resync-clock")
        assert response.status_code == 202
        assert response.json() == {"status": "accepted"}


def test_startup_fails_without_initial_timetable() -> None:
    fetcher = _ScriptedFetcher(PermanentError("indico: no event with id=12779"))
    with pytest.raises(PermanentError):
        with _client(fetcher):
            pass


def test_simulation_mode_reported_in_healthz() -> None:
    with _client(_ScriptedFetcher(_table()), simulate=True) as client:
        body = client.get("/healthz").json()
    assert body["mode"] == "simulation"


def test_closed_viewer_is_torn_down_and_not_counted_as_evicted() -> None:
    with _client(_ScriptedFetcher(_table())) as client:
        with client.websocket_connect("/data") as ws:
            ws.receive_text()

        deadline = time.monotonic() + 5
        body = client.get("/healthz").json()
        while body["subscribers"] and time.monotonic() < deadline:
            time.sleep(0.05)
            body = client.get("/healthz").json()

    assert body["subscribers"] == 0
    assert body["evicted"] == 0
