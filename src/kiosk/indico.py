"""Indico timetable export: download and parse into the TimeTable model.

The export lives at https://<host>/export/timetable/<event id>.json and looks like:

    {"results": {"12779": {                      # event id
        "20160926": {                            # day, YYYYMMDD
            "s1": {                              # top-level entry (session/break)
                "id": "s1", "title": "...", "room": "...",
                "startDate": {"date": "2016-09-26", "time": "14:00:00", "tz": "Europe/Paris"},
                "endDate": {...},
                "duration": 90,                  # minutes, 0 when unknown
                "entries": {"c1": {... "presenters": [{"name": ...}]}},
            }}}}}

Network failures are retried with tenacity; anything that cannot be parsed is
a PermanentError.
"""

from datetime import datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import requests
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.kiosk.errors import (
    EventNotFoundError,
    PermanentError,
    RateLimitError,
    TransientError,
)
from src.kiosk.logging import get_logger
from src.kiosk.models import Contribution, Day, Presenter, Session, TimeSpan, TimeTable

log = get_logger(__name__)

EXPORT_PATH = "/export/timetable/{event_id}.json"
DAY_KEY_LAYOUT = "%Y%m%d"
TIME_LAYOUT = "%Y-%m-%d %H:%M:%S"


def timetable_url(host: str, event_id: int) -> str:
    """Export URL of an event's timetable on an Indico server."""
    return f"https://{host}{EXPORT_PATH.format(event_id=event_id)}?pretty=yes"


def _parse_instant(raw: Any) -> datetime:
    """Parse an Indico {"date", "time", "tz"} object into an aware datetime."""
    if not isinstance(raw, dict):
        raise PermanentError(f"indico: invalid date object {raw!r}")
    try:
        tz = ZoneInfo(raw.get("tz") or "UTC")
        naive = datetime.strptime(f"{raw['date']} {raw['time']}", TIME_LAYOUT)
    except (KeyError, ValueError, ZoneInfoNotFoundError) as e:
        raise PermanentError(f"indico: invalid date object {raw!r}: {e}") from e
    return naive.replace(tzinfo=tz)


def _parse_duration(raw: Any) -> timedelta | None:
    """Minutes to timedelta; 0 or missing means "derive from start/end"."""
    if not raw:
        return None
    try:
        return timedelta(minutes=int(raw))
    except (TypeError, ValueError) as e:
        raise PermanentError(f"indico: invalid duration {raw!r}") from e


def _parse_span(key: str, raw: dict[str, Any]) -> TimeSpan:
    return TimeSpan(
        id=str(raw.get("id") or key),
        title=raw.get("title") or "",
        description=raw.get("description") or "",
        location=raw.get("location") or "",
        room=raw.get("room") or "",
        start=_parse_instant(raw.get("startDate")),
        end=_parse_instant(raw.get("endDate")),
        duration=_parse_duration(raw.get("duration")),
    )


def _parse_contribution(key: str, raw: dict[str, Any]) -> Contribution:
    return Contribution(
        span=_parse_span(key, raw),
        url=raw.get("url") or "",
        presenters=tuple(
            Presenter.model_validate({k: v or "" for k, v in p.items()})
            for p in raw.get("presenters") or ()
        ),
    )


def _parse_session(key: str, raw: dict[str, Any]) -> Session:
    entries = raw.get("entries") or {}
    return Session(
        span=_parse_span(key, raw),
        contributions=tuple(
            _parse_contribution(k, v) for k, v in entries.items()
        ),
    )


def parse_timetable(payload: dict[str, Any], event_id: int) -> TimeTable:
    """Build a TimeTable from a decoded Indico timetable export.

    Args:
        payload: Decoded JSON document.
        event_id: Event to extract from payload["results"].

    Returns:
        The normalized TimeTable (sorted, days merged, durations resolved).

    Raises:
        EventNotFoundError: If the export has no entry for event_id.
        PermanentError: If an entry is malformed.
    """
    results = payload.get("results") or {}
    days_raw = results.get(str(event_id))
    if not days_raw:
        raise EventNotFoundError(event_id)

    days: list[Day] = []
    try:
        for day_key, entries in days_raw.items():
            sessions = [_parse_session(k, v) for k, v in (entries or {}).items()]
            days.append(
                Day(
                    date=datetime.strptime(day_key, DAY_KEY_LAYOUT).date(),
                    sessions=sessions,
                )
            )
        table = TimeTable(id=event_id, url=payload.get("url") or "", days=days)
    except (ValidationError, ValueError, AttributeError) as e:
        raise PermanentError(f"indico: could not parse timetable-{event_id}: {e}") from e

    log.info(
        "timetable_parsed",
        event_id=event_id,
        days=len(table.days),
        sessions=sum(len(d.sessions) for d in table.days),
    )
    return table


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(TransientError),
    reraise=True,
)
def download_timetable(
    host: str,
    event_id: int,
    *,
    timeout: float = 30.0,
    http: requests.Session | None = None,
) -> dict[str, Any]:
    """GET the raw timetable export.

    Retries on TransientError but fails fast on PermanentError.

    Raises:
        TransientError: Network errors, timeouts and 5xx after all retries.
        RateLimitError: Indico kept answering 429.
        PermanentError: Other HTTP errors or a body that is not JSON.
    """
    url = timetable_url(host, event_id)
    getter = http or requests
    log.info("timetable_download_started", url=url)
    try:
        resp = getter.get(url, timeout=timeout)
    except (requests.ConnectionError, requests.Timeout) as e:
        log.warning("timetable_download_error", url=url, error=str(e))
        raise TransientError(f"could not GET timetable: {e}") from e

    if resp.status_code == 429:
        raise RateLimitError(f"indico rate limited GET {url}")
    if resp.status_code >= 500:
        raise TransientError(f"indico answered {resp.status_code} for {url}")
    if resp.status_code != 200:
        raise PermanentError(f"indico answered {resp.status_code} for {url}")

    try:
        return resp.json()
    except ValueError as e:
        raise PermanentError(f"could not unmarshal JSON response: {e}") from e


def fetch_timetable(
    host: str,
    event_id: int,
    *,
    timeout: float = 30.0,
    http: requests.Session | None = None,
) -> TimeTable:
    """Download and parse one event's timetable."""
    payload = download_timetable(host, event_id, timeout=timeout, http=http)
    return parse_timetable(payload, event_id)


class IndicoFetcher:
    """Fetcher bound to one Indico server, as used by TimetableStore.refresh()."""

    def __init__(
        self,
        host: str,
        timeout: float = 30.0,
        http: requests.Session | None = None,
    ) -> None:
        self.host = host
        self.timeout = timeout
        self.http = http

    def __call__(self, event_id: int) -> TimeTable:
        return fetch_timetable(self.host, event_id, timeout=self.timeout, http=self.http)
