"""Unit tests for kiosk configuration."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.kiosk.config import KioskConfig


def test_defaults_target_the_ji_2016_event(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("KIOSK_EVENT_ID", raising=False)
    config = KioskConfig(_env_file=None)
    assert config.event_id == 12779
    assert config.agenda_timezone == "Europe/Paris"
    assert config.subscriber_queue_size == 256
    assert not config.simulate


def test_environment_overrides_use_kiosk_prefix(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KIOSK_EVENT_ID", "4242")
    monkeypatch.setenv("KIOSK_SIMULATE", "true")
    config = KioskConfig(_env_file=None)
    assert config.event_id == 4242
    assert config.simulate


def test_simulation_window_parses_offsets() -> None:
    start, end = KioskConfig(_env_file=None).simulation_window()
    cest = timezone(timedelta(hours=2))
    assert start == datetime(2016, 9, 26, 14, 45, tzinfo=cest)
    assert end == datetime(2016, 9, 29, 12, 12, tzinfo=cest)


def test_inverted_simulation_window_is_rejected() -> None:
    config = KioskConfig(
        _env_file=None,
        simulation_start="2016-09-29 12:12 +0200",
        simulation_end="2016-09-26 14:45 +0200",
    )
    with pytest.raises(ValueError):
        config.simulation_window()


def test_tick_must_be_positive() -> None:
    with pytest.raises(ValueError):
        KioskConfig(_env_file=None, tick_seconds=0)
