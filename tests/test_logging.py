"""Unit tests for the structlog setup."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from src.kiosk.logging import bind_event, setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    root.handlers = handlers
    root.setLevel(level)


def test_uvicorn_records_share_the_json_stream(capsys, restore_logging) -> None:
    setup_logging(json_output=True, log_level="INFO")
    bind_event(12779)
    logging.getLogger("uvicorn.error").info("Started server process")

    line = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert line["event"] == "Started server process"
    assert line["level"] == "info"
    assert line["event_id"] == 12779


def test_access_log_is_quieted(restore_logging) -> None:
    setup_logging(log_level="INFO")
    assert not logging.getLogger("uvicorn.access").isEnabledFor(logging.INFO)
    assert logging.getLogger("uvicorn.error").isEnabledFor(logging.INFO)
