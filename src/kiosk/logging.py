"""Structured logging for the kiosk using structlog.

JSON lines on the deployed kiosk, console output while developing against a
replayed agenda. uvicorn and FastAPI log through stdlib logging; their
records are rendered by the same structlog pipeline so one display host
produces one uniform stream.
"""

import logging
import sys

import structlog

# uvicorn's per-request access lines drown the agenda events at INFO
_NOISY_LOGGERS = ("uvicorn.access",)


def _renderer(json_output: bool) -> list:
    if json_output:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer()]


def setup_logging(json_output: bool = False, log_level: str = "INFO") -> None:
    """Configure structlog and route stdlib loggers through it.

    Args:
        json_output: If True, output JSON lines. If False, console format.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            *_renderer(json_output),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *_renderer(json_output),
            ],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(numeric_level)

    for name in ("uvicorn", "uvicorn.error"):
        # let records reach the root handler instead of uvicorn's own
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def bind_event(event_id: int) -> None:
    """Attach the displayed event id to every subsequent log line."""
    structlog.contextvars.bind_contextvars(event_id=event_id)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance bound with the module name.

    Args:
        name: Logger name (typically __name__ from calling module).
    """
    return structlog.get_logger(name)
