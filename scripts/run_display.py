"""Serve the live agenda kiosk for one Indico event.

Fetches the event timetable, then serves the kiosk page on / and pushes the
agenda to every connected display over the /data WebSocket.

Run with: python scripts/run_display.py
Port:     python scripts/run_display.py --addr :8080
Replay:   python scripts/run_display.py --addr :8080 --dev-test
Pinned:   python scripts/run_display.py --now "2016-09-27 10:04:50" --loc Europe/Paris

Flags override the KIOSK_* environment variables (see src/kiosk/config.py).

Exit codes:
  0 = server stopped cleanly
  1 = invalid arguments
  3 = startup failed (uvicorn), e.g. the initial timetable fetch failed
"""

import argparse
import os
import sys
from datetime import datetime

import uvicorn
from dotenv import load_dotenv

load_dotenv()

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.kiosk.config import NOW_LAYOUT, KioskConfig  # noqa: E402
from src.kiosk.logging import bind_event, get_logger, setup_logging  # noqa: E402
from src.kiosk.server import create_app  # noqa: E402

log = get_logger(__name__)


def _parse_args() -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="Serve the live agenda kiosk display.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--addr",
        type=str,
        default=None,
        help="[hostname|ip]:port for the web server (default: 0.0.0.0:80).",
    )
    parser.add_argument(
        "--evtid",
        type=int,
        default=None,
        help="Indico event id (default: 12779).",
    )
    parser.add_argument(
        "--now",
        type=str,
        default=None,
        help=f"Agenda start time, format {NOW_LAYOUT!r} (default: wall clock).",
    )
    parser.add_argument(
        "--loc",
        type=str,
        default=None,
        help="Agenda time location (default: Europe/Paris).",
    )
    parser.add_argument(
        "--dev-test",
        action="store_true",
        help="Replay the event in accelerated time, looping over the replay window.",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output JSON logs.",
    )
    return parser.parse_args()


def _split_addr(addr: str) -> tuple[str, int]:
    host, sep, port = addr.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid address {addr!r}, expected [host]:port")
    return host or "0.0.0.0", int(port)


def build_config(args: argparse.Namespace) -> KioskConfig:
    """Overlay command-line flags on the environment configuration."""
    overrides: dict[str, object] = {}
    if args.addr:
        overrides["host"], overrides["port"] = _split_addr(args.addr)
    if args.evtid is not None:
        overrides["event_id"] = args.evtid
    if args.now:
        datetime.strptime(args.now, NOW_LAYOUT)
        overrides["agenda_now"] = args.now
    if args.loc:
        overrides["agenda_timezone"] = args.loc
    if args.dev_test:
        overrides["simulate"] = True
    if args.log_json:
        overrides["log_json"] = True
    return KioskConfig(**overrides)


def main() -> int:
    args = _parse_args()
    try:
        config = build_config(args)
    except ValueError as e:
        print(f"run_display: {e}", file=sys.stderr)
        return 1

    setup_logging(json_output=config.log_json, log_level=config.log_level)
    bind_event(config.event_id)
    log.info(
        "display_starting",
        host=config.host,
        port=config.port,
        event_id=config.event_id,
        simulate=config.simulate,
    )

    app = create_app(config)
    try:
        uvicorn.run(app, host=config.host, port=config.port, log_config=None)
    except Exception as e:
        log.error("display_failed", error=str(e), type=type(e).__name__)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
