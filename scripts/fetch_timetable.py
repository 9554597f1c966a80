"""Download the raw Indico timetable export of an event.

Useful to record test fixtures or to check what the kiosk would display.

Run with: python scripts/fetch_timetable.py --id 12779
Fixture:  python scripts/fetch_timetable.py --id 12779 --base64 > timetable.b64
Summary:  python scripts/fetch_timetable.py --id 12779 --summary

Exit codes:
  0 = success (export on stdout)
  1 = error (message on stderr)
"""

import argparse
import base64
import json
import os
import sys

from dotenv import load_dotenv

load_dotenv()

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.kiosk.config import get_config  # noqa: E402
from src.kiosk.errors import FetchError  # noqa: E402
from src.kiosk.indico import download_timetable, parse_timetable  # noqa: E402
from src.kiosk.logging import setup_logging  # noqa: E402


def _parse_args() -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    config = get_config()
    parser = argparse.ArgumentParser(
        description="Download an Indico timetable export.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--id",
        type=int,
        default=config.event_id,
        help=f"Timetable (event) id (default: {config.event_id}).",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=config.indico_host,
        help=f"Indico server (default: {config.indico_host}).",
    )

    output_group = parser.add_mutually_exclusive_group()
    output_group.add_argument(
        "--base64",
        action="store_true",
        help="Base64-encode the JSON export.",
    )
    output_group.add_argument(
        "--summary",
        action="store_true",
        help="Print one line per day/session instead of the raw export.",
    )
    return parser.parse_args()


def _format_summary(payload: dict, event_id: int) -> str:
    table = parse_timetable(payload, event_id)
    lines = [f"timetable-{table.id} {table.url}"]
    for day in table.days:
        lines.append(f"{day.date.isoformat()}")
        for session in day.sessions:
            span = session.span
            lines.append(
                f"  {span.start:%H:%M}-{span.end:%H:%M}  {span.title}"
                f"  ({len(session.contributions)} contributions)"
            )
    return "\n".join(lines)


def main() -> int:
    args = _parse_args()
    # keep stdout clean for the export
    setup_logging(log_level="WARNING")

    try:
        payload = download_timetable(args.host, args.id)
        if args.summary:
            output = _format_summary(payload, args.id)
        else:
            output = json.dumps(payload, indent=2, ensure_ascii=False)
    except FetchError as e:
        print(f"fetch_timetable: {e}", file=sys.stderr)
        return 1

    if args.base64:
        output = base64.b64encode(output.encode("utf-8")).decode("ascii")
    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
