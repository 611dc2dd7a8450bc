"""Terminal admin view: live submissions table plus the approve/disapprove signal.

Usage:
  python tools/review_console.py            # watch until Ctrl+C
  python tools/review_console.py --once     # print the current table and exit
  python tools/review_console.py --approve  # turn the LED on and exit
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "backend") not in sys.path:
    sys.path.insert(0, str(ROOT / "backend"))

from checkpoint.config import get_settings  # noqa: E402
from checkpoint.identifiers import get_scheme  # noqa: E402
from checkpoint.review import ReviewFlow  # noqa: E402
from checkpoint.schemas import Submission  # noqa: E402
from checkpoint.signal import SignalRelay  # noqa: E402
from checkpoint.stores import build_stores  # noqa: E402
from checkpoint.time_utils import parse_timestamp  # noqa: E402


def render(items: list[Submission]) -> str:
    if not items:
        return "No submissions available."
    lines = [f"{'ID':<22} {'IDENTIFIER':<24} {'TIMESTAMP (local)':<26} IMAGE"]
    for item in items:
        parsed = parse_timestamp(item.timestamp)
        when = parsed.astimezone().strftime("%Y-%m-%d %H:%M:%S") if parsed else item.timestamp
        lines.append(f"{item.id:<22} {item.identifier:<24} {when:<26} {item.image_url or 'No Image'}")
    return "\n".join(lines)


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    records, blobs = build_stores(settings)
    flow = ReviewFlow(
        records,
        SignalRelay(records, settings.signal_path),
        scheme=get_scheme(settings.identifier_scheme),
        submissions_path=settings.submissions_path,
    )
    try:
        if args.approve or args.disapprove:
            notice = await flow.decide(bool(args.approve))
            print(f"[Signal] {notice.message}")
            return 0 if notice.ok else 1
        async for items in flow.projections():
            print(render(items))
            print()
            if args.once:
                break
    finally:
        flow.close()
        await records.close()
        await blobs.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Watch submissions and send the approval signal.")
    parser.add_argument("--once", action="store_true", help="Print the current table and exit.")
    decision = parser.add_mutually_exclusive_group()
    decision.add_argument("--approve", action="store_true", help="Write LED on and exit.")
    decision.add_argument("--disapprove", action="store_true", help="Write LED off and exit.")
    return parser


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(run(build_parser().parse_args())))
    except KeyboardInterrupt:
        sys.exit(130)
