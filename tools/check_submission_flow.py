"""Quick helper to exercise the capture and review endpoints in one go.

Usage:
  python tools/check_submission_flow.py --image example.png --identifier 12GA3456
  python tools/check_submission_flow.py --image example.png --approve

Notes:
  - Uses the store selected by STORE_MODE (memory when unset), so against a real
    Firebase project this creates a real submission.
  - With --approve / --disapprove the admin signal is written as well.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "backend") not in sys.path:
    sys.path.insert(0, str(ROOT / "backend"))

from checkpoint.main import create_app  # noqa: E402


def _print_body(label: str, resp) -> dict:
    print(f"[{label}] status:", resp.status_code)
    try:
        body = resp.json()
    except ValueError as exc:
        raise SystemExit(f"[{label}] invalid response: {exc}") from exc
    print(f"[{label}] body:", json.dumps(body, ensure_ascii=False))
    return body


def run(args: argparse.Namespace) -> None:
    image_path = Path(args.image)
    if not image_path.exists():
        raise SystemExit(f"Image not found: {image_path}")

    with TestClient(create_app()) as client:
        files = {"image": (image_path.name, image_path.read_bytes(), "image/png")}
        resp = client.post("/api/submissions", files=files, data={"identifier": args.identifier})
        body = _print_body("submit", resp)
        if resp.status_code != 201:
            raise SystemExit("Submission failed; aborting.")
        submission_id = body.get("submissionId")

        resp = client.get("/api/admin/submissions")
        listing = _print_body("admin", resp)
        ids = [item["id"] for item in listing.get("submissions", [])]
        # The admin projection catches up through the store subscription.
        print("[admin] new submission visible:", submission_id in ids)

        if args.approve or args.disapprove:
            resp = client.post("/api/admin/signal", json={"approved": bool(args.approve)})
            _print_body("signal", resp)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Submit an image and read it back from the admin view.")
    parser.add_argument(
        "--image",
        default="example.png",
        help="Image file to submit (default: example.png).",
    )
    parser.add_argument(
        "--identifier",
        default="TEST-0000",
        help="Identifier sent with the submission (default: TEST-0000).",
    )
    decision = parser.add_mutually_exclusive_group()
    decision.add_argument("--approve", action="store_true", help="Turn the LED on afterwards.")
    decision.add_argument("--disapprove", action="store_true", help="Turn the LED off afterwards.")
    return parser


if __name__ == "__main__":
    run(build_parser().parse_args())
