#!/usr/bin/env python3
"""Capture station: photograph a vehicle (or pick an image file) and submit it."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "backend") not in sys.path:
    sys.path.insert(0, str(ROOT / "backend"))

from checkpoint.camera import Camera, list_camera_devices, resolve_camera_index  # noqa: E402
from checkpoint.capture import CaptureFlow  # noqa: E402
from checkpoint.config import get_settings  # noqa: E402
from checkpoint.identifiers import SCHEMES, get_scheme  # noqa: E402
from checkpoint.stores import build_stores  # noqa: E402


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Capture a photo at the checkpoint and submit it for review."
    )
    parser.add_argument(
        "--identifier",
        default=None,
        help="Vehicle number (or email, depending on --scheme). Prompted for when omitted.",
    )
    parser.add_argument(
        "--image",
        default=None,
        help="Submit this image file instead of grabbing a camera frame.",
    )
    parser.add_argument(
        "--scheme",
        choices=sorted(SCHEMES),
        default=settings.identifier_scheme,
        help="Identifier scheme of this deployment (default: IDENTIFIER_SCHEME).",
    )
    parser.add_argument(
        "--store-mode",
        choices=("memory", "admin", "rest"),
        default=settings.store_mode,
        help="Store backend (admin uses a service account, rest uses HTTP).",
    )
    parser.add_argument(
        "--camera-index",
        type=int,
        default=_env_int("CAMERA_INDEX", 0),
        help="OpenCV camera index.",
    )
    parser.add_argument(
        "--camera-name",
        default=os.getenv("CAMERA_NAME_HINT", ""),
        help="Substring of the DirectShow device name used to auto-detect the camera.",
    )
    parser.add_argument(
        "--warmup-seconds",
        type=float,
        default=_env_float("CAMERA_WARMUP_SECONDS", 1.5),
        help="Seconds to wait after opening the camera before grabbing a frame.",
    )
    parser.add_argument(
        "--save-preview",
        default=None,
        help="Also write the captured frame to this path.",
    )
    parser.add_argument(
        "--continuous",
        action="store_true",
        help="Keep the camera open and capture again after every submission.",
    )
    parser.add_argument(
        "--list-cameras",
        action="store_true",
        help="Print available DirectShow devices and exit.",
    )
    return parser


def print_camera_devices() -> None:
    try:
        devices = list_camera_devices()
    except RuntimeError as exc:
        print(f"[Camera] failed to list devices: {exc}")
        return
    if not devices:
        print("[Camera] no DirectShow devices available.")
        return
    print("[Camera] available DirectShow devices:")
    for idx, device_name in enumerate(devices):
        print(f"  [{idx}] {device_name}")


async def _ask_identifier(flow: CaptureFlow, given: Optional[str]) -> str:
    if given is not None:
        return given
    return await asyncio.to_thread(input, f"Enter {flow.scheme.field}: ")


async def process_cycle(flow: CaptureFlow, args: argparse.Namespace) -> bool:
    if args.image:
        path = Path(args.image).expanduser()
        notice = flow.load_file(path.name, path.read_bytes())
    else:
        notice = await flow.capture()
    print(f"[Camera] {notice.message}")
    if not notice.ok:
        return False

    if args.save_preview and flow.preview is not None:
        output = Path(args.save_preview)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(flow.preview.data)
        print(f"[Camera] preview written to {output}")

    notice = await flow.submit(await _ask_identifier(flow, args.identifier))
    if notice.ok:
        print(f"[Storage] {notice.message} id={notice.submission_id} url={notice.image_url}")
    else:
        print(f"[Storage] {notice.message}", file=sys.stderr)
    return notice.ok


async def run(args: argparse.Namespace) -> int:
    settings = get_settings().model_copy(
        update={"store_mode": args.store_mode, "identifier_scheme": args.scheme}
    )
    records, blobs = build_stores(settings)

    camera = None
    if not args.image:
        index, auto_resolved = resolve_camera_index(args.camera_index, args.camera_name)
        if auto_resolved:
            print(f"[Camera] auto-selected device index {index} by name hint '{args.camera_name}'")
        camera = Camera(index, warmup_seconds=args.warmup_seconds)

    flow = CaptureFlow(
        records,
        blobs,
        scheme=get_scheme(args.scheme),
        identifier_required=settings.identifier_required,
        submissions_path=settings.submissions_path,
        storage_prefix=settings.storage_prefix,
        camera=camera,
    )
    try:
        async with flow:
            if flow.camera_error:
                print(f"[Camera] {flow.camera_error}", file=sys.stderr)
                return 1
            ok = await process_cycle(flow, args)
            while args.continuous:
                await asyncio.to_thread(
                    input, "[Station] press Enter to capture the next vehicle (Ctrl+C to stop) "
                )
                ok = await process_cycle(flow, args)
    finally:
        await records.close()
        await blobs.close()
    return 0 if ok else 1


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    if args.list_cameras:
        print_camera_devices()
        return 0
    if args.image and args.continuous:
        parser.error("--continuous needs the camera; drop --image.")
    return asyncio.run(run(args))


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(130)
    except Exception as exc:  # pylint: disable=broad-except
        print(f"[Fatal] {exc}", file=sys.stderr)
        sys.exit(1)
