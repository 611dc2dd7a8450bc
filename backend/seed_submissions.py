from __future__ import annotations

import argparse
import asyncio
from datetime import timedelta

from checkpoint.config import get_settings
from checkpoint.identifiers import get_scheme
from checkpoint.stores import build_stores
from checkpoint.time_utils import iso_timestamp, utc_now


async def main(count: int, image_url: str) -> None:
    settings = get_settings()
    scheme = get_scheme(settings.identifier_scheme)
    records, blobs = build_stores(settings)
    now = utc_now()
    try:
        for idx in range(1, count + 1):
            record = {
                "imageUrl": image_url,
                "timestamp": iso_timestamp(now - timedelta(minutes=idx)),
                scheme.field: f"DEMO-{idx:04d}" if scheme.name == "vehicle" else f"demo{idx}@example.com",
            }
            await records.push(settings.submissions_path, record)
    finally:
        await records.close()
        await blobs.close()
    print(f"Seeded {count} submissions under '{settings.submissions_path}'.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed demo submissions into the record store (STORE_MODE=rest or admin).")
    parser.add_argument(
        "--count",
        type=int,
        default=3,
        help="Number of submissions to create (defaults to 3).",
    )
    parser.add_argument(
        "--image-url",
        default="",
        help="Image URL stored on every demo record (defaults to none).",
    )
    args = parser.parse_args()
    asyncio.run(main(args.count, args.image_url))
