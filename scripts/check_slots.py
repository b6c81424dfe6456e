#!/usr/bin/env python3
"""
Slot Check Script
=================

Standalone script to check a running hass-shooter server.

This script:
    1. Reads /metrics to learn the number of slots
    2. Fetches every slot image, reporting status and size
    3. Optionally saves the images to a directory
    4. Repeats every --interval seconds when --watch is given

Usage:
    python scripts/check_slots.py --url http://localhost:8000
    python scripts/check_slots.py --save-dir /tmp/slots --watch --interval 30
"""

import argparse
import logging
import os
import sys
import time
from pathlib import Path
from typing import Optional

import requests


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


def check_once(base_url: str, save_dir: Optional[Path], timeout: float) -> bool:
    """
    Fetch every slot once.

    Returns:
        True if every slot returned an image
    """
    resp = requests.get(f"{base_url}/metrics", timeout=timeout)
    resp.raise_for_status()
    metrics = resp.json()

    capacity = metrics["cache"]["capacity"]
    scheduler = metrics["scheduler"]
    logger.info("-" * 40)
    logger.info(f"Slots: {capacity}")
    logger.info(f"  Cycles completed: {scheduler['cycles_completed']}")
    logger.info(f"  Capture failures: {scheduler['capture_failures']}")
    logger.info(f"  Transform failures: {scheduler['transform_failures']}")

    all_ok = True
    for idx in range(capacity):
        resp = requests.get(f"{base_url}/{idx}", timeout=timeout)
        if resp.status_code != 200:
            all_ok = False
            logger.warning(f"  Slot {idx}: HTTP {resp.status_code}")
            continue

        logger.info(
            f"  Slot {idx}: {len(resp.content)} bytes "
            f"({resp.headers.get('content-type', '?')})"
        )
        if save_dir is not None:
            path = save_dir / f"slot_{idx}.bmp"
            path.write_bytes(resp.content)

    return all_ok


def main() -> int:
    parser = argparse.ArgumentParser(description="Check the slots of a hass-shooter server")
    parser.add_argument(
        "--url",
        type=str,
        default=os.environ.get("HASS_SHOOTER_URL", "http://localhost:8000"),
        help="Base URL of the hass-shooter server",
    )
    parser.add_argument(
        "--save-dir",
        type=Path,
        default=None,
        help="Directory to save slot images into",
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep checking until interrupted",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=60.0,
        help="Seconds between checks in watch mode (default: 60)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="HTTP timeout in seconds (default: 10)",
    )
    args = parser.parse_args()

    base_url = args.url.rstrip("/")
    if args.save_dir is not None:
        args.save_dir.mkdir(parents=True, exist_ok=True)

    ok = False
    try:
        while True:
            try:
                ok = check_once(base_url, args.save_dir, args.timeout)
            except requests.RequestException as e:
                ok = False
                logger.error(f"Server unreachable: {e}")

            if not args.watch:
                break
            time.sleep(args.interval)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")

    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
