#!/usr/bin/env python3
"""
Operator script: delete every rate-limit record on a running instance.

Reads ADMIN_SECRET (and optionally FORMGATE_URL) from the environment or
a .env file, calls POST /admin/cleanup and prints the deleted count.

Usage::

    python scripts/purge_records.py [--url https://forms.example.com] [--sweep]
"""

import argparse
import os
import sys
from pathlib import Path

import httpx
from dotenv import load_dotenv

project_root = Path(__file__).parent.parent
load_dotenv(project_root / ".env")


def main() -> int:
    parser = argparse.ArgumentParser(description="Purge formgate rate-limit records")
    parser.add_argument(
        "--url",
        default=os.getenv("FORMGATE_URL", "http://localhost:8000"),
        help="Base URL of the formgate instance",
    )
    parser.add_argument(
        "--sweep",
        action="store_true",
        help="Only delete records older than the retention threshold",
    )
    args = parser.parse_args()

    secret = os.getenv("ADMIN_SECRET")
    if not secret:
        print("Error: ADMIN_SECRET is not set")
        return 1

    path = "/admin/sweep" if args.sweep else "/admin/cleanup"
    try:
        resp = httpx.post(f"{args.url.rstrip('/')}{path}", json={"secret": secret}, timeout=60)
    except httpx.HTTPError as exc:
        print(f"Error: request failed: {exc}")
        return 1

    if resp.status_code != 200:
        print(f"Error: {resp.status_code} {resp.text}")
        return 1

    print(f"✓ Deleted {resp.json()['deletedCount']} record(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
