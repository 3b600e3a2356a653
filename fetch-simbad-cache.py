#!/usr/bin/env python3
"""
Populate the Simbad cache from a list of HIP numbers (default: built-in bright and field stars).

Run once to fill the cache; convert-placements then finds parallaxes and
positions locally instead of querying Simbad star by star. Simbad is
rate-limited; this script batches requests and adds a short delay between
batches.

Usage:
  poetry run python fetch-simbad-cache.py
  poetry run python fetch-simbad-cache.py "677,5447,9640"
  poetry run python fetch-simbad-cache.py --clear
"""

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from starslice.constants import CACHE_DB, LOG_FORMAT, SIMBAD_BATCH_DELAY_SEC, SIMBAD_BATCH_SIZE
from starslice.ingest import parse_hip
from starslice.simbad_client import query_simbad_and_cache
from starslice.sqlite_helper import clear_simbad_cache, get_cache_count
from starslice.star_data import get_bright_stars, get_field_stars


def main():
    parser = argparse.ArgumentParser(
        description="Fetch Simbad parallaxes and positions for HIP stars and cache them in SQLite."
    )
    parser.add_argument(
        "hips",
        nargs="?",
        default=None,
        help="Comma-separated HIP numbers (default: use built-in star lists)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=SIMBAD_BATCH_SIZE,
        help=f"Number of stars per Simbad batch query (default: {SIMBAD_BATCH_SIZE})",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=SIMBAD_BATCH_DELAY_SEC,
        help=f"Seconds to wait after each batch (default: {SIMBAD_BATCH_DELAY_SEC})",
    )
    parser.add_argument("--cache-db", type=Path, default=CACHE_DB, help=f"Cache database (default: {CACHE_DB})")
    parser.add_argument("--clear", action="store_true", help="Empty the cache and exit")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

    if args.clear:
        n = clear_simbad_cache(args.cache_db)
        print(f"Removed {n} cached row(s) from {args.cache_db}.")
        return 0

    if args.hips:
        parts = [s.strip() for s in args.hips.split(",") if s.strip()]
        hips = [parse_hip(s) for s in parts]
        bad = [s for s, h in zip(parts, hips) if h is None]
        if bad:
            print(f"Not HIP numbers: {', '.join(bad)}", file=sys.stderr)
            return 1
    else:
        hips = sorted({s["hip"] for s in get_bright_stars()} | {s["hip"] for s in get_field_stars()})

    if not hips:
        print("No HIP numbers to fetch.")
        return 0

    print(f"Fetching Simbad data for {len(hips)} star(s) into {args.cache_db}...")
    total = 0
    for i in range(0, len(hips), args.batch_size):
        batch = hips[i : i + args.batch_size]
        try:
            rows = query_simbad_and_cache(args.cache_db, batch, delay_sec=args.delay)
            total += len(rows)
            print(f"  Batch {i // args.batch_size + 1}: cached {len(rows)}/{len(batch)}")
        except RuntimeError as e:
            print(f"  Batch {i // args.batch_size + 1} failed: {e}", file=sys.stderr)
    print(f"Done. Total cached: {total} star(s); cache holds {get_cache_count(args.cache_db)}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
