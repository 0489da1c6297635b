# src/seed_history.py
"""
Seed a virtual station with a synthetic 24h history.

Writes one reading every 15 minutes (97 points) with values between
50 and 120 cm, plus a matching simulated station record, so the dashboard
graph has something to draw before a real sensor reports.

Behavior:
- Skips stations that already have history unless FORCE_SEED=1 or --force
- Seeds "Doornik" when no station is given
"""

from __future__ import annotations

import argparse
import os
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from src.floodwatch.db import engine
from src.floodwatch import history, stations
from src.floodwatch.seed import already_seeded, ensure_tables_exist


FORCE_SEED = os.getenv("FORCE_SEED", "0").strip().lower() in {"1", "true", "yes", "y"}


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Seed synthetic station history.")
    parser.add_argument("stations", nargs="*", default=["Doornik"], help="station names to seed")
    parser.add_argument("--force", action="store_true", help="overwrite existing history")
    args = parser.parse_args(argv)

    start = datetime.now(timezone.utc)
    print("[seed] starting...", flush=True)

    ensure_tables_exist()
    force = args.force or FORCE_SEED

    seeded = 0
    skipped = 0
    with Session(engine) as db:
        for name in args.stations:
            if already_seeded(db, name) and not force:
                print(f"[seed] skipping {name} (history present). Use --force or FORCE_SEED=1 to overwrite.", flush=True)
                skipped += 1
                continue

            record = stations.seed_station(db, name)
            count = len(history.get_history(db, stations.normalize_station(name)))
            print(f"[seed] {name}: {count} points, latest {record.distance} cm ({record.status})", flush=True)
            seeded += 1

    end = datetime.now(timezone.utc)
    print(f"[seed] start={start.isoformat()} end={end.isoformat()}", flush=True)
    print(f"[seed] stations={len(args.stations)} seeded={seeded} skipped={skipped}", flush=True)


if __name__ == "__main__":
    main()
