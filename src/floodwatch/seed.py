"""
src/floodwatch/seed.py

Startup storage bootstrap:
1) Ensures tables exist (create_all is safe to call repeatedly)
2) Optionally seeds virtual stations listed in SEED_STATIONS with a synthetic
   24h history, skipping any station that already has history

How to use (in the FastAPI lifespan):
    from src.floodwatch.seed import run_startup_seed
    run_startup_seed()
"""

from __future__ import annotations  # allows forward type refs

import logging  # standard logging
import os  # environment access
from typing import List, Optional  # typing helpers

from sqlalchemy.orm import Session  # session type for type hints

from src.floodwatch.db import Base, SessionLocal, engine  # Base metadata + session + engine
from src.floodwatch import history, stations  # ledger + station store
from src.floodwatch import models  # noqa: F401  registers Document on Base

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# TABLE CREATION
# ---------------------------------------------------------------------
def ensure_tables_exist() -> None:
    """Create all tables if they don't exist (safe to call repeatedly)."""
    Base.metadata.create_all(bind=engine)  # creates missing tables only


# ---------------------------------------------------------------------
# SEED GUARDS
# ---------------------------------------------------------------------
def seed_stations_from_env() -> List[str]:
    """Station names from SEED_STATIONS, e.g. "Doornik,Oudenaarde"."""
    raw = os.getenv("SEED_STATIONS", "")  # empty means no seeding
    return [s.strip() for s in raw.split(",") if s.strip()]  # drop blanks


def already_seeded(session: Session, station: str) -> bool:
    """True if the station already has any history."""
    return bool(history.get_history(session, stations.normalize_station(station)))  # any entry counts


# ---------------------------------------------------------------------
# MAIN ENTRYPOINT FOR STARTUP
# ---------------------------------------------------------------------
def run_startup_seed(names: Optional[List[str]] = None) -> int:
    """
    Call this once at app startup.

    Behavior:
    - Create tables if missing
    - For each configured station: skip if history exists, else seed it
    Returns how many stations were seeded. A StoreError from the store (already
    rolled back by crud) propagates so the lifespan logs it and aborts startup.
    """
    ensure_tables_exist()  # always ensure schema exists first

    names = seed_stations_from_env() if names is None else names  # explicit list wins
    if not names:
        return 0  # nothing configured

    seeded = 0
    session = SessionLocal()  # open a DB session
    try:
        for name in names:
            if already_seeded(session, name):  # keep real or earlier data
                logger.info("[seed] %s already has history, skipping.", name)
                continue
            stations.seed_station(session, name)  # history + simulated record
            seeded += 1
    finally:
        session.close()  # release DB connection back to pool

    logger.info("[seed] Done. Seeded %d station(s).", seeded)
    return seeded
