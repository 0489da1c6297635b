"""
src/floodwatch/history.py

Rolling per-station reading log.

Each station keeps a list of {"ts": ISO-8601 UTC, "val": cm}, oldest first.
The list is bounded to the trailing 24 hours and to 500 entries; entries
with a non-positive value are never stored and are purged on the next write.
This is a best-effort buffer for the dashboard graph, not an audit log.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from . import crud

logger = logging.getLogger(__name__)

MAX_ENTRIES = 500
MAX_AGE = timedelta(hours=24)


def parse_ts(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp; None when it is missing or malformed."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _is_valid(entry: Any) -> bool:
    if not isinstance(entry, dict):
        return False
    val = entry.get("val")
    if isinstance(val, bool) or not isinstance(val, (int, float)) or val <= 0:
        return False
    return parse_ts(entry.get("ts")) is not None


def prune(entries: List[Dict[str, Any]], now: datetime) -> List[Dict[str, Any]]:
    """Drop entries older than 24h, then keep only the most recent 500."""
    cutoff = now - MAX_AGE
    kept = [e for e in entries if parse_ts(e["ts"]) >= cutoff]
    if len(kept) > MAX_ENTRIES:
        kept = kept[-MAX_ENTRIES:]
    return kept


def get_history(db: Session, station_key: str) -> List[Dict[str, Any]]:
    return crud.get_json(db, crud.HISTORY, station_key, default=None) or []


def append_reading(
    db: Session,
    station_key: str,
    value: Optional[float],
    ts: datetime,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Append one reading (if valid) and persist the pruned log.

    Returns the stored sequence.
    """
    now = now or datetime.now(timezone.utc)

    existing = get_history(db, station_key)
    history = [e for e in existing if _is_valid(e)]
    if len(history) != len(existing):
        logger.info("[history] purged %d invalid entries for %s", len(existing) - len(history), station_key)

    if value is not None and value > 0:
        history.append({"ts": ts.isoformat(), "val": value})
    else:
        logger.warning("[history] skipping invalid distance reading for %s: %s", station_key, value)

    history = prune(history, now)
    crud.set_json(db, crud.HISTORY, station_key, history)
    return history


def replace_history(db: Session, station_key: str, entries: List[Dict[str, Any]]) -> None:
    crud.set_json(db, crud.HISTORY, station_key, entries)


def delete_history(db: Session, station_key: str) -> bool:
    return crud.delete_key(db, crud.HISTORY, station_key)


def history_info(db: Session, station_key: str) -> Dict[str, Any]:
    history = get_history(db, station_key)
    first = history[0] if history else None
    last = history[-1] if history else None
    return {
        "station": station_key,
        "count": len(history),
        "oldest": first["ts"] if first else None,
        "latest": last["ts"] if last else None,
        "raw_first": first,
        "raw_last": last,
    }


def build_series(
    points: int = 96,
    step_minutes: int = 15,
    low: int = 50,
    high: int = 120,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> List[Dict[str, Any]]:
    """
    Synthetic readings covering the last `points * step_minutes` minutes,
    one every `step_minutes`, with integer values in [low, high].
    """
    now = now or datetime.now(timezone.utc)
    rng = rng or random.Random()
    return [
        {"ts": (now - timedelta(minutes=i * step_minutes)).isoformat(), "val": rng.randint(low, high)}
        for i in range(points, -1, -1)
    ]
