"""
src/floodwatch/stations.py

Station configuration store.

Every sensor or dashboard push goes through apply_push():

1. load the station's persisted record (or start from nothing)
2. resolve the weather tier (operator simulation, stored forced tier, or cache)
3. merge the reading into the record with merge_push(), which is pure
4. append the reading to the history log
5. compute the next polling interval
6. write the merged record back in a single set

Thresholds and intervals follow a "cloud is leader" rule: once a station
has thresholds, only an operator push may change them, so a sensor's
firmware defaults never overwrite operator-tuned values.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from . import crud, history
from .config import Settings
from .errors import ValidationError
from .intervals import DEFAULT_INTERVALS, next_interval_seconds
from .weather import Fetcher, fetch_forecast, get_station_weather, simulated_weather, tier_rank

logger = logging.getLogger(__name__)

DEFAULT_WARNING = 30.0
DEFAULT_ALARM = 15.0
DEFAULT_RIVER = "Schelde"

STATUS_RANK = {"NORMAL": 0, "WARNING": 1, "ALARM": 2}


# -------------------------------------------------
# Types
# -------------------------------------------------
@dataclass
class StationRecord:
    distance: Optional[float] = None
    warning: Optional[float] = None
    alarm: Optional[float] = None
    status: str = "NORMAL"
    forecast: Optional[str] = None
    rain_expected: bool = False
    weather_tier: str = "sunny"
    weather: Dict[str, Any] = field(default_factory=dict)
    river: Optional[str] = None
    intervals: Optional[Dict[str, float]] = None
    forced_weather_tier: Optional[str] = None
    last_seen: Optional[str] = None
    is_simulated: bool = False

    @property
    def has_config(self) -> bool:
        return self.warning is not None and self.alarm is not None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "StationRecord":
        return cls(
            distance=doc.get("distance"),
            warning=doc.get("warning"),
            alarm=doc.get("alarm"),
            status=doc.get("status") or "NORMAL",
            forecast=doc.get("forecast"),
            rain_expected=bool(doc.get("rainExpected")),
            weather_tier=doc.get("weatherTier") or "sunny",
            weather=dict(doc.get("weather") or {}),
            river=doc.get("river"),
            intervals=doc.get("intervals"),
            forced_weather_tier=doc.get("forcedWeatherTier"),
            last_seen=doc.get("lastSeen"),
            is_simulated=bool(doc.get("isSimulated")),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "distance": self.distance,
            "warning": self.warning,
            "alarm": self.alarm,
            "status": self.status,
            "forecast": self.forecast,
            "rainExpected": self.rain_expected,
            "weatherTier": self.weather_tier,
            "weather": self.weather,
            "river": self.river,
            "intervals": self.intervals,
            "forcedWeatherTier": self.forced_weather_tier,
            "lastSeen": self.last_seen,
            "isSimulated": self.is_simulated,
        }


@dataclass
class Reading:
    distance: Optional[float] = None
    river: Optional[str] = None
    warning: Optional[float] = None
    alarm: Optional[float] = None
    intervals: Optional[Dict[str, float]] = None

    @property
    def is_valid(self) -> bool:
        return self.distance is not None and self.distance > 0


@dataclass
class PushContext:
    is_operator_push: bool = False
    simulation_tier: Optional[str] = None


@dataclass
class PushResult:
    station_key: str
    record: StationRecord
    next_interval: int
    history_count: int


# -------------------------------------------------
# Pure helpers
# -------------------------------------------------
def normalize_station(name: Optional[str]) -> str:
    key = (name or "").strip().lower()
    if not key:
        raise ValidationError("station name required")
    return key


def compute_status(distance: Optional[float], warning: Optional[float], alarm: Optional[float]) -> str:
    """Lower distance means higher water: ALARM at or below alarm, WARNING at or below warning."""
    if distance is None:
        return "NORMAL"
    if alarm is not None and distance <= alarm:
        return "ALARM"
    if warning is not None and distance <= warning:
        return "WARNING"
    return "NORMAL"


def _pick(pushed: Optional[Any], previous: Optional[Any], default: Any) -> Any:
    if pushed is not None:
        return pushed
    if previous is not None:
        return previous
    return default


def merge_push(
    existing: Optional[StationRecord],
    reading: Reading,
    context: PushContext,
    weather: Dict[str, Any],
    now: datetime,
) -> StationRecord:
    """
    Merge one push into the previous record without touching storage.

    - distance only moves on a reading > 0
    - warning/alarm/intervals change only on an operator push or for a
      station that has no thresholds yet
    - an operator simulation push sets (or, with "sunny", clears) the
      forced tier; any other push carries it forward
    - status is recomputed from the final distance and thresholds
    """
    previous = existing or StationRecord()
    may_configure = context.is_operator_push or not previous.has_config

    if may_configure:
        warning = _pick(reading.warning, previous.warning, DEFAULT_WARNING)
        alarm = _pick(reading.alarm, previous.alarm, DEFAULT_ALARM)
        intervals = _pick(reading.intervals, previous.intervals, DEFAULT_INTERVALS)
    else:
        warning = previous.warning
        alarm = previous.alarm
        intervals = previous.intervals or DEFAULT_INTERVALS

    distance = reading.distance if reading.is_valid else previous.distance

    if context.is_operator_push and context.simulation_tier:
        forced_tier = None if context.simulation_tier == "sunny" else context.simulation_tier
        is_simulated = forced_tier is not None
    else:
        forced_tier = previous.forced_weather_tier
        is_simulated = previous.is_simulated

    old_weather = previous.weather
    return StationRecord(
        distance=distance,
        warning=warning,
        alarm=alarm,
        status=compute_status(distance, warning, alarm),
        forecast=weather.get("forecast"),
        rain_expected=bool(weather.get("rainExpected")),
        weather_tier=weather.get("tier") or "sunny",
        weather={
            "temp": _pick(weather.get("temp"), old_weather.get("temp"), None),
            "rainProb": _pick(weather.get("rainProb"), old_weather.get("rainProb"), None),
            "windSpeed": _pick(weather.get("windSpeed"), old_weather.get("windSpeed"), None),
            "condition": weather.get("forecast"),
        },
        river=reading.river or previous.river or DEFAULT_RIVER,
        intervals=dict(intervals),
        forced_weather_tier=forced_tier,
        last_seen=now.isoformat(),
        is_simulated=is_simulated,
    )


# -------------------------------------------------
# Store-backed operations
# -------------------------------------------------
def load_station(db: Session, station_key: str) -> Optional[StationRecord]:
    doc = crud.get_json(db, crud.STATIONS, station_key)
    return StationRecord.from_document(doc) if doc else None


def resolve_weather(
    db: Session,
    station_key: str,
    existing: Optional[StationRecord],
    context: PushContext,
    settings: Settings,
    fetcher: Fetcher = fetch_forecast,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Operator simulation tier first; otherwise cached/live weather, with a
    stored non-sunny forced tier taking over the tier so organic sensor
    pushes keep the simulated cadence.
    """
    if context.is_operator_push and context.simulation_tier:
        logger.info("[weather] using simulator override: %s", context.simulation_tier)
        return simulated_weather(context.simulation_tier)

    weather = get_station_weather(db, station_key, settings, fetcher=fetcher, now=now)
    forced = existing.forced_weather_tier if existing else None
    if forced and forced != "sunny":
        logger.info("[weather] stored forced tier %s overrides %s for %s", forced, weather.get("tier"), station_key)
        weather = dict(weather, tier=forced)
    return weather


def apply_push(
    db: Session,
    station: str,
    reading: Reading,
    context: PushContext,
    settings: Settings,
    fetcher: Fetcher = fetch_forecast,
    now: Optional[datetime] = None,
) -> PushResult:
    """Reconcile one sensor or operator push and persist the merged record."""
    now = now or datetime.now(timezone.utc)
    station_key = normalize_station(station)

    existing = load_station(db, station_key)
    weather = resolve_weather(db, station_key, existing, context, settings, fetcher=fetcher, now=now)

    if not reading.is_valid:
        logger.warning("[config] invalid distance %s for %s, keeping last known value", reading.distance, station_key)

    record = merge_push(existing, reading, context, weather, now)

    if context.is_operator_push:
        logger.info("[config] operator updated %s | W:%s A:%s", station_key, record.warning, record.alarm)
    elif existing is not None and existing.has_config:
        logger.info("[config] enforced leader values for %s | W:%s A:%s", station_key, record.warning, record.alarm)
    else:
        logger.info("[config] initializing new station %s | W:%s A:%s", station_key, record.warning, record.alarm)

    entries = history.append_reading(
        db, station_key, reading.distance if reading.is_valid else None, now, now=now
    )

    next_interval = next_interval_seconds(
        record.status, record.forced_weather_tier, record.weather_tier, record.intervals
    )

    crud.set_json(db, crud.STATIONS, station_key, record.to_document())

    # drop a legacy document stored under the display name ("Gent" vs "gent")
    legacy_key = station.strip()
    if legacy_key != station_key and crud.delete_key(db, crud.STATIONS, legacy_key):
        logger.info("[config] removed legacy key %r", legacy_key)

    return PushResult(
        station_key=station_key,
        record=record,
        next_interval=next_interval,
        history_count=len(entries),
    )


def belgium_summary(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Country-wide entry: worst status and most severe tier across all stations."""
    status = "NORMAL"
    tier = "sunny"
    last_seen = None
    for doc in records:
        if STATUS_RANK.get(doc.get("status"), 0) > STATUS_RANK[status]:
            status = doc["status"]
        station_tier = doc.get("forcedWeatherTier") or doc.get("weatherTier")
        if tier_rank(station_tier) > tier_rank(tier):
            tier = station_tier
        seen = doc.get("lastSeen")
        if seen and (last_seen is None or seen > last_seen):
            last_seen = seen

    weather = simulated_weather(tier)
    return {
        "status": status,
        "forecast": weather["forecast"],
        "rainExpected": weather["rainExpected"],
        "weatherTier": tier,
        "stations": len(records),
        "lastSeen": last_seen,
        "isSimulated": True,
    }


def list_stations(db: Session) -> Dict[str, Any]:
    stations = {key: value for key, value in crud.list_documents(db, crud.STATIONS)}
    stations["Belgium"] = belgium_summary(list(stations.values()))
    return stations


def delete_station(db: Session, station: str) -> bool:
    """Remove a station's config and history. Returns whether config existed."""
    station_key = normalize_station(station)
    existed = crud.delete_key(db, crud.STATIONS, station_key)
    history.delete_history(db, station_key)
    logger.info("[admin] deleted station %s (config existed: %s)", station_key, existed)
    return existed


def migrate_station(db: Session, old_station: str, new_station: str, river: Optional[str] = None) -> Dict[str, bool]:
    """
    Move config and history from one key to another.

    Two sequential writes per document; concurrent readers may briefly see
    both keys or neither.
    """
    old_key = normalize_station(old_station)
    new_key = normalize_station(new_station)
    if old_key == new_key:
        raise ValidationError("old and new station are the same")

    moved_config = False
    doc = crud.get_json(db, crud.STATIONS, old_key)
    if doc:
        crud.set_json(db, crud.STATIONS, new_key, dict(doc, river=river or doc.get("river")))
        crud.delete_key(db, crud.STATIONS, old_key)
        moved_config = True

    moved_history = False
    entries = crud.get_json(db, crud.HISTORY, old_key)
    if entries is not None:
        history.replace_history(db, new_key, entries)
        history.delete_history(db, old_key)
        moved_history = True

    logger.info("[admin] migrated %s -> %s (config: %s, history: %s)", old_key, new_key, moved_config, moved_history)
    return {"config": moved_config, "history": moved_history}


def seed_station(
    db: Session,
    station: str = "Doornik",
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> StationRecord:
    """Write a synthetic 24h history and a matching simulated station record."""
    station_key = normalize_station(station)
    series = history.build_series(now=now, rng=rng)
    history.replace_history(db, station_key, series)

    previous = load_station(db, station_key) or StationRecord()
    latest = series[-1]
    record = StationRecord(
        distance=latest["val"],
        warning=DEFAULT_WARNING,
        alarm=DEFAULT_ALARM,
        status=compute_status(latest["val"], DEFAULT_WARNING, DEFAULT_ALARM),
        forecast="Simulated Data (Seeded)",
        river=previous.river or DEFAULT_RIVER,
        intervals=dict(previous.intervals or DEFAULT_INTERVALS),
        last_seen=latest["ts"],
        is_simulated=True,
    )
    crud.set_json(db, crud.STATIONS, station_key, record.to_document())
    logger.info("[admin] seeded %d points for %s", len(series), station_key)
    return record
