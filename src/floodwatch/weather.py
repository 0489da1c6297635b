"""
src/floodwatch/weather.py

Weather tiers for the station polling cadence.

Features:
- classify(): forecast condition -> one of four severity tiers
- simulated_weather(): report used when an operator forces a tier
- fetch_forecast(): OpenWeatherMap lookup with a hard timeout
- get_station_weather(): 30-minute cache around fetch_forecast, falling back
  to the stale entry (or a default) whenever the provider cannot be reached

Weather problems are never surfaced to the caller.
"""

from __future__ import annotations

import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import requests
from sqlalchemy.orm import Session

from . import crud
from .config import Settings
from .errors import StoreError

logger = logging.getLogger(__name__)

# Severity order, mildest first.
TIERS = ("sunny", "moderate", "stormy", "waterbomb")

RAIN_CONDITIONS = {"rain", "thunderstorm", "drizzle", "squall"}

OWM_FORECAST_URL = "https://api.openweathermap.org/data/2.5/forecast"

# Station -> coordinates for server-side weather lookup
STATION_COORDS: Dict[str, Dict[str, Any]] = {
    "antwerpen": {"lat": 51.2194, "lon": 4.4025, "name": "Antwerpen"},
    "gent": {"lat": 51.0543, "lon": 3.7174, "name": "Gent"},
    "oudenaarde": {"lat": 50.8486, "lon": 3.6025, "name": "Oudenaarde"},
    "doornik": {"lat": 50.6079, "lon": 3.3897, "name": "Doornik"},
    "dendermonde": {"lat": 51.0272, "lon": 4.1016, "name": "Dendermonde"},
}

SIMULATION_FORECASTS = {
    "sunny": "Simulation: Clear",
    "moderate": "Simulation: Moderate Rain",
    "stormy": "Simulation: Stormy / Heavy",
    "waterbomb": "Simulation: Waterbomb",
}

Fetcher = Callable[[float, float, str, float], Dict[str, Any]]


class WeatherFetchError(Exception):
    pass


# -------------------------------------------------
# Classification
# -------------------------------------------------
def classify(condition: Optional[str], rain_probability: Optional[float], sim_override: Optional[str] = None) -> str:
    """
    Map a forecast condition to a tier.

    An operator override is returned as-is. Otherwise:
    thunderstorm -> waterbomb, rain above 70% -> stormy,
    any other rain-bearing condition -> moderate, else sunny.
    """
    if sim_override:
        return sim_override

    main = (condition or "").strip().lower()
    probability = rain_probability or 0

    if main == "thunderstorm":
        return "waterbomb"
    if main == "rain" and probability > 70:
        return "stormy"
    if main in RAIN_CONDITIONS:
        return "moderate"
    return "sunny"


def tier_rank(tier: Optional[str]) -> int:
    try:
        return TIERS.index(tier)
    except ValueError:
        return 0


def simulated_weather(tier: str) -> Dict[str, Any]:
    tier = tier if tier in SIMULATION_FORECASTS else "sunny"
    return {
        "forecast": SIMULATION_FORECASTS[tier],
        "rainExpected": tier != "sunny",
        "tier": classify(None, None, sim_override=tier),
        "temp": None,
        "rainProb": None,
        "windSpeed": None,
    }


def default_weather(text: str) -> Dict[str, Any]:
    return {
        "forecast": text,
        "rainExpected": False,
        "tier": "sunny",
        "temp": None,
        "rainProb": None,
        "windSpeed": None,
    }


# -------------------------------------------------
# Provider lookup
# -------------------------------------------------
# worker threads for provider calls; a call that overruns its budget is
# abandoned here and stops reading at its own deadline
_FETCH_POOL = ThreadPoolExecutor(max_workers=4, thread_name_prefix="owm-fetch")


def _download(params: Dict[str, Any], timeout: float) -> bytes:
    """Read the provider response body, giving up once `timeout` seconds have passed in total."""
    deadline = time.monotonic() + timeout
    resp = requests.get(OWM_FORECAST_URL, params=params, timeout=timeout, stream=True)
    try:
        if resp.status_code != 200:
            raise WeatherFetchError(f"OWM HTTP {resp.status_code}")
        body = b""
        for chunk in resp.iter_content(chunk_size=1024):
            if time.monotonic() > deadline:
                raise WeatherFetchError(f"timeout ({timeout:g}s)")
            body += chunk
        return body
    finally:
        resp.close()


def fetch_forecast(lat: float, lon: float, api_key: str, timeout: float) -> Dict[str, Any]:
    """Fetch the next forecast slot from OpenWeatherMap and parse it into a report.

    `timeout` bounds the whole call (connect, headers and body), not each socket read.
    """
    params = {"lat": lat, "lon": lon, "cnt": 2, "appid": api_key, "units": "metric"}
    future = _FETCH_POOL.submit(_download, params, timeout)
    try:
        body = future.result(timeout=timeout)
    except FutureTimeout as e:
        future.cancel()
        raise WeatherFetchError(f"timeout ({timeout:g}s)") from e
    except requests.Timeout as e:
        raise WeatherFetchError(f"timeout ({timeout:g}s)") from e
    except requests.RequestException as e:
        raise WeatherFetchError(str(e)) from e

    try:
        payload = json.loads(body)
    except ValueError as e:
        raise WeatherFetchError("invalid JSON from provider") from e

    entries = payload.get("list") if isinstance(payload, dict) else None
    if not isinstance(entries, list) or not entries:
        raise WeatherFetchError("no forecast data")
    try:
        return parse_forecast_entry(entries[0])
    except (AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
        raise WeatherFetchError(f"unexpected forecast payload: {e}") from e


def parse_forecast_entry(entry: Dict[str, Any]) -> Dict[str, Any]:
    conditions = entry.get("weather")
    if not isinstance(conditions, list) or not conditions:
        conditions = [{}]
    main_weather = conditions[0].get("main") or "Unknown"
    description = conditions[0].get("description") or main_weather

    temp = (entry.get("main") or {}).get("temp")
    rain_prob = round((entry.get("pop") or 0) * 100)
    wind_speed = round((entry.get("wind") or {}).get("speed") or 0)

    return {
        "forecast": description,
        "rainExpected": main_weather.lower() in RAIN_CONDITIONS,
        "tier": classify(main_weather, rain_prob),
        "temp": None if temp is None else round(temp),
        "rainProb": rain_prob,
        "windSpeed": wind_speed,
    }


# -------------------------------------------------
# Cache
# -------------------------------------------------
def _is_fresh(entry: Dict[str, Any], now: datetime, ttl: timedelta) -> bool:
    fetched_at = entry.get("fetchedAt")
    if not fetched_at:
        return False
    try:
        fetched = datetime.fromisoformat(fetched_at)
    except (TypeError, ValueError):
        return False
    if fetched.tzinfo is None:
        fetched = fetched.replace(tzinfo=timezone.utc)
    return now - fetched < ttl


def get_station_weather(
    db: Session,
    station_key: str,
    settings: Settings,
    fetcher: Fetcher = fetch_forecast,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Weather for a station, served from cache for `weather_cache_ttl_minutes`.

    Falls back to the stale cache entry, or a sunny default, when the lookup
    is impossible or fails. Never raises for provider problems.
    """
    now = now or datetime.now(timezone.utc)
    ttl = timedelta(minutes=settings.weather_cache_ttl_minutes)

    try:
        cached = crud.get_json(db, crud.WEATHER, station_key)
    except StoreError as e:
        logger.warning("[weather] cache read failed for %s: %s", station_key, e)
        cached = None

    if cached and _is_fresh(cached, now, ttl):
        logger.debug("[weather] serving cached weather for %s", station_key)
        return dict(cached)

    coords = STATION_COORDS.get(station_key)
    if not coords:
        logger.info("[weather] no coordinates for %s, using %s", station_key, "stale cache" if cached else "defaults")
        return dict(cached) if cached else default_weather("Unknown")

    if not settings.owm_api_key:
        logger.warning("[weather] OWM_API_KEY not set")
        return dict(cached) if cached else default_weather("No API key")

    try:
        report = fetcher(coords["lat"], coords["lon"], settings.owm_api_key, settings.weather_timeout_seconds)
    except WeatherFetchError as e:
        logger.warning(
            "[weather] lookup skipped for %s: %s, using %s", station_key, e, "stale cache" if cached else "defaults"
        )
        return dict(cached) if cached else default_weather("Unavailable")

    report = dict(report, fetchedAt=now.isoformat())
    try:
        crud.set_json(db, crud.WEATHER, station_key, report)
    except StoreError as e:
        logger.warning("[weather] cache write failed for %s: %s", station_key, e)

    logger.info("[weather] fetched for %s: %s (tier: %s)", station_key, report["forecast"], report["tier"])
    return report
