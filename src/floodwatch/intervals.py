# src/floodwatch/intervals.py
from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional

logger = logging.getLogger(__name__)

# Minutes between sensor readings per weather tier.
DEFAULT_INTERVALS: Dict[str, float] = {"sunny": 15, "moderate": 10, "stormy": 5, "waterbomb": 2}


def _seconds(minutes: float) -> int:
    return int(round(minutes * 60))


def next_interval_seconds(
    status: str,
    forced_tier: Optional[str],
    weather_tier: Optional[str],
    intervals: Mapping[str, float],
) -> int:
    """
    Polling interval the sensor should use until its next push.

    Priority: an active simulator tier, then ALARM/WARNING status, then the
    weather tier. A forced tier wins even over a real ALARM so that test
    traffic keeps the cadence the operator asked for.
    """
    if forced_tier and forced_tier != "sunny":
        seconds = _seconds(intervals[forced_tier])
        logger.info("[interval] forced by simulator: %s -> %ss", forced_tier, seconds)
        return seconds

    if status == "ALARM":
        return _seconds(intervals["waterbomb"])
    if status == "WARNING":
        return _seconds(intervals["stormy"])

    if weather_tier == "waterbomb":
        return _seconds(intervals["waterbomb"])
    if weather_tier == "stormy":
        return _seconds(intervals["stormy"])
    if weather_tier == "moderate":
        return _seconds(intervals["moderate"])
    return _seconds(intervals["sunny"])
