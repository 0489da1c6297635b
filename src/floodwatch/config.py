# src/floodwatch/config.py
"""
Runtime settings, read once from the environment at process start.

Request handlers receive them through the `get_settings` dependency so tests
can swap in their own values with `app.dependency_overrides`.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    flood_api_key: Optional[str] = None  # shared secret for write endpoints
    owm_api_key: Optional[str] = None  # OpenWeatherMap credential
    weather_timeout_seconds: float = 3.0
    weather_cache_ttl_minutes: float = 30.0


def load_settings() -> Settings:
    return Settings(
        flood_api_key=_optional("FLOOD_API_KEY"),
        owm_api_key=_optional("OWM_API_KEY"),
        weather_timeout_seconds=float(os.getenv("WEATHER_TIMEOUT_SECONDS", "3")),
        weather_cache_ttl_minutes=float(os.getenv("WEATHER_CACHE_TTL_MINUTES", "30")),
    )


settings = load_settings()


def get_settings() -> Settings:
    return settings
