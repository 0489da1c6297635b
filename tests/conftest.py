import os

# in-memory database; must be set before src.floodwatch.db is imported
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from src.floodwatch.config import Settings, get_settings
from src.floodwatch.db import Base, SessionLocal, engine
from src.floodwatch.main import app, get_weather_fetcher
from src.floodwatch.seed import ensure_tables_exist
from src.floodwatch.weather import WeatherFetchError

API_KEY = "test-key"

NOW = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)


class FakeFetcher:
    """Stands in for the weather provider; records every call."""

    def __init__(self, report=None, error=None):
        self.report = report or {
            "forecast": "clear sky",
            "rainExpected": False,
            "tier": "sunny",
            "temp": 12,
            "rainProb": 0,
            "windSpeed": 3,
        }
        self.error = error
        self.calls = 0

    def __call__(self, lat, lon, api_key, timeout):
        self.calls += 1
        if self.error:
            raise WeatherFetchError(self.error)
        return dict(self.report)


@pytest.fixture(autouse=True)
def _schema():
    ensure_tables_exist()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings():
    return Settings(flood_api_key=API_KEY, owm_api_key="owm-test")


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def client(settings, fetcher):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_weather_fetcher] = lambda: fetcher
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
