"""
src/floodwatch/main.py

FastAPI entry point for the FloodWatch cloud service.

Features:
- Sensor / dashboard push with threshold reconciliation and adaptive interval
- Aggregated station status (plus a country-wide "Belgium" entry)
- Rolling 24h history per station
- Single-slot notification mailbox per device
- Admin delete / migrate / seed operations behind the shared secret
"""

from __future__ import annotations

import os
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from src.floodwatch import history, mailbox, stations
from src.floodwatch.auth import require_api_key
from src.floodwatch.config import Settings, get_settings
from src.floodwatch.db import get_db
from src.floodwatch.errors import FloodWatchError, ValidationError
from src.floodwatch.schemas import (
    DeleteStationRequest,
    MigrateStationRequest,
    NotifyRequest,
    PushRequest,
    SeedStationRequest,
)
from src.floodwatch.seed import run_startup_seed
from src.floodwatch.weather import Fetcher, fetch_forecast


# -------------------------------------------------
# Logging configuration
# -------------------------------------------------
logger = logging.getLogger("floodwatch")
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

NO_CACHE = "no-store, no-cache, must-revalidate, proxy-revalidate"


# -------------------------------------------------
# Dependencies
# -------------------------------------------------
def get_weather_fetcher() -> Fetcher:
    """Weather provider used by pushes; overridden in tests."""
    return fetch_forecast


# -------------------------------------------------
# Application lifespan (startup / shutdown)
# -------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and seed configured virtual stations before serving."""
    try:
        logger.info("[startup] Preparing storage...")
        run_startup_seed()
        logger.info("[startup] Storage ready.")
    except Exception:
        logger.exception("[startup] Storage initialisation failed.")
        raise

    yield

    logger.info("[shutdown] Application shutting down.")


# -------------------------------------------------
# FastAPI app instance
# -------------------------------------------------
app = FastAPI(
    title=os.getenv("APP_TITLE", "FloodWatch API"),
    version=os.getenv("APP_VERSION", "0.1.0"),
    lifespan=lifespan,
)


# -------------------------------------------------
# CORS (dashboard and devices call from anywhere)
# -------------------------------------------------
origins = os.getenv("CORS_ORIGINS", "*").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------------------------------------------------
# Error responses
# -------------------------------------------------
@app.exception_handler(FloodWatchError)
async def floodwatch_error_handler(request: Request, exc: FloodWatchError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.error, "details": exc.details})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # malformed JSON and bad field types are client errors, never 422
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


# -------------------------------------------------
# Meta endpoints
# -------------------------------------------------
@app.get("/", tags=["meta"])
def root():
    return {"status": "ok", "docs": "/docs"}


@app.get("/health", tags=["meta"])
def health():
    return {"status": "healthy"}


# -------------------------------------------------
# Station push (sensor or dashboard)
# -------------------------------------------------
@app.post("/api/push-status", tags=["stations"], dependencies=[Depends(require_api_key)])
def push_status(
    body: PushRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    fetcher: Fetcher = Depends(get_weather_fetcher),
):
    logger.info("[push] %s distance=%s operator=%s", body.station, body.distance, body.isUiUpdate)

    reading = stations.Reading(
        distance=body.distance,
        river=body.river,
        warning=body.warning,
        alarm=body.alarm,
        intervals=body.intervals.as_dict() if body.intervals else None,
    )
    context = stations.PushContext(
        is_operator_push=body.isUiUpdate,
        simulation_tier=body.simWeatherTier,
    )
    result = stations.apply_push(db, body.station, reading, context, settings, fetcher=fetcher)

    return {
        "success": True,
        "updated": body.station,
        "data": result.record.to_document(),
        "historyCount": result.history_count,
        "nextInterval": result.next_interval,
    }


# -------------------------------------------------
# Dashboard reads
# -------------------------------------------------
@app.get("/api/get-status", tags=["stations"])
def get_status(response: Response, db: Session = Depends(get_db)) -> Dict[str, Any]:
    response.headers["Cache-Control"] = NO_CACHE
    return stations.list_stations(db)


@app.get("/api/get-history", tags=["history"])
def get_history(
    response: Response,
    station: Optional[str] = Query(None),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    if not station or not station.strip():
        raise ValidationError("Station parameter required", error="Invalid request")
    response.headers["Cache-Control"] = NO_CACHE
    return history.get_history(db, stations.normalize_station(station))


@app.get("/api/history-info", tags=["history"])
def get_history_info(station: str = Query("Doornik"), db: Session = Depends(get_db)):
    return history.history_info(db, stations.normalize_station(station))


# -------------------------------------------------
# Device notifications
# -------------------------------------------------
@app.post("/api/notify", tags=["notify"])
def notify(body: NotifyRequest, db: Session = Depends(get_db)):
    station_key = stations.normalize_station(body.station)
    mailbox.put(db, station_key, body.message)
    return {"success": True, "station": body.station}


@app.get("/api/check-notify", tags=["notify"])
def check_notify(station: str = Query("Antwerpen"), db: Session = Depends(get_db)):
    pending = mailbox.take_if_present(db, stations.normalize_station(station))
    if pending is None:
        return {"pending": False}
    return {"pending": True, "message": pending["message"], "timestamp": pending["timestamp"]}


# -------------------------------------------------
# Admin operations
# -------------------------------------------------
@app.post("/api/delete-station", tags=["admin"], dependencies=[Depends(require_api_key)])
def delete_station(body: DeleteStationRequest, db: Session = Depends(get_db)):
    stations.delete_station(db, body.station)
    return {"success": True, "deleted": body.station}


@app.post("/api/migrate-station", tags=["admin"], dependencies=[Depends(require_api_key)])
def migrate_station(body: MigrateStationRequest, db: Session = Depends(get_db)):
    stations.migrate_station(db, body.oldStation, body.newStation, river=body.river)
    return {
        "success": True,
        "message": f"Migrated {body.oldStation} to {body.newStation}",
        "riverUpdated": bool(body.river),
    }


@app.post("/api/seed-station", tags=["admin"], dependencies=[Depends(require_api_key)])
def seed_station(body: SeedStationRequest, db: Session = Depends(get_db)):
    record = stations.seed_station(db, body.station)
    count = len(history.get_history(db, stations.normalize_station(body.station)))
    return {
        "success": True,
        "message": f"Seeded {count} points for {body.station}",
        "range": "50cm - 120cm",
        "latest": record.to_document(),
    }


# -------------------------------------------------
# Local development entrypoint
# -------------------------------------------------
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.floodwatch.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=False,
    )
