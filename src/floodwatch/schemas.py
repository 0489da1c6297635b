# src/floodwatch/schemas.py
"""Request bodies for the HTTP API, using the dashboard's JSON field names."""
from __future__ import annotations

from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Tier = Literal["sunny", "moderate", "stormy", "waterbomb"]


class IntervalTable(BaseModel):
    # minutes per weather tier
    sunny: float = Field(gt=0)
    moderate: float = Field(gt=0)
    stormy: float = Field(gt=0)
    waterbomb: float = Field(gt=0)

    def as_dict(self) -> Dict[str, float]:
        return self.model_dump()


class PushRequest(BaseModel):
    # sensors also send status/forecast; status is recomputed server-side
    model_config = ConfigDict(extra="ignore")

    distance: Optional[float] = None
    station: str = "Antwerpen"
    river: Optional[str] = None
    warning: Optional[float] = None
    alarm: Optional[float] = None
    intervals: Optional[IntervalTable] = None
    isUiUpdate: bool = False
    simWeatherTier: Optional[Tier] = None
    status: Optional[str] = None


class NotifyRequest(BaseModel):
    message: str
    station: str = "Antwerpen"


class DeleteStationRequest(BaseModel):
    station: str


class MigrateStationRequest(BaseModel):
    oldStation: str
    newStation: str
    river: Optional[str] = None


class SeedStationRequest(BaseModel):
    station: str = "Doornik"
