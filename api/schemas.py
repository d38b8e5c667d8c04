"""
Pydantic models — request/response contracts for the TrailGuard API.

Domain objects (routes, predictions, safe places) are the core models from
``trailguard.models``; the classes here only wrap them for transport.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from trailguard.config import NEARBY_KM, RADIUS_KM
from trailguard.guide import ChatMessage
from trailguard.models import (
    Alert,
    GeoPoint,
    HazardPrediction,
    Location,
    ModeSummary,
    NavigationStats,
    Route,
    SafePlace,
    TravelMode,
    WeatherData,
)


# ---------- Points ---------- #

class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)

    def to_point(self) -> GeoPoint:
        return GeoPoint(lat=self.lat, lon=self.lon)


class LocationInput(Coordinates):
    name: str = "Current Location"

    def to_location(self) -> Location:
        return Location(lat=self.lat, lon=self.lon, name=self.name)


# ---------- Wildlife ---------- #

class ScanRequest(Coordinates):
    radius_km: float = Field(default=RADIUS_KM, gt=0, le=500)


class ScanResponse(BaseModel):
    lat: float
    lon: float
    radius_km: float
    message: str
    skipped: bool = False
    predictions: list[HazardPrediction]
    safe_places: list[SafePlace]
    weather: WeatherData | None = None


class SightingRequest(Coordinates):
    common_name: str


class SightingResponse(BaseModel):
    common_name: str
    lat: float
    lon: float
    address: str
    timestamp: str


# ---------- Routing ---------- #

class PlanRequest(BaseModel):
    start: LocationInput | str
    end: LocationInput | str
    mode: TravelMode = "car"
    hazard_radius_km: float = Field(default=NEARBY_KM, gt=0, le=100)
    excluded_hazard_ids: list[str] = Field(default_factory=list)
    wait_for_modes: bool = Field(
        default=False, description="Hold the response until every travel mode has been probed",
    )


class PlanResponse(BaseModel):
    id: str = Field(..., description="Key for GET /routes/plan/{id}/modes")
    status: str
    message: str
    route: Route
    alternative: Route | None = None
    hazards: list[HazardPrediction]
    safe_places: list[SafePlace]
    other_modes: dict[str, ModeSummary] = Field(default_factory=dict)


class ModesResponse(BaseModel):
    plan_id: str
    complete: bool
    other_modes: dict[str, ModeSummary]


# ---------- Navigation ---------- #

class StartNavigationRequest(BaseModel):
    route: Route
    hazards: list[HazardPrediction] = Field(default_factory=list)
    safe_places: list[SafePlace] = Field(default_factory=list)


class FixRequest(Coordinates):
    pass


class SignalLostRequest(BaseModel):
    reason: str = "position unavailable"


class EventOut(BaseModel):
    kind: str
    payload: Any = None


class SessionSnapshot(BaseModel):
    id: str
    state: str
    message: str = ""
    live_location: GeoPoint | None = None
    matched_index: int = 0
    approaching_start: bool = False
    stats: NavigationStats | None = None
    alert: Alert | None = None
    weather_alert: str | None = None
    route: Route | None = None
    emergency_route: Route | None = None
    alternative_emergency_route: Route | None = None
    events: list[EventOut] = Field(default_factory=list)


# ---------- AI guide ---------- #

class GuideRequest(BaseModel):
    messages: list[ChatMessage] = Field(..., min_length=1)
    hazards: list[HazardPrediction] = Field(default_factory=list)


class GuideResponse(BaseModel):
    reply: str
