"""
Core data model.

Every object here is produced by a one-shot computation and replaced, never
mutated, on recomputation — hence ``frozen=True`` throughout.  Paths are
plain ``(lat, lon)`` tuples to keep dense spline output cheap.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

LatLon = tuple[float, float]
TravelMode = Literal["car", "bike", "bus", "walk"]
RiskLevel = Literal["High", "Medium", "Low"]
AlertKind = Literal["hazard", "weather", "system"]

TRAVEL_MODES: tuple[str, ...] = ("car", "walk", "bike", "bus")


class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lon: float

    @property
    def is_valid(self) -> bool:
        return -90.0 <= self.lat <= 90.0 and -180.0 <= self.lon <= 180.0

    def as_tuple(self) -> LatLon:
        return (self.lat, self.lon)


class Location(GeoPoint):
    name: str


class Sighting(GeoPoint):
    image: str | None = None


class PredictionPoint(GeoPoint):
    addr: str | None = None


class CurrentSighting(PredictionPoint):
    dist_km: float


class HazardPrediction(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    scientific: str
    common: str
    icon: str
    color: str
    risk_level: RiskLevel
    image: str | None = None
    current: CurrentSighting
    preds: list[PredictionPoint] = Field(default_factory=list)
    full_path: list[LatLon] = Field(default_factory=list)
    distance_to_path_km: float | None = None


class AvoidanceZone(BaseModel):
    model_config = ConfigDict(frozen=True)

    center: GeoPoint
    radius_km: float = Field(..., gt=0)

    def to_polygon(self, vertex_count: int = 32) -> list[LatLon]:
        """Closed ring in ``(lon, lat)`` order, the order routing services expect."""
        from trailguard.geo import circle_polygon

        return circle_polygon(self.center, self.radius_km, vertex_count, order="lonlat")


class Route(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: list[LatLon]
    distance_km: float
    duration_minutes: float
    start: Location
    end: Location
    mode: TravelMode
    is_high_risk: bool = False


class ModeSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    distance_km: float
    duration_minutes: float


class NavigationStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    remaining_km: float
    eta_minutes: float
    progress_percent: int = Field(..., ge=0, le=100)


class SafePlace(GeoPoint):
    id: int
    type: Literal["police", "ranger"]
    name: str
    address: str | None = None
    hours: str | None = None
    phone: str | None = None


class WeatherData(BaseModel):
    model_config = ConfigDict(frozen=True)

    temperature: float
    weather_code: int
    wind_speed: float
    is_day: int


class Alert(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: AlertKind
    message: str
    hazard: HazardPrediction | None = None
