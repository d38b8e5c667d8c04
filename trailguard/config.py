"""
TrailGuard — Configuration

Service endpoints and domain constants.  Endpoints can be overridden from
the environment (``.env`` is loaded by ``app.py``); the routing heuristics
live in :class:`RoutingSettings` so callers can tune them per request.
"""

from __future__ import annotations

import os

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# External services
# ---------------------------------------------------------------------------

GBIF_OCCURRENCE_URL = os.getenv("GBIF_OCCURRENCE_URL", "https://api.gbif.org/v1/occurrence/search")
NOMINATIM_SEARCH = os.getenv("NOMINATIM_SEARCH", "https://nominatim.openstreetmap.org/search")
NOMINATIM_REVERSE = os.getenv("NOMINATIM_REVERSE", "https://nominatim.openstreetmap.org/reverse")
VALHALLA_ROUTE_URL = os.getenv("VALHALLA_ROUTE_URL", "https://valhalla1.openstreetmap.de/route")
OVERPASS_URL = os.getenv("OVERPASS_URL", "https://overpass-api.de/api/interpreter")
OPEN_METEO_URL = os.getenv("OPEN_METEO_URL", "https://api.open-meteo.com/v1/forecast")
GEMINI_GENERATE_URL = os.getenv(
    "GEMINI_GENERATE_URL",
    "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent",
)

USER_AGENT = os.getenv("TRAILGUARD_USER_AGENT", "TrailGuard/0.1")
HTTP_TIMEOUT_S = float(os.getenv("TRAILGUARD_HTTP_TIMEOUT", "20"))

RETRY_ATTEMPTS = int(os.getenv("TRAILGUARD_RETRY_ATTEMPTS", "3"))
RETRY_INITIAL_DELAY_S = float(os.getenv("TRAILGUARD_RETRY_DELAY", "1.0"))

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

RADIUS_KM = 50.0          # default sighting search radius
NEARBY_KM = 5.0           # "nearby" radius for area scans
SEQ_LEN = 10              # sightings per species fed to the predictor
SMOOTH_STEPS = 150        # spline points per segment for smoothed paths
GBIF_LIMIT = 200
MANUAL_SIGHTING_LIMIT = 50

CORRIDOR_BUFFER_DEG = 0.05  # safe-place search box around a route

WEATHER_CHECK_INTERVAL_S = 5 * 60
HAZARD_ALERT_THRESHOLD_KM = 2.0
APPROACHING_START_THRESHOLD_KM = 0.5

# nearest-point search: stop after this many non-improving samples,
# and look back this many vertices behind the last match
NEAREST_EARLY_EXIT = 30
NEAREST_BACK_BUFFER = 20

SIGHTINGS_LOG_PATH = os.getenv(
    "TRAILGUARD_SIGHTINGS_LOG",
    os.path.join(
        os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
        "data",
        "manual_sightings.json",
    ),
)


class SpeedBand(BaseModel):
    min_kmh: float
    max_kmh: float


def _default_speed_bands() -> dict[str, SpeedBand]:
    return {
        "car": SpeedBand(min_kmh=10, max_kmh=120),
        "bus": SpeedBand(min_kmh=10, max_kmh=100),
        "bike": SpeedBand(min_kmh=8, max_kmh=35),
        "walk": SpeedBand(min_kmh=2, max_kmh=8),
    }


class RoutingSettings(BaseModel):
    """Heuristic thresholds for route vetting and arbitration.

    None of these have a documented derivation; they are kept tunable so
    they can be calibrated against the routing service actually in use.
    """

    max_detour_ratio: float = Field(default=7.0, gt=1)
    speed_bands: dict[str, SpeedBand] = Field(default_factory=_default_speed_bands)
    duration_multiplier: float = Field(default=2.5, gt=0)
    duration_slack_minutes: float = Field(default=120.0, ge=0)
    avoidance_shrink: float = Field(default=10.0, gt=0)
    avoidance_vertices: int = Field(default=32, ge=3)
    base_search_radius_km: float = Field(default=RADIUS_KM, gt=0)
    search_radius_factor: float = Field(default=1.25, gt=0)

    @classmethod
    def from_env(cls) -> "RoutingSettings":
        overrides: dict[str, float] = {}
        for field, var in (
            ("max_detour_ratio", "TRAILGUARD_MAX_DETOUR_RATIO"),
            ("duration_multiplier", "TRAILGUARD_DURATION_MULTIPLIER"),
            ("duration_slack_minutes", "TRAILGUARD_DURATION_SLACK_MIN"),
            ("avoidance_shrink", "TRAILGUARD_AVOIDANCE_SHRINK"),
        ):
            raw = os.getenv(var)
            if raw:
                overrides[field] = float(raw)
        return cls(**overrides)
