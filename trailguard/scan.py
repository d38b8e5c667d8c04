"""
Area scan — what is around a location right now: predicted wildlife paths,
places of safety, and the current weather.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

import httpx

from trailguard.config import RADIUS_KM
from trailguard.models import GeoPoint, HazardPrediction, SafePlace, WeatherData
from trailguard.predictor import PathPredictor, predict_hazards
from trailguard.safe_places import find_safe_places_in_area
from trailguard.sightings import SightingLog
from trailguard.weather import get_weather

logger = logging.getLogger(__name__)


@dataclass
class AreaScan:
    center: GeoPoint
    radius_km: float
    predictions: list[HazardPrediction] = field(default_factory=list)
    safe_places: list[SafePlace] = field(default_factory=list)
    weather: WeatherData | None = None
    message: str = ""
    skipped: bool = False


class AreaScanner:
    """Runs one scan at a time; a scan requested while another is in
    flight is skipped rather than queued."""

    def __init__(self, log: SightingLog | None = None, predictor: PathPredictor | None = None):
        self.log = log
        self.predictor = predictor
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    async def scan(
        self,
        center: GeoPoint,
        radius_km: float = RADIUS_KM,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> AreaScan:
        if self._busy:
            logger.warning("Prediction already in progress. Skipping.")
            return AreaScan(center=center, radius_km=radius_km, skipped=True,
                            message="Prediction already in progress.")
        self._busy = True
        try:
            predictions, places, weather = await asyncio.gather(
                predict_hazards(center, radius_km, log=self.log, predictor=self.predictor, client=client),
                find_safe_places_in_area(center, radius_km, client=client),
                get_weather(center, client=client),
            )
        finally:
            self._busy = False

        if predictions:
            message = f"Found {len(predictions)} potential wildlife paths."
        else:
            message = f"No recent wildlife sightings within {radius_km:g} km."
        return AreaScan(
            center=center,
            radius_km=radius_km,
            predictions=predictions,
            safe_places=places,
            weather=weather,
            message=message,
        )
