"""
Weather — current conditions from Open-Meteo, plus the WMO severity table
used for navigation alerts.
"""

from __future__ import annotations

import logging

import httpx

from trailguard.config import OPEN_METEO_URL
from trailguard.errors import FetchError
from trailguard.fetch import fetch_json
from trailguard.models import GeoPoint, WeatherData

logger = logging.getLogger(__name__)

SEVERE_CODES = frozenset({63, 65, 66, 67, 73, 75, 77, 81, 82, 85, 86, 95, 96, 99})

_MESSAGES: list[tuple[frozenset[int], str]] = [
    (frozenset({63, 65, 81, 82}), "Warning: Heavy rain detected on your route. Drive carefully."),
    (frozenset({73, 75, 77, 85, 86}), "Warning: Heavy snow detected. Conditions may be hazardous."),
    (frozenset({66, 67}), "Warning: Freezing rain detected. Roads may be icy."),
    (frozenset({95, 96, 99}), "Warning: Thunderstorms nearby. Consider seeking shelter if possible."),
]


def is_severe(code: int) -> bool:
    return code in SEVERE_CODES


def alert_text(code: int) -> str:
    for codes, message in _MESSAGES:
        if code in codes:
            return message
    return "Warning: Severe weather conditions detected ahead."


async def get_weather(point: GeoPoint, *, client: httpx.AsyncClient | None = None) -> WeatherData | None:
    """Current weather at *point*, or ``None`` if unavailable."""
    try:
        data = await fetch_json(
            OPEN_METEO_URL,
            params={"latitude": point.lat, "longitude": point.lon, "current_weather": "true"},
            client=client,
        )
    except FetchError as exc:
        logger.warning("Weather unavailable for (%.4f, %.4f): %s", point.lat, point.lon, exc)
        return None

    current = (data or {}).get("current_weather")
    if not current:
        return None
    return WeatherData(
        temperature=current["temperature"],
        weather_code=current["weathercode"],
        wind_speed=current["windspeed"],
        is_day=current["is_day"],
    )
