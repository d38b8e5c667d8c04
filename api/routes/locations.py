"""
Location Routes — health, species catalog, geocoding and weather.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query

from trailguard.errors import FetchError, InvalidCoordinatesError
from trailguard.geocoding import reverse_geocode, search_locations
from trailguard.models import GeoPoint, Location, WeatherData
from trailguard.species import SpeciesInfo, list_species
from trailguard.weather import get_weather

logger = logging.getLogger(__name__)
router = APIRouter()


# ---- Health ---- #

@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/species", response_model=list[SpeciesInfo])
async def species():
    """The tracked species with their display metadata and risk tier."""
    return list_species()


# ---- Geocoding ---- #

@router.get("/locations/search", response_model=list[Location])
async def locations_search(q: str = Query(..., min_length=1)):
    """Free-text place search (up to 5 candidates)."""
    try:
        return await search_locations(q)
    except FetchError as exc:
        logger.warning("Location search failed for %r: %s", q, exc)
        return []


@router.get("/locations/reverse")
async def locations_reverse(lat: float, lon: float):
    """Display name for a coordinate."""
    try:
        name = await reverse_geocode(GeoPoint(lat=lat, lon=lon))
    except InvalidCoordinatesError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except FetchError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"lat": lat, "lon": lon, "name": name}


# ---- Weather ---- #

@router.get("/weather", response_model=WeatherData | None)
async def weather(lat: float = Query(..., ge=-90, le=90), lon: float = Query(..., ge=-180, le=180)):
    """Current conditions at a coordinate (null when unavailable)."""
    return await get_weather(GeoPoint(lat=lat, lon=lon))
