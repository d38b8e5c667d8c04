"""
Geocoding — forward / reverse lookups via the Nominatim HTTP API.
"""

from __future__ import annotations

import logging

import httpx

from trailguard.config import NOMINATIM_REVERSE, NOMINATIM_SEARCH
from trailguard.errors import InvalidCoordinatesError
from trailguard.fetch import fetch_json
from trailguard.models import GeoPoint, Location

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = "Unknown location"


async def search_locations(
    query: str,
    *,
    limit: int = 5,
    client: httpx.AsyncClient | None = None,
) -> list[Location]:
    """Free-text search; returns up to *limit* candidates, best first."""
    if not (query or "").strip():
        return []
    data = await fetch_json(
        NOMINATIM_SEARCH,
        params={"q": query.strip(), "format": "json", "limit": limit},
        client=client,
    )
    if not isinstance(data, list):
        return []
    out: list[Location] = []
    for r in data:
        try:
            out.append(Location(lat=float(r["lat"]), lon=float(r["lon"]), name=r.get("display_name", query)))
        except (KeyError, TypeError, ValueError):
            logger.debug("Skipping malformed Nominatim result: %s", r)
    logger.info("Nominatim: %d results for %r", len(out), query)
    return out


async def reverse_geocode(point: GeoPoint, *, client: httpx.AsyncClient | None = None) -> str:
    """Display name for *point*.

    Raises:
        InvalidCoordinatesError: if the point is outside the WGS84 range.
        FetchError: if the lookup itself fails.
    """
    if not point.is_valid:
        raise InvalidCoordinatesError(
            f"Invalid coordinates provided: lat={point.lat}, lon={point.lon}"
        )
    data = await fetch_json(
        NOMINATIM_REVERSE,
        params={"format": "jsonv2", "lat": point.lat, "lon": point.lon},
        client=client,
    )
    if isinstance(data, dict) and data.get("display_name"):
        return data["display_name"]
    return UNKNOWN_LOCATION


async def resolve_location(
    value: Location | str,
    *,
    client: httpx.AsyncClient | None = None,
) -> Location | None:
    """Pass a Location through, or geocode free text to its first match."""
    if isinstance(value, Location):
        return value
    results = await search_locations(value, client=client)
    return results[0] if results else None
