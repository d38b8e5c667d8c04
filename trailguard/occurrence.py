"""
Occurrence lookup — recent field observations per species from GBIF.
"""

from __future__ import annotations

import logging
import math

import httpx

from trailguard.config import GBIF_LIMIT, GBIF_OCCURRENCE_URL
from trailguard.fetch import fetch_json
from trailguard.models import GeoPoint, Sighting
from trailguard.species import SpeciesInfo

logger = logging.getLogger(__name__)

KM_PER_DEG_LAT = 111.32


def search_box(center: GeoPoint, radius_km: float) -> tuple[str, str]:
    """GBIF ``decimalLatitude`` / ``decimalLongitude`` range strings."""
    d_lat = radius_km / KM_PER_DEG_LAT
    d_lon = radius_km / (KM_PER_DEG_LAT * math.cos(math.radians(center.lat)))
    return (
        f"{center.lat - d_lat},{center.lat + d_lat}",
        f"{center.lon - d_lon},{center.lon + d_lon}",
    )


def _image_of(occ: dict) -> str | None:
    for m in occ.get("media") or []:
        if m.get("type") == "StillImage" and m.get("identifier"):
            return m["identifier"]
    return None


async def fetch_sightings(
    species: SpeciesInfo,
    center: GeoPoint,
    radius_km: float,
    *,
    limit: int = GBIF_LIMIT,
    client: httpx.AsyncClient | None = None,
) -> list[Sighting]:
    """Observed positions of *species* inside the box around *center*.

    GBIF returns most recent first; that order is kept.
    """
    if not species.taxon_key:
        return []
    lat_range, lon_range = search_box(center, radius_km)
    data = await fetch_json(
        GBIF_OCCURRENCE_URL,
        params={
            "taxon_key": species.taxon_key,
            "decimalLatitude": lat_range,
            "decimalLongitude": lon_range,
            "limit": limit,
            "hasCoordinate": "true",
            "hasGeospatialIssue": "false",
        },
        client=client,
    )
    if not data or not data.get("results"):
        return []

    sightings: list[Sighting] = []
    for occ in data["results"]:
        lat, lon = occ.get("decimalLatitude"), occ.get("decimalLongitude")
        if lat is None or lon is None:
            continue
        sightings.append(Sighting(lat=lat, lon=lon, image=_image_of(occ)))
    logger.info("GBIF: %d sightings of %s", len(sightings), species.common)
    return sightings
