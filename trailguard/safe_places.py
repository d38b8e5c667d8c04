"""
Places of safety — police stations and forestry/ranger offices from the
Overpass API, either around a point or inside a route's corridor.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

import httpx

from trailguard.config import CORRIDOR_BUFFER_DEG, OVERPASS_URL
from trailguard.errors import FetchError
from trailguard.fetch import fetch_json
from trailguard.geo import bounding_box
from trailguard.models import GeoPoint, LatLon, SafePlace

logger = logging.getLogger(__name__)

_SELECTORS = ('["amenity"="police"]', '["office"="forestry"]')


def _query(spatial: str) -> str:
    body = "\n".join(
        f"  {kind}{sel}{spatial};" for sel in _SELECTORS for kind in ("node", "way")
    )
    return f"[out:json][timeout:25];\n(\n{body}\n);\nout center;"


def _to_place(el: dict[str, Any]) -> SafePlace | None:
    center = el.get("center") or {"lat": el.get("lat"), "lon": el.get("lon")}
    if center.get("lat") is None or center.get("lon") is None:
        return None
    tags = el.get("tags") or {}
    kind = "police" if tags.get("amenity") == "police" else "ranger"
    address = ", ".join(
        str(tags[k])
        for k in ("addr:housenumber", "addr:street", "addr:city", "addr:postcode")
        if tags.get(k)
    )
    return SafePlace(
        id=el["id"],
        lat=center["lat"],
        lon=center["lon"],
        type=kind,
        name=tags.get("name") or ("Police Station" if kind == "police" else "Forest Office"),
        address=address or None,
        hours=tags.get("opening_hours"),
        phone=tags.get("phone") or tags.get("contact:phone"),
    )


async def _run(query: str, client: httpx.AsyncClient | None) -> list[SafePlace]:
    try:
        data = await fetch_json(
            OVERPASS_URL,
            method="POST",
            data={"data": query},
            client=client,
        )
    except FetchError as exc:
        logger.warning("Safe-place search failed: %s", exc)
        return []

    places = [p for p in (_to_place(el) for el in (data or {}).get("elements", [])) if p]
    logger.info("Overpass: %d safe places", len(places))
    return places


async def find_safe_places_in_area(
    center: GeoPoint,
    radius_km: float,
    *,
    client: httpx.AsyncClient | None = None,
) -> list[SafePlace]:
    """Safe places within *radius_km* of *center* (empty on failure)."""
    radius_m = int(radius_km * 1000)
    return await _run(_query(f"(around:{radius_m},{center.lat},{center.lon})"), client)


async def find_safe_places_along_route(
    path: Sequence[LatLon],
    *,
    buffer_deg: float = CORRIDOR_BUFFER_DEG,
    client: httpx.AsyncClient | None = None,
) -> list[SafePlace]:
    """Safe places in the bounding box of *path* grown by *buffer_deg*."""
    if not path:
        return []
    south, west, north, east = bounding_box(path, buffer_deg)
    return await _run(_query(f"({south},{west},{north},{east})"), client)
