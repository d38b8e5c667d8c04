"""
Route Broker — one request to the routing service, vetted for plausibility.

``request_route`` returns ``None`` when the service answered but the route
fails the sanity checks ("no safe path"), and raises a ``FetchError`` when
the service could not be reached or refused the request ("service
unreachable").  The two outcomes are never collapsed.
"""

from __future__ import annotations

import logging
from typing import Sequence

import httpx

from trailguard.config import VALHALLA_ROUTE_URL, RoutingSettings
from trailguard.errors import MalformedResponseError
from trailguard.fetch import fetch_json
from trailguard.geo import decode_polyline, distance_km
from trailguard.models import Location, Route, TravelMode

logger = logging.getLogger(__name__)

# Valhalla costing profile per travel mode
PROFILES: dict[str, str] = {"car": "auto", "bike": "bicycle", "walk": "pedestrian", "bus": "bus"}

SHAPE_PRECISION = 6

Ring = Sequence[tuple[float, float]]


def _request_body(start: Location, end: Location, mode: TravelMode, avoid: Sequence[Ring]) -> dict:
    profile = PROFILES[mode]
    body: dict = {
        "locations": [{"lat": start.lat, "lon": start.lon}, {"lat": end.lat, "lon": end.lon}],
        "costing": profile,
        "directions_options": {"units": "kilometers"},
    }
    if avoid:
        # rings arrive as (lon, lat); Valhalla wants {lat, lon} objects
        body["costing_options"] = {
            profile: {"avoid_polygons": [[{"lat": lat, "lon": lon} for lon, lat in ring] for ring in avoid]}
        }
    return body


def _parse_route(data: dict, start: Location, end: Location, mode: TravelMode) -> Route:
    try:
        leg = data["trip"]["legs"][0]
        summary, shape = leg["summary"], leg["shape"]
        length_km, time_s = float(summary["length"]), float(summary["time"])
        path = decode_polyline(shape, SHAPE_PRECISION)
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise MalformedResponseError(
            f"Unexpected routing response: {exc}", url=VALHALLA_ROUTE_URL,
        ) from exc
    return Route(
        path=path,
        distance_km=round(length_km, 1),
        duration_minutes=round(time_s / 60),
        start=start,
        end=end,
        mode=mode,
    )


def is_route_reasonable(
    route: Route,
    start: Location,
    end: Location,
    settings: RoutingSettings | None = None,
) -> bool:
    """Reject wild detours and implausible average speeds."""
    settings = settings or RoutingSettings()
    straight = distance_km(start, end)

    if route.distance_km > straight * settings.max_detour_ratio:
        logger.warning(
            "Route rejected: distance %.1f km is >%gx straight-line distance %.1f km",
            route.distance_km, settings.max_detour_ratio, straight,
        )
        return False

    band = settings.speed_bands.get(route.mode)
    if band is not None and route.duration_minutes > 0:
        speed = route.distance_km / (route.duration_minutes / 60)
        if not band.min_kmh <= speed <= band.max_kmh:
            logger.warning(
                "Route rejected: avg speed %.1f km/h outside [%g-%g] for mode '%s'",
                speed, band.min_kmh, band.max_kmh, route.mode,
            )
            return False
    return True


async def request_route(
    start: Location,
    end: Location,
    mode: TravelMode,
    avoid_polygons: Sequence[Ring] = (),
    *,
    settings: RoutingSettings | None = None,
    client: httpx.AsyncClient | None = None,
) -> Route | None:
    """Fetch a route for *mode*, optionally carving out *avoid_polygons*.

    Args:
        start: Route origin.
        end: Route destination.
        mode: One of car / bike / bus / walk.
        avoid_polygons: Closed rings in ``(lon, lat)`` order.

    Returns:
        The route, or ``None`` if the service's answer is implausible.

    Raises:
        FetchError: the routing service was unreachable or refused.
    """
    data = await fetch_json(
        VALHALLA_ROUTE_URL,
        method="POST",
        json_body=_request_body(start, end, mode, avoid_polygons),
        client=client,
    )
    if not isinstance(data, dict):
        raise MalformedResponseError("Empty routing response", url=VALHALLA_ROUTE_URL)

    route = _parse_route(data, start, end, mode)
    if not is_route_reasonable(route, start, end, settings):
        logger.warning("Routing service returned an unreasonable %s route. Discarding.", mode)
        return None
    logger.info(
        "Route %s: %.1f km, %d min (%d avoid polygons)",
        mode, route.distance_km, route.duration_minutes, len(avoid_polygons),
    )
    return route
