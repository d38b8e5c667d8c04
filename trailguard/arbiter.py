"""
Route Arbiter — choose between the direct route and a hazard-avoiding one.

Flow of :func:`plan_safe_route`:
  1. Predict hazards around the geodesic midpoint of start/end.
  2. Turn every hazard not explicitly excluded into an avoidance polygon.
  3. Fetch the direct route — without it there is no plan at all.
  4. If there is anything to avoid, fetch the safe alternative and keep it
     only if its duration stays within the configured trade-off.
  5. Probe the other travel modes in the background; that table never
     gates the primary route.
  6. Attach the hazards near the chosen route and the safe places along it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Sequence

import httpx

from trailguard.config import RoutingSettings
from trailguard.errors import FetchError, NoDirectRouteError, RoutePlanningError
from trailguard.geo import distance_km, distance_to_path_km, midpoint
from trailguard.geocoding import resolve_location
from trailguard.models import (
    TRAVEL_MODES,
    AvoidanceZone,
    HazardPrediction,
    Location,
    ModeSummary,
    Route,
    SafePlace,
    TravelMode,
)
from trailguard.predictor import PathPredictor, predict_hazards
from trailguard.routing import request_route
from trailguard.safe_places import find_safe_places_along_route
from trailguard.sightings import SightingLog

logger = logging.getLogger(__name__)

RouteRequester = Callable[..., Awaitable["Route | None"]]
HazardSource = Callable[..., Awaitable[list[HazardPrediction]]]
SafePlaceSource = Callable[..., Awaitable[list[SafePlace]]]


class PlanStatus(str, Enum):
    NO_RISK = "no_risk"
    SAFER_ROUTE = "safer_route"
    HIGH_RISK = "high_risk"


@dataclass
class RoutePlan:
    route: Route
    alternative: Route | None
    status: PlanStatus
    message: str
    hazards: list[HazardPrediction] = field(default_factory=list)
    safe_places: list[SafePlace] = field(default_factory=list)
    other_modes: dict[str, ModeSummary] = field(default_factory=dict)
    mode_probe: asyncio.Task | None = field(default=None, repr=False)

    async def wait_for_modes(self) -> dict[str, ModeSummary]:
        """Block until every travel-mode probe has settled."""
        if self.mode_probe is not None:
            await self.mode_probe
        return self.other_modes


def search_radius_km(start: Location, end: Location, settings: RoutingSettings) -> float:
    return max(
        settings.base_search_radius_km,
        distance_km(start, end) / 2 * settings.search_radius_factor,
    )


def avoidance_polygons(
    hazards: Sequence[HazardPrediction],
    hazard_radius_km: float,
    excluded_ids: Sequence[str] = (),
    settings: RoutingSettings | None = None,
) -> list[list[tuple[float, float]]]:
    """One ``(lon, lat)`` ring per hazard, shrunk from the alert radius."""
    settings = settings or RoutingSettings()
    radius = hazard_radius_km / settings.avoidance_shrink
    excluded = set(excluded_ids)
    return [
        AvoidanceZone(center=h.current, radius_km=radius).to_polygon(settings.avoidance_vertices)
        for h in hazards
        if h.id not in excluded
    ]


def arbitrate(
    direct: Route,
    safe: Route | None,
    settings: RoutingSettings | None = None,
) -> tuple[Route, Route | None, PlanStatus, str]:
    """Primary route, alternative, status and message for a direct/safe pair.

    Only called when there was something to avoid.
    """
    settings = settings or RoutingSettings()
    if (
        safe is not None
        and safe.duration_minutes < direct.duration_minutes * settings.duration_multiplier
        and safe.duration_minutes < direct.duration_minutes + settings.duration_slack_minutes
    ):
        extra = round(safe.duration_minutes - direct.duration_minutes)
        message = f"Safer route found! Adds {extra if extra > 0 else 'no extra'} min to avoid wildlife."
        return safe, direct.model_copy(update={"is_high_risk": True}), PlanStatus.SAFER_ROUTE, message

    primary = direct.model_copy(update={"is_high_risk": True})
    if safe is None:
        message = "Warning: Safer alternative unavailable. Proceeding on the high-risk direct route."
    else:
        message = "Warning: Direct route passes through high-risk areas. A safer alternative may be shown."
    return primary, safe, PlanStatus.HIGH_RISK, message


def hazards_near_route(
    hazards: Sequence[HazardPrediction],
    route: Route,
    hazard_radius_km: float,
) -> list[HazardPrediction]:
    """Hazards whose current position lies within *hazard_radius_km* of the path."""
    near = []
    for h in hazards:
        d = distance_to_path_km(h.current, route.path)
        if d < hazard_radius_km:
            near.append(h.model_copy(update={"distance_to_path_km": d}))
    return near


async def probe_other_modes(
    start: Location,
    end: Location,
    modes: Sequence[str],
    sink: dict[str, ModeSummary],
    *,
    router: RouteRequester = request_route,
    settings: RoutingSettings | None = None,
    client: httpx.AsyncClient | None = None,
) -> None:
    """Fill *sink* with a direct-route summary per mode; failures skip that mode only."""

    async def _one(mode: str) -> None:
        try:
            route = await router(start, end, mode, [], settings=settings, client=client)
        except FetchError as exc:
            logger.warning("Could not calculate route for %s: %s", mode, exc)
            return
        except Exception:  # noqa: BLE001 — one mode failing leaves the others
            logger.exception("Route probe for %s failed", mode)
            return
        if route is not None:
            sink[mode] = ModeSummary(distance_km=route.distance_km, duration_minutes=route.duration_minutes)

    await asyncio.gather(*[_one(m) for m in modes])


async def plan_safe_route(
    start: Location | str,
    end: Location | str,
    hazard_radius_km: float,
    mode: TravelMode,
    excluded_hazard_ids: Sequence[str] = (),
    *,
    settings: RoutingSettings | None = None,
    log: SightingLog | None = None,
    predictor: PathPredictor | None = None,
    probe_modes: bool = True,
    router: RouteRequester = request_route,
    hazard_source: HazardSource = predict_hazards,
    safe_place_source: SafePlaceSource = find_safe_places_along_route,
    client: httpx.AsyncClient | None = None,
) -> RoutePlan:
    """Plan the safest reasonable route from *start* to *end*.

    Raises:
        RoutePlanningError: an endpoint could not be geocoded.
        NoDirectRouteError: the routing service gave no plausible direct route.
        FetchError: the routing service was unreachable for the direct route.
    """
    settings = settings or RoutingSettings()

    start_loc = await resolve_location(start, client=client)
    if start_loc is None:
        raise RoutePlanningError(f'Could not find start location: "{start}"')
    end_loc = await resolve_location(end, client=client)
    if end_loc is None:
        raise RoutePlanningError(f'Could not find destination: "{end}"')

    # 1. hazards around the route area
    center = midpoint(start_loc, end_loc)
    radius = search_radius_km(start_loc, end_loc, settings)
    logger.info("Analyzing wildlife activity within %.1f km of (%.4f, %.4f)", radius, center.lat, center.lon)
    hazards = await hazard_source(center, radius, log=log, predictor=predictor, client=client)

    # 2. avoidance geometry
    polygons = avoidance_polygons(hazards, hazard_radius_km, excluded_hazard_ids, settings)

    # 3. baseline
    direct = await router(start_loc, end_loc, mode, [], settings=settings, client=client)
    if direct is None:
        raise NoDirectRouteError("Could not find a direct route. The area may be inaccessible.")

    # 4/5. trade-off
    if not polygons:
        primary, alternative = direct, None
        status, message = PlanStatus.NO_RISK, "Route checked. No immediate wildlife risks found."
    else:
        logger.info("Calculating safer alternatives around %d hazard zones...", len(polygons))
        try:
            safe = await router(start_loc, end_loc, mode, polygons, settings=settings, client=client)
        except FetchError as exc:
            logger.warning("Safe alternative request failed: %s", exc)
            safe = None
        primary, alternative, status, message = arbitrate(direct, safe, settings)
    logger.info(message)

    plan = RoutePlan(route=primary, alternative=alternative, status=status, message=message)

    # 6. cross-mode table, in the background
    if probe_modes:
        others = [m for m in TRAVEL_MODES if m != mode]
        plan.mode_probe = asyncio.create_task(
            probe_other_modes(
                start_loc, end_loc, others, plan.other_modes,
                router=router, settings=settings, client=client,
            )
        )

    plan.hazards = hazards_near_route(hazards, primary, hazard_radius_km)
    plan.safe_places = await safe_place_source(primary.path, client=client)
    return plan
