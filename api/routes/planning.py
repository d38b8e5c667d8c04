"""
Planning Routes — wildlife-aware route planning.

The cross-mode table (distance/duration for the other travel modes) is
probed in the background after a plan is returned; poll
``GET /routes/plan/{id}/modes`` for it, or set ``wait_for_modes``.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from api import state
from api.schemas import LocationInput, ModesResponse, PlanRequest, PlanResponse
from trailguard.arbiter import plan_safe_route
from trailguard.config import RoutingSettings
from trailguard.errors import FetchError, RoutePlanningError

logger = logging.getLogger(__name__)
router = APIRouter()


def _endpoint(value: LocationInput | str):
    return value.to_location() if isinstance(value, LocationInput) else value


@router.post("/routes/plan", response_model=PlanResponse)
async def plan_route(req: PlanRequest):
    """Plan the safest reasonable route between two points.

    404 — no direct route exists (or an endpoint could not be found);
    502 — the routing service is unreachable.  A high-risk plan (the safer
    alternative was unavailable or too slow) is a 200 with
    ``status="high_risk"``.
    """
    try:
        plan = await plan_safe_route(
            _endpoint(req.start),
            _endpoint(req.end),
            req.hazard_radius_km,
            req.mode,
            req.excluded_hazard_ids,
            settings=RoutingSettings.from_env(),
            log=state.sighting_log,
        )
    except RoutePlanningError as exc:  # includes NoDirectRouteError
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except FetchError as exc:
        logger.exception("Route planning failed")
        raise HTTPException(status_code=502, detail=f"Routing service unreachable: {exc}") from exc

    plan_id = state.store_plan(plan)
    if req.wait_for_modes:
        await plan.wait_for_modes()

    return PlanResponse(
        id=plan_id,
        status=plan.status.value,
        message=plan.message,
        route=plan.route,
        alternative=plan.alternative,
        hazards=plan.hazards,
        safe_places=plan.safe_places,
        other_modes=dict(plan.other_modes),
    )


@router.get("/routes/plan/{plan_id}/modes", response_model=ModesResponse)
async def plan_modes(plan_id: str, wait: bool = False):
    """Cross-mode table for a recent plan; ``wait=true`` blocks until it is complete."""
    plan = state.get_plan(plan_id)
    if plan is None:
        raise HTTPException(status_code=404, detail=f"No recent plan {plan_id}")
    if wait:
        await plan.wait_for_modes()
    probe = plan.mode_probe
    return ModesResponse(
        plan_id=plan_id,
        complete=probe is None or probe.done(),
        other_modes=dict(plan.other_modes),
    )
