"""
Wildlife Routes — area scans (predicted animal paths) and manual sightings.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from api import state
from api.schemas import ScanRequest, ScanResponse, SightingRequest, SightingResponse
from trailguard.errors import InvalidCoordinatesError
from trailguard.species import by_common_name

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/predictions", response_model=ScanResponse)
async def predictions(req: ScanRequest):
    """Predicted wildlife paths, safe places and weather around a point."""
    scan = await state.scanner.scan(req.to_point(), req.radius_km)
    logger.info("scan (%.4f, %.4f) r=%.0f km → %s", req.lat, req.lon, req.radius_km, scan.message)
    return ScanResponse(
        lat=req.lat,
        lon=req.lon,
        radius_km=req.radius_km,
        message=scan.message,
        skipped=scan.skipped,
        predictions=scan.predictions,
        safe_places=scan.safe_places,
        weather=scan.weather,
    )


@router.post("/sightings", response_model=SightingResponse, status_code=201)
async def add_sighting(req: SightingRequest):
    """Log a sighting reported by the traveler."""
    if by_common_name(req.common_name) is None:
        raise HTTPException(status_code=422, detail=f"Unknown species: {req.common_name}")
    try:
        entry = await state.sighting_log.add(req.common_name, req.to_point())
    except InvalidCoordinatesError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return SightingResponse(**entry.model_dump())


@router.get("/sightings", response_model=list[SightingResponse])
async def list_sightings():
    return [SightingResponse(**e.model_dump()) for e in state.sighting_log.entries]


@router.delete("/sightings", status_code=204)
async def clear_sightings():
    """Forget every manually logged sighting."""
    state.sighting_log.clear()
    logger.info("Sighting log cleared")
