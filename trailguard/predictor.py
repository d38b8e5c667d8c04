"""
Hazard Predictor — short forward paths for each tracked species.

Pipeline per prediction cycle:
  1. Fetch recent GBIF observations for every species in the catalog
     (concurrently) and merge in manual sightings near the area.
  2. Run the path predictor over all species at once.
  3. Annotate each prediction with addresses, distance from the area
     centre, and a spline-smoothed path through its waypoints.

The predictor is pluggable (:class:`PathPredictor`); the bundled
:class:`LinearPredictor` extrapolates the mean displacement between
consecutive sightings.  Any failure inside the batch prediction yields
"no predictions" rather than an error — absence of a hazard is a valid
answer and callers treat it as "nothing to avoid".
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
from typing import Mapping, Protocol, Sequence

import httpx
import numpy as np

from trailguard.config import SEQ_LEN, SMOOTH_STEPS
from trailguard.errors import FetchError, TrailguardError
from trailguard.geo import distance_km, smooth_path
from trailguard.geocoding import reverse_geocode
from trailguard.models import CurrentSighting, GeoPoint, HazardPrediction, PredictionPoint, Sighting
from trailguard.occurrence import fetch_sightings
from trailguard.sightings import SightingLog, coord_label
from trailguard.species import SPECIES, SpeciesInfo

logger = logging.getLogger(__name__)


class PathPredictor(Protocol):
    def predict(self, sightings: Sequence[Sighting]) -> list[GeoPoint]:
        """Future waypoints from sightings ordered most recent first."""
        ...


class LinearPredictor:
    """Mean-displacement extrapolation.

    With a single sighting the direction is unknown, so the animal is
    placed a small random step away ("nearby, heading unknown").
    """

    def __init__(self, steps: int = 2, jitter_deg: float = 0.01, rng: random.Random | None = None):
        self.steps = steps
        self.jitter_deg = jitter_deg
        self.rng = rng or random.Random()

    def predict(self, sightings: Sequence[Sighting]) -> list[GeoPoint]:
        if not sightings:
            return []
        last = np.array([sightings[0].lat, sightings[0].lon])

        if len(sightings) < 2:
            angle = self.rng.random() * 2 * math.pi
            step = self.jitter_deg * np.array([math.cos(angle), math.sin(angle)])
        else:
            coords = np.array([[s.lat, s.lon] for s in reversed(sightings)])  # oldest → newest
            step = np.diff(coords, axis=0).mean(axis=0)

        out: list[GeoPoint] = []
        pos = last
        for _ in range(self.steps):
            pos = pos + step
            out.append(GeoPoint(lat=float(pos[0]), lon=float(pos[1])))
        return out


def predict_paths(
    sighting_sets: Mapping[str, Sequence[Sighting]],
    predictor: PathPredictor | None = None,
) -> dict[str, list[GeoPoint]]:
    """Batch prediction keyed by scientific name; ``{}`` if the batch fails."""
    predictor = predictor or LinearPredictor()
    try:
        out = {name: predictor.predict(s) for name, s in sighting_sets.items() if s}
    except Exception as exc:  # noqa: BLE001 — any predictor failure means "no predictions"
        logger.error("Path prediction unavailable: %s", exc)
        return {}
    return {name: pts for name, pts in out.items() if pts}


def merge_sightings(
    observed: Mapping[str, Sequence[Sighting]],
    manual: Mapping[str, Sequence[Sighting]],
    seq_len: int = SEQ_LEN,
) -> dict[str, list[Sighting]]:
    """Manual sightings go to the head of each species' list; re-truncate after."""
    merged: dict[str, list[Sighting]] = {}
    for name in [*observed.keys(), *(k for k in manual if k not in observed)]:
        combined = [*manual.get(name, []), *observed.get(name, [])][:seq_len]
        if combined:
            merged[name] = combined
    return merged


async def collect_sightings(
    center: GeoPoint,
    radius_km: float,
    *,
    log: SightingLog | None = None,
    species: Sequence[SpeciesInfo] | None = None,
    seq_len: int = SEQ_LEN,
    client: httpx.AsyncClient | None = None,
) -> dict[str, list[Sighting]]:
    """Up to *seq_len* recent sightings per species around *center*."""
    catalog = list(species or SPECIES.values())

    async def _one(info: SpeciesInfo) -> tuple[str, list[Sighting]]:
        try:
            found = await fetch_sightings(info, center, radius_km, client=client)
        except FetchError as exc:
            logger.warning("Failed to get sightings for %s: %s", info.scientific, exc)
            found = []
        return info.scientific, found[:seq_len]

    observed = dict(await asyncio.gather(*[_one(info) for info in catalog]))
    observed = {k: v for k, v in observed.items() if v}
    manual = log.by_species_near(center, radius_km) if log else {}
    return merge_sightings(observed, manual, seq_len)


def hazard_id(info: SpeciesInfo, current: GeoPoint) -> str:
    """Stable across prediction cycles as long as the latest sighting is unchanged."""
    return f"{info.scientific}@{current.lat:.5f},{current.lon:.5f}"


async def _address(point: GeoPoint, client: httpx.AsyncClient | None) -> str:
    try:
        return await reverse_geocode(point, client=client)
    except TrailguardError as exc:
        logger.warning("Failed to geocode prediction point (%.4f, %.4f): %s", point.lat, point.lon, exc)
        return coord_label(point)


async def _build_one(
    info: SpeciesInfo,
    sightings: Sequence[Sighting],
    waypoints: Sequence[GeoPoint],
    reference: GeoPoint,
    annotate: bool,
    client: httpx.AsyncClient | None,
) -> HazardPrediction:
    current = sightings[0]
    if annotate:
        current_addr, *pred_addrs = await asyncio.gather(
            _address(current, client), *[_address(p, client) for p in waypoints],
        )
    else:
        current_addr, pred_addrs = None, [None] * len(waypoints)

    path = smooth_path([current.as_tuple(), *(p.as_tuple() for p in waypoints)], SMOOTH_STEPS)
    return HazardPrediction(
        id=hazard_id(info, current),
        scientific=info.scientific,
        common=info.common,
        icon=info.icon,
        color=info.color,
        risk_level=info.risk_level,
        image=current.image,
        current=CurrentSighting(
            lat=current.lat,
            lon=current.lon,
            addr=current_addr,
            dist_km=round(distance_km(reference, current), 1),
        ),
        preds=[PredictionPoint(lat=p.lat, lon=p.lon, addr=a) for p, a in zip(waypoints, pred_addrs)],
        full_path=path,
    )


async def predict_hazards(
    center: GeoPoint,
    radius_km: float,
    *,
    log: SightingLog | None = None,
    predictor: PathPredictor | None = None,
    annotate: bool = True,
    client: httpx.AsyncClient | None = None,
) -> list[HazardPrediction]:
    """Predicted hazard paths for every species seen within *radius_km* of *center*."""
    sighting_sets = await collect_sightings(center, radius_km, log=log, client=client)
    if not sighting_sets:
        logger.info("No recent wildlife sightings within %.0f km of (%.4f, %.4f)", radius_km, center.lat, center.lon)
        return []

    logger.info("Found sightings for %d species. Predicting paths...", len(sighting_sets))
    paths = predict_paths(sighting_sets, predictor)

    predictions = await asyncio.gather(*[
        _build_one(SPECIES[name], sighting_sets[name], waypoints, center, annotate, client)
        for name, waypoints in paths.items()
        if name in SPECIES
    ])
    logger.info("Found %d potential wildlife paths.", len(predictions))
    return list(predictions)
