"""
Manual sighting log — wildlife reported by the traveler.

Newest first, capped at ``MANUAL_SIGHTING_LIMIT`` entries, persisted as a
small JSON file.  Entries near a search area are merged ahead of the field
observations when predicting (see :mod:`trailguard.predictor`).
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone

import httpx
from pydantic import ValidationError

from trailguard.config import MANUAL_SIGHTING_LIMIT, SIGHTINGS_LOG_PATH
from trailguard.errors import FetchError
from trailguard.geo import distance_km
from trailguard.geocoding import reverse_geocode
from trailguard.models import GeoPoint, Sighting
from trailguard.species import by_common_name

logger = logging.getLogger(__name__)


class ManualSighting(GeoPoint):
    common_name: str
    address: str
    timestamp: str


def coord_label(point: GeoPoint) -> str:
    return f"Lat: {point.lat:.4f}, Lon: {point.lon:.4f}"


class SightingLog:
    """Persistent, bounded list of manual sightings.

    Pass ``path=None`` to keep the log in memory only.
    """

    def __init__(self, path: str | None = SIGHTINGS_LOG_PATH, limit: int = MANUAL_SIGHTING_LIMIT):
        self.path = path
        self.limit = limit
        self._entries: list[ManualSighting] = self._load()

    @property
    def entries(self) -> list[ManualSighting]:
        return list(self._entries)

    def _load(self) -> list[ManualSighting]:
        if not self.path or not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return [ManualSighting(**e) for e in json.load(f)][: self.limit]
        except (OSError, json.JSONDecodeError, ValidationError, TypeError) as e:
            logger.warning("Ignoring unreadable sighting log %s: %s", self.path, e)
            return []

    def _save(self) -> None:
        if not self.path:
            return
        try:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump([e.model_dump() for e in self._entries], f)
        except OSError as e:
            logger.warning("Failed to save sighting log: %s", e)

    async def add(
        self,
        common_name: str,
        point: GeoPoint,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> ManualSighting:
        """Record a sighting at *point*; the address comes from reverse geocoding."""
        try:
            address = await reverse_geocode(point, client=client)
        except FetchError as exc:
            logger.warning("Reverse geocoding failed for manual sighting: %s", exc)
            address = coord_label(point)

        entry = ManualSighting(
            lat=point.lat,
            lon=point.lon,
            common_name=common_name,
            address=address,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        self._entries = [entry, *self._entries][: self.limit]
        self._save()
        logger.info("Logged manual sighting of %s at %s", common_name, address)
        return entry

    def by_species_near(self, center: GeoPoint, radius_km: float) -> dict[str, list[Sighting]]:
        """Entries within *radius_km* of *center*, grouped by scientific name."""
        grouped: dict[str, list[Sighting]] = {}
        for e in self._entries:
            info = by_common_name(e.common_name)
            if info is None or distance_km(center, e) > radius_km:
                continue
            grouped.setdefault(info.scientific, []).append(Sighting(lat=e.lat, lon=e.lon))
        return grouped

    def clear(self) -> None:
        self._entries = []
        self._save()
