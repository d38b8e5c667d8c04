"""
Geo-Math — pure geometry helpers.

Points are anything with ``lat``/``lon`` attributes (``GeoPoint`` and its
subclasses); paths are sequences of ``(lat, lon)`` tuples.  No state, no I/O.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Literal, Protocol, Sequence, TypeVar

from trailguard.config import NEAREST_BACK_BUFFER, NEAREST_EARLY_EXIT
from trailguard.models import GeoPoint, LatLon

EARTH_RADIUS_KM = 6371.0


class HasLatLon(Protocol):
    lat: float
    lon: float


P = TypeVar("P", bound=HasLatLon)


# ---------------------------------------------------------------------------
# Distances
# ---------------------------------------------------------------------------

def _distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    # 0.5 - cos/2 keeps precision for small deltas where sin² would cancel
    a = (
        0.5 - math.cos(d_lat) / 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * (1 - math.cos(d_lon)) / 2
    )
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_KM * 2 * math.asin(math.sqrt(a))


def distance_km(a: HasLatLon, b: HasLatLon) -> float:
    """Great-circle distance in kilometres."""
    return _distance(a.lat, a.lon, b.lat, b.lon)


def midpoint(a: HasLatLon, b: HasLatLon) -> GeoPoint:
    """Geodesic midpoint (not the arithmetic mean of the coordinates)."""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    lon1 = math.radians(a.lon)
    d_lon = math.radians(b.lon - a.lon)

    bx = math.cos(lat2) * math.cos(d_lon)
    by = math.cos(lat2) * math.sin(d_lon)

    lat3 = math.atan2(
        math.sin(lat1) + math.sin(lat2),
        math.sqrt((math.cos(lat1) + bx) ** 2 + by ** 2),
    )
    lon3 = lon1 + math.atan2(by, math.cos(lat1) + bx)
    return GeoPoint(lat=math.degrees(lat3), lon=math.degrees(lon3))


def path_length(path: Sequence[LatLon]) -> float:
    """Sum of consecutive great-circle distances along *path* (km)."""
    total = 0.0
    for i in range(1, len(path)):
        total += _distance(path[i - 1][0], path[i - 1][1], path[i][0], path[i][1])
    return total


# ---------------------------------------------------------------------------
# Cardinal spline
# ---------------------------------------------------------------------------

def _spline_point(
    t: float, p0: LatLon, p1: LatLon, p2: LatLon, p3: LatLon, tension: float,
) -> LatLon:
    t2 = t * t
    t3 = t2 * t

    b1 = -tension * t3 + 2 * tension * t2 - tension * t
    b2 = (2 - tension) * t3 + (tension - 3) * t2 + 1
    b3 = (tension - 2) * t3 + (3 - 2 * tension) * t2 + tension * t
    b4 = tension * t3 - tension * t2

    return (
        p0[0] * b1 + p1[0] * b2 + p2[0] * b3 + p3[0] * b4,
        p0[1] * b1 + p1[1] * b2 + p2[1] * b3 + p3[1] * b4,
    )


def smooth_path(
    waypoints: Sequence[LatLon],
    substeps: int = 20,
    tension: float = 0.5,
) -> list[LatLon]:
    """Cardinal spline through *waypoints* (Catmull-Rom at ``tension=0.5``).

    The curve passes through every waypoint: the end points are duplicated
    as phantom control points, and the last emitted point is the last
    waypoint itself rather than the spline's floating-point approximation
    of it.  Fewer than two waypoints are returned unchanged.
    """
    if len(waypoints) < 2:
        return list(waypoints)

    steps = max(1, int(substeps))
    pts = [tuple(waypoints[0]), *(tuple(w) for w in waypoints), tuple(waypoints[-1])]

    out: list[LatLon] = []
    for i in range(1, len(pts) - 2):
        for s in range(steps):
            out.append(_spline_point(s / steps, pts[i - 1], pts[i], pts[i + 1], pts[i + 2], tension))
    out.append(tuple(waypoints[-1]))
    return out


# ---------------------------------------------------------------------------
# Polygons
# ---------------------------------------------------------------------------

def circle_polygon(
    center: HasLatLon,
    radius_km: float,
    vertex_count: int = 32,
    *,
    order: Literal["lonlat", "latlon"],
) -> list[tuple[float, float]]:
    """Closed ring of *vertex_count* vertices (plus the repeated first vertex).

    *order* is mandatory: ``"lonlat"`` for GeoJSON-style consumers such as
    Valhalla/ORS avoidance polygons, ``"latlon"`` for map display.
    """
    if vertex_count < 3:
        raise ValueError("a polygon needs at least 3 vertices")
    angular = radius_km / EARTH_RADIUS_KM
    lat1 = math.radians(center.lat)
    lon1 = math.radians(center.lon)

    ring: list[tuple[float, float]] = []
    for i in range(vertex_count):
        bearing = 2 * math.pi * i / vertex_count
        lat2 = math.asin(
            math.sin(lat1) * math.cos(angular)
            + math.cos(lat1) * math.sin(angular) * math.cos(bearing)
        )
        lon2 = lon1 + math.atan2(
            math.sin(bearing) * math.sin(angular) * math.cos(lat1),
            math.cos(angular) - math.sin(lat1) * math.sin(lat2),
        )
        lat_d, lon_d = math.degrees(lat2), math.degrees(lon2)
        ring.append((lon_d, lat_d) if order == "lonlat" else (lat_d, lon_d))
    ring.append(ring[0])
    return ring


def bounding_box(path: Iterable[LatLon], buffer_deg: float = 0.0) -> tuple[float, float, float, float]:
    """``(south, west, north, east)`` of *path*, grown by *buffer_deg*."""
    lats: list[float] = []
    lons: list[float] = []
    for lat, lon in path:
        lats.append(lat)
        lons.append(lon)
    if not lats:
        raise ValueError("empty path has no bounding box")
    return (
        min(lats) - buffer_deg,
        min(lons) - buffer_deg,
        max(lats) + buffer_deg,
        max(lons) + buffer_deg,
    )


# ---------------------------------------------------------------------------
# Encoded polylines (Google / Valhalla)
# ---------------------------------------------------------------------------

def decode_polyline(encoded: str, precision: int = 6) -> list[LatLon]:
    """Decode a delta + base-32 polyline into ``(lat, lon)`` pairs."""
    points: list[LatLon] = []
    factor = 10 ** precision
    index, length = 0, len(encoded)
    lat = lng = 0

    def _next_value() -> int:
        nonlocal index
        shift = result = 0
        while True:
            if index >= length:
                raise ValueError("truncated polyline")
            b = ord(encoded[index]) - 63
            index += 1
            result |= (b & 0x1F) << shift
            shift += 5
            if b < 0x20:
                break
        return ~(result >> 1) if result & 1 else result >> 1

    while index < length:
        lat += _next_value()
        lng += _next_value()
        points.append((lat / factor, lng / factor))
    return points


def _encode_value(value: int) -> str:
    value = ~(value << 1) if value < 0 else value << 1
    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1F)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)


def encode_polyline(points: Iterable[LatLon], precision: int = 6) -> str:
    factor = 10 ** precision
    out = []
    prev_lat = prev_lng = 0
    for lat, lon in points:
        ilat = int(round(lat * factor))
        ilng = int(round(lon * factor))
        out.append(_encode_value(ilat - prev_lat))
        out.append(_encode_value(ilng - prev_lng))
        prev_lat, prev_lng = ilat, ilng
    return "".join(out)


# ---------------------------------------------------------------------------
# Nearest-point search
# ---------------------------------------------------------------------------

@dataclass
class PathMatch:
    index: int
    remaining_path: list[LatLon] = field(default_factory=list)
    distance_km: float = math.inf


def nearest_point_on_path(
    point: HasLatLon,
    path: Sequence[LatLon],
    search_start_index: int = 0,
    *,
    early_exit: int = NEAREST_EARLY_EXIT,
    back_buffer: int = NEAREST_BACK_BUFFER,
) -> PathMatch:
    """Closest vertex of *path* to *point*, searching forward from the last match.

    The scan starts ``back_buffer`` vertices behind *search_start_index* and
    stops once the running minimum has not improved for ``early_exit``
    consecutive vertices, so a looping route cannot pull the match onto a
    segment that is near in space but far ahead (or behind) along the path.
    The remaining path starts with *point* itself.
    """
    if len(path) < 2:
        return PathMatch(index=0)

    search_start_index = min(max(0, search_start_index), len(path) - 1)
    best_index = search_start_index
    best = math.inf
    stale = 0
    for i in range(max(0, search_start_index - back_buffer), len(path)):
        d = _distance(point.lat, point.lon, path[i][0], path[i][1])
        if d < best:
            best = d
            best_index = i
            stale = 0
        else:
            stale += 1
            if stale >= early_exit:
                break

    remaining = [(point.lat, point.lon), *path[best_index:]]
    return PathMatch(index=best_index, remaining_path=remaining, distance_km=best)


def nearest_of(point: HasLatLon, candidates: Iterable[P]) -> P | None:
    """Closest candidate to *point*, or ``None`` when there are none."""
    best: P | None = None
    best_d = math.inf
    for c in candidates:
        d = distance_km(point, c)
        if d < best_d:
            best_d = d
            best = c
    return best


def distance_to_path_km(point: HasLatLon, path: Sequence[LatLon]) -> float:
    """Shortest distance from *point* to any segment of *path* (km).

    Each segment is projected onto a local equirectangular plane centred on
    *point*, which is accurate at the scale of route segments.
    """
    if not path:
        return math.inf
    if len(path) == 1:
        return _distance(point.lat, point.lon, path[0][0], path[0][1])

    k_lat = math.radians(1) * EARTH_RADIUS_KM
    k_lon = k_lat * math.cos(math.radians(point.lat))

    def _xy(v: LatLon) -> tuple[float, float]:
        return ((v[1] - point.lon) * k_lon, (v[0] - point.lat) * k_lat)

    best = math.inf
    ax, ay = _xy(path[0])
    for v in path[1:]:
        bx, by = _xy(v)
        dx, dy = bx - ax, by - ay
        seg2 = dx * dx + dy * dy
        t = 0.0 if seg2 == 0 else max(0.0, min(1.0, -(ax * dx + ay * dy) / seg2))
        cx, cy = ax + t * dx, ay + t * dy
        best = min(best, math.hypot(cx, cy))
        ax, ay = bx, by
    return best
