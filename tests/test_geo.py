import math

import pytest

from trailguard.geo import (
    bounding_box,
    circle_polygon,
    decode_polyline,
    distance_km,
    distance_to_path_km,
    encode_polyline,
    midpoint,
    nearest_of,
    nearest_point_on_path,
    path_length,
    smooth_path,
)
from trailguard.models import GeoPoint


def test_distance_basics():
    a = GeoPoint(lat=12.0, lon=77.0)
    b = GeoPoint(lat=13.0, lon=77.0)
    assert distance_km(a, a) == 0.0
    assert distance_km(a, b) == pytest.approx(distance_km(b, a))
    # one degree of latitude on a 6371 km sphere
    assert distance_km(a, b) == pytest.approx(111.195, abs=0.01)


def test_distance_triangle_inequality():
    a = GeoPoint(lat=12.0, lon=77.0)
    b = GeoPoint(lat=12.4, lon=77.9)
    c = GeoPoint(lat=-33.9, lon=151.2)
    for x, y, z in ((a, b, c), (b, c, a), (c, a, b)):
        assert distance_km(x, z) <= distance_km(x, y) + distance_km(y, z) + 1e-9


def test_distance_tiny_delta_is_stable():
    a = GeoPoint(lat=45.0, lon=7.0)
    b = GeoPoint(lat=45.0, lon=7.000001)
    d = distance_km(a, b)
    assert 0 < d < 0.001


def test_midpoint_on_equator():
    m = midpoint(GeoPoint(lat=0, lon=0), GeoPoint(lat=0, lon=10))
    assert m.lat == pytest.approx(0.0, abs=1e-9)
    assert m.lon == pytest.approx(5.0)


def test_smooth_path_passes_through_ends():
    waypoints = [(12.0, 77.0), (12.1, 77.05), (12.2, 77.0), (12.3, 77.1)]
    out = smooth_path(waypoints, substeps=10)
    assert len(out) == 10 * (len(waypoints) - 1) + 1
    assert out[0] == pytest.approx(waypoints[0])
    assert out[-1] == waypoints[-1]
    # every waypoint is on the curve at a segment boundary
    for i, w in enumerate(waypoints[:-1]):
        assert out[i * 10] == pytest.approx(w)


def test_smooth_path_short_input_unchanged():
    assert smooth_path([]) == []
    assert smooth_path([(1.0, 2.0)]) == [(1.0, 2.0)]


def test_circle_polygon_is_closed_ring():
    center = GeoPoint(lat=12.0, lon=77.0)
    ring = circle_polygon(center, 0.5, 32, order="lonlat")
    assert len(ring) == 33
    assert ring[0] == ring[-1]
    # first vertex points north; (lon, lat) order
    assert ring[0][1] > center.lat
    assert ring[0][0] == pytest.approx(center.lon)
    for lon, lat in ring[:-1]:
        assert distance_km(center, GeoPoint(lat=lat, lon=lon)) == pytest.approx(0.5, rel=1e-3)


def test_circle_polygon_latlon_order_and_min_vertices():
    center = GeoPoint(lat=12.0, lon=77.0)
    ring = circle_polygon(center, 1.0, 8, order="latlon")
    assert ring[0][0] > center.lat
    with pytest.raises(ValueError):
        circle_polygon(center, 1.0, 2, order="latlon")


def test_bounding_box():
    s, w, n, e = bounding_box([(12.0, 77.0), (12.5, 76.5), (12.2, 77.3)], buffer_deg=0.05)
    assert (s, w, n, e) == pytest.approx((11.95, 76.45, 12.55, 77.35))
    with pytest.raises(ValueError):
        bounding_box([])


def test_polyline_fixture_length():
    # ~10 km due north, precision 6 as returned by the routing service
    points = [(12.0 + i * 0.009, 77.0) for i in range(11)]
    shape = encode_polyline(points)
    decoded = decode_polyline(shape, 6)

    assert len(decoded) == 11
    assert decoded[0] == pytest.approx(points[0], abs=1e-6)
    expected = distance_km(GeoPoint(lat=12.0, lon=77.0), GeoPoint(lat=12.09, lon=77.0))
    assert path_length(decoded) == pytest.approx(expected, rel=0.01)
    assert path_length(decoded) == pytest.approx(10.0, rel=0.01)


def test_decode_known_google_polyline():
    # reference string from the polyline algorithm documentation (precision 5)
    pts = decode_polyline("_p~iF~ps|U_ulLnnqC_mqNvxq`@", precision=5)
    expected = [(38.5, -120.2), (40.7, -120.95), (43.252, -126.453)]
    assert len(pts) == len(expected)
    for got, want in zip(pts, expected):
        assert got == pytest.approx(want)


def test_decode_truncated_polyline():
    with pytest.raises(ValueError):
        decode_polyline("_")


def test_nearest_point_on_straight_path(straight_route):
    path = straight_route.path
    p = GeoPoint(lat=path[37][0] + 0.00001, lon=path[37][1] + 0.0002)
    match = nearest_point_on_path(p, path)
    assert match.index == 37
    assert match.remaining_path[0] == (p.lat, p.lon)
    assert match.remaining_path[1:] == path[37:]
    assert match.distance_km < 0.05


def test_nearest_point_does_not_jump_to_return_leg():
    # out along the equator, then back 0.001° further north
    out = [(0.0, i * 0.01) for i in range(50)]
    back = [(0.001, (49 - j) * 0.01) for j in range(50)]
    path = out + back
    p = GeoPoint(lat=0.001, lon=0.0)

    assert nearest_point_on_path(p, path, 0).index == 0
    # once the match has progressed onto the return leg it stays there
    assert nearest_point_on_path(p, path, 95).index == 99


def test_nearest_point_degenerate_inputs():
    p = GeoPoint(lat=1.0, lon=1.0)
    match = nearest_point_on_path(p, [(0.0, 0.0)])
    assert match.index == 0
    assert math.isinf(match.distance_km)
    # a stale search index past the end is clamped
    assert nearest_point_on_path(p, [(0.0, 0.0), (1.0, 1.0)], 500).index == 1


def test_nearest_of():
    here = GeoPoint(lat=0, lon=0)
    far = GeoPoint(lat=1, lon=1)
    near = GeoPoint(lat=0.1, lon=0.1)
    assert nearest_of(here, [far, near]) is near
    assert nearest_of(here, []) is None


def test_distance_to_path_uses_segments():
    # the closest vertex is ~55 km away, the segment itself ~1 km
    path = [(0.0, 0.0), (0.0, 1.0)]
    p = GeoPoint(lat=0.009, lon=0.5)
    assert distance_to_path_km(p, path) == pytest.approx(1.0008, rel=1e-3)
    assert math.isinf(distance_to_path_km(p, []))
