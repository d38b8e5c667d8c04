import pytest

from trailguard.models import CurrentSighting, HazardPrediction, Location, Route, SafePlace

# 101 vertices, 0.0009° of latitude apart: a straight ~10 km north-bound path
START = (12.0, 77.0)
STEP = 0.0009
STRAIGHT_PATH = [(START[0] + i * STEP, START[1]) for i in range(101)]


def make_route(path=None, distance_km=10.0, duration_minutes=20.0, mode="car", **kw):
    path = path or STRAIGHT_PATH
    return Route(
        path=path,
        distance_km=distance_km,
        duration_minutes=duration_minutes,
        start=Location(lat=path[0][0], lon=path[0][1], name="Trailhead"),
        end=Location(lat=path[-1][0], lon=path[-1][1], name="Camp"),
        mode=mode,
        **kw,
    )


def make_hazard(lat, lon, hazard_id="Panthera tigris-1", common="Tiger", dist=None):
    return HazardPrediction(
        id=hazard_id,
        scientific="Panthera tigris",
        common=common,
        icon="🐅",
        color="#dc2626",
        risk_level="High",
        current=CurrentSighting(lat=lat, lon=lon, dist_km=0.0),
        distance_to_path_km=dist,
    )


def make_place(lat, lon, name, place_id=1, kind="police"):
    return SafePlace(id=place_id, lat=lat, lon=lon, type=kind, name=name)


@pytest.fixture
def straight_route():
    return make_route()
