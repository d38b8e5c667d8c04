import asyncio
import math
import random

import httpx
import pytest

from trailguard import config
from trailguard.models import GeoPoint, Sighting
from trailguard.predictor import LinearPredictor, merge_sightings, predict_hazards, predict_paths
from trailguard.sightings import SightingLog


def _s(lat, lon):
    return Sighting(lat=lat, lon=lon)


def test_linear_predictor_extrapolates_mean_step():
    # most recent first
    sightings = [_s(0.2, 0.2), _s(0.1, 0.1), _s(0.0, 0.0)]
    preds = LinearPredictor(steps=2).predict(sightings)
    assert [(p.lat, p.lon) for p in preds] == [pytest.approx((0.3, 0.3)), pytest.approx((0.4, 0.4))]


def test_linear_predictor_single_sighting_stays_nearby():
    preds = LinearPredictor(steps=1, jitter_deg=0.01, rng=random.Random(7)).predict([_s(10.0, 20.0)])
    assert len(preds) == 1
    step = math.hypot(preds[0].lat - 10.0, preds[0].lon - 20.0)
    assert step == pytest.approx(0.01)


def test_linear_predictor_no_sightings():
    assert LinearPredictor().predict([]) == []


class _Broken:
    def predict(self, sightings):
        raise RuntimeError("model not loaded")


def test_predict_paths_degrades_to_nothing():
    sets = {"Panthera tigris": [_s(0, 0), _s(0.1, 0.1)]}
    assert predict_paths(sets, _Broken()) == {}
    assert set(predict_paths(sets)) == {"Panthera tigris"}


def test_merge_puts_manual_first_and_truncates():
    observed = {"Panthera tigris": [_s(i, i) for i in range(10)]}
    manual = {"Panthera tigris": [_s(50, 50)], "Elephas maximus": [_s(60, 60)]}
    merged = merge_sightings(observed, manual, seq_len=10)

    assert merged["Panthera tigris"][0] == _s(50, 50)
    assert len(merged["Panthera tigris"]) == 10
    assert merged["Panthera tigris"][-1] == _s(8, 8)
    assert merged["Elephas maximus"] == [_s(60, 60)]


TIGER_KEY = "5219416"


def _services(request):
    url = str(request.url)
    if url.startswith(config.GBIF_OCCURRENCE_URL):
        if request.url.params.get("taxon_key") != TIGER_KEY:
            return httpx.Response(200, json={"results": []})
        return httpx.Response(200, json={"results": [
            {"decimalLatitude": 12.02, "decimalLongitude": 77.02,
             "media": [{"type": "StillImage", "identifier": "https://img.test/tiger.jpg"}]},
            {"decimalLatitude": 12.01, "decimalLongitude": 77.01},
            {"decimalLatitude": None, "decimalLongitude": 77.0},
        ]})
    if url.startswith(config.NOMINATIM_REVERSE):
        return httpx.Response(200, json={"display_name": "Bandipur"})
    return httpx.Response(404)


def _predict(log=None):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(_services)) as client:
            return await predict_hazards(GeoPoint(lat=12.0, lon=77.0), 50, log=log, client=client)

    return asyncio.run(run())


def test_predict_hazards_end_to_end():
    [tiger] = _predict()

    assert tiger.scientific == "Panthera tigris"
    assert tiger.common == "Tiger"
    assert tiger.risk_level == "High"
    assert tiger.id == "Panthera tigris@12.02000,77.02000"
    assert tiger.image == "https://img.test/tiger.jpg"
    assert (tiger.current.lat, tiger.current.lon) == (12.02, 77.02)
    assert tiger.current.addr == "Bandipur"
    assert tiger.current.dist_km == pytest.approx(3.1, abs=0.05)

    assert len(tiger.preds) == 2
    assert (tiger.preds[0].lat, tiger.preds[0].lon) == pytest.approx((12.03, 77.03))
    assert all(p.addr == "Bandipur" for p in tiger.preds)

    assert tiger.full_path[0] == pytest.approx((12.02, 77.02))
    assert tiger.full_path[-1] == pytest.approx((12.04, 77.04))
    assert len(tiger.full_path) == config.SMOOTH_STEPS * 2 + 1


def test_predict_hazards_includes_manual_sightings():
    log = SightingLog(path=None)
    asyncio.run(_add(log, "Sloth Bear", 12.05, 77.05))
    names = {h.scientific for h in _predict(log)}
    assert names == {"Panthera tigris", "Melursus ursinus"}


async def _add(log, name, lat, lon):
    transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"display_name": "Forest road"}))
    async with httpx.AsyncClient(transport=transport) as client:
        await log.add(name, GeoPoint(lat=lat, lon=lon), client=client)


def test_hazard_ids_are_stable_across_cycles():
    first = [h.id for h in _predict()]
    second = [h.id for h in _predict()]
    assert first == second == ["Panthera tigris@12.02000,77.02000"]
