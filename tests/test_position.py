import asyncio

from trailguard.models import GeoPoint
from trailguard.position import QueuePositionSource


def test_fixes_are_delivered_in_order():
    seen = []

    async def on_fix(point):
        await asyncio.sleep(0)
        seen.append(point.lat)

    async def on_error(exc):
        seen.append(str(exc))

    async def run():
        source = QueuePositionSource()
        source.subscribe(on_fix, on_error)
        for lat in (1.0, 2.0):
            source.push(GeoPoint(lat=lat, lon=0.0))
        source.fail("lost")
        source.push(GeoPoint(lat=3.0, lon=0.0))
        await source.join()

    asyncio.run(run())
    assert seen == [1.0, 2.0, "lost", 3.0]


def test_raising_handler_keeps_subscription_alive():
    seen = []

    async def on_fix(point):
        if point.lat == 1.0:
            raise ValueError("bad fix")
        seen.append(point.lat)

    async def on_error(exc):
        raise RuntimeError("sink down")

    async def run():
        source = QueuePositionSource()
        sub = source.subscribe(on_fix, on_error)
        source.push(GeoPoint(lat=1.0, lon=0.0))
        source.fail("lost")
        source.push(GeoPoint(lat=2.0, lon=0.0))
        await asyncio.wait_for(source.join(), timeout=2)
        return sub.active

    assert asyncio.run(run()) is True
    assert seen == [2.0]


def test_cancel_stops_delivery():
    seen = []

    async def on_fix(point):
        seen.append(point.lat)

    async def on_error(exc):
        pass

    async def run():
        source = QueuePositionSource()
        sub = source.subscribe(on_fix, on_error)
        source.push(GeoPoint(lat=1.0, lon=0.0))
        await source.join()
        sub.cancel()
        source.push(GeoPoint(lat=2.0, lon=0.0))
        await source.join()
        return sub.active

    assert asyncio.run(run()) is False
    assert seen == [1.0]
