import asyncio

import pytest

from tests.conftest import STRAIGHT_PATH, make_hazard, make_place, make_route
from trailguard.alerts import EventLog
from trailguard.errors import PreconditionMissingError, RoutePlanningError
from trailguard.models import GeoPoint, WeatherData
from trailguard.navigation import NAVIGATION_BEGUN, SIGNAL_LOST, NavigationSession, NavState
from trailguard.position import QueuePositionSource
from trailguard.weather import alert_text


async def no_weather(point, *, client=None):
    return None


class RecordingSink:
    def __init__(self):
        self.notifications = []
        self.plays = 0

    def play_alert(self):
        self.plays += 1

    def show_notification(self, title, body, icon=None):
        self.notifications.append((title, body))


def _at(i, lon_offset=0.0):
    lat, lon = STRAIGHT_PATH[i]
    return GeoPoint(lat=lat, lon=lon + lon_offset)


class Harness:
    def __init__(self, **kw):
        kw.setdefault("weather_fetcher", no_weather)
        self.source = QueuePositionSource()
        self.events = EventLog()
        self.sink = RecordingSink()
        self.session = NavigationSession(self.source, alert_sink=self.sink, on_event=self.events, **kw)

    async def fix(self, point):
        self.source.push(point)
        await self.source.join()
        return self.session.state


def run(coro_fn, **kw):
    async def main():
        h = Harness(**kw)
        try:
            return await coro_fn(h)
        finally:
            h.session.stop()

    return asyncio.run(main())


def test_progress_along_straight_route(straight_route):
    async def scenario(h):
        h.session.start(straight_route)
        progress = []
        for i in (0, 50, 100):
            st = await h.fix(_at(i))
            progress.append((st.stats.progress_percent, st.stats.remaining_km, st.stats.eta_minutes))
        return progress

    assert run(scenario) == [(0, 10.0, 20), (50, 5.0, 10), (100, 0.0, 0)]


def test_matched_index_never_moves_backwards(straight_route):
    async def scenario(h):
        h.session.start(straight_route)
        await h.fix(_at(60))
        st = await h.fix(_at(45))
        return st.matched_index, st.stats.progress_percent

    assert run(scenario) == (60, 60)


def test_approaching_start_then_navigation_begins(straight_route):
    async def scenario(h):
        h.session.start(straight_route)
        st = await h.fix(GeoPoint(lat=12.0 - 0.027, lon=77.0))  # ~3 km short of the start
        before = (h.session.nav_state, st.stats.progress_percent, st.stats.remaining_km, st.message)
        st = await h.fix(_at(10))
        return before, h.session.nav_state, st.alert.message

    before, after, alert = run(scenario)
    assert before == (
        NavState.APPROACHING, 0, 10.0, "Proceed to the starting point. You are 3.0 km away.",
    )
    assert after is NavState.ACTIVE
    assert alert == NAVIGATION_BEGUN


def test_hazard_alert_fires_once(straight_route):
    hazard = make_hazard(*STRAIGHT_PATH[30], dist=0.0)

    async def scenario(h):
        h.session.start(straight_route, hazards=[hazard])
        await h.fix(_at(20))   # ~1 km from the tiger
        await h.fix(_at(22))
        h.session.clear_alert()
        await h.fix(_at(24))
        return h

    h = run(scenario)
    assert len(h.events.of_kind("alert")) == 1
    assert h.sink.notifications[0][0] == "Wildlife Alert: Tiger"
    assert "you are currently 1.0 km away" in h.sink.notifications[0][1]
    assert len(h.sink.notifications) == 1


def test_distant_hazard_is_ignored(straight_route):
    hazard = make_hazard(*STRAIGHT_PATH[90])

    async def scenario(h):
        h.session.start(straight_route, hazards=[hazard])
        return await h.fix(_at(10))   # ~8 km away

    assert run(scenario).alert is None


def test_signal_lost_alert_clears_on_next_fix(straight_route):
    async def scenario(h):
        h.session.start(straight_route)
        h.source.fail("gps off")
        await h.source.join()
        lost = h.session.state.alert.message
        st = await h.fix(_at(5))
        return lost, st.alert

    lost, alert = run(scenario)
    assert lost == SIGNAL_LOST
    assert alert is None


def test_weather_checked_on_interval():
    calls = []
    now = [0.0]
    codes = [95, 0]

    async def weather(point, *, client=None):
        calls.append(point)
        return WeatherData(temperature=20, weather_code=codes[len(calls) - 1], wind_speed=5, is_day=1)

    async def scenario(h):
        h.session.start(make_route())
        st = await h.fix(_at(1))
        storm = st.weather_alert
        now[0] = 10.0
        await h.fix(_at(2))
        now[0] = 400.0
        st = await h.fix(_at(3))
        return storm, st.weather_alert

    storm, cleared = run(scenario, weather_fetcher=weather, clock=lambda: now[0])
    assert storm == alert_text(95)
    assert cleared is None
    assert len(calls) == 2


def test_start_requires_a_route():
    async def scenario(h):
        with pytest.raises(PreconditionMissingError):
            h.session.start(make_route(path=[(12.0, 77.0)]))
        return h.session.nav_state

    assert run(scenario) is NavState.IDLE


def test_stop_is_idempotent(straight_route):
    async def scenario(h):
        h.session.stop()
        h.session.start(straight_route)
        await h.fix(_at(5))
        h.session.stop()
        h.session.stop()
        h.source.push(_at(50))
        await h.source.join()
        return h

    h = run(scenario)
    assert len(h.events.of_kind("stopped")) == 1
    assert h.session.nav_state is NavState.IDLE
    assert h.session.state.stats is None
    assert h.session.state.live_location is None


def test_restart_replaces_previous_subscription(straight_route):
    async def scenario(h):
        h.session.start(straight_route)
        h.session.start(straight_route)
        await h.fix(_at(50))
        return h

    h = run(scenario)
    # one stats event per fix, not one per subscription
    assert len(h.events.of_kind("stats")) == 1


class FakeRouter:
    def __init__(self, result="route", on_call=None):
        self.result = result
        self.on_call = on_call
        self.calls = []

    async def __call__(self, start, end, mode, polygons, *, settings=None, client=None):
        self.calls.append((start, end, mode))
        if self.on_call:
            self.on_call()
        if self.result is None:
            return None
        return make_route(
            path=[(start.lat, start.lon), (end.lat, end.lon)],
            distance_km=2.0, duration_minutes=4.0,
        )


PLACES = [
    make_place(12.05, 77.01, "Forest Office", place_id=1, kind="ranger"),
    make_place(12.5, 77.5, "Far Police Station", place_id=2),
]


def test_emergency_reroute_to_nearest_safe_place(straight_route):
    router = FakeRouter()

    async def scenario(h):
        h.session.start(straight_route, safe_places=PLACES)
        await h.fix(_at(40))
        route = await h.session.emergency_reroute()
        return h, route

    h, route = run(scenario, router=router)
    assert route is not None
    assert router.calls[0][1].name == "Forest Office"
    assert router.calls[0][2] == "car"
    # alternative from the original start
    assert router.calls[1][0] == straight_route.start
    assert h.events.of_kind("route_changed")[0].payload == route


def test_emergency_state_and_cancel(straight_route):
    async def scenario(h):
        h.session.start(straight_route, safe_places=PLACES)
        await h.fix(_at(40))
        await h.session.emergency_reroute()
        during = (h.session.nav_state, h.session.state.matched_index,
                  h.session.state.alternative_emergency_route is not None)
        h.session.cancel_emergency()
        return during, h.session.nav_state, h.session.state.active_route

    during, after, active = run(scenario, router=FakeRouter())
    assert during == (NavState.EMERGENCY, 0, True)
    assert after is NavState.ACTIVE
    assert active == make_route()


def test_emergency_preconditions(straight_route):
    async def scenario(h):
        with pytest.raises(PreconditionMissingError):
            await h.session.emergency_reroute()          # not navigating
        h.session.start(straight_route, safe_places=[])
        await h.fix(_at(5))
        with pytest.raises(PreconditionMissingError):
            await h.session.emergency_reroute()          # nowhere to go
        return True

    assert run(scenario, router=FakeRouter())


def test_emergency_without_route_raises(straight_route):
    async def scenario(h):
        h.session.start(straight_route, safe_places=PLACES)
        await h.fix(_at(5))
        with pytest.raises(RoutePlanningError):
            await h.session.emergency_reroute()
        return h.session.state.emergency_route

    assert run(scenario, router=FakeRouter(result=None)) is None


def test_emergency_result_dropped_after_stop(straight_route):
    holder = {}
    router = FakeRouter(on_call=lambda: holder["session"].stop())

    async def scenario(h):
        holder["session"] = h.session
        h.session.start(straight_route, safe_places=PLACES)
        await h.fix(_at(5))
        result = await h.session.emergency_reroute()
        return result, h.session.state.emergency_route

    assert run(scenario, router=router) == (None, None)


class BrokenSink(RecordingSink):
    def show_notification(self, title, body, icon=None):
        raise RuntimeError("notification service down")


def test_failing_alert_sink_does_not_end_tracking(straight_route):
    async def scenario(h):
        h.session._sink = BrokenSink()
        h.session.start(straight_route)
        h.source.fail("gps off")
        await asyncio.wait_for(h.source.join(), timeout=2)
        st = await asyncio.wait_for(h.fix(_at(50)), timeout=2)
        return st.stats

    stats = run(scenario)
    assert stats is not None
    assert stats.progress_percent == 50
