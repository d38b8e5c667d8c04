"""
Navigation Session — live tracking along a planned route.

States::

    Idle ──start──▶ Approaching ──reached start──▶ Active ⇄ Emergency
      ▲                                                         │
      └────────────────────────── stop (from anywhere) ◀────────┘

The session owns one mutable :class:`SessionState`; every handler reads and
writes that record.  Fixes arrive through a cancellable subscription and are
handled one at a time, in order.  Anything awaited inside a handler
(weather, routing) is re-checked against the session generation afterwards,
so results that land after ``stop()`` are dropped.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Sequence

import httpx

from trailguard.alerts import AlertSink, EventHandler, LoggingAlertSink, NavigationEvent
from trailguard.config import (
    APPROACHING_START_THRESHOLD_KM,
    HAZARD_ALERT_THRESHOLD_KM,
    WEATHER_CHECK_INTERVAL_S,
    RoutingSettings,
)
from trailguard.errors import FetchError, PreconditionMissingError, RoutePlanningError
from trailguard.geo import distance_km, nearest_of, nearest_point_on_path
from trailguard.models import (
    Alert,
    GeoPoint,
    HazardPrediction,
    Location,
    NavigationStats,
    Route,
    SafePlace,
    TravelMode,
    WeatherData,
)
from trailguard.position import PositionSource, Subscription
from trailguard.routing import request_route
from trailguard.weather import alert_text, get_weather, is_severe

logger = logging.getLogger(__name__)

SIGNAL_LOST = "Live location signal lost. Please check your GPS and permissions."
NAVIGATION_BEGUN = "You've reached the start. Navigation has begun!"

WeatherFetcher = Callable[..., Awaitable[WeatherData | None]]
RouteRequester = Callable[..., Awaitable[Route | None]]


class NavState(str, Enum):
    IDLE = "idle"
    APPROACHING = "approaching"
    ACTIVE = "active"
    EMERGENCY = "emergency"


@dataclass(frozen=True)
class RouteSnapshot:
    start: Location
    end: Location
    mode: TravelMode
    distance_km: float
    duration_minutes: float


@dataclass
class SessionState:
    route: Route | None = None
    emergency_route: Route | None = None
    alternative_emergency_route: Route | None = None
    live_location: GeoPoint | None = None
    matched_index: int = 0
    alerted_hazards: set[str] = field(default_factory=set)
    approaching_start: bool = False
    snapshot: RouteSnapshot | None = None
    stats: NavigationStats | None = None
    alert: Alert | None = None
    weather_alert: str | None = None
    hazards: list[HazardPrediction] = field(default_factory=list)
    safe_places: list[SafePlace] = field(default_factory=list)
    last_weather_check: float = -math.inf
    message: str = ""

    @property
    def active_route(self) -> Route | None:
        return self.emergency_route or self.route


class NavigationSession:
    """One traveler, one route, one position subscription."""

    def __init__(
        self,
        source: PositionSource,
        *,
        alert_sink: AlertSink | None = None,
        on_event: EventHandler | None = None,
        weather_fetcher: WeatherFetcher = get_weather,
        router: RouteRequester = request_route,
        emergency_mode: TravelMode = "car",
        settings: RoutingSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
        client: httpx.AsyncClient | None = None,
    ):
        self._source = source
        self._sink = alert_sink or LoggingAlertSink()
        self._on_event = on_event
        self._weather = weather_fetcher
        self._router = router
        self._emergency_mode = emergency_mode
        self._settings = settings
        self._clock = clock
        self._client = client

        self._subscription: Subscription | None = None
        self._generation = 0
        self.state = SessionState()

    # ------------------------------------------------------------------ #
    #  Lifecycle                                                          #
    # ------------------------------------------------------------------ #

    @property
    def running(self) -> bool:
        return self._subscription is not None

    @property
    def nav_state(self) -> NavState:
        if not self.running:
            return NavState.IDLE
        if self.state.emergency_route is not None:
            return NavState.EMERGENCY
        if self.state.approaching_start:
            return NavState.APPROACHING
        return NavState.ACTIVE

    def start(
        self,
        route: Route,
        hazards: Sequence[HazardPrediction] = (),
        safe_places: Sequence[SafePlace] = (),
    ) -> None:
        """Begin tracking *route*; must be called inside a running event loop."""
        if route is None or route.start is None or route.end is None or len(route.path) < 2:
            raise PreconditionMissingError("Cannot start navigation without a calculated route.")

        if self._subscription is not None:
            self._subscription.cancel()
        self._generation += 1
        self.state = SessionState(
            route=route,
            hazards=list(hazards),
            safe_places=list(safe_places),
            snapshot=RouteSnapshot(
                start=route.start,
                end=route.end,
                mode=route.mode,
                distance_km=route.distance_km,
                duration_minutes=route.duration_minutes,
            ),
        )
        self._subscription = self._source.subscribe(self._on_fix, self._on_position_error)
        logger.info(
            "Navigation started: %s → %s (%s, %.1f km)",
            route.start.name, route.end.name, route.mode, route.distance_km,
        )
        self._emit("started", route)

    def stop(self) -> None:
        """Cancel tracking and clear all derived state. Safe to call repeatedly."""
        was_running = self._subscription is not None
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        self._generation += 1
        self.state = SessionState()
        if was_running:
            logger.info("Navigation stopped")
            self._emit("stopped")

    def _alive(self, generation: int) -> bool:
        return self._subscription is not None and generation == self._generation

    # ------------------------------------------------------------------ #
    #  Alerts                                                             #
    # ------------------------------------------------------------------ #

    def _emit(self, kind, payload=None) -> None:
        if self._on_event is not None:
            self._on_event(NavigationEvent(kind, payload))

    def _trigger_alert(self, alert: Alert) -> None:
        self.state.alert = alert
        self._sink.play_alert()
        title = f"Wildlife Alert: {alert.hazard.common}" if alert.hazard else "Navigation Alert"
        self._sink.show_notification(title, alert.message, alert.hazard.image if alert.hazard else None)
        self._emit("alert", alert)

    def _trigger_weather_alert(self, message: str) -> None:
        if self.state.weather_alert == message:
            return
        self.state.weather_alert = message
        self._sink.play_alert()
        self._sink.show_notification("Weather Alert", message)
        self._emit("alert", Alert(kind="weather", message=message))

    def clear_alert(self) -> None:
        if self.state.alert is not None:
            self.state.alert = None
            self._emit("alert_cleared", "navigation")

    def clear_weather_alert(self) -> None:
        if self.state.weather_alert is not None:
            self.state.weather_alert = None
            self._emit("alert_cleared", "weather")

    def _set_message(self, message: str) -> None:
        if message != self.state.message:
            self.state.message = message
            self._emit("message", message)

    # ------------------------------------------------------------------ #
    #  Position handling                                                  #
    # ------------------------------------------------------------------ #

    async def _on_fix(self, point: GeoPoint) -> None:
        try:
            await self.handle_fix(point)
        except Exception:  # noqa: BLE001 — one bad fix must not end live tracking
            logger.exception("Failed to process position fix (%.5f, %.5f)", point.lat, point.lon)

    async def _on_position_error(self, exc: Exception) -> None:
        logger.warning("Position stream error: %s", exc)
        try:
            self._trigger_alert(Alert(kind="system", message=SIGNAL_LOST))
        except Exception:  # noqa: BLE001 — the host sink failing must not end live tracking
            logger.exception("Failed to raise the signal-lost alert")

    async def handle_fix(self, point: GeoPoint) -> None:
        """Process one live position fix."""
        generation = self._generation
        st = self.state

        if st.alert is not None and st.alert.kind == "system" and st.alert.message == SIGNAL_LOST:
            self.clear_alert()

        st.live_location = point

        await self._check_weather(point, generation)
        if not self._alive(generation):
            return

        self._check_hazards(point)

        route = st.active_route
        if route is None:
            return
        total_km = route.distance_km
        total_min = route.duration_minutes

        match = nearest_point_on_path(point, route.path, st.matched_index)
        to_start = distance_km(point, route.start)

        was_approaching = st.approaching_start
        approaching = (
            st.emergency_route is None
            and match.index == 0
            and to_start > APPROACHING_START_THRESHOLD_KM
        )
        if approaching:
            st.approaching_start = True
            snap = st.snapshot
            self._set_message(f"Proceed to the starting point. You are {to_start:.1f} km away.")
            self._publish(NavigationStats(
                remaining_km=snap.distance_km if snap else total_km,
                eta_minutes=snap.duration_minutes if snap else total_min,
                progress_percent=0,
            ))
            return
        if was_approaching:
            st.approaching_start = False
            self._trigger_alert(Alert(kind="system", message=NAVIGATION_BEGUN))

        st.matched_index = max(st.matched_index, match.index)
        points = len(route.path)
        ratio = st.matched_index / (points - 1) if points > 1 else 0.0
        self._publish(NavigationStats(
            remaining_km=round(total_km * (1 - ratio), 1),
            eta_minutes=round(total_min * (1 - ratio)),
            progress_percent=max(0, min(100, round(ratio * 100))),
        ))

    def _publish(self, stats: NavigationStats) -> None:
        self.state.stats = stats
        self._emit("stats", stats)

    async def _check_weather(self, point: GeoPoint, generation: int) -> None:
        now = self._clock()
        if now - self.state.last_weather_check < WEATHER_CHECK_INTERVAL_S:
            return
        self.state.last_weather_check = now
        try:
            weather = await self._weather(point, client=self._client)
        except Exception as exc:  # noqa: BLE001 — skip this fix's weather update
            logger.warning("Weather check failed: %s", exc)
            return
        if weather is None or not self._alive(generation):
            return
        if is_severe(weather.weather_code):
            self._trigger_weather_alert(alert_text(weather.weather_code))
        else:
            self.clear_weather_alert()

    def _check_hazards(self, point: GeoPoint) -> None:
        st = self.state
        if st.alert is not None:
            return
        for h in st.hazards:
            if h.id in st.alerted_hazards:
                continue
            d = distance_km(point, h.current)
            if d <= HAZARD_ALERT_THRESHOLD_KM:
                from_route = f"{h.distance_to_path_km:.1f}" if h.distance_to_path_km is not None else "?"
                self._trigger_alert(Alert(
                    kind="hazard",
                    hazard=h,
                    message=(
                        f"{h.common} detected near your path. Last sighted {from_route} km "
                        f"from the route, and you are currently {d:.1f} km away. Proceed with caution."
                    ),
                ))
                st.alerted_hazards.add(h.id)
                break

    # ------------------------------------------------------------------ #
    #  Emergency reroute                                                  #
    # ------------------------------------------------------------------ #

    async def emergency_reroute(self) -> Route | None:
        """Switch to a route towards the nearest safe place.

        Returns the emergency route, or ``None`` if the session was stopped
        while the route was being fetched.

        Raises:
            PreconditionMissingError: no live position or no known safe places.
            RoutePlanningError: the routing service found no route there.
            FetchError: the routing service was unreachable.
        """
        generation = self._generation
        st = self.state
        if not self.running or st.live_location is None or not st.safe_places:
            raise PreconditionMissingError("No safe places found nearby to route to.")

        place = nearest_of(st.live_location, st.safe_places)
        if place is None:
            raise PreconditionMissingError("Could not determine the closest safe place.")

        here = Location(lat=st.live_location.lat, lon=st.live_location.lon, name="Live Location")
        dest = Location(lat=place.lat, lon=place.lon, name=place.name)
        route = await self._router(here, dest, self._emergency_mode, [], settings=self._settings, client=self._client)
        if not self._alive(generation):
            logger.info("Session stopped during emergency routing; discarding result")
            return None
        if route is None:
            raise RoutePlanningError("Could not find a route to the safe place.")

        st = self.state
        st.emergency_route = route
        st.matched_index = 0
        st.approaching_start = False
        self._trigger_alert(Alert(kind="system", message=f"Rerouting to nearest safe place: {place.name}"))
        self._set_message("Emergency route calculated.")
        self._emit("route_changed", route)
        logger.info("Emergency route to %s: %.1f km", place.name, route.distance_km)

        if st.snapshot is not None:
            try:
                alt = await self._router(
                    st.snapshot.start, dest, self._emergency_mode, [],
                    settings=self._settings, client=self._client,
                )
            except FetchError as exc:
                logger.warning("Alternative emergency route unavailable: %s", exc)
                alt = None
            if self._alive(generation):
                self.state.alternative_emergency_route = alt
        return route

    def cancel_emergency(self) -> None:
        """Drop the emergency override and resume the planned route."""
        if self.state.emergency_route is None:
            return
        self.state.emergency_route = None
        self.state.alternative_emergency_route = None
        self.state.matched_index = 0
        self._emit("route_changed", self.state.route)
