"""
Process-wide state for the API: the manual sighting log, the area
scanner, recent route plans (whose cross-mode table fills in after the
response), and the live navigation sessions keyed by id.
"""

from __future__ import annotations

import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field

from trailguard.alerts import EventLog
from trailguard.arbiter import RoutePlan
from trailguard.navigation import NavigationSession
from trailguard.position import QueuePositionSource
from trailguard.scan import AreaScanner
from trailguard.sightings import SightingLog

logger = logging.getLogger(__name__)

sighting_log = SightingLog()
scanner = AreaScanner(log=sighting_log)


@dataclass
class SessionHandle:
    id: str
    session: NavigationSession
    source: QueuePositionSource
    events: EventLog = field(default_factory=EventLog)


_sessions: dict[str, SessionHandle] = {}


def new_session() -> SessionHandle:
    source = QueuePositionSource()
    events = EventLog()
    handle = SessionHandle(
        id=uuid.uuid4().hex[:12],
        session=NavigationSession(source, on_event=events),
        source=source,
        events=events,
    )
    _sessions[handle.id] = handle
    return handle


def get_session(session_id: str) -> SessionHandle | None:
    return _sessions.get(session_id)


def drop_session(session_id: str) -> SessionHandle | None:
    handle = _sessions.pop(session_id, None)
    if handle is not None:
        handle.session.stop()
    return handle


MAX_PLANS = 100

_plans: OrderedDict[str, RoutePlan] = OrderedDict()


def store_plan(plan: RoutePlan) -> str:
    plan_id = uuid.uuid4().hex[:12]
    _plans[plan_id] = plan
    while len(_plans) > MAX_PLANS:
        _, old = _plans.popitem(last=False)
        if old.mode_probe is not None and not old.mode_probe.done():
            old.mode_probe.cancel()
    return plan_id


def get_plan(plan_id: str) -> RoutePlan | None:
    return _plans.get(plan_id)
