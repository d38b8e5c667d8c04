"""
Navigation Routes — live sessions driven by position fixes pushed over HTTP.

Pushed fixes go through the session's queue-backed position source, so
they are processed strictly in order; each push waits until its fix has
been handled and returns the resulting snapshot.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from api import state
from api.schemas import (
    EventOut,
    FixRequest,
    SessionSnapshot,
    SignalLostRequest,
    StartNavigationRequest,
)
from trailguard.errors import FetchError, PreconditionMissingError, RoutePlanningError

logger = logging.getLogger(__name__)
router = APIRouter()


def _handle_or_404(session_id: str) -> state.SessionHandle:
    handle = state.get_session(session_id)
    if handle is None:
        raise HTTPException(status_code=404, detail=f"No navigation session {session_id}")
    return handle


def _snapshot(handle: state.SessionHandle) -> SessionSnapshot:
    st = handle.session.state
    return SessionSnapshot(
        id=handle.id,
        state=handle.session.nav_state.value,
        message=st.message,
        live_location=st.live_location,
        matched_index=st.matched_index,
        approaching_start=st.approaching_start,
        stats=st.stats,
        alert=st.alert,
        weather_alert=st.weather_alert,
        route=st.route,
        emergency_route=st.emergency_route,
        alternative_emergency_route=st.alternative_emergency_route,
        events=[EventOut(kind=e.kind, payload=e.payload) for e in handle.events.recent()],
    )


@router.post("/navigation", response_model=SessionSnapshot, status_code=201)
async def start_navigation(req: StartNavigationRequest):
    handle = state.new_session()
    try:
        handle.session.start(req.route, req.hazards, req.safe_places)
    except PreconditionMissingError as exc:
        state.drop_session(handle.id)
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _snapshot(handle)


@router.get("/navigation/{session_id}", response_model=SessionSnapshot)
async def get_navigation(session_id: str):
    return _snapshot(_handle_or_404(session_id))


@router.post("/navigation/{session_id}/fix", response_model=SessionSnapshot)
async def push_fix(session_id: str, req: FixRequest):
    handle = _handle_or_404(session_id)
    handle.source.push(req.to_point())
    await handle.source.join()
    return _snapshot(handle)


@router.post("/navigation/{session_id}/signal-lost", response_model=SessionSnapshot)
async def signal_lost(session_id: str, req: SignalLostRequest):
    handle = _handle_or_404(session_id)
    handle.source.fail(req.reason)
    await handle.source.join()
    return _snapshot(handle)


@router.post("/navigation/{session_id}/alerts/dismiss", response_model=SessionSnapshot)
async def dismiss_alerts(session_id: str):
    handle = _handle_or_404(session_id)
    handle.session.clear_alert()
    handle.session.clear_weather_alert()
    return _snapshot(handle)


@router.post("/navigation/{session_id}/emergency", response_model=SessionSnapshot)
async def emergency(session_id: str):
    """Reroute to the nearest known place of safety."""
    handle = _handle_or_404(session_id)
    try:
        await handle.session.emergency_reroute()
    except PreconditionMissingError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except RoutePlanningError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except FetchError as exc:
        logger.exception("Emergency routing failed for %s", session_id)
        raise HTTPException(status_code=502, detail=f"Routing service unreachable: {exc}") from exc
    return _snapshot(handle)


@router.delete("/navigation/{session_id}/emergency", response_model=SessionSnapshot)
async def cancel_emergency(session_id: str):
    handle = _handle_or_404(session_id)
    handle.session.cancel_emergency()
    return _snapshot(handle)


@router.delete("/navigation/{session_id}", status_code=204)
async def stop_navigation(session_id: str):
    """Stop and forget a session. Unknown ids are ignored."""
    state.drop_session(session_id)
