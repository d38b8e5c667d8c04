"""
Alerting and host events.

The navigation session never touches audio or notifications directly; the
host injects an :class:`AlertSink`.  Everything the session wants the host
to render is also emitted as a :class:`NavigationEvent`.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Literal, Protocol

logger = logging.getLogger(__name__)

EventKind = Literal["started", "stopped", "stats", "alert", "alert_cleared", "route_changed", "message"]


class AlertSink(Protocol):
    def play_alert(self) -> None: ...

    def show_notification(self, title: str, body: str, icon: str | None = None) -> None: ...


class LoggingAlertSink:
    """Headless sink: alerts go to the log."""

    def play_alert(self) -> None:
        pass

    def show_notification(self, title: str, body: str, icon: str | None = None) -> None:
        logger.warning("%s: %s", title, body)


@dataclass(frozen=True)
class NavigationEvent:
    kind: EventKind
    payload: Any = None


EventHandler = Callable[[NavigationEvent], None]


class EventLog:
    """Bounded in-memory record of a session's events."""

    def __init__(self, maxlen: int = 200):
        self._events: deque[NavigationEvent] = deque(maxlen=maxlen)

    def __call__(self, event: NavigationEvent) -> None:
        self._events.append(event)

    def __len__(self) -> int:
        return len(self._events)

    def of_kind(self, kind: EventKind) -> list[NavigationEvent]:
        return [e for e in self._events if e.kind == kind]

    def recent(self, n: int = 20) -> list[NavigationEvent]:
        return list(self._events)[-n:]
