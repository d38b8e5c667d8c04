"""
Live position sources.

A source hands out cancellable :class:`Subscription` handles; each
subscription delivers fixes strictly in order and awaits the handler for
one fix before starting the next.  ``cancel()`` takes effect immediately:
no handler is invoked after it returns.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Protocol

from trailguard.models import GeoPoint

logger = logging.getLogger(__name__)

FixHandler = Callable[[GeoPoint], Awaitable[None]]
ErrorHandler = Callable[[Exception], Awaitable[None]]


class PositionError(Exception):
    """The position stream failed (signal lost, permission revoked, ...)."""


class Subscription(Protocol):
    @property
    def active(self) -> bool: ...

    def cancel(self) -> None: ...


class PositionSource(Protocol):
    def subscribe(self, on_fix: FixHandler, on_error: ErrorHandler) -> Subscription: ...


class QueueSubscription:
    def __init__(self, on_fix: FixHandler, on_error: ErrorHandler):
        self._on_fix = on_fix
        self._on_error = on_error
        self._queue: asyncio.Queue[GeoPoint | PositionError] = asyncio.Queue()
        self._cancelled = False
        self._task = asyncio.get_running_loop().create_task(self._run())

    @property
    def active(self) -> bool:
        return not self._cancelled

    def put(self, item: GeoPoint | PositionError) -> None:
        if not self._cancelled:
            self._queue.put_nowait(item)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._task.cancel()
        # drop anything still queued so join() cannot hang
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

    async def join(self) -> None:
        if not self._cancelled:
            await self._queue.join()

    async def _run(self) -> None:
        while not self._cancelled:
            item = await self._queue.get()
            try:
                if self._cancelled:
                    continue
                if isinstance(item, PositionError):
                    await self._on_error(item)
                else:
                    await self._on_fix(item)
            except Exception:  # noqa: BLE001 — a failing handler must not end the subscription
                logger.exception("Position handler failed; subscription continues")
            finally:
                self._queue.task_done()


class QueuePositionSource:
    """In-process source fed by the host (HTTP pushes, replays, tests).

    Must be subscribed from inside a running event loop.
    """

    def __init__(self) -> None:
        self._subs: list[QueueSubscription] = []

    def subscribe(self, on_fix: FixHandler, on_error: ErrorHandler) -> QueueSubscription:
        sub = QueueSubscription(on_fix, on_error)
        self._subs.append(sub)
        return sub

    def push(self, point: GeoPoint) -> None:
        self._subs = [s for s in self._subs if s.active]
        for s in self._subs:
            s.put(point)

    def fail(self, reason: str = "position unavailable") -> None:
        self._subs = [s for s in self._subs if s.active]
        for s in self._subs:
            s.put(PositionError(reason))

    async def join(self) -> None:
        """Wait until every delivered item has been handled."""
        for s in list(self._subs):
            await s.join()
