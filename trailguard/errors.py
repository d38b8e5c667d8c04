"""Exception taxonomy shared by the service clients, broker, arbiter and session."""

from __future__ import annotations


class TrailguardError(RuntimeError):
    """Base class for every error raised by the core."""


class FetchError(TrailguardError):
    """An outbound HTTP call failed for good."""

    def __init__(self, message: str, url: str = "", status: int | None = None):
        super().__init__(message)
        self.url = url
        self.status = status


class TransientNetworkError(FetchError):
    """Transport failures or 5xx responses persisted through every retry."""


class ClientRejectedError(FetchError):
    """The service answered with a 4xx; retrying will not help."""


class MalformedResponseError(FetchError):
    """The response body could not be parsed."""


class InvalidCoordinatesError(TrailguardError, ValueError):
    """Latitude/longitude outside the WGS84 range."""


class PreconditionMissingError(TrailguardError):
    """An operation was requested before the state it needs exists."""


class RoutePlanningError(TrailguardError):
    """Route planning could not produce a usable route."""


class NoDirectRouteError(RoutePlanningError):
    """The routing service returned no plausible direct route."""
