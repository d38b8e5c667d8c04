"""
Resilient Fetch — retry/backoff wrapper for every outbound HTTP call.

Transport failures and 5xx responses are retried with exponential backoff;
4xx responses and unparseable bodies fail at once.  When the retries run
out a single :class:`TransientNetworkError` is raised — this layer never
swallows a failure, callers decide whether absence is acceptable.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from trailguard.config import HTTP_TIMEOUT_S, RETRY_ATTEMPTS, RETRY_INITIAL_DELAY_S, USER_AGENT
from trailguard.errors import ClientRejectedError, MalformedResponseError, TransientNetworkError

logger = logging.getLogger(__name__)

_sleep = asyncio.sleep


def new_client(**kwargs: Any) -> httpx.AsyncClient:
    """AsyncClient with the service-wide timeout and User-Agent."""
    kwargs.setdefault("timeout", HTTP_TIMEOUT_S)
    kwargs.setdefault("headers", {"User-Agent": USER_AGENT})
    return httpx.AsyncClient(**kwargs)


@asynccontextmanager
async def client_scope(client: httpx.AsyncClient | None) -> AsyncIterator[httpx.AsyncClient]:
    """Borrow *client* if given, otherwise open (and close) a fresh one."""
    if client is not None:
        yield client
        return
    async with new_client() as own:
        yield own


def _parse(resp: httpx.Response) -> Any:
    if not resp.content.strip():
        return None
    try:
        return resp.json()
    except ValueError as exc:
        logger.error("Invalid JSON from %s: %.200s", resp.request.url, resp.text)
        raise MalformedResponseError(
            "Received invalid JSON from the server.", url=str(resp.request.url),
        ) from exc


async def fetch_json(
    url: str,
    *,
    method: str = "GET",
    params: dict[str, Any] | None = None,
    json_body: Any = None,
    data: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    client: httpx.AsyncClient | None = None,
    attempts: int = RETRY_ATTEMPTS,
    initial_delay: float = RETRY_INITIAL_DELAY_S,
) -> Any:
    """Request *url* and return the decoded JSON body (``None`` if empty)."""
    delay = initial_delay
    last_error: str = ""

    async with client_scope(client) as http:
        for attempt in range(1, attempts + 1):
            try:
                resp = await http.request(
                    method, url, params=params, json=json_body, data=data, headers=headers,
                )
            except httpx.TransportError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                logger.warning(
                    "Fetch failed for %s (%s), attempt %d/%d", url, last_error, attempt, attempts,
                )
            else:
                if resp.is_success:
                    return _parse(resp)
                if 500 <= resp.status_code < 600:
                    last_error = f"status {resp.status_code}"
                    logger.warning(
                        "%s returned %d, attempt %d/%d", url, resp.status_code, attempt, attempts,
                    )
                else:
                    logger.error(
                        "%s rejected the request with %d: %.500s", url, resp.status_code, resp.text,
                    )
                    raise ClientRejectedError(
                        f"API Error: Status {resp.status_code}", url=url, status=resp.status_code,
                    )

            if attempt < attempts:
                await _sleep(delay)
                delay *= 2

    logger.error("All %d attempts failed for %s. Last error: %s", attempts, url, last_error)
    raise TransientNetworkError(
        "The required data could not be fetched. Please check your network connection.",
        url=url,
    )
