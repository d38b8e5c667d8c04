"""
AI Guide — conversational safety assistant backed by Gemini.

The chat history is sent as-is with a fixed navigation-safety instruction
plus a short summary of the hazards the traveler is currently shown.  Any
failure (no key, rate limit exhausted, bad payload) yields a fixed apology
rather than an error.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Literal, Sequence

import httpx
from pydantic import BaseModel, ConfigDict, Field

from trailguard.config import GEMINI_GENERATE_URL
from trailguard.fetch import client_scope
from trailguard.models import HazardPrediction

logger = logging.getLogger(__name__)

_sleep = asyncio.sleep

RETRY_DELAYS_S = [5, 15, 30]

FALLBACK_REPLY = "I'm sorry, I'm having trouble connecting right now. Please try again later."

SYSTEM_INSTRUCTION = (
    "You are a navigation and safety assistant. Given a user’s current location and "
    "their destination, your task is to find the safest route. Safety means avoiding unsafe "
    "areas such as isolated alleys, highways without pedestrian access, or regions flagged "
    "with higher risk. Always prioritize well-lit, populated, and frequently used roads.\n\n"
    "Along the route, also identify and highlight the nearest safe places such as police "
    "stations, wildlife checkposts, or forest ranger posts that the user can approach in case "
    "of emergency. Provide the route directions, estimated time, and distance, along with "
    "markers showing these safe places. If multiple routes are available, rank them by safety "
    "first, and travel time second. Finally, explain why the chosen route and safe places are "
    "considered safe (e.g., ‘police station within 2 km’, ‘route passes through "
    "main road with public presence’).."
)


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "model"]
    text: str = Field(..., min_length=1)


def _api_key() -> str | None:
    return os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")


def hazard_context(hazards: Sequence[HazardPrediction]) -> str:
    """One line per predicted animal, for the model's situational awareness."""
    if not hazards:
        return "No wildlife hazards are currently predicted near the traveler."
    lines = ["Wildlife hazards currently predicted near the traveler:"]
    for h in hazards:
        line = (
            f"- {h.common} ({h.scientific}), risk {h.risk_level}, "
            f"last seen at {h.current.lat:.4f}, {h.current.lon:.4f}"
        )
        if h.distance_to_path_km is not None:
            line += f", {h.distance_to_path_km:.1f} km from the route"
        lines.append(line)
    return "\n".join(lines)


def _request_body(history: Sequence[ChatMessage], hazards: Sequence[HazardPrediction]) -> dict:
    return {
        "systemInstruction": {
            "parts": [{"text": f"{SYSTEM_INSTRUCTION}\n\n{hazard_context(hazards)}"}],
        },
        "contents": [{"role": m.role, "parts": [{"text": m.text}]} for m in history],
        "generationConfig": {
            "temperature": 0.3,
            "maxOutputTokens": 1200,
        },
    }


async def guide_reply(
    history: Sequence[ChatMessage],
    hazards: Sequence[HazardPrediction] = (),
    *,
    client: httpx.AsyncClient | None = None,
) -> str:
    """The guide's answer to the last message in *history*."""
    api_key = _api_key()
    if not api_key:
        logger.warning("GEMINI_API_KEY not set — AI guide unavailable")
        return FALLBACK_REPLY

    body = _request_body(history, hazards)
    async with client_scope(client) as http:
        for attempt, delay in enumerate(RETRY_DELAYS_S):
            try:
                resp = await http.post(GEMINI_GENERATE_URL, params={"key": api_key}, json=body)
                resp.raise_for_status()
                data = resp.json()
                return data["candidates"][0]["content"]["parts"][0]["text"]
            except httpx.HTTPStatusError as exc:
                if exc.response.status_code == 429 and attempt < len(RETRY_DELAYS_S) - 1:
                    logger.warning("Gemini 429 — retrying in %ds (attempt %d)", delay, attempt + 1)
                    await _sleep(delay)
                    continue
                logger.error("AI guide request failed: %s", exc)
                return FALLBACK_REPLY
            except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as exc:
                logger.error("AI guide request failed: %s", exc)
                return FALLBACK_REPLY
    return FALLBACK_REPLY
