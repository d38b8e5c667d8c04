"""
Guide Routes — chat with the AI safety guide.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter

from api.schemas import GuideRequest, GuideResponse
from trailguard.guide import guide_reply

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/guide", response_model=GuideResponse)
async def guide(req: GuideRequest):
    """Answer the last chat message, aware of the hazards the traveler sees.

    Always a 200: when Gemini is unreachable the reply is a fixed apology.
    """
    logger.info("guide: %d messages, %d hazards", len(req.messages), len(req.hazards))
    return GuideResponse(reply=await guide_reply(req.messages, req.hazards))
