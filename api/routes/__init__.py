"""
api.routes — Aggregates all domain-specific route modules into a single router.

app.py imports ``from api.routes import router`` which resolves here.
"""

from fastapi import APIRouter

from api.routes.locations import router as locations_router
from api.routes.wildlife import router as wildlife_router
from api.routes.planning import router as planning_router
from api.routes.navigation import router as navigation_router
from api.routes.guide import router as guide_router

router = APIRouter()

router.include_router(locations_router)
router.include_router(wildlife_router)
router.include_router(planning_router)
router.include_router(navigation_router)
router.include_router(guide_router)
