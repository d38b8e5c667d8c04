"""
TrailGuard — FastAPI Entry Point

Start with:  uvicorn app:app --reload
"""

import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request

load_dotenv()

from api.routes import router  # noqa: E402  (endpoint URLs are read from the environment at import)

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(name)s — %(message)s")

app = FastAPI(
    title="TrailGuard API",
    description="Wildlife-hazard-aware route planning and live navigation",
    version="0.1.0",
)


@app.get("/")
def root(request: Request):
    """Quick check that the server is up. Links use the same host/port you used to connect."""
    base = str(request.base_url).rstrip("/")
    return {
        "message": "TrailGuard API is running",
        "docs": f"{base}/docs",
        "health": f"{base}/api/v1/health",
    }


app.include_router(router, prefix="/api/v1")
