"""
Screen builder FastAPI application.

Entry point for the API server.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.config import settings
from backend.routes import generate as generate_routes

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the agent backend on startup; nothing to tear down."""
    logger.info(
        "main: starting environment=%s agent_backend=%s model=%s max_steps=%d",
        settings.ENVIRONMENT,
        settings.AGENT_BACKEND,
        settings.SCREEN_MODEL,
        settings.AGENT_MAX_STEPS,
    )
    if not settings.uses_mock_agent and not settings.ANTHROPIC_API_KEY:
        logger.warning("main: ANTHROPIC_API_KEY is not set; generation requests will fail with 500")
    yield
    logger.info("main: shutdown")


app = FastAPI(
    title="Screen Builder",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)

# Register routes
app.include_router(generate_routes.router)


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok"}
