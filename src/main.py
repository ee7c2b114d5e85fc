"""Cycles API: FastAPI application entry point.

Run locally:
    uvicorn src.main:app --reload --port 8000
"""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config import get_settings
from src.middleware.security import SecurityHeadersMiddleware
from src.routers import health, history, insights
from src.services.engine_service import close_service, init_service

# ---------- Logging ----------

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("cycles")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings = get_settings()
    logger.info(
        "Starting Cycles API v%s [%s]",
        settings.app_version,
        settings.environment,
    )
    service = init_service(settings)
    service.recompute()

    stop = asyncio.Event()
    refresh_task = None
    if settings.refresh_loop_enabled:
        refresh_task = asyncio.create_task(service.scheduler.run_periodic(stop))

    yield

    stop.set()
    if refresh_task is not None:
        await refresh_task
    close_service()
    logger.info("Cycles API shut down")


# ---------- App factory ----------

def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Cycles API",
        description=(
            "Cycle phase and prediction engine: phase tracking, next-period "
            "forecasts, symptom correlations and a privacy-safe widget view."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ---------- Middleware ----------

    app.add_middleware(SecurityHeadersMiddleware, private_prefix="/api/")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- Health check (outside v1 prefix, always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    v1_prefix = "/api/v1"

    app.include_router(history.router, prefix=v1_prefix)
    app.include_router(insights.router, prefix=v1_prefix)

    return app


app = create_app()
