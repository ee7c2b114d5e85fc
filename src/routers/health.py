"""Health check endpoint: public, no auth required."""

from __future__ import annotations

import logging

from fastapi import APIRouter

from src.dependencies import AppSettings
from src.models.base import HealthRead
from src.services.engine_service import get_service

router = APIRouter(tags=["system"])
logger = logging.getLogger("cycles.health")


@router.get("/health", response_model=HealthRead)
async def health_check(settings: AppSettings) -> HealthRead:
    """Liveness probe. Returns 200 if the API process is up.

    Also reports whether the engine service is initialized and when it last
    published a snapshot.
    """
    engine_ok = False
    last_computed_at = None
    try:
        service = get_service()
        engine_ok = True
        snapshot = service.engine.current()
        if snapshot is not None:
            last_computed_at = snapshot.computed_at
    except RuntimeError as exc:
        logger.warning("Health check engine probe failed: %s", exc)

    return HealthRead(
        status="healthy" if engine_ok else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        engine="ready" if engine_ok else "not_initialized",
        last_computed_at=last_computed_at,
    )
