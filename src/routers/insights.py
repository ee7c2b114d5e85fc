"""Read endpoints: insights view, widget exposure and manual refresh.

Reads that may trigger a first recompute run it in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from src.cycle_engine.insights import InsightFilter, build_insights, correlation_title
from src.cycle_engine.privacy import PrivacyFilterError
from src.cycle_engine.scheduler import RefreshTrigger
from src.dependencies import Engine
from src.models.base import ErrorDetail
from src.models.insights import (
    CorrelationRead,
    InsightsRead,
    PredictionRead,
    RefreshRead,
    RefreshResultRead,
    ValidationWarningRead,
)

router = APIRouter(tags=["insights"])
logger = logging.getLogger("cycles.routers.insights")


@router.get("/insights", response_model=InsightsRead)
async def get_insights(
    service: Engine,
    filter: InsightFilter = Query(default=InsightFilter.ALL),
) -> Any:
    snapshot = await asyncio.to_thread(service.current_or_recompute)
    view = build_insights(snapshot, filter)
    return InsightsRead(
        filter=view.filter,
        ml_status=view.ml_status,
        prediction=PredictionRead.model_validate(view.prediction) if view.prediction else None,
        correlations=[
            CorrelationRead(
                factor_a=c.factor_a,
                factor_b=c.factor_b,
                strength=c.strength,
                sample_size=c.sample_size,
                title=correlation_title(c),
            )
            for c in view.correlations
        ],
        warnings=[ValidationWarningRead.model_validate(w) for w in snapshot.warnings],
        computed_at=view.computed_at,
    )


@router.get("/widget", responses={503: {"model": ErrorDetail}})
async def get_widget(
    service: Engine,
    privacy: bool | None = Query(default=None),
) -> dict[str, Any]:
    """Widget payload.  In privacy mode only phase and bucketed days are sent."""
    try:
        exposure = await asyncio.to_thread(service.exposure, privacy)
    except PrivacyFilterError as exc:
        logger.error("Widget exposure withheld: %s", exc)
        raise HTTPException(status_code=503, detail="Prediction temporarily unavailable")
    return exposure.to_dict()


@router.post("/predictions/refresh", response_model=RefreshRead)
async def refresh_predictions(
    service: Engine,
    trigger: RefreshTrigger = Query(default=RefreshTrigger.FOREGROUND),
) -> Any:
    service.scheduler.enqueue(trigger)
    results = await service.scheduler.run_pending()
    snapshot = service.engine.current()
    return RefreshRead(
        results=[
            RefreshResultRead(trigger=r.trigger, status=r.status, error=r.error)
            for r in results
        ],
        computed_at=snapshot.computed_at if snapshot else None,
    )
