"""Endpoints for logging cycle history, symptoms, profile and flag overrides.

Every write is followed by a ``history_changed`` refresh, so the next read of
insights or the widget reflects it.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Query

from src.cycle_engine.flags import FeatureFlagView
from src.cycle_engine.models import CycleRecord, Profile, SymptomCategory, SymptomEntry
from src.cycle_engine.scheduler import RefreshTrigger
from src.dependencies import Engine
from src.models.history import (
    CycleAnalysisRead,
    CycleRecordCreate,
    CycleRecordRead,
    FlagOverridesUpdate,
    FlagsRead,
    ProfileRead,
    ProfileUpdate,
    SymptomEntryCreate,
    SymptomEntryRead,
)
from src.services.engine_service import EngineService

router = APIRouter(tags=["history"])
logger = logging.getLogger("cycles.routers.history")


async def _refresh(service: EngineService) -> None:
    service.scheduler.enqueue(RefreshTrigger.HISTORY_CHANGED)
    await service.scheduler.run_pending()


def _flags_read(flags: FeatureFlagView) -> FlagsRead:
    return FlagsRead(flags=flags.resolved(), overrides=dict(flags.overrides))


# ---------- Cycle records ----------

@router.get("/history/cycles", response_model=list[CycleRecordRead])
async def list_cycles(service: Engine) -> Any:
    return [
        CycleRecordRead(
            start_date=r.start_date,
            end_date=r.end_date,
            period_length=r.period_length,
            is_open=r.is_open,
        )
        for r in service.store.load().cycles
    ]


@router.post("/history/cycles", response_model=CycleRecordRead, status_code=201)
async def create_cycle(service: Engine, body: CycleRecordCreate) -> Any:
    record = CycleRecord(start_date=body.start_date, end_date=body.end_date)
    service.store.add_cycle(record)
    await _refresh(service)
    return CycleRecordRead(
        start_date=record.start_date,
        end_date=record.end_date,
        period_length=record.period_length,
        is_open=record.is_open,
    )


@router.get("/history/analysis", response_model=CycleAnalysisRead)
async def analyze_cycles(service: Engine) -> Any:
    """Average, spread and trend of the logged cycle lengths."""
    calculator = service.engine.calculator
    valid, _ = calculator.validate_history(service.store.load().cycles)
    analysis = calculator.analyze_cycle_lengths(valid)
    return CycleAnalysisRead(
        lengths=analysis.lengths,
        classifications=[calculator.classify_cycle(n) for n in analysis.lengths],
        average=analysis.average,
        std_deviation=analysis.std_deviation,
        trend=analysis.trend,
        is_regular=analysis.is_regular,
    )


# ---------- Symptoms ----------

@router.get("/history/symptoms", response_model=list[SymptomEntryRead])
async def list_symptoms(
    service: Engine,
    category: SymptomCategory | None = Query(default=None),
) -> Any:
    return [
        SymptomEntryRead.model_validate(entry)
        for entry in service.store.load().symptoms
        if category is None or entry.category == category
    ]


@router.post("/history/symptoms", response_model=SymptomEntryRead, status_code=201)
async def create_symptom(service: Engine, body: SymptomEntryCreate) -> Any:
    entry = SymptomEntry(date=body.date, category=body.category, severity=body.severity)
    service.store.add_symptom(entry)
    await _refresh(service)
    return SymptomEntryRead.model_validate(entry)


# ---------- Profile ----------

@router.get("/profile", response_model=ProfileRead)
async def get_profile(service: Engine) -> Any:
    return ProfileRead.model_validate(service.profile)


@router.put("/profile", response_model=ProfileRead)
async def update_profile(service: Engine, body: ProfileUpdate) -> Any:
    profile = service.set_profile(Profile(**body.model_dump()))
    await _refresh(service)
    return ProfileRead.model_validate(profile)


# ---------- Feature flags ----------

@router.get("/flags", response_model=FlagsRead)
async def get_flags(service: Engine) -> Any:
    return _flags_read(service.flags)


@router.put("/flags", response_model=FlagsRead)
async def update_flags(service: Engine, body: FlagOverridesUpdate) -> Any:
    flags = service.apply_remote_flags(body.overrides)
    await _refresh(service)
    return _flags_read(flags)
