"""Pydantic models for cycle history, symptoms, profile and feature flags."""

from __future__ import annotations

from datetime import date

from pydantic import Field

from src.cycle_engine.calculator import CycleTrend
from src.cycle_engine.models import (
    MAX_PROFILE_CYCLE_LENGTH,
    MAX_PROFILE_PERIOD_LENGTH,
    MAX_SEVERITY,
    MIN_PROFILE_CYCLE_LENGTH,
    MIN_PROFILE_PERIOD_LENGTH,
    MIN_SEVERITY,
    SymptomCategory,
)
from src.models.base import CyclesBase


# ---------- Cycle records ----------

class CycleRecordCreate(CyclesBase):
    start_date: date
    end_date: date | None = None


class CycleRecordRead(CycleRecordCreate):
    period_length: int | None = None
    is_open: bool


# ---------- Symptoms ----------

class SymptomEntryCreate(CyclesBase):
    date: date
    category: SymptomCategory
    severity: int = Field(ge=MIN_SEVERITY, le=MAX_SEVERITY)


class SymptomEntryRead(SymptomEntryCreate):
    pass


# ---------- Profile ----------

class ProfileUpdate(CyclesBase):
    average_cycle_length: int = Field(
        default=28, ge=MIN_PROFILE_CYCLE_LENGTH, le=MAX_PROFILE_CYCLE_LENGTH
    )
    average_period_length: int = Field(
        default=5, ge=MIN_PROFILE_PERIOD_LENGTH, le=MAX_PROFILE_PERIOD_LENGTH
    )
    birth_year: int | None = Field(default=None, ge=1900, le=2100)
    luteal_phase_length: int | None = Field(default=None, ge=7, le=20)


class ProfileRead(ProfileUpdate):
    pass


# ---------- Feature flags ----------

class FlagOverridesUpdate(CyclesBase):
    overrides: dict[str, bool] = Field(default_factory=dict)


class FlagsRead(CyclesBase):
    flags: dict[str, bool]
    overrides: dict[str, bool]


# ---------- Cycle-length analysis ----------

class CycleAnalysisRead(CyclesBase):
    lengths: list[int]
    classifications: list[str]
    average: float | None = None
    std_deviation: float
    trend: CycleTrend
    is_regular: bool
