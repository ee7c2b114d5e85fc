"""Pydantic models for predictions, correlations, insights and the widget."""

from __future__ import annotations

from datetime import date, datetime

from src.cycle_engine.insights import InsightFilter, MLStatus
from src.cycle_engine.models import Phase, StrategyKind, SymptomCategory
from src.cycle_engine.scheduler import RefreshTrigger
from src.models.base import CyclesBase


class PredictionRead(CyclesBase):
    phase: Phase
    days_until_next_period: int
    next_period_start: date
    fertile_window_start: date
    fertile_window_end: date
    confidence: float
    strategy: StrategyKind
    computed_at: datetime
    cycle_day: int
    effective_cycle_length: int
    overdue_days: int


class CorrelationRead(CyclesBase):
    factor_a: SymptomCategory
    factor_b: Phase | SymptomCategory
    strength: float
    sample_size: int
    title: str


class ValidationWarningRead(CyclesBase):
    code: str
    message: str
    start_date: date


class InsightsRead(CyclesBase):
    filter: InsightFilter
    ml_status: MLStatus
    prediction: PredictionRead | None = None
    correlations: list[CorrelationRead] = []
    warnings: list[ValidationWarningRead] = []
    computed_at: datetime


class RefreshResultRead(CyclesBase):
    trigger: RefreshTrigger
    status: str
    error: str | None = None


class RefreshRead(CyclesBase):
    results: list[RefreshResultRead]
    computed_at: datetime | None = None
