"""Cycle phase and prediction engine.

This package derives the current cycle phase from logged period history,
forecasts the next period and fertile window, surfaces statistically gated
symptom correlations, and publishes the result atomically for the insights
and widget surfaces.

Core modules:
    models         Canonical domain types (records, profile, results)
    calculator     History validation, effective lengths, phase windows
    strategies     Rule-based and adaptive prediction strategies
    scoring        Ready-made adaptive scorer and model feature vector
    correlation    Symptom ↔ phase / symptom ↔ symptom correlations
    cache          Single-slot snapshot cache with atomic publish
    privacy        Full and reduced exposure projections
    engine         Full recompute pass tying the above together
    insights       Filtered insights view and ML status badge
    scheduler      Trigger-driven recompute scheduling
    store          History store protocol and in-memory store
    flags          Layered feature-flag view
    config_loader  Load/validate engine_config.yaml
"""

from src.cycle_engine.config_loader import EngineConfig, load_engine_config
from src.cycle_engine.engine import PredictionEngine
from src.cycle_engine.flags import FeatureFlagView
from src.cycle_engine.models import (
    Correlation,
    CycleHistory,
    CycleRecord,
    Phase,
    PredictionResult,
    Profile,
    Snapshot,
    StrategyKind,
    SymptomCategory,
    SymptomEntry,
)

__all__ = [
    "Correlation",
    "CycleHistory",
    "CycleRecord",
    "EngineConfig",
    "FeatureFlagView",
    "Phase",
    "PredictionEngine",
    "PredictionResult",
    "Profile",
    "Snapshot",
    "StrategyKind",
    "SymptomCategory",
    "SymptomEntry",
    "load_engine_config",
]
