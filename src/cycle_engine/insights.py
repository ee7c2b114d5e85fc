"""Insights view over a published snapshot.

The insights surface shows the same underlying snapshot through a filter
(``ALL``, ``PREDICTIONS`` or ``CORRELATIONS``) and an ``ml_status`` badge
that mirrors which strategy produced the published prediction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from src.cycle_engine.models import (
    Correlation,
    Phase,
    PredictionResult,
    Snapshot,
    StrategyKind,
)


class InsightFilter(str, Enum):
    ALL = "all"
    PREDICTIONS = "predictions"
    CORRELATIONS = "correlations"


class MLStatus(str, Enum):
    RULE_BASED = "rule_based"
    ADAPTIVE = "adaptive"


@dataclass(frozen=True)
class InsightsView:
    """Filtered view of one snapshot.

    Attributes:
        filter:       Filter applied.
        ml_status:    Strategy badge for the published prediction.
        prediction:   Prediction (None under the CORRELATIONS filter).
        correlations: Correlations (empty under the PREDICTIONS filter).
        computed_at:  Pass timestamp of the underlying snapshot.
    """

    filter: InsightFilter
    ml_status: MLStatus
    prediction: PredictionResult | None
    correlations: tuple[Correlation, ...]
    computed_at: datetime


def ml_status_for(prediction: PredictionResult) -> MLStatus:
    if prediction.strategy == StrategyKind.ADAPTIVE:
        return MLStatus.ADAPTIVE
    return MLStatus.RULE_BASED


def build_insights(
    snapshot: Snapshot, insight_filter: InsightFilter = InsightFilter.ALL
) -> InsightsView:
    """Apply ``insight_filter`` to ``snapshot``.

    Args:
        snapshot:       Last published snapshot.
        insight_filter: Which part of the snapshot to show.

    Returns:
        InsightsView.
    """
    show_prediction = insight_filter in (InsightFilter.ALL, InsightFilter.PREDICTIONS)
    show_correlations = insight_filter in (InsightFilter.ALL, InsightFilter.CORRELATIONS)
    return InsightsView(
        filter=insight_filter,
        ml_status=ml_status_for(snapshot.prediction),
        prediction=snapshot.prediction if show_prediction else None,
        correlations=snapshot.correlations if show_correlations else (),
        computed_at=snapshot.computed_at,
    )


def correlation_title(correlation: Correlation) -> str:
    """Short display title, e.g. 'Cramping peaks in menstrual phase'."""
    symptom = correlation.factor_a.value.replace("_", " ").capitalize()
    if isinstance(correlation.factor_b, Phase):
        return f"{symptom} peaks in {correlation.factor_b.value} phase"
    other = correlation.factor_b.value.replace("_", " ")
    if correlation.strength > 0:
        return f"{symptom} rises with {other}"
    return f"{symptom} falls as {other} rises"
