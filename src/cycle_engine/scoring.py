"""Ready-made adaptive scorers and the feature vector for external models.

``WeightedAverageScorer`` is a dependency-free adaptive delegate: it weights
the most recent cycle lengths more heavily than the rolling average does.
``build_feature_vector`` produces the fixed-width numeric input expected by
an external inference delegate (e.g. an on-device MLP).

Feature vector layout (30 slots, most recent completed cycle first)::

    [0-9]    last 10 cycle lengths          (pad 28)
    [10-19]  mean symptom severity per cycle (pad 0)
    [20-24]  mean mood severity per cycle    (pad 3)
    [25-29]  mean energy severity per cycle  (pad 3)

Slot ``i`` of every block describes the same completed cycle, so a cycle
without symptoms keeps its place and takes the block's pad value.
"""

from __future__ import annotations

import statistics
from collections import defaultdict
from datetime import timedelta

from src.cycle_engine.calculator import CycleCalculator
from src.cycle_engine.models import (
    DEFAULT_CYCLE_LENGTH,
    CycleHistory,
    Profile,
    SymptomCategory,
)
from src.cycle_engine.strategies import AdaptiveCandidate

FEATURE_VECTOR_SIZE = 30

_LENGTH_SLOTS = 10
_SEVERITY_SLOTS = 10
_MOOD_SLOTS = 5
_ENERGY_SLOTS = 5
_NEUTRAL_SCALE_VALUE = 3.0

# Oldest → newest; the latest cycle carries the most weight
_RECENCY_WEIGHTS = {
    1: (1.0,),
    2: (0.4, 0.6),
    3: (0.2, 0.3, 0.5),
}


class WeightedAverageScorer:
    """Recency-weighted cycle-length scorer.

    Confidence is ``1 - std/10`` over all derived lengths, clamped to
    [0.35, 0.85].

    Raises:
        ValueError: If the history has no derived cycle length.
    """

    CONFIDENCE_MIN = 0.35
    CONFIDENCE_MAX = 0.85

    def __init__(self, calculator: CycleCalculator | None = None) -> None:
        self._calculator = calculator or CycleCalculator()

    def __call__(self, history: CycleHistory, profile: Profile) -> AdaptiveCandidate:
        lengths = self._calculator.cycle_lengths(history.cycles)
        if not lengths:
            raise ValueError("WeightedAverageScorer needs at least one completed cycle")

        recent = lengths[-3:]
        weights = _RECENCY_WEIGHTS[len(recent)]
        predicted_length = round(sum(l * w for l, w in zip(recent, weights)))

        std = statistics.pstdev(lengths) if len(lengths) > 1 else 0.0
        confidence = max(self.CONFIDENCE_MIN, min(self.CONFIDENCE_MAX, 1.0 - std / 10.0))

        return AdaptiveCandidate(
            next_period_start=history.cycles[-1].start_date + timedelta(days=predicted_length),
            confidence=round(confidence, 4),
        )


def build_feature_vector(
    history: CycleHistory,
    calculator: CycleCalculator | None = None,
) -> list[float]:
    """Build the 30-slot feature vector from a validated history.

    Only completed cycles (those with a derived length) contribute.  Symptoms
    dated before the first record or inside the open cycle are ignored.

    Args:
        history:    Validated cycle history with symptoms.
        calculator: Calculator used for cycle lookups.

    Returns:
        List of 30 floats.
    """
    calculator = calculator or CycleCalculator()
    records = history.cycles

    lengths = calculator.cycle_lengths(records)
    completed = len(lengths)

    severities: dict[int, list[int]] = defaultdict(list)
    mood: dict[int, list[int]] = defaultdict(list)
    energy: dict[int, list[int]] = defaultdict(list)
    for entry in history.symptoms:
        idx = calculator.active_cycle_index(entry.date, records)
        if idx is None or idx >= completed:
            continue
        severities[idx].append(entry.severity)
        if entry.category == SymptomCategory.MOOD:
            mood[idx].append(entry.severity)
        elif entry.category == SymptomCategory.ENERGY:
            energy[idx].append(entry.severity)

    newest_first = range(completed - 1, -1, -1)

    def per_cycle_means(values: dict[int, list[int]], fill: float) -> list[float]:
        return [
            float(statistics.mean(values[i])) if values.get(i) else fill
            for i in newest_first
        ]

    vector: list[float] = []
    vector.extend(
        _pad([float(lengths[i]) for i in newest_first], _LENGTH_SLOTS, float(DEFAULT_CYCLE_LENGTH))
    )
    vector.extend(_pad(per_cycle_means(severities, 0.0), _SEVERITY_SLOTS, 0.0))
    vector.extend(
        _pad(per_cycle_means(mood, _NEUTRAL_SCALE_VALUE), _MOOD_SLOTS, _NEUTRAL_SCALE_VALUE)
    )
    vector.extend(
        _pad(per_cycle_means(energy, _NEUTRAL_SCALE_VALUE), _ENERGY_SLOTS, _NEUTRAL_SCALE_VALUE)
    )
    return vector


def _pad(values: list[float], size: int, fill: float) -> list[float]:
    return (values + [fill] * size)[:size]
