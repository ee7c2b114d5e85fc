"""Canonical domain models for the cycle prediction engine.

Every component of the engine (calculator, strategies, correlation analyzer,
cache, privacy filter) consumes and produces these types.  They are frozen
dataclasses: history records are written by the logging surface and never
mutated here, and each recompute produces a brand new ``PredictionResult``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum


# Onboarding bounds for the profile defaults
MIN_PROFILE_CYCLE_LENGTH = 21
MAX_PROFILE_CYCLE_LENGTH = 45
MIN_PROFILE_PERIOD_LENGTH = 2
MAX_PROFILE_PERIOD_LENGTH = 10
DEFAULT_CYCLE_LENGTH = 28
DEFAULT_PERIOD_LENGTH = 5

MIN_SEVERITY = 1
MAX_SEVERITY = 5


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Phase(str, Enum):
    """Cycle phase.  Declaration order is the order within a cycle."""

    MENSTRUAL = "menstrual"
    FOLLICULAR = "follicular"
    OVULATION = "ovulation"
    LUTEAL = "luteal"


class SymptomCategory(str, Enum):
    """Loggable symptom categories."""

    CRAMPING = "cramping"
    HEADACHE = "headache"
    BLOATING = "bloating"
    MOOD = "mood"
    ENERGY = "energy"
    FATIGUE = "fatigue"
    SLEEP = "sleep"
    STRESS = "stress"
    CRAVINGS = "cravings"
    ACNE = "acne"
    BREAST_TENDERNESS = "breast_tenderness"
    NAUSEA = "nausea"
    BACK_PAIN = "back_pain"
    DIZZINESS = "dizziness"
    HOT_FLASHES = "hot_flashes"
    DIGESTION = "digestion"


class StrategyKind(str, Enum):
    """Which prediction strategy produced a published result."""

    RULE_BASED = "rule_based"
    ADAPTIVE = "adaptive"


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CycleRecord:
    """One logged period.

    The cycle that starts with this period runs until the day before the next
    record's ``start_date``, so the cycle length is derived from history and
    not stored here.

    Attributes:
        start_date: First day of bleeding (user-entered ground truth).
        end_date:   Last day of bleeding.  None while the period is ongoing.
    """

    start_date: date
    end_date: date | None = None

    @property
    def is_open(self) -> bool:
        return self.end_date is None

    @property
    def period_length(self) -> int | None:
        """Inclusive number of bleeding days, or None for an open record."""
        if self.end_date is None:
            return None
        return (self.end_date - self.start_date).days + 1


@dataclass(frozen=True)
class SymptomEntry:
    """A single logged symptom.

    Attributes:
        date:     Calendar date the symptom was experienced.
        category: Symptom category.
        severity: Intensity on a 1–5 scale.
    """

    date: date
    category: SymptomCategory
    severity: int

    def __post_init__(self) -> None:
        if not isinstance(self.category, SymptomCategory):
            object.__setattr__(self, "category", SymptomCategory(self.category))
        if not (MIN_SEVERITY <= int(self.severity) <= MAX_SEVERITY):
            raise ValueError(
                f"severity must be between {MIN_SEVERITY} and {MAX_SEVERITY}, "
                f"got {self.severity!r}"
            )


@dataclass(frozen=True)
class CycleHistory:
    """Read-only view of the history store handed to the engine.

    Attributes:
        cycles:   Period records, oldest first.
        symptoms: Symptom entries in logging order.
    """

    cycles: tuple[CycleRecord, ...] = ()
    symptoms: tuple[SymptomEntry, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.cycles


@dataclass(frozen=True)
class Profile:
    """Onboarding defaults used when history is too short.

    Attributes:
        average_cycle_length:  Self-reported cycle length (21–45 days).
        average_period_length: Self-reported period length (2–10 days).
        birth_year:            Optional birth year.
        luteal_phase_length:   Override for the 14-day luteal constant.
    """

    average_cycle_length: int = DEFAULT_CYCLE_LENGTH
    average_period_length: int = DEFAULT_PERIOD_LENGTH
    birth_year: int | None = None
    luteal_phase_length: int | None = None

    def validated(self) -> Profile:
        """Return a copy with lengths clamped to the onboarding ranges."""
        return replace(
            self,
            average_cycle_length=_clamp_int(
                self.average_cycle_length,
                MIN_PROFILE_CYCLE_LENGTH,
                MAX_PROFILE_CYCLE_LENGTH,
            ),
            average_period_length=_clamp_int(
                self.average_period_length,
                MIN_PROFILE_PERIOD_LENGTH,
                MAX_PROFILE_PERIOD_LENGTH,
            ),
        )


def _clamp_int(value: int, low: int, high: int) -> int:
    return max(low, min(high, int(value)))


# ---------------------------------------------------------------------------
# Engine output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationWarning:
    """A history record that was excluded from calculation.

    Attributes:
        code:       Machine-readable reason ('end_before_start', 'out_of_order',
                    'overlapping', 'open_not_latest').
        message:    Human-readable explanation.
        start_date: Start date of the offending record.
    """

    code: str
    message: str
    start_date: date


@dataclass(frozen=True)
class StrategyFallback:
    """Record of the adaptive strategy being discarded for the rule-based one.

    Attributes:
        reason: 'error', 'timeout', 'disagreement', 'invalid_candidate' or
                'insufficient_history'.
        detail: Free-form explanation for logs and diagnostics.
    """

    reason: str
    detail: str = ""


@dataclass(frozen=True)
class PredictionResult:
    """The engine's forecast for one query date.

    Attributes:
        phase:                  Phase on the query date.
        days_until_next_period: Whole days from the query date to the predicted
                                next period (0 when the period is due or late).
        next_period_start:      Predicted first day of the next period.
        fertile_window_start:   First day of the predicted fertile window.
        fertile_window_end:     Last day of the predicted fertile window.
        confidence:             Self-reported certainty, always in [0, 1].
        strategy:               Strategy whose estimate was published.
        computed_at:            Timestamp of the recompute pass.
        cycle_day:              1-indexed day within the active cycle.
        effective_cycle_length: Cycle length used for the computation.
        overdue_days:           Days past the predicted start (0 if not late).
    """

    phase: Phase
    days_until_next_period: int
    next_period_start: date
    fertile_window_start: date
    fertile_window_end: date
    confidence: float
    strategy: StrategyKind
    computed_at: datetime
    cycle_day: int = 1
    effective_cycle_length: int = DEFAULT_CYCLE_LENGTH
    overdue_days: int = 0

    def __post_init__(self) -> None:
        if not (0.0 <= self.confidence <= 1.0):
            raise ValueError(f"confidence out of range [0, 1]: {self.confidence}")


@dataclass(frozen=True)
class Correlation:
    """A statistically gated association.

    Attributes:
        factor_a:    Symptom category.
        factor_b:    Phase, or a second symptom category.
        strength:    Normalized association strength in [-1, 1].
        sample_size: Number of qualifying completed cycles.
    """

    factor_a: SymptomCategory
    factor_b: Phase | SymptomCategory
    strength: float
    sample_size: int


@dataclass(frozen=True)
class Snapshot:
    """One published recompute pass: prediction and correlations as a unit.

    Attributes:
        prediction:   Current prediction.
        correlations: Ordered correlation findings from the same pass.
        warnings:     History records excluded during the pass.
        fallbacks:    Adaptive fallbacks that happened during the pass.
        computed_at:  Timestamp shared by every member of the pass.
    """

    prediction: PredictionResult
    correlations: tuple[Correlation, ...] = ()
    warnings: tuple[ValidationWarning, ...] = ()
    fallbacks: tuple[StrategyFallback, ...] = ()
    computed_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.computed_at is None:
            object.__setattr__(self, "computed_at", self.prediction.computed_at)
        elif self.prediction.computed_at != self.computed_at:
            raise ValueError(
                "Snapshot members come from different passes: "
                f"prediction={self.prediction.computed_at} snapshot={self.computed_at}"
            )
