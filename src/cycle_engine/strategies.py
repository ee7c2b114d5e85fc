"""Prediction strategies: rule-based baseline and adaptive delegate wrapper.

Strategies are a polymorphic interface handed to the engine at construction.
The engine never inspects which concrete type it holds; it only reads
``strategy.kind`` and calls ``predict``.

``RuleBasedStrategy``
    Next start = last cycle start + effective length.  Confidence grows as
    the variance of recent cycle lengths shrinks, bounded to the configured
    band (default [0.1, 0.9]).

``AdaptiveStrategy``
    Calls an injected scorer on a daemon thread with a bounded timeout and
    sanity-checks the candidate against the rule-based estimate.  Any failure
    publishes the rule-based outcome instead, together with a
    ``StrategyFallback`` record.  A scorer call that never returns cannot
    keep the process alive, and no new call starts while it is still running.

Histories handed to ``predict`` must already be validated (see
``CycleCalculator.validate_history``).
"""

from __future__ import annotations

import logging
import math
import statistics
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable

from src.cycle_engine.calculator import CycleCalculator
from src.cycle_engine.config_loader import EngineConfig
from src.cycle_engine.flags import ML_PREDICTIONS, FeatureFlagView
from src.cycle_engine.models import (
    CycleHistory,
    Profile,
    StrategyFallback,
    StrategyKind,
)

logger = logging.getLogger("cycles.engine.strategies")


@dataclass(frozen=True)
class AdaptiveCandidate:
    """Raw estimate returned by an adaptive scorer.

    Attributes:
        next_period_start: Scorer's predicted next period start.
        confidence:        Scorer-reported confidence (clamped to [0, 1] on use).
    """

    next_period_start: date
    confidence: float


@dataclass(frozen=True)
class StrategyOutcome:
    """What a strategy publishes for one recompute pass.

    Attributes:
        next_period_start:      Predicted next period start.
        confidence:             Bounded confidence.
        strategy:               Strategy whose estimate this is.
        effective_cycle_length: Cycle length the estimate was based on.
        fallback:               Set when the adaptive estimate was discarded.
    """

    next_period_start: date
    confidence: float
    strategy: StrategyKind
    effective_cycle_length: int
    fallback: StrategyFallback | None = None


AdaptiveScorer = Callable[[CycleHistory, Profile], AdaptiveCandidate]


class PredictionStrategy(ABC):
    """Interface shared by every prediction strategy."""

    kind: StrategyKind

    @abstractmethod
    def predict(
        self, history: CycleHistory, profile: Profile, as_of: date
    ) -> StrategyOutcome:
        """Estimate the next period start for the cycle active on ``as_of``."""

    @property
    def confidence_floor(self) -> float:
        return 0.0


# ---------------------------------------------------------------------------
# Rule-based
# ---------------------------------------------------------------------------


class RuleBasedStrategy(PredictionStrategy):
    """Rolling-average predictor with variance-derived confidence."""

    kind = StrategyKind.RULE_BASED

    def __init__(
        self,
        config: EngineConfig | None = None,
        calculator: CycleCalculator | None = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._calculator = calculator or CycleCalculator(self._config)

    @property
    def confidence_floor(self) -> float:
        return self._config.prediction.confidence_floor

    def predict(
        self, history: CycleHistory, profile: Profile, as_of: date
    ) -> StrategyOutcome:
        profile = profile.validated()
        records = history.cycles

        if not records:
            length = profile.average_cycle_length
            return StrategyOutcome(
                next_period_start=as_of + timedelta(days=length),
                confidence=self._config.prediction.empty_history_confidence,
                strategy=self.kind,
                effective_cycle_length=length,
            )

        length = self._calculator.effective_cycle_length(records, profile)
        lengths = self._calculator.recent_cycle_lengths(records)
        return StrategyOutcome(
            next_period_start=records[-1].start_date + timedelta(days=length),
            confidence=self.confidence_for(lengths, length),
            strategy=self.kind,
            effective_cycle_length=length,
        )

    def confidence_for(self, lengths: list[int], cycle_length: int) -> float:
        """Variance-based confidence for a set of recent cycle lengths.

        ``1 - min(1, variance / L²)``, clamped to the configured band.  With
        fewer than two lengths there is no variance data and the floor is
        returned.

        Args:
            lengths:      Recent derived cycle lengths.
            cycle_length: Effective cycle length ``L``.

        Returns:
            Confidence within [confidence_floor, confidence_ceiling].
        """
        pc = self._config.prediction
        if len(lengths) < 2 or cycle_length <= 0:
            return pc.confidence_floor
        variance = statistics.pvariance(lengths)
        raw = 1.0 - min(1.0, variance / (cycle_length ** 2))
        return round(max(pc.confidence_floor, min(pc.confidence_ceiling, raw)), 4)


# ---------------------------------------------------------------------------
# Adaptive
# ---------------------------------------------------------------------------


class AdaptiveStrategy(PredictionStrategy):
    """Wrap an external scorer with timeout, sanity checks and fallback.

    Usage::

        adaptive = AdaptiveStrategy(WeightedAverageScorer(), rule_based)
        outcome = adaptive.predict(history, profile, date.today())
        if outcome.fallback:
            ...  # rule-based estimate was published

    Each scorer call runs on its own daemon thread.  A call that outlives the
    timeout is left running and tracked as stalled; until it finishes, later
    passes fall back with ``timeout`` without starting another call.
    """

    kind = StrategyKind.ADAPTIVE

    def __init__(
        self,
        scorer: AdaptiveScorer,
        fallback: RuleBasedStrategy | None = None,
        config: EngineConfig | None = None,
        calculator: CycleCalculator | None = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._calculator = calculator or CycleCalculator(self._config)
        self._scorer = scorer
        self._fallback = fallback or RuleBasedStrategy(self._config, self._calculator)
        self._lock = threading.Lock()
        self._stalled: list[threading.Thread] = []

    @property
    def stalled_calls(self) -> int:
        """Number of timed-out scorer calls that are still running."""
        with self._lock:
            self._stalled = [t for t in self._stalled if t.is_alive()]
            return len(self._stalled)

    def predict(
        self, history: CycleHistory, profile: Profile, as_of: date
    ) -> StrategyOutcome:
        pc = self._config.prediction
        baseline = self._fallback.predict(history, profile, as_of)

        n_lengths = len(self._calculator.cycle_lengths(history.cycles))
        if n_lengths < pc.adaptive_min_cycles:
            return self._fall_back(
                baseline,
                "insufficient_history",
                f"{n_lengths} cycle length(s), need {pc.adaptive_min_cycles}",
            )

        stalled = self.stalled_calls
        if stalled:
            return self._fall_back(
                baseline, "timeout", f"{stalled} earlier scorer call(s) still running"
            )

        result: dict[str, object] = {}
        worker = threading.Thread(
            target=self._run_scorer,
            args=(history, profile.validated(), result),
            name="adaptive-scorer",
            daemon=True,
        )
        worker.start()
        worker.join(pc.adaptive_timeout_seconds)
        if worker.is_alive():
            with self._lock:
                self._stalled.append(worker)
            return self._fall_back(
                baseline, "timeout", f"scorer exceeded {pc.adaptive_timeout_seconds}s"
            )

        exc = result.get("error")
        if isinstance(exc, Exception):
            return self._fall_back(baseline, "error", f"{type(exc).__name__}: {exc}")

        candidate = result.get("candidate")
        confidence = _candidate_confidence(candidate)
        if confidence is None:
            return self._fall_back(
                baseline, "invalid_candidate", f"scorer returned {candidate!r}"
            )

        gap = abs((candidate.next_period_start - baseline.next_period_start).days)
        limit = baseline.effective_cycle_length * pc.max_disagreement_ratio
        if gap > limit:
            return self._fall_back(
                baseline,
                "disagreement",
                f"candidate {candidate.next_period_start} is {gap} days from "
                f"rule-based {baseline.next_period_start} (limit {limit:g})",
            )

        return StrategyOutcome(
            next_period_start=candidate.next_period_start,
            confidence=confidence,
            strategy=self.kind,
            effective_cycle_length=baseline.effective_cycle_length,
        )

    def close(self) -> None:
        """Stop tracking stalled scorer calls; their daemon threads are abandoned."""
        with self._lock:
            abandoned = [t for t in self._stalled if t.is_alive()]
            self._stalled = []
        if abandoned:
            logger.warning("Abandoning %d stalled scorer call(s)", len(abandoned))

    def _run_scorer(
        self, history: CycleHistory, profile: Profile, result: dict[str, object]
    ) -> None:
        try:
            result["candidate"] = self._scorer(history, profile)
        except Exception as exc:
            result["error"] = exc

    @staticmethod
    def _fall_back(
        baseline: StrategyOutcome, reason: str, detail: str
    ) -> StrategyOutcome:
        fallback = StrategyFallback(reason=reason, detail=detail)
        logger.warning("Adaptive prediction discarded (%s): %s", reason, detail)
        return StrategyOutcome(
            next_period_start=baseline.next_period_start,
            confidence=baseline.confidence,
            strategy=baseline.strategy,
            effective_cycle_length=baseline.effective_cycle_length,
            fallback=fallback,
        )


def _candidate_confidence(candidate: object) -> float | None:
    """Clamped confidence of a well-formed candidate, or None if malformed."""
    if not isinstance(candidate, AdaptiveCandidate):
        return None
    if not isinstance(candidate.next_period_start, date):
        return None
    try:
        value = float(candidate.confidence)
    except (TypeError, ValueError):
        return None
    if math.isnan(value):
        return None
    return max(0.0, min(1.0, value))


# ---------------------------------------------------------------------------
# Selection / shared helpers
# ---------------------------------------------------------------------------


def select_strategy(
    flags: FeatureFlagView,
    rule_based: PredictionStrategy,
    adaptive: PredictionStrategy | None = None,
) -> PredictionStrategy:
    """Pick the strategy for this pass.

    Adaptive is used only when the ``ml_predictions`` flag is on *and* an
    adaptive strategy was injected.
    """
    if adaptive is not None and flags.is_enabled(ML_PREDICTIONS):
        return adaptive
    return rule_based


def fertile_window(
    next_period_start: date,
    profile: Profile,
    config: EngineConfig,
) -> tuple[date, date]:
    """Fertile window derived from the predicted next period start.

    Ovulation is placed ``luteal`` days before the next period (profile
    override, else the configured constant); the window spans
    ``[ovulation - before, ovulation + after]``.

    Returns:
        Tuple of (window start, window end), both inclusive.
    """
    luteal = profile.luteal_phase_length or config.cycle.luteal_phase_days
    ovulation = next_period_start - timedelta(days=luteal)
    pc = config.prediction
    return (
        ovulation - timedelta(days=pc.fertile_days_before_ovulation),
        ovulation + timedelta(days=pc.fertile_days_after_ovulation),
    )
