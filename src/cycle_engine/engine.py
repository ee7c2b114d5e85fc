"""Prediction engine: one full recompute pass over history, published atomically.

Pass order:
1. Validate history, collecting ValidationWarnings for excluded records
2. Select the strategy from the injected flag view
3. Predict the next period start (with adaptive fallback if needed)
4. Derive phase, cycle day, fertile window and overrun for the query date
5. Assign phases to symptom dates and run the correlation analyzer
6. Publish prediction + correlations as one Snapshot

Recomputation is never incremental: history is at most a few hundred records,
so a full pass is cheap and cannot leave stale partial state behind.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable

from src.cycle_engine.cache import PredictionCache
from src.cycle_engine.calculator import CycleCalculator
from src.cycle_engine.config_loader import EngineConfig
from src.cycle_engine.correlation import CorrelationAnalyzer
from src.cycle_engine.flags import CYCLE_INSIGHTS, FeatureFlagView
from src.cycle_engine.models import (
    Correlation,
    CycleHistory,
    PredictionResult,
    Profile,
    Snapshot,
    StrategyKind,
)
from src.cycle_engine.strategies import (
    PredictionStrategy,
    RuleBasedStrategy,
    StrategyOutcome,
    fertile_window,
    select_strategy,
)

logger = logging.getLogger("cycles.engine")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PredictionEngine:
    """Compute and publish cycle predictions.

    Every collaborator is injected; the engine reads no global state.

    Usage::

        engine = PredictionEngine(config=load_engine_config())
        snapshot = engine.recompute(history, profile, FeatureFlagView())
        engine.current().prediction.phase

    Args:
        rule_based: Baseline strategy (built from ``config`` if omitted).
        adaptive:   Optional adaptive strategy, used when ``ml_predictions`` is on.
        calculator: Cycle calculator.
        analyzer:   Correlation analyzer.
        cache:      Snapshot cache the engine publishes to.
        config:     Engine configuration.
        clock:      Returns the pass timestamp (UTC).
    """

    def __init__(
        self,
        rule_based: PredictionStrategy | None = None,
        adaptive: PredictionStrategy | None = None,
        calculator: CycleCalculator | None = None,
        analyzer: CorrelationAnalyzer | None = None,
        cache: PredictionCache | None = None,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._config = config or EngineConfig()
        self._calculator = calculator or CycleCalculator(self._config)
        self._rule_based = rule_based or RuleBasedStrategy(self._config, self._calculator)
        self._adaptive = adaptive
        self._analyzer = analyzer or CorrelationAnalyzer(self._config)
        self._cache = cache or PredictionCache()
        self._clock = clock

    @property
    def cache(self) -> PredictionCache:
        return self._cache

    @property
    def calculator(self) -> CycleCalculator:
        return self._calculator

    def current(self) -> Snapshot | None:
        """Last published snapshot; never blocks on a running recompute."""
        return self._cache.current()

    def recompute(
        self,
        history: CycleHistory,
        profile: Profile,
        flags: FeatureFlagView,
        as_of: date | None = None,
    ) -> Snapshot:
        """Run a full pass and publish the result.

        Args:
            history: Read-only history view.
            profile: Onboarding defaults.
            flags:   Resolved feature flags.
            as_of:   Query date (defaults to the pass timestamp's date).

        Returns:
            The Snapshot built by this pass.  If a newer snapshot was already
            published, this one is returned but not published.
        """
        computed_at = self._clock()
        as_of = as_of or computed_at.date()
        profile = profile.validated()

        valid, warnings = self._calculator.validate_history(history.cycles)
        # Records starting after the query date do not affect it
        in_view = tuple(r for r in valid if r.start_date <= as_of)
        view = CycleHistory(cycles=in_view, symptoms=history.symptoms)

        strategy = select_strategy(flags, self._rule_based, self._adaptive)
        outcome = strategy.predict(view, profile, as_of)

        prediction = self._build_prediction(view, profile, outcome, as_of, computed_at)
        correlations = self._correlate(view, profile, flags)

        snapshot = Snapshot(
            prediction=prediction,
            correlations=correlations,
            warnings=tuple(warnings),
            fallbacks=(outcome.fallback,) if outcome.fallback else (),
            computed_at=computed_at,
        )
        self._cache.publish(snapshot)

        logger.info(
            "Recomputed as of %s: phase=%s next=%s confidence=%.2f strategy=%s "
            "(%d warning(s), %d correlation(s))",
            as_of,
            prediction.phase.value,
            prediction.next_period_start,
            prediction.confidence,
            prediction.strategy.value,
            len(warnings),
            len(correlations),
        )
        return snapshot

    def close(self) -> None:
        """Release strategy resources (stalled adaptive scorer calls)."""
        close = getattr(self._adaptive, "close", None)
        if close is not None:
            close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _build_prediction(
        self,
        view: CycleHistory,
        profile: Profile,
        outcome: StrategyOutcome,
        as_of: date,
        computed_at: datetime,
    ) -> PredictionResult:
        calc = self._calculator
        records = view.cycles
        cycle_length = outcome.effective_cycle_length
        period_length = calc.effective_period_length(records, profile)

        idx = calc.active_cycle_index(as_of, records)
        offset = 0 if idx is None else (as_of - records[idx].start_date).days
        phase = calc.phase_for_offset(offset, cycle_length, period_length)

        days_until = (outcome.next_period_start - as_of).days
        overdue = max(0, -days_until)
        confidence = outcome.confidence
        if overdue:
            floor = (
                self._rule_based.confidence_floor
                if outcome.strategy == StrategyKind.RULE_BASED
                else 0.0
            )
            penalty = overdue * self._config.prediction.overrun_penalty_per_day
            confidence = round(max(floor, confidence - penalty), 4)
            logger.debug("Cycle overrun by %d day(s); confidence %.2f", overdue, confidence)

        window_start, window_end = fertile_window(
            outcome.next_period_start, profile, self._config
        )

        return PredictionResult(
            phase=phase,
            days_until_next_period=max(0, days_until),
            next_period_start=outcome.next_period_start,
            fertile_window_start=window_start,
            fertile_window_end=window_end,
            confidence=confidence,
            strategy=outcome.strategy,
            computed_at=computed_at,
            cycle_day=offset + 1,
            effective_cycle_length=cycle_length,
            overdue_days=overdue,
        )

    def _correlate(
        self,
        view: CycleHistory,
        profile: Profile,
        flags: FeatureFlagView,
    ) -> tuple[Correlation, ...]:
        if not flags.is_enabled(CYCLE_INSIGHTS):
            return ()
        assignments = self._calculator.assign_phases(
            (entry.date for entry in view.symptoms), view.cycles, profile
        )
        return self._analyzer.find_correlations(view.symptoms, assignments)
