"""Statistically gated symptom correlations.

Surfaces patterns like:
- "Cramping clusters in your menstrual phase"
- "Headache and fatigue tend to rise together"

Only symptoms logged inside *completed* cycles qualify: an open cycle can
still change phase boundaries once its successor is logged.  A category that
does not meet the minimum sample of distinct cycles is omitted entirely; it
is never reported as a weak or tentative finding.
"""

from __future__ import annotations

import logging
import math
import statistics
from collections import defaultdict
from datetime import date
from typing import Mapping, Sequence

from src.cycle_engine.calculator import PhaseAssignment
from src.cycle_engine.config_loader import EngineConfig
from src.cycle_engine.models import Correlation, Phase, SymptomCategory, SymptomEntry

logger = logging.getLogger("cycles.engine.correlation")

# Share of entries each phase would receive under a uniform distribution
UNIFORM_PHASE_SHARE = 1.0 / len(Phase)


class CorrelationAnalyzer:
    """Find symptom ↔ phase and symptom ↔ symptom associations.

    Usage::

        analyzer = CorrelationAnalyzer(config)
        assignments = calculator.assign_phases(dates, records, profile)
        correlations = analyzer.find_correlations(history.symptoms, assignments)
    """

    def __init__(self, config: EngineConfig | None = None, include_pairs: bool = True) -> None:
        self._config = config or EngineConfig()
        self._include_pairs = include_pairs

    def find_correlations(
        self,
        symptoms: Sequence[SymptomEntry],
        assignments: Mapping[date, PhaseAssignment],
    ) -> tuple[Correlation, ...]:
        """Return gated correlations, strongest first.

        Ties are broken by larger sample size, then by the order in which
        categories first appear in ``symptoms``.

        Args:
            symptoms:    Symptom entries in logging order.
            assignments: Phase assignment per date (from
                         ``CycleCalculator.assign_phases``).

        Returns:
            Tuple of Correlation.
        """
        order = _first_appearance(symptoms)
        qualifying = [
            (entry, assignments[entry.date])
            for entry in symptoms
            if entry.date in assignments and assignments[entry.date].completed
        ]

        by_category: dict[SymptomCategory, list[tuple[SymptomEntry, PhaseAssignment]]] = (
            defaultdict(list)
        )
        for entry, assignment in qualifying:
            by_category[entry.category].append((entry, assignment))

        found: list[Correlation] = []
        for category in order:
            found.extend(self._phase_correlations(category, by_category.get(category, [])))

        if self._include_pairs:
            found.extend(self._pair_correlations(order, by_category))

        rank = {category: i for i, category in enumerate(order)}
        found.sort(key=lambda c: (-abs(c.strength), -c.sample_size, rank[c.factor_a]))

        logger.debug(
            "Correlation pass: %d qualifying entries, %d finding(s)",
            len(qualifying), len(found),
        )
        return tuple(found)

    def _phase_correlations(
        self,
        category: SymptomCategory,
        entries: list[tuple[SymptomEntry, PhaseAssignment]],
    ) -> list[Correlation]:
        """Phases in which ``category`` is over-represented.

        Args:
            category: Symptom category.
            entries:  Qualifying (entry, assignment) pairs for the category.

        Returns:
            Correlations in phase order.
        """
        cc = self._config.correlation
        cycles = {assignment.cycle_start for _, assignment in entries}
        if len(cycles) < cc.min_sample:
            return []

        counts: dict[Phase, int] = {phase: 0 for phase in Phase}
        for _, assignment in entries:
            counts[assignment.phase] += 1
        total = len(entries)

        results = []
        for phase in Phase:
            share = counts[phase] / total
            if share <= cc.threshold_multiplier * UNIFORM_PHASE_SHARE:
                continue
            strength = (share - UNIFORM_PHASE_SHARE) / (1.0 - UNIFORM_PHASE_SHARE)
            results.append(
                Correlation(
                    factor_a=category,
                    factor_b=phase,
                    strength=round(max(-1.0, min(1.0, strength)), 4),
                    sample_size=len(cycles),
                )
            )
        return results

    def _pair_correlations(
        self,
        order: list[SymptomCategory],
        by_category: Mapping[SymptomCategory, list[tuple[SymptomEntry, PhaseAssignment]]],
    ) -> list[Correlation]:
        """Pearson correlation of daily severity between category pairs.

        Only days on which both categories were logged are paired.

        Args:
            order:       Categories in first-appearance order.
            by_category: Qualifying entries per category.

        Returns:
            Correlations for pairs meeting every gate.
        """
        cc = self._config.correlation

        daily: dict[SymptomCategory, dict[date, float]] = {}
        cycle_of_day: dict[date, date] = {}
        for category in order:
            per_day: dict[date, list[int]] = defaultdict(list)
            for entry, assignment in by_category.get(category, []):
                per_day[entry.date].append(entry.severity)
                cycle_of_day[entry.date] = assignment.cycle_start
            daily[category] = {d: statistics.mean(v) for d, v in per_day.items()}

        results = []
        for i, cat_a in enumerate(order):
            for cat_b in order[i + 1:]:
                days = [d for d in daily[cat_a] if d in daily[cat_b]]
                if len(days) < cc.min_paired_days:
                    continue
                shared_cycles = {cycle_of_day[d] for d in days}
                if len(shared_cycles) < cc.min_sample:
                    continue
                r = _pearson_r(
                    [daily[cat_a][d] for d in days],
                    [daily[cat_b][d] for d in days],
                )
                if r is None or abs(r) < cc.min_pair_strength:
                    continue
                results.append(
                    Correlation(
                        factor_a=cat_a,
                        factor_b=cat_b,
                        strength=r,
                        sample_size=len(shared_cycles),
                    )
                )
        return results


def _first_appearance(symptoms: Sequence[SymptomEntry]) -> list[SymptomCategory]:
    seen: dict[SymptomCategory, None] = {}
    for entry in symptoms:
        seen.setdefault(entry.category, None)
    return list(seen)


def _pearson_r(x: list[float], y: list[float]) -> float | None:
    """Compute Pearson correlation coefficient between two lists.

    Args:
        x: First variable.
        y: Second variable.

    Returns:
        Pearson r (-1.0 to 1.0) or None if either series is constant.
    """
    if len(x) != len(y) or len(x) < 3:
        return None

    n = len(x)
    mean_x = sum(x) / n
    mean_y = sum(y) / n

    cov = sum((xi - mean_x) * (yi - mean_y) for xi, yi in zip(x, y)) / n
    std_x = math.sqrt(sum((xi - mean_x) ** 2 for xi in x) / n)
    std_y = math.sqrt(sum((yi - mean_y) ** 2 for yi in y) / n)

    if std_x == 0 or std_y == 0:
        return None

    return round(max(-1.0, min(1.0, cov / (std_x * std_y))), 4)
