"""Cycle calculator: history validation, effective lengths and phase mapping.

Does NOT assume a 28-day cycle.  The effective cycle length is the rolling
average of the most recent derived cycle lengths (default: last 5), falling
back to the onboarding profile when history is too short.

Phase windows for a cycle of effective length ``L`` and period length ``P``
(0-based day offsets)::

    menstrual   [0, P)
    follicular  [P, L//2 - 2)
    ovulation   [L//2 - 2, L//2 + 1]
    luteal      (L//2 + 1, L)

Any offset at or past ``L`` (an overrunning cycle) is luteal.  All functions
here are pure: identical inputs always give identical outputs.
"""

from __future__ import annotations

import logging
import statistics
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterable, Sequence

from src.cycle_engine.config_loader import EngineConfig
from src.cycle_engine.models import (
    CycleHistory,
    CycleRecord,
    Phase,
    Profile,
    ValidationWarning,
)

logger = logging.getLogger("cycles.engine.calculator")


class CycleTrend(str, Enum):
    SHORTENING = "shortening"
    LENGTHENING = "lengthening"
    STABLE = "stable"
    INSUFFICIENT = "insufficient"


@dataclass(frozen=True)
class PhaseAssignment:
    """Phase of a single calendar date.

    Attributes:
        phase:       Phase on that date.
        cycle_start: Start date of the cycle the date falls in.
        cycle_day:   1-indexed day within that cycle.
        completed:   True if the cycle has a logged successor, i.e. it is over.
    """

    phase: Phase
    cycle_start: date
    cycle_day: int
    completed: bool


@dataclass
class CycleLengthAnalysis:
    """Summary statistics over derived cycle lengths.

    Attributes:
        lengths:       Derived cycle lengths, oldest first.
        average:       Mean length (None with no data).
        std_deviation: Population standard deviation.
        trend:         Direction of change between the older and newer halves.
        is_regular:    True if the standard deviation is below the configured bound.
    """

    lengths: list[int] = field(default_factory=list)
    average: float | None = None
    std_deviation: float = 0.0
    trend: CycleTrend = CycleTrend.INSUFFICIENT
    is_regular: bool = False


class CycleCalculator:
    """Derive phases and effective lengths from cycle history.

    Usage::

        calculator = CycleCalculator(config)
        phase = calculator.phase_for(date(2026, 1, 10), history, profile)
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or EngineConfig()

    @property
    def _cycle_config(self):
        return self._config.cycle

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_history(
        self, records: Iterable[CycleRecord]
    ) -> tuple[list[CycleRecord], list[ValidationWarning]]:
        """Split history into usable records and warnings for excluded ones.

        A record is excluded when its end precedes its start, when its start
        is not strictly after the previous usable record, when it starts
        inside the previous period, or when it is open but a later record
        exists.

        Args:
            records: Cycle records in logged order (oldest first).

        Returns:
            Tuple of (valid records, warnings).
        """
        valid: list[CycleRecord] = []
        warnings: list[ValidationWarning] = []

        for rec in records:
            if rec.end_date is not None and rec.end_date < rec.start_date:
                warnings.append(
                    ValidationWarning(
                        code="end_before_start",
                        message=f"Period ends ({rec.end_date}) before it starts ({rec.start_date})",
                        start_date=rec.start_date,
                    )
                )
                continue

            if valid:
                prev = valid[-1]
                if rec.start_date <= prev.start_date:
                    warnings.append(
                        ValidationWarning(
                            code="out_of_order",
                            message=(
                                f"Period starting {rec.start_date} is not after "
                                f"the previous one ({prev.start_date})"
                            ),
                            start_date=rec.start_date,
                        )
                    )
                    continue
                if prev.end_date is not None and rec.start_date <= prev.end_date:
                    warnings.append(
                        ValidationWarning(
                            code="overlapping",
                            message=(
                                f"Period starting {rec.start_date} overlaps the period "
                                f"{prev.start_date}–{prev.end_date}"
                            ),
                            start_date=rec.start_date,
                        )
                    )
                    continue
                if prev.is_open:
                    valid.pop()
                    warnings.append(
                        ValidationWarning(
                            code="open_not_latest",
                            message=(
                                f"Period starting {prev.start_date} has no end date "
                                "but is not the most recent record"
                            ),
                            start_date=prev.start_date,
                        )
                    )

            valid.append(rec)

        for warning in warnings:
            logger.info("Excluded cycle record %s: %s", warning.start_date, warning.code)

        return valid, warnings

    # ------------------------------------------------------------------
    # Effective lengths
    # ------------------------------------------------------------------

    @staticmethod
    def cycle_lengths(records: Sequence[CycleRecord]) -> list[int]:
        """Derived cycle lengths (start to next start), oldest first.

        Args:
            records: Validated records, oldest first.

        Returns:
            One length per record that has a successor.
        """
        return [
            (records[i + 1].start_date - records[i].start_date).days
            for i in range(len(records) - 1)
        ]

    def recent_cycle_lengths(self, records: Sequence[CycleRecord]) -> list[int]:
        """The last ``rolling_average_cycles`` derived lengths."""
        n = self._cycle_config.rolling_average_cycles
        return self.cycle_lengths(records)[-n:]

    def effective_cycle_length(
        self, records: Sequence[CycleRecord], profile: Profile
    ) -> int:
        """Rolling-average cycle length, or the profile default without data."""
        lengths = self.recent_cycle_lengths(records)
        if not lengths:
            return profile.average_cycle_length
        return max(1, round(statistics.mean(lengths)))

    def effective_period_length(
        self, records: Sequence[CycleRecord], profile: Profile
    ) -> int:
        """Rolling-average period length over closed records, or the profile default."""
        n = self._cycle_config.rolling_average_cycles
        lengths = [r.period_length for r in records if r.period_length is not None][-n:]
        if not lengths:
            return profile.average_period_length
        return round(statistics.mean(lengths))

    # ------------------------------------------------------------------
    # Phase mapping
    # ------------------------------------------------------------------

    def phase_windows(self, cycle_length: int, period_length: int) -> dict[Phase, range]:
        """Return the day-offset range of each phase.

        The ranges partition ``range(cycle_length)``: every offset belongs to
        exactly one phase.  A period longer than the days before the
        ovulation window is truncated at the window start.

        Args:
            cycle_length:  Effective cycle length ``L`` (>= 1).
            period_length: Effective period length ``P``.

        Returns:
            Dict of Phase → range of 0-based offsets, in cycle order.
        """
        cc = self._cycle_config
        length = max(1, cycle_length)
        midpoint = length // 2
        ov_start = max(0, midpoint - cc.ovulation_days_before_midpoint)
        ov_end = min(length - 1, midpoint + cc.ovulation_days_after_midpoint)
        menstrual_end = max(0, min(period_length, ov_start))

        return {
            Phase.MENSTRUAL: range(0, menstrual_end),
            Phase.FOLLICULAR: range(menstrual_end, ov_start),
            Phase.OVULATION: range(ov_start, ov_end + 1),
            Phase.LUTEAL: range(ov_end + 1, length),
        }

    def phase_for_offset(self, offset: int, cycle_length: int, period_length: int) -> Phase:
        """Map a 0-based day offset to a phase.

        Raises:
            ValueError: If ``offset`` is negative.
        """
        if offset < 0:
            raise ValueError(f"day offset must be >= 0, got {offset}")
        if offset >= cycle_length:
            return Phase.LUTEAL
        for phase, window in self.phase_windows(cycle_length, period_length).items():
            if offset in window:
                return phase
        return Phase.LUTEAL

    @staticmethod
    def active_cycle_index(day: date, records: Sequence[CycleRecord]) -> int | None:
        """Index of the most recent record starting on or before ``day``."""
        for i in range(len(records) - 1, -1, -1):
            if records[i].start_date <= day:
                return i
        return None

    def phase_for(self, day: date, history: CycleHistory, profile: Profile) -> Phase:
        """Phase of ``day`` given the cycle history and profile defaults.

        Malformed records are ignored.  With no record on or before ``day``,
        the date is treated as day 1 of a synthetic cycle.

        Args:
            day:     Query date.
            history: Cycle history (only ``cycles`` is consulted).
            profile: Onboarding defaults.

        Returns:
            The Phase on that date.
        """
        valid, _ = self.validate_history(history.cycles)
        records = [r for r in valid if r.start_date <= day]
        profile = profile.validated()
        cycle_length = self.effective_cycle_length(records, profile)
        period_length = self.effective_period_length(records, profile)
        return self._phase_on(day, records, cycle_length, period_length)

    def _phase_on(
        self,
        day: date,
        records: Sequence[CycleRecord],
        cycle_length: int,
        period_length: int,
    ) -> Phase:
        idx = self.active_cycle_index(day, records)
        if idx is None:
            return self.phase_for_offset(0, cycle_length, period_length)
        offset = (day - records[idx].start_date).days
        return self.phase_for_offset(offset, cycle_length, period_length)

    def assign_phases(
        self,
        days: Iterable[date],
        records: Sequence[CycleRecord],
        profile: Profile,
    ) -> dict[date, PhaseAssignment]:
        """Tag each date with its phase and owning cycle.

        Dates before the first record are not assigned: they belong to no
        logged cycle.

        Args:
            days:    Dates to tag (duplicates are collapsed).
            records: Validated records, oldest first.
            profile: Onboarding defaults.

        Returns:
            Dict of date → PhaseAssignment.
        """
        cycle_length = self.effective_cycle_length(records, profile)
        period_length = self.effective_period_length(records, profile)

        assignments: dict[date, PhaseAssignment] = {}
        for day in days:
            if day in assignments:
                continue
            idx = self.active_cycle_index(day, records)
            if idx is None:
                continue
            start = records[idx].start_date
            assignments[day] = PhaseAssignment(
                phase=self.phase_for_offset((day - start).days, cycle_length, period_length),
                cycle_start=start,
                cycle_day=self.cycle_day_from_start(start, day),
                completed=idx < len(records) - 1,
            )
        return assignments

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze_cycle_lengths(self, records: Sequence[CycleRecord]) -> CycleLengthAnalysis:
        """Compute average, spread and trend of the derived cycle lengths.

        The trend compares the mean of the older half of the history with
        the newer half; differences inside the stable band count as stable.

        Args:
            records: Validated records, oldest first.

        Returns:
            CycleLengthAnalysis.
        """
        cc = self._cycle_config
        lengths = self.cycle_lengths(records)

        if len(lengths) < 2:
            return CycleLengthAnalysis(
                lengths=lengths,
                average=float(lengths[0]) if lengths else None,
            )

        avg = statistics.mean(lengths)
        std = statistics.pstdev(lengths)

        mid = len(lengths) // 2
        first_half = statistics.mean(lengths[:mid])
        second_half = statistics.mean(lengths[mid:])
        if abs(first_half - second_half) < cc.trend_stable_band_days:
            trend = CycleTrend.STABLE
        elif second_half < first_half:
            trend = CycleTrend.SHORTENING
        else:
            trend = CycleTrend.LENGTHENING

        return CycleLengthAnalysis(
            lengths=lengths,
            average=round(avg, 1),
            std_deviation=round(std, 2),
            trend=trend,
            is_regular=std < cc.regular_std_days,
        )

    def classify_cycle(self, cycle_length: int) -> str:
        """Classify a cycle length as 'short', 'normal' or 'long'."""
        cc = self._cycle_config
        if cycle_length < cc.min_cycle_days:
            return "short"
        if cycle_length > cc.max_cycle_days:
            return "long"
        return "normal"

    @staticmethod
    def cycle_day_from_start(period_start: date, query_date: date) -> int:
        """Return the cycle day number for a given date.

        Day 1 = first day of period.  Returns zero or negative numbers for
        dates before the period start.

        Args:
            period_start: First day of the cycle.
            query_date:   Date to calculate for.

        Returns:
            Cycle day (1-indexed).
        """
        return (query_date - period_start).days + 1
