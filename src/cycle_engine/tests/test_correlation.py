"""Tests for symptom ↔ phase and symptom ↔ symptom correlation gating."""

from __future__ import annotations

import random
from datetime import date, timedelta

import pytest

from src.cycle_engine.calculator import CycleCalculator
from src.cycle_engine.config_loader import EngineConfig
from src.cycle_engine.correlation import CorrelationAnalyzer, _pearson_r
from src.cycle_engine.models import (
    CycleRecord,
    Phase,
    Profile,
    SymptomCategory,
    SymptomEntry,
)
from src.cycle_engine.tests.conftest import build_regular_records, symptoms_on_cycle_day

START = date(2026, 1, 1)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def run(
    calculator: CycleCalculator,
    analyzer: CorrelationAnalyzer,
    records: list[CycleRecord],
    symptoms: list[SymptomEntry],
    profile: Profile,
):
    assignments = calculator.assign_phases((s.date for s in symptoms), records, profile)
    return analyzer.find_correlations(symptoms, assignments)


@pytest.fixture
def analyzer(engine_config: EngineConfig) -> CorrelationAnalyzer:
    return CorrelationAnalyzer(engine_config)


@pytest.fixture
def five_records() -> list[CycleRecord]:
    """Four completed 28-day cycles plus an open current cycle."""
    return build_regular_records(n=5, start=START)


# ---------------------------------------------------------------------------
# Phase correlations
# ---------------------------------------------------------------------------


class TestPhaseCorrelations:
    def test_cramping_in_every_menstrual_phase(
        self,
        calculator: CycleCalculator,
        analyzer: CorrelationAnalyzer,
        five_records: list[CycleRecord],
        profile: Profile,
    ) -> None:
        completed = five_records[:4]
        symptoms = symptoms_on_cycle_day(completed, SymptomCategory.CRAMPING, 1, 4)
        symptoms += symptoms_on_cycle_day(completed, SymptomCategory.CRAMPING, 2, 3)

        result = run(calculator, analyzer, five_records, symptoms, profile)

        assert len(result) == 1
        corr = result[0]
        assert corr.factor_a == SymptomCategory.CRAMPING
        assert corr.factor_b == Phase.MENSTRUAL
        assert corr.strength == pytest.approx(1.0)
        assert corr.sample_size == 4

    def test_below_min_sample_omitted(
        self,
        calculator: CycleCalculator,
        analyzer: CorrelationAnalyzer,
        five_records: list[CycleRecord],
        profile: Profile,
    ) -> None:
        symptoms = symptoms_on_cycle_day(five_records[:2], SymptomCategory.CRAMPING, 1)
        assert run(calculator, analyzer, five_records, symptoms, profile) == ()

    def test_open_cycle_entries_do_not_qualify(
        self,
        calculator: CycleCalculator,
        analyzer: CorrelationAnalyzer,
        five_records: list[CycleRecord],
        profile: Profile,
    ) -> None:
        # Two completed cycles plus several entries in the open current cycle
        symptoms = symptoms_on_cycle_day(five_records[:2], SymptomCategory.CRAMPING, 1)
        current = five_records[-1].start_date
        symptoms += [
            SymptomEntry(current + timedelta(days=i), SymptomCategory.CRAMPING, 3)
            for i in range(3)
        ]
        assert run(calculator, analyzer, five_records, symptoms, profile) == ()

    def test_uniform_spread_not_correlated(
        self,
        calculator: CycleCalculator,
        analyzer: CorrelationAnalyzer,
        five_records: list[CycleRecord],
        profile: Profile,
    ) -> None:
        completed = five_records[:4]
        symptoms = []
        for day in (2, 8, 14, 20):  # one day in each phase
            symptoms += symptoms_on_cycle_day(completed, SymptomCategory.HEADACHE, day, 3)
        assert run(calculator, analyzer, five_records, symptoms, profile) == ()

    def test_partial_concentration_strength(
        self,
        calculator: CycleCalculator,
        analyzer: CorrelationAnalyzer,
        five_records: list[CycleRecord],
        profile: Profile,
    ) -> None:
        completed = five_records[:4]
        symptoms = []
        for day in (1, 2, 3):
            symptoms += symptoms_on_cycle_day(completed, SymptomCategory.BLOATING, day)
        symptoms += symptoms_on_cycle_day(completed, SymptomCategory.BLOATING, 22)

        result = run(calculator, analyzer, five_records, symptoms, profile)

        assert len(result) == 1
        assert result[0].factor_b == Phase.MENSTRUAL
        # share 0.75 → (0.75 - 0.25) / 0.75
        assert result[0].strength == pytest.approx(2 / 3, abs=1e-3)


class TestOrdering:
    def test_strongest_first(
        self,
        calculator: CycleCalculator,
        analyzer: CorrelationAnalyzer,
        five_records: list[CycleRecord],
        profile: Profile,
    ) -> None:
        completed = five_records[:4]
        # Bloating logged first but weaker
        symptoms = []
        for day in (1, 2, 3):
            symptoms += symptoms_on_cycle_day(completed, SymptomCategory.BLOATING, day)
        symptoms += symptoms_on_cycle_day(completed, SymptomCategory.BLOATING, 22)
        symptoms += symptoms_on_cycle_day(completed, SymptomCategory.CRAMPING, 1)

        result = run(calculator, analyzer, five_records, symptoms, profile)
        assert [c.factor_a for c in result] == [SymptomCategory.CRAMPING, SymptomCategory.BLOATING]

    def test_ties_broken_by_sample_size_then_first_appearance(
        self,
        calculator: CycleCalculator,
        analyzer: CorrelationAnalyzer,
        five_records: list[CycleRecord],
        profile: Profile,
    ) -> None:
        completed = five_records[:4]
        symptoms = symptoms_on_cycle_day(completed[:3], SymptomCategory.ACNE, 20)
        symptoms += symptoms_on_cycle_day(completed, SymptomCategory.NAUSEA, 20)
        symptoms += symptoms_on_cycle_day(completed, SymptomCategory.CRAMPING, 1)

        result = run(calculator, analyzer, five_records, symptoms, profile)

        # All at strength 1.0: 4-cycle findings before the 3-cycle one,
        # nausea before cramping by first appearance
        assert [c.factor_a for c in result] == [
            SymptomCategory.NAUSEA,
            SymptomCategory.CRAMPING,
            SymptomCategory.ACNE,
        ]

    def test_tied_pair_and_phase_findings_follow_first_appearance(
        self,
        calculator: CycleCalculator,
        analyzer: CorrelationAnalyzer,
        five_records: list[CycleRecord],
        profile: Profile,
    ) -> None:
        completed = five_records[:4]
        # Cramping splits evenly between menstrual and luteal days, so it
        # only surfaces through its pairing with headache
        symptoms = []
        for day, severity in ((1, 2), (2, 4), (20, 3), (24, 3)):
            symptoms += symptoms_on_cycle_day(completed, SymptomCategory.CRAMPING, day, severity)
        for day, severity in ((1, 2), (2, 4)):
            symptoms += symptoms_on_cycle_day(completed, SymptomCategory.HEADACHE, day, severity)

        result = run(calculator, analyzer, five_records, symptoms, profile)

        assert [(c.factor_a, c.factor_b) for c in result] == [
            (SymptomCategory.CRAMPING, SymptomCategory.HEADACHE),
            (SymptomCategory.HEADACHE, Phase.MENSTRUAL),
        ]
        assert all(c.strength == pytest.approx(1.0) for c in result)
        assert all(c.sample_size == 4 for c in result)

    def test_deterministic_across_runs(
        self,
        calculator: CycleCalculator,
        analyzer: CorrelationAnalyzer,
        five_records: list[CycleRecord],
        profile: Profile,
    ) -> None:
        completed = five_records[:4]
        symptoms = symptoms_on_cycle_day(completed, SymptomCategory.NAUSEA, 20)
        symptoms += symptoms_on_cycle_day(completed, SymptomCategory.CRAMPING, 1)
        first = run(calculator, analyzer, five_records, symptoms, profile)
        for _ in range(5):
            assert run(calculator, analyzer, five_records, symptoms, profile) == first


# ---------------------------------------------------------------------------
# Pair correlations
# ---------------------------------------------------------------------------


class TestPairCorrelations:
    def _co_logged(self, records: list[CycleRecord]) -> list[SymptomEntry]:
        symptoms = []
        for day, headache, fatigue in ((2, 1, 1), (8, 2, 2), (14, 3, 3), (20, 4, 5)):
            symptoms += symptoms_on_cycle_day(records, SymptomCategory.HEADACHE, day, headache)
            symptoms += symptoms_on_cycle_day(records, SymptomCategory.FATIGUE, day, fatigue)
        return symptoms

    def test_co_varying_symptoms_paired(
        self,
        calculator: CycleCalculator,
        analyzer: CorrelationAnalyzer,
        five_records: list[CycleRecord],
        profile: Profile,
    ) -> None:
        symptoms = self._co_logged(five_records[:4])
        result = run(calculator, analyzer, five_records, symptoms, profile)

        assert len(result) == 1
        corr = result[0]
        assert corr.factor_a == SymptomCategory.HEADACHE
        assert corr.factor_b == SymptomCategory.FATIGUE
        assert corr.strength > 0.9
        assert corr.sample_size == 4

    def test_too_few_paired_days(
        self,
        calculator: CycleCalculator,
        analyzer: CorrelationAnalyzer,
        five_records: list[CycleRecord],
        profile: Profile,
    ) -> None:
        symptoms = []
        for day, sev in ((2, 1), (20, 4)):
            symptoms += symptoms_on_cycle_day(five_records[:3], SymptomCategory.HEADACHE, day, sev)
            symptoms += symptoms_on_cycle_day(five_records[:3], SymptomCategory.FATIGUE, day, sev)
        result = run(calculator, analyzer, five_records, symptoms, profile)
        assert all(isinstance(c.factor_b, Phase) for c in result)

    def test_pairs_can_be_disabled(
        self,
        engine_config: EngineConfig,
        calculator: CycleCalculator,
        five_records: list[CycleRecord],
        profile: Profile,
    ) -> None:
        analyzer = CorrelationAnalyzer(engine_config, include_pairs=False)
        symptoms = self._co_logged(five_records[:4])
        assert run(calculator, analyzer, five_records, symptoms, profile) == ()


# ---------------------------------------------------------------------------
# Gating property
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("seed", range(12))
def test_no_correlation_below_min_sample(
    seed: int,
    calculator: CycleCalculator,
    analyzer: CorrelationAnalyzer,
    engine_config: EngineConfig,
    profile: Profile,
) -> None:
    rng = random.Random(seed)
    records = build_regular_records(n=rng.randint(1, 7), start=START, length=rng.randint(24, 34))
    end = records[-1].start_date + timedelta(days=30)
    categories = list(SymptomCategory)[:5]
    symptoms = [
        SymptomEntry(
            START + timedelta(days=rng.randint(0, (end - START).days)),
            rng.choice(categories),
            rng.randint(1, 5),
        )
        for _ in range(rng.randint(0, 80))
    ]
    result = run(calculator, analyzer, records, symptoms, profile)
    for corr in result:
        assert corr.sample_size >= engine_config.correlation.min_sample
        assert -1.0 <= corr.strength <= 1.0


class TestPearson:
    def test_perfect_positive(self) -> None:
        assert _pearson_r([1, 2, 3, 4], [2, 4, 6, 8]) == pytest.approx(1.0)

    def test_constant_series_returns_none(self) -> None:
        assert _pearson_r([1, 1, 1], [1, 2, 3]) is None

    def test_too_short_returns_none(self) -> None:
        assert _pearson_r([1, 2], [1, 2]) is None
