"""Shared fixtures and history builders for cycle engine tests."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from src.cycle_engine.calculator import CycleCalculator
from src.cycle_engine.config_loader import EngineConfig, load_engine_config
from src.cycle_engine.models import (
    CycleHistory,
    CycleRecord,
    Profile,
    SymptomCategory,
    SymptomEntry,
)

TEST_DATE = date(2026, 1, 10)
TEST_NOW = datetime(2026, 1, 10, 8, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def build_regular_records(
    n: int = 6,
    length: int = 28,
    period: int = 5,
    start: date = date(2025, 6, 1),
    last_open: bool = False,
) -> list[CycleRecord]:
    """Build ``n`` consecutive period records ``length`` days apart."""
    records = []
    for i in range(n):
        s = start + timedelta(days=i * length)
        end = None if (last_open and i == n - 1) else s + timedelta(days=period - 1)
        records.append(CycleRecord(start_date=s, end_date=end))
    return records


def build_records_from_lengths(
    lengths: list[int], start: date = date(2025, 6, 1), period: int = 5
) -> list[CycleRecord]:
    """Build len(lengths) + 1 records whose derived cycle lengths are ``lengths``."""
    records = [CycleRecord(start, start + timedelta(days=period - 1))]
    s = start
    for length in lengths:
        s = s + timedelta(days=length)
        records.append(CycleRecord(s, s + timedelta(days=period - 1)))
    return records


def symptoms_on_cycle_day(
    records: list[CycleRecord],
    category: SymptomCategory,
    cycle_day: int,
    severity: int = 3,
) -> list[SymptomEntry]:
    """One entry of ``category`` on ``cycle_day`` of every record's cycle."""
    return [
        SymptomEntry(
            date=r.start_date + timedelta(days=cycle_day - 1),
            category=category,
            severity=severity,
        )
        for r in records
    ]


class FixedClock:
    """Deterministic, manually advanced UTC clock."""

    def __init__(self, start: datetime = TEST_NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine_config() -> EngineConfig:
    """Load the real engine config for tests."""
    return load_engine_config()


@pytest.fixture
def calculator(engine_config: EngineConfig) -> CycleCalculator:
    return CycleCalculator(engine_config)


@pytest.fixture
def profile() -> Profile:
    return Profile(average_cycle_length=28, average_period_length=5)


@pytest.fixture
def single_cycle_history() -> CycleHistory:
    """One completed period: 2026-01-01 → 2026-01-05."""
    return CycleHistory(cycles=(CycleRecord(date(2026, 1, 1), date(2026, 1, 5)),))


@pytest.fixture
def regular_history() -> CycleHistory:
    """Five completed 28-day cycles plus the current one."""
    return CycleHistory(cycles=tuple(build_regular_records(n=6, length=28)))


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()
