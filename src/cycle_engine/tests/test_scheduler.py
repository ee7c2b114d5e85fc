"""Tests for refresh trigger queuing, throttling and the async run loop."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from src.cycle_engine.scheduler import (
    RefreshScheduler,
    RefreshTrigger,
    seconds_until_midnight,
)
from src.cycle_engine.tests.conftest import FixedClock


class Recorder:
    """Synchronous recompute stand-in counting calls."""

    def __init__(self, fail: bool = False) -> None:
        self.calls = 0
        self.fail = fail

    def __call__(self) -> None:
        self.calls += 1
        if self.fail:
            raise RuntimeError("history store unavailable")


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def scheduler(recorder: Recorder, clock: FixedClock) -> RefreshScheduler:
    return RefreshScheduler(recorder, clock=clock)


class TestQueue:
    def test_duplicate_trigger_collapsed(self, scheduler: RefreshScheduler) -> None:
        assert scheduler.enqueue(RefreshTrigger.FOREGROUND)
        assert not scheduler.enqueue(RefreshTrigger.FOREGROUND)
        assert scheduler.pending == [RefreshTrigger.FOREGROUND]

    def test_priority_order(self, scheduler: RefreshScheduler) -> None:
        for trigger in (
            RefreshTrigger.WIDGET_TICK,
            RefreshTrigger.MIDNIGHT,
            RefreshTrigger.HISTORY_CHANGED,
            RefreshTrigger.FOREGROUND,
        ):
            scheduler.enqueue(trigger)
        assert scheduler.pending == [
            RefreshTrigger.HISTORY_CHANGED,
            RefreshTrigger.FOREGROUND,
            RefreshTrigger.MIDNIGHT,
            RefreshTrigger.WIDGET_TICK,
        ]


class TestShouldRefresh:
    def test_never_run_always_refreshes(self, scheduler: RefreshScheduler) -> None:
        for trigger in RefreshTrigger:
            assert scheduler.should_refresh(trigger, None)

    def test_foreground_throttled(self, scheduler: RefreshScheduler, clock: FixedClock) -> None:
        last = clock.now - timedelta(seconds=30)
        assert not scheduler.should_refresh(RefreshTrigger.FOREGROUND, last)
        assert scheduler.should_refresh(
            RefreshTrigger.FOREGROUND, clock.now - timedelta(seconds=60)
        )

    def test_widget_tick_throttled(self, scheduler: RefreshScheduler, clock: FixedClock) -> None:
        assert not scheduler.should_refresh(
            RefreshTrigger.WIDGET_TICK, clock.now - timedelta(minutes=10)
        )
        assert scheduler.should_refresh(
            RefreshTrigger.WIDGET_TICK, clock.now - timedelta(minutes=30)
        )

    def test_history_change_never_throttled(
        self, scheduler: RefreshScheduler, clock: FixedClock
    ) -> None:
        assert scheduler.should_refresh(RefreshTrigger.HISTORY_CHANGED, clock.now)
        assert scheduler.should_refresh(RefreshTrigger.MIDNIGHT, clock.now)


class TestRunPending:
    @pytest.mark.asyncio
    async def test_nothing_pending(self, scheduler: RefreshScheduler, recorder: Recorder) -> None:
        assert await scheduler.run_pending() == []
        assert recorder.calls == 0

    @pytest.mark.asyncio
    async def test_runs_and_records_last_run(
        self, scheduler: RefreshScheduler, recorder: Recorder, clock: FixedClock
    ) -> None:
        scheduler.enqueue(RefreshTrigger.HISTORY_CHANGED)
        results = await scheduler.run_pending()
        assert [r.status for r in results] == ["success"]
        assert recorder.calls == 1
        assert scheduler.last_run == clock.now
        assert scheduler.pending == []

    @pytest.mark.asyncio
    async def test_throttled_trigger_skipped(
        self, scheduler: RefreshScheduler, recorder: Recorder
    ) -> None:
        scheduler.enqueue(RefreshTrigger.HISTORY_CHANGED)
        scheduler.enqueue(RefreshTrigger.FOREGROUND)
        results = await scheduler.run_pending()
        # Foreground lands right after the history recompute
        assert [(r.trigger, r.status) for r in results] == [
            (RefreshTrigger.HISTORY_CHANGED, "success"),
            (RefreshTrigger.FOREGROUND, "skipped"),
        ]
        assert recorder.calls == 1

    @pytest.mark.asyncio
    async def test_foreground_after_interval(
        self, scheduler: RefreshScheduler, recorder: Recorder, clock: FixedClock
    ) -> None:
        scheduler.enqueue(RefreshTrigger.FOREGROUND)
        await scheduler.run_pending()
        clock.advance(seconds=61)
        scheduler.enqueue(RefreshTrigger.FOREGROUND)
        results = await scheduler.run_pending()
        assert results[0].status == "success"
        assert recorder.calls == 2

    @pytest.mark.asyncio
    async def test_failure_reported_not_raised(self, clock: FixedClock) -> None:
        failing = Recorder(fail=True)
        scheduler = RefreshScheduler(failing, clock=clock)
        scheduler.enqueue(RefreshTrigger.MIDNIGHT)
        results = await scheduler.run_pending()
        assert results[0].status == "error"
        assert "history store unavailable" in results[0].error
        assert scheduler.last_run is None

    @pytest.mark.asyncio
    async def test_periodic_loop_stops(self, scheduler: RefreshScheduler) -> None:
        stop = asyncio.Event()
        task = asyncio.create_task(scheduler.run_periodic(stop))
        stop.set()
        await asyncio.wait_for(task, timeout=5)
        assert task.done()


class TestMidnight:
    def test_seconds_until_midnight(self) -> None:
        now = datetime(2026, 1, 10, 23, 0, tzinfo=timezone.utc)
        assert seconds_until_midnight(now) == pytest.approx(3600)

    def test_just_after_midnight(self) -> None:
        now = datetime(2026, 1, 10, 0, 0, 1, tzinfo=timezone.utc)
        assert seconds_until_midnight(now) == pytest.approx(86399)
