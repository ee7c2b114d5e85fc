"""Refresh scheduler for prediction recomputes.

Recomputes are requested by triggers:

    history_changed  a record or symptom was logged       (priority 1)
    foreground       the app came to the foreground       (priority 2)
    midnight         local date rolled over               (priority 3)
    widget_tick      periodic widget refresh              (priority 4)

Pending triggers are de-duplicated and run in priority order.  The recompute
itself is synchronous CPU work and runs in a worker thread via
``asyncio.to_thread`` so the event loop keeps serving reads of the last
published snapshot meanwhile.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable

from src.cycle_engine.config_loader import EngineConfig

logger = logging.getLogger("cycles.engine.scheduler")


class RefreshTrigger(str, Enum):
    HISTORY_CHANGED = "history_changed"
    FOREGROUND = "foreground"
    MIDNIGHT = "midnight"
    WIDGET_TICK = "widget_tick"


# Lower = runs first
TRIGGER_PRIORITY: dict[RefreshTrigger, int] = {
    RefreshTrigger.HISTORY_CHANGED: 1,
    RefreshTrigger.FOREGROUND: 2,
    RefreshTrigger.MIDNIGHT: 3,
    RefreshTrigger.WIDGET_TICK: 4,
}


@dataclass
class RefreshResult:
    """Result of handling one trigger.

    Attributes:
        trigger:     Trigger that was handled.
        status:      'success', 'skipped' or 'error'.
        error:       Error message if status == 'error'.
        finished_at: UTC timestamp of completion.
    """

    trigger: RefreshTrigger
    status: str = "success"
    error: str | None = None
    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def seconds_until_midnight(now: datetime) -> float:
    """Seconds from ``now`` to the next local midnight in ``now``'s timezone."""
    tomorrow = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return (tomorrow - now).total_seconds()


class RefreshScheduler:
    """Queue refresh triggers and run the recompute callback for them.

    Usage::

        scheduler = RefreshScheduler(service.recompute, config)
        scheduler.enqueue(RefreshTrigger.FOREGROUND)
        results = await scheduler.run_pending()
    """

    def __init__(
        self,
        recompute: Callable[[], Any],
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            recompute: Synchronous callback running a full recompute pass.
            config:    Engine configuration (refresh intervals).
            clock:     Returns the current time; midnight is taken in its timezone.
        """
        self._recompute = recompute
        self._config = config or EngineConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._pending: set[RefreshTrigger] = set()
        self._last_run: datetime | None = None
        self._run_lock = asyncio.Lock()

    @property
    def pending(self) -> list[RefreshTrigger]:
        """Queued triggers in the order they will run."""
        return sorted(self._pending, key=TRIGGER_PRIORITY.__getitem__)

    @property
    def last_run(self) -> datetime | None:
        return self._last_run

    def enqueue(self, trigger: RefreshTrigger) -> bool:
        """Queue a trigger.

        Args:
            trigger: Refresh trigger.

        Returns:
            False if the same trigger was already pending (collapsed).
        """
        if trigger in self._pending:
            logger.debug("Collapsed duplicate refresh trigger: %s", trigger.value)
            return False
        self._pending.add(trigger)
        logger.debug(
            "Enqueued refresh trigger: %s (priority=%d)",
            trigger.value, TRIGGER_PRIORITY[trigger],
        )
        return True

    def should_refresh(self, trigger: RefreshTrigger, last_run: datetime | None) -> bool:
        """Return True if ``trigger`` warrants a recompute now.

        History changes and date rollovers always recompute.  Foreground and
        widget ticks are throttled by their configured minimum interval.

        Args:
            trigger:  Refresh trigger.
            last_run: UTC datetime of the last successful recompute (None = never).

        Returns:
            True if a recompute should run.
        """
        if last_run is None:
            return True
        rc = self._config.refresh
        elapsed = (self._clock() - last_run).total_seconds()
        if trigger == RefreshTrigger.FOREGROUND:
            return elapsed >= rc.foreground_min_interval_seconds
        if trigger == RefreshTrigger.WIDGET_TICK:
            return elapsed >= rc.widget_tick_seconds
        return True

    async def run_pending(self) -> list[RefreshResult]:
        """Handle all pending triggers in priority order.

        Returns:
            One RefreshResult per handled trigger.
        """
        async with self._run_lock:
            triggers = self.pending
            self._pending.clear()
            if not triggers:
                logger.debug("RefreshScheduler: no pending triggers")
                return []

            results: list[RefreshResult] = []
            for trigger in triggers:
                if not self.should_refresh(trigger, self._last_run):
                    results.append(RefreshResult(trigger=trigger, status="skipped"))
                    continue
                try:
                    await asyncio.to_thread(self._recompute)
                except Exception as exc:
                    logger.error("Recompute for trigger %s failed: %s", trigger.value, exc)
                    results.append(
                        RefreshResult(trigger=trigger, status="error", error=str(exc))
                    )
                    continue
                self._last_run = self._clock()
                results.append(RefreshResult(trigger=trigger))

            logger.info(
                "RefreshScheduler: %d trigger(s) handled, %d skipped, %d error(s)",
                len(results),
                sum(1 for r in results if r.status == "skipped"),
                sum(1 for r in results if r.status == "error"),
            )
            return results

    async def run_periodic(self, stop: asyncio.Event) -> None:
        """Fire midnight and widget-tick triggers until ``stop`` is set.

        Args:
            stop: Event that ends the loop.
        """
        tick = self._config.refresh.widget_tick_seconds
        while not stop.is_set():
            to_midnight = seconds_until_midnight(self._clock())
            delay = min(tick, to_midnight)
            try:
                await asyncio.wait_for(stop.wait(), timeout=delay)
                break
            except asyncio.TimeoutError:
                pass
            self.enqueue(
                RefreshTrigger.MIDNIGHT if to_midnight <= tick else RefreshTrigger.WIDGET_TICK
            )
            await self.run_pending()
