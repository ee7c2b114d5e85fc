"""In-memory history store.

The engine only ever sees the read-only ``CycleHistory`` returned by
``load()``; durability and encryption belong to whatever store backs a
deployment.  ``InMemoryHistoryStore`` backs the HTTP service and the tests.
"""

from __future__ import annotations

import bisect
import logging
import threading
from typing import Iterable

from src.cycle_engine.models import CycleHistory, CycleRecord, SymptomEntry

logger = logging.getLogger("cycles.engine.store")


class InMemoryHistoryStore:
    """Single-writer in-memory history.

    Cycle records are kept ordered by start date; symptoms keep logging
    order.  ``load()`` returns an immutable view, so later writes never show
    up in a history a recompute is already working on.
    """

    def __init__(
        self,
        cycles: Iterable[CycleRecord] = (),
        symptoms: Iterable[SymptomEntry] = (),
    ) -> None:
        self._lock = threading.Lock()
        self._cycles: list[CycleRecord] = sorted(cycles, key=lambda r: r.start_date)
        self._symptoms: list[SymptomEntry] = list(symptoms)

    def load(self) -> CycleHistory:
        with self._lock:
            return CycleHistory(cycles=tuple(self._cycles), symptoms=tuple(self._symptoms))

    def add_cycle(self, record: CycleRecord) -> None:
        with self._lock:
            keys = [r.start_date for r in self._cycles]
            self._cycles.insert(bisect.bisect_right(keys, record.start_date), record)
        logger.debug("Stored cycle record starting %s", record.start_date)

    def add_symptom(self, entry: SymptomEntry) -> None:
        with self._lock:
            self._symptoms.append(entry)
        logger.debug("Stored %s symptom on %s", entry.category.value, entry.date)

    def clear(self) -> None:
        with self._lock:
            self._cycles.clear()
            self._symptoms.clear()
