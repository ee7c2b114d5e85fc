"""Single-slot prediction cache with atomic snapshot publish.

The cache holds exactly one ``Snapshot``: the prediction and the correlation
batch from the same recompute pass.  Writers replace the whole snapshot under
a lock; readers take the current reference without locking, so a reader sees
either the old pair or the new pair, never a mix.
"""

from __future__ import annotations

import logging
import threading

from src.cycle_engine.models import Snapshot

logger = logging.getLogger("cycles.engine.cache")


class PredictionCache:
    """Single-writer / multi-reader holder of the last published snapshot."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot: Snapshot | None = None

    def publish(self, snapshot: Snapshot) -> bool:
        """Replace the current snapshot.

        A snapshot computed earlier than the one already published is
        rejected, so a slow recompute cannot overwrite a newer result.

        Args:
            snapshot: Snapshot from a finished recompute pass.

        Returns:
            True if published, False if rejected as stale.
        """
        with self._lock:
            current = self._snapshot
            if current is not None and snapshot.computed_at < current.computed_at:
                logger.info(
                    "Rejected stale snapshot from %s (current %s)",
                    snapshot.computed_at, current.computed_at,
                )
                return False
            self._snapshot = snapshot

        logger.debug(
            "Published snapshot %s: phase=%s, %d correlation(s)",
            snapshot.computed_at,
            snapshot.prediction.phase.value,
            len(snapshot.correlations),
        )
        return True

    def current(self) -> Snapshot | None:
        return self._snapshot

    def clear(self) -> None:
        with self._lock:
            self._snapshot = None
