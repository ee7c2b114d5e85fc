"""Projection of the cached snapshot onto exposure surfaces.

Privacy mode off: the full prediction and correlations.
Privacy mode on:  only ``phase`` and a coarse ``days_until_next_period``
bucketed to the nearest 5 days.  Confidence, fertile window and every
correlation are removed.

The reduced payload is checked against an allow-list before it leaves this
module.  Any field outside the list raises ``PrivacyFilterError``: the
exposure path fails closed instead of leaking.  The cache is never touched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from src.cycle_engine.config_loader import EngineConfig
from src.cycle_engine.models import (
    Correlation,
    Phase,
    PredictionResult,
    Snapshot,
)

logger = logging.getLogger("cycles.engine.privacy")

REDUCED_FIELDS: frozenset[str] = frozenset({"phase", "days_until_next_period"})


class PrivacyFilterError(RuntimeError):
    """Raised when a reduced projection would expose a non-allowed field."""


@dataclass(frozen=True)
class FullExposure:
    """Everything the insights surface may show."""

    prediction: PredictionResult
    correlations: tuple[Correlation, ...]

    privacy_mode = False

    def to_dict(self) -> dict[str, Any]:
        p = self.prediction
        return {
            "phase": p.phase.value,
            "days_until_next_period": p.days_until_next_period,
            "next_period_start": p.next_period_start.isoformat(),
            "fertile_window_start": p.fertile_window_start.isoformat(),
            "fertile_window_end": p.fertile_window_end.isoformat(),
            "confidence": p.confidence,
            "strategy": p.strategy.value,
            "computed_at": p.computed_at.isoformat(),
            "correlations": [
                {
                    "factor_a": c.factor_a.value,
                    "factor_b": c.factor_b.value,
                    "strength": c.strength,
                    "sample_size": c.sample_size,
                }
                for c in self.correlations
            ],
        }


@dataclass(frozen=True)
class ReducedExposure:
    """The only shape exposed to a lower-trust surface in privacy mode."""

    phase: Phase
    days_until_next_period: int

    privacy_mode = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "days_until_next_period": self.days_until_next_period,
        }


def bucket_days(days: int, bucket: int = 5) -> int:
    """Round ``days`` to the nearest multiple of ``bucket`` (halves round up)."""
    if bucket <= 1:
        return days
    return ((days + bucket // 2) // bucket) * bucket


class PrivacyFilter:
    """Pure projection from a snapshot to an exposure.

    Usage::

        exposure = PrivacyFilter(config).project(cache.current(), privacy_mode=True)
        exposure.to_dict()   # {"phase": "luteal", "days_until_next_period": 10}
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or EngineConfig()

    def project(
        self, snapshot: Snapshot, privacy_mode: bool
    ) -> FullExposure | ReducedExposure:
        """Project ``snapshot`` for an exposure surface.

        Args:
            snapshot:     Last published snapshot.
            privacy_mode: True for the reduced projection.

        Returns:
            FullExposure or ReducedExposure.

        Raises:
            PrivacyFilterError: If the reduced payload carries a field
                outside the allow-list.
        """
        if not privacy_mode:
            return FullExposure(
                prediction=snapshot.prediction,
                correlations=snapshot.correlations,
            )

        payload = self._reduce(snapshot)
        leaked = set(payload) - REDUCED_FIELDS
        if leaked:
            logger.error("Privacy projection blocked: disallowed field(s) %s", sorted(leaked))
            raise PrivacyFilterError(
                f"Reduced projection carries disallowed field(s): {sorted(leaked)}"
            )
        return ReducedExposure(**payload)

    def _reduce(self, snapshot: Snapshot) -> dict[str, Any]:
        prediction = snapshot.prediction
        return {
            "phase": prediction.phase,
            "days_until_next_period": bucket_days(
                prediction.days_until_next_period, self._config.privacy.bucket_days
            ),
        }
