"""Read-only feature-flag view consulted by the engine.

Remote config overrides local defaults: ``is_enabled`` looks a flag up in the
override map first, then in the defaults map, and finally returns False.
Views are immutable; applying a new remote payload yields a new view.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType

logger = logging.getLogger("cycles.engine.flags")

ML_PREDICTIONS = "ml_predictions"
CYCLE_INSIGHTS = "cycle_insights"
WIDGET_PREDICTIONS = "widget_predictions"

DEFAULT_FLAGS: Mapping[str, bool] = MappingProxyType(
    {
        ML_PREDICTIONS: False,
        CYCLE_INSIGHTS: True,
        WIDGET_PREDICTIONS: False,
        "share_links": True,
        "body_map_v2": False,
        "pdf_export": True,
        "biometric_lock": True,
        "analytics_v2": False,
        "background_sync": True,
        "csv_export": True,
    }
)


class FeatureFlagView:
    """Layered flag lookup: overrides, then defaults, then False.

    Usage::

        flags = FeatureFlagView(overrides={"ml_predictions": True})
        flags.is_enabled("ml_predictions")   # True
        flags.is_enabled("unknown_flag")     # False
    """

    __slots__ = ("_overrides", "_defaults")

    def __init__(
        self,
        overrides: Mapping[str, bool] | None = None,
        defaults: Mapping[str, bool] | None = None,
    ) -> None:
        self._overrides = MappingProxyType(
            {str(k): bool(v) for k, v in (overrides or {}).items()}
        )
        self._defaults = MappingProxyType(
            dict(DEFAULT_FLAGS if defaults is None else defaults)
        )

    def is_enabled(self, flag: str) -> bool:
        if flag in self._overrides:
            return self._overrides[flag]
        return self._defaults.get(flag, False)

    @property
    def ml_predictions(self) -> bool:
        return self.is_enabled(ML_PREDICTIONS)

    @property
    def overrides(self) -> Mapping[str, bool]:
        return self._overrides

    def with_overrides(self, remote: Mapping[str, bool]) -> FeatureFlagView:
        """Return a new view whose override layer is replaced by ``remote``.

        Args:
            remote: Flags fetched from remote config.

        Returns:
            New FeatureFlagView sharing this view's defaults.
        """
        unknown = sorted(set(remote) - set(self._defaults))
        if unknown:
            logger.info("Remote config carries flags with no local default: %s", unknown)
        return FeatureFlagView(overrides=remote, defaults=self._defaults)

    def resolved(self) -> dict[str, bool]:
        """Return every known flag with its effective value."""
        names = list(self._defaults) + [k for k in self._overrides if k not in self._defaults]
        return {name: self.is_enabled(name) for name in names}

    def __repr__(self) -> str:
        return f"FeatureFlagView(overrides={dict(self._overrides)!r})"
