"""Process-wide engine service behind the HTTP API.

Wires the history store, profile, feature flags, prediction engine, privacy
filter and refresh scheduler together.  The engine core takes every
collaborator through its constructor; this module is the one place that
holds the assembled service for the running app.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Mapping

from src.config import Settings, get_settings
from src.cycle_engine.cache import PredictionCache
from src.cycle_engine.calculator import CycleCalculator
from src.cycle_engine.config_loader import EngineConfig, load_engine_config
from src.cycle_engine.correlation import CorrelationAnalyzer
from src.cycle_engine.engine import PredictionEngine
from src.cycle_engine.flags import FeatureFlagView
from src.cycle_engine.models import Profile, Snapshot
from src.cycle_engine.privacy import FullExposure, PrivacyFilter, ReducedExposure
from src.cycle_engine.scheduler import RefreshScheduler
from src.cycle_engine.scoring import WeightedAverageScorer
from src.cycle_engine.store import InMemoryHistoryStore
from src.cycle_engine.strategies import AdaptiveScorer, AdaptiveStrategy, RuleBasedStrategy

logger = logging.getLogger("cycles.service")


def _local_now() -> datetime:
    return datetime.now().astimezone()


class EngineService:
    """Assembled engine plus the mutable inputs it is recomputed from.

    Args:
        config:               Engine configuration.
        store:                History store (empty in-memory store if omitted).
        profile:              Onboarding defaults.
        flags:                Feature-flag view.
        adaptive_scorer:      Delegate for the adaptive strategy (None = rule-based only).
        default_privacy_mode: Privacy mode used when a request does not specify one.
        clock:                Returns the current local time.  Its date is the query
                              date for recomputes and its midnight drives the
                              scheduler's date rollover.
    """

    def __init__(
        self,
        config: EngineConfig,
        store: InMemoryHistoryStore | None = None,
        profile: Profile | None = None,
        flags: FeatureFlagView | None = None,
        adaptive_scorer: AdaptiveScorer | None = None,
        default_privacy_mode: bool | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self.store = store or InMemoryHistoryStore()
        self._profile = (profile or Profile()).validated()
        self._flags = flags or FeatureFlagView()
        self._clock = clock or _local_now
        self.default_privacy_mode = (
            config.privacy.default_privacy_mode
            if default_privacy_mode is None
            else default_privacy_mode
        )

        calculator = CycleCalculator(config)
        rule_based = RuleBasedStrategy(config, calculator)
        adaptive = (
            AdaptiveStrategy(adaptive_scorer, rule_based, config, calculator)
            if adaptive_scorer is not None
            else None
        )
        self.engine = PredictionEngine(
            rule_based=rule_based,
            adaptive=adaptive,
            calculator=calculator,
            analyzer=CorrelationAnalyzer(config),
            cache=PredictionCache(),
            config=config,
        )
        self.privacy = PrivacyFilter(config)
        self.scheduler = RefreshScheduler(self.recompute, config, clock=self.now)

    # ── Inputs ──

    @property
    def profile(self) -> Profile:
        return self._profile

    def set_profile(self, profile: Profile) -> Profile:
        self._profile = profile.validated()
        logger.info(
            "Profile updated: cycle=%d period=%d",
            self._profile.average_cycle_length,
            self._profile.average_period_length,
        )
        return self._profile

    @property
    def flags(self) -> FeatureFlagView:
        return self._flags

    def apply_remote_flags(self, remote: Mapping[str, bool]) -> FeatureFlagView:
        self._flags = self._flags.with_overrides(remote)
        logger.info("Remote flag overrides applied: %s", dict(self._flags.overrides))
        return self._flags

    # ── Engine ──

    def now(self) -> datetime:
        return self._clock()

    def recompute(self, as_of: date | None = None) -> Snapshot:
        return self.engine.recompute(
            self.store.load(), self._profile, self._flags, as_of or self.now().date()
        )

    def current_or_recompute(self) -> Snapshot:
        """Last published snapshot, computing one first if none exists."""
        return self.engine.current() or self.recompute()

    def exposure(self, privacy_mode: bool | None = None) -> FullExposure | ReducedExposure:
        """Project the current snapshot for an exposure surface.

        Raises:
            PrivacyFilterError: If the reduced projection fails its allow-list check.
        """
        mode = self.default_privacy_mode if privacy_mode is None else privacy_mode
        return self.privacy.project(self.current_or_recompute(), privacy_mode=mode)

    def close(self) -> None:
        self.engine.close()


# Module-level service, initialized once at app startup
_service: EngineService | None = None


def init_service(settings: Settings | None = None) -> EngineService:
    """Build the engine service from settings. Call once at app startup."""
    global _service
    s = settings or get_settings()
    config = load_engine_config(Path(s.engine_config_path) if s.engine_config_path else None)
    _service = EngineService(
        config=config,
        flags=FeatureFlagView(overrides=s.flag_overrides),
        adaptive_scorer=WeightedAverageScorer() if s.adaptive_scorer_enabled else None,
        default_privacy_mode=s.default_privacy_mode,
    )
    logger.info(
        "Engine service initialized (adaptive=%s, ml_predictions=%s)",
        s.adaptive_scorer_enabled,
        _service.flags.ml_predictions,
    )
    return _service


def close_service() -> None:
    """Release engine resources. Call at app shutdown."""
    global _service
    if _service:
        _service.close()
        _service = None
        logger.info("Engine service closed")


def get_service() -> EngineService:
    if _service is None:
        raise RuntimeError("Engine service not initialized; call init_service() first")
    return _service
