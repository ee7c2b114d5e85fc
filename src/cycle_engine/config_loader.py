"""Load and validate the cycle engine configuration.

The config lives in ``engine_config.yaml`` alongside this module.  Lookup is
layered: a value present in the YAML wins, otherwise the dataclass default
applies.  The loaded ``EngineConfig`` is passed to engine components through
their constructors; nothing in the engine reads configuration from module
state.

Usage::

    from src.cycle_engine.config_loader import load_engine_config

    config = load_engine_config()
    config.correlation.min_sample        # 3
    config.prediction.confidence_floor   # 0.1
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("cycles.engine.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "engine_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class CycleConfig:
    """Phase mapping and cycle-length settings."""

    rolling_average_cycles: int = 5
    ovulation_days_before_midpoint: int = 2
    ovulation_days_after_midpoint: int = 1
    luteal_phase_days: int = 14
    min_cycle_days: int = 21
    max_cycle_days: int = 45
    regular_std_days: float = 3.0
    trend_stable_band_days: float = 1.5


@dataclass
class PredictionConfig:
    """Strategy settings."""

    confidence_floor: float = 0.1
    confidence_ceiling: float = 0.9
    empty_history_confidence: float = 0.1
    fertile_days_before_ovulation: int = 5
    fertile_days_after_ovulation: int = 1
    adaptive_timeout_seconds: float = 2.0
    adaptive_min_cycles: int = 3
    max_disagreement_ratio: float = 0.5
    overrun_penalty_per_day: float = 0.05


@dataclass
class CorrelationConfig:
    """Correlation gating settings."""

    min_sample: int = 3
    threshold_multiplier: float = 2.0
    min_pair_strength: float = 0.3
    min_paired_days: int = 7


@dataclass
class PrivacyConfig:
    """Reduced-disclosure projection settings."""

    bucket_days: int = 5
    default_privacy_mode: bool = False


@dataclass
class RefreshConfig:
    """Scheduled recompute settings."""

    widget_tick_seconds: int = 1800
    foreground_min_interval_seconds: int = 60


@dataclass
class EngineConfig:
    """Complete, validated engine configuration.

    Attributes:
        version:     Config schema version string.
        cycle:       Phase mapping and cycle-length settings.
        prediction:  Strategy settings.
        correlation: Correlation gating settings.
        privacy:     Privacy projection settings.
        refresh:     Scheduled recompute settings.
    """

    version: str = "1.0"
    cycle: CycleConfig = field(default_factory=CycleConfig)
    prediction: PredictionConfig = field(default_factory=PredictionConfig)
    correlation: CorrelationConfig = field(default_factory=CorrelationConfig)
    privacy: PrivacyConfig = field(default_factory=PrivacyConfig)
    refresh: RefreshConfig = field(default_factory=RefreshConfig)
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when engine_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed dict.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Engine config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigValidationError(f"{path} must contain a mapping at the top level")
    return data


def _build_section(
    cls: type,
    raw: Any,
    section: str,
    errors: list[str],
) -> Any:
    """Overlay YAML values onto a section dataclass's defaults.

    Unknown keys are reported; values are coerced to the type of the default.

    Args:
        cls:     Section dataclass.
        raw:     Raw mapping from YAML (may be None).
        section: Section name for error messages.
        errors:  Accumulator for validation errors.

    Returns:
        Section instance.
    """
    defaults = cls()
    if raw is None:
        return defaults
    if not isinstance(raw, dict):
        errors.append(f"'{section}' must be a mapping")
        return defaults

    values: dict[str, Any] = {}
    for key, value in raw.items():
        if not hasattr(defaults, key):
            errors.append(f"Unknown key '{key}' in section '{section}'")
            continue
        default = getattr(defaults, key)
        try:
            if isinstance(default, bool):
                if not isinstance(value, bool):
                    raise TypeError
                values[key] = value
            elif isinstance(default, int):
                if isinstance(value, bool) or float(value) != int(value):
                    raise TypeError
                values[key] = int(value)
            else:
                values[key] = float(value)
        except (TypeError, ValueError):
            errors.append(
                f"{section}.{key} must be a {type(default).__name__}, got {value!r}"
            )
    return cls(**{**defaults.__dict__, **values})


def _validate_and_build(raw: dict) -> EngineConfig:
    """Validate the raw YAML dict and construct an EngineConfig.

    Performs structural and range validation, applying defaults for anything
    the YAML omits.

    Args:
        raw: Parsed YAML dict.

    Returns:
        Validated EngineConfig instance.

    Raises:
        ConfigValidationError: If any field is unknown, mistyped or out of range.
    """
    errors: list[str] = []

    version = str(raw.get("version", "1.0"))

    cycle = _build_section(CycleConfig, raw.get("cycle"), "cycle", errors)
    prediction = _build_section(PredictionConfig, raw.get("prediction"), "prediction", errors)
    correlation = _build_section(
        CorrelationConfig, raw.get("correlation"), "correlation", errors
    )
    privacy = _build_section(PrivacyConfig, raw.get("privacy"), "privacy", errors)
    refresh = _build_section(RefreshConfig, raw.get("refresh"), "refresh", errors)

    # ── Range checks ──
    if cycle.rolling_average_cycles < 1:
        errors.append("cycle.rolling_average_cycles must be >= 1")
    if cycle.ovulation_days_before_midpoint < 0 or cycle.ovulation_days_after_midpoint < 0:
        errors.append("cycle.ovulation window offsets must be >= 0")
    if cycle.luteal_phase_days < 1:
        errors.append("cycle.luteal_phase_days must be >= 1")
    if cycle.min_cycle_days > cycle.max_cycle_days:
        errors.append("cycle.min_cycle_days must not exceed cycle.max_cycle_days")

    if not (0.0 <= prediction.confidence_floor <= prediction.confidence_ceiling <= 1.0):
        errors.append(
            "prediction confidence band must satisfy 0 <= floor <= ceiling <= 1, got "
            f"[{prediction.confidence_floor}, {prediction.confidence_ceiling}]"
        )
    if not (0.0 <= prediction.empty_history_confidence <= 1.0):
        errors.append("prediction.empty_history_confidence is out of range [0.0, 1.0]")
    if prediction.adaptive_timeout_seconds <= 0:
        errors.append("prediction.adaptive_timeout_seconds must be > 0")
    if prediction.max_disagreement_ratio <= 0:
        errors.append("prediction.max_disagreement_ratio must be > 0")

    if correlation.min_sample < 1:
        errors.append("correlation.min_sample must be >= 1")
    if correlation.threshold_multiplier <= 0:
        errors.append("correlation.threshold_multiplier must be > 0")
    if not (0.0 <= correlation.min_pair_strength <= 1.0):
        errors.append("correlation.min_pair_strength is out of range [0.0, 1.0]")

    if privacy.bucket_days < 1:
        errors.append("privacy.bucket_days must be >= 1")
    if refresh.widget_tick_seconds < 1:
        errors.append("refresh.widget_tick_seconds must be >= 1")

    if errors:
        raise ConfigValidationError(
            f"engine_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return EngineConfig(
        version=version,
        cycle=cycle,
        prediction=prediction,
        correlation=correlation,
        privacy=privacy,
        refresh=refresh,
        _raw=raw,
    )


def load_engine_config(path: Path | None = None) -> EngineConfig:
    """Load and validate the engine config from disk.

    Args:
        path: Override path to YAML. Uses the bundled engine_config.yaml by default.

    Returns:
        Validated EngineConfig instance.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded engine config v%s from %s", config.version, target)
    return config
