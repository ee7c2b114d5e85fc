"""Tests for engine_config.yaml loading and validation."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from src.cycle_engine.config_loader import (
    ConfigValidationError,
    EngineConfig,
    _validate_and_build,
    load_engine_config,
)


class TestConfigLoading:
    """Tests for loading the bundled engine_config.yaml."""

    def test_load_default_config(self, engine_config: EngineConfig) -> None:
        assert engine_config.version == "1.0"
        assert engine_config.cycle.luteal_phase_days == 14
        assert engine_config.correlation.min_sample == 3

    def test_confidence_band(self, engine_config: EngineConfig) -> None:
        pc = engine_config.prediction
        assert pc.confidence_floor == pytest.approx(0.1)
        assert pc.confidence_ceiling == pytest.approx(0.9)
        assert pc.max_disagreement_ratio == pytest.approx(0.5)

    def test_bundled_values_match_defaults(self, engine_config: EngineConfig) -> None:
        """The YAML and the dataclass defaults describe the same engine."""
        defaults = EngineConfig()
        assert engine_config.cycle == defaults.cycle
        assert engine_config.prediction == defaults.prediction
        assert engine_config.correlation == defaults.correlation
        assert engine_config.privacy == defaults.privacy
        assert engine_config.refresh == defaults.refresh

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_engine_config(tmp_path / "missing.yaml")

    def test_custom_path(self, tmp_path: Path) -> None:
        path = tmp_path / "engine.yaml"
        path.write_text(
            textwrap.dedent(
                """
                version: "2.0"
                correlation:
                  min_sample: 5
                privacy:
                  bucket_days: 7
                """
            )
        )
        config = load_engine_config(path)
        assert config.version == "2.0"
        assert config.correlation.min_sample == 5
        assert config.privacy.bucket_days == 7
        # Omitted keys keep their defaults
        assert config.prediction.confidence_floor == pytest.approx(0.1)

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("cycle: [unclosed\n")
        with pytest.raises(ConfigValidationError, match="YAML parse error"):
            load_engine_config(path)

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigValidationError, match="mapping"):
            load_engine_config(path)


class TestValidation:
    """Tests for _validate_and_build."""

    def test_empty_dict_uses_defaults(self) -> None:
        config = _validate_and_build({})
        assert config.cycle.rolling_average_cycles == 5
        assert config.refresh.widget_tick_seconds == 1800

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ConfigValidationError, match="Unknown key 'cycle_len'"):
            _validate_and_build({"cycle": {"cycle_len": 30}})

    def test_section_must_be_mapping(self) -> None:
        with pytest.raises(ConfigValidationError, match="'prediction' must be a mapping"):
            _validate_and_build({"prediction": 0.5})

    def test_wrong_type_rejected(self) -> None:
        with pytest.raises(ConfigValidationError, match="correlation.min_sample must be a int"):
            _validate_and_build({"correlation": {"min_sample": 2.5}})

    def test_bool_field_requires_bool(self) -> None:
        with pytest.raises(ConfigValidationError, match="default_privacy_mode"):
            _validate_and_build({"privacy": {"default_privacy_mode": "yes"}})

    def test_inverted_confidence_band(self) -> None:
        with pytest.raises(ConfigValidationError, match="confidence band"):
            _validate_and_build(
                {"prediction": {"confidence_floor": 0.8, "confidence_ceiling": 0.2}}
            )

    def test_min_cycle_above_max(self) -> None:
        with pytest.raises(ConfigValidationError, match="min_cycle_days"):
            _validate_and_build({"cycle": {"min_cycle_days": 50}})

    def test_zero_bucket_rejected(self) -> None:
        with pytest.raises(ConfigValidationError, match="bucket_days"):
            _validate_and_build({"privacy": {"bucket_days": 0}})

    def test_errors_are_collected(self) -> None:
        with pytest.raises(ConfigValidationError, match="2 validation error"):
            _validate_and_build(
                {
                    "cycle": {"luteal_phase_days": 0},
                    "prediction": {"adaptive_timeout_seconds": 0},
                }
            )

    def test_int_given_for_float_field(self) -> None:
        config = _validate_and_build({"prediction": {"adaptive_timeout_seconds": 3}})
        assert config.prediction.adaptive_timeout_seconds == pytest.approx(3.0)
        assert isinstance(config.prediction.adaptive_timeout_seconds, float)
