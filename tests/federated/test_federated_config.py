"""Tests for YAML configuration loading and engine config builders."""

import math

import pytest
import yaml

from fedshield.exceptions import ConfigurationError
from fedshield.federated import (
    build_defense_config,
    build_privacy_config,
    load_config,
    save_config,
)


class TestLoadConfig:
    """Tests for reading and writing YAML files."""

    def test_load_config(self, tmp_path):
        """Test loading a configuration file."""
        config_content = {
            "differential_privacy": {"enabled": True, "epsilon": 2.0, "delta": 1e-6},
            "secure_summation": {"enabled": True, "threshold": 3},
            "use_krum": True,
        }
        config_path = tmp_path / "config.yaml"
        with open(config_path, "w") as f:
            yaml.dump(config_content, f)

        config = load_config(str(config_path))

        assert config["differential_privacy"]["epsilon"] == 2.0
        assert config["use_krum"] is True

    def test_missing_file(self, tmp_path):
        """Test that a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_config(str(tmp_path / "missing.yaml"))

    def test_empty_file(self, tmp_path):
        """Test that an empty file yields an empty dictionary."""
        config_path = tmp_path / "empty.yaml"
        config_path.write_text("")
        assert load_config(str(config_path)) == {}

    def test_save_creates_parent_directories(self, tmp_path):
        """Test that save_config writes a file load_config can read back."""
        output_path = tmp_path / "nested" / "dir" / "config.yaml"
        save_config({"outlier_threshold": 2.5}, str(output_path))

        assert output_path.exists()
        assert load_config(str(output_path)) == {"outlier_threshold": 2.5}


class TestBuildPrivacyConfig:
    """Tests for building PrivacyConfig from a dictionary."""

    def test_defaults_for_empty_config(self):
        """Test that missing sections fall back to defaults."""
        config = build_privacy_config({})
        assert config.enabled is True
        assert config.epsilon == 1.0
        assert config.delta == 1e-5
        assert config.secure_summation_enabled is False

    def test_reads_sections(self):
        """Test that recognized options are picked up."""
        config = build_privacy_config(
            {
                "differential_privacy": {
                    "enabled": False,
                    "epsilon": 2.0,
                    "delta": 1e-6,
                    "clip_norm": 0.5,
                    "budget_epsilon": 20.0,
                    "hard_stop": True,
                },
                "secure_summation": {"enabled": True, "threshold": 4},
            }
        )
        assert config.enabled is False
        assert config.epsilon == 2.0
        assert config.delta == 1e-6
        assert config.clip_norm == 0.5
        assert config.budget_epsilon == 20.0
        assert config.budget_delta == 1e-6
        assert config.hard_stop_on_budget_exhaustion is True
        assert config.secure_summation_enabled is True
        assert config.secure_summation_threshold == 4

    def test_invalid_values_raise(self):
        """Test that invalid values surface as ConfigurationError."""
        with pytest.raises(ConfigurationError):
            build_privacy_config({"differential_privacy": {"epsilon": 0.0}})


class TestBuildDefenseConfig:
    """Tests for building DefenseConfig from a dictionary."""

    def test_top_level_keys(self):
        """Test that top-level options are read."""
        config = build_defense_config(
            {"outlier_threshold": 2.0, "use_krum": True, "unrelated": 1}
        )
        assert config.outlier_threshold == 2.0
        assert config.use_krum is True
        assert math.isinf(config.loss_threshold)

    def test_defense_section_takes_precedence(self):
        """Test that the defense section overrides top-level keys."""
        config = build_defense_config(
            {
                "outlier_threshold": 2.0,
                "defense": {"outlier_threshold": 4.0, "min_updates_for_detection": 6},
            }
        )
        assert config.outlier_threshold == 4.0
        assert config.min_updates_for_detection == 6
