"""Configuration loading for the privacy and defense engines."""

from pathlib import Path
from typing import Any, Dict

import yaml

from fedshield.privacy.config import PrivacyConfig
from fedshield.robustness.config import DefenseConfig

DEFENSE_KEYS = (
    "outlier_threshold",
    "min_updates_for_detection",
    "byzantine_threshold",
    "use_krum",
    "accuracy_threshold",
    "loss_threshold",
    "min_client_score",
)


def load_config(config_path: str) -> Dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Configuration dictionary (empty for an empty file).

    Raises:
        FileNotFoundError: If config file doesn't exist.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        return yaml.safe_load(f) or {}


def save_config(config: Dict[str, Any], output_path: str) -> None:
    """Save configuration to YAML file.

    Args:
        config: Configuration dictionary to save.
        output_path: Path to save the YAML file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w") as f:
        yaml.dump(config, f, default_flow_style=False)


def build_privacy_config(config: Dict[str, Any]) -> PrivacyConfig:
    """Build a PrivacyConfig from the ``differential_privacy`` and
    ``secure_summation`` sections of a configuration dictionary.

    Missing sections or keys fall back to the PrivacyConfig defaults.

    Example:
        >>> build_privacy_config({"differential_privacy": {"epsilon": 2.0}})
        PrivacyConfig(enabled=True, epsilon=2.0, ...)
    """
    dp = config.get("differential_privacy") or {}
    secure = config.get("secure_summation") or {}
    defaults = PrivacyConfig()

    return PrivacyConfig(
        enabled=dp.get("enabled", defaults.enabled),
        epsilon=dp.get("epsilon", defaults.epsilon),
        delta=dp.get("delta", defaults.delta),
        clip_norm=dp.get("clip_norm", defaults.clip_norm),
        budget_epsilon=dp.get("budget_epsilon"),
        budget_delta=dp.get("budget_delta"),
        hard_stop_on_budget_exhaustion=dp.get("hard_stop", False),
        secure_summation_enabled=secure.get("enabled", defaults.secure_summation_enabled),
        secure_summation_threshold=secure.get("threshold", defaults.secure_summation_threshold),
    )


def build_defense_config(config: Dict[str, Any]) -> DefenseConfig:
    """Build a DefenseConfig from a configuration dictionary.

    Options are read from the ``defense`` section; top-level keys of the
    same name are accepted too, with the section taking precedence.
    """
    options = {key: config[key] for key in DEFENSE_KEYS if key in config}
    options.update(
        {key: value for key, value in (config.get("defense") or {}).items() if key in DEFENSE_KEYS}
    )
    return DefenseConfig(**options)
