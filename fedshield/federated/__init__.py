"""Federated round coordination on top of the privacy and robustness engines."""

from .config import (
    build_defense_config,
    build_privacy_config,
    load_config,
    save_config,
)
from .server import FederatedServer, RoundResult
from .setup import set_random_seeds, setup_logging

__all__ = [
    "build_defense_config",
    "build_privacy_config",
    "load_config",
    "save_config",
    "FederatedServer",
    "RoundResult",
    "set_random_seeds",
    "setup_logging",
]
