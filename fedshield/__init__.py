"""Privacy and robustness defenses for federated learning coordinators."""

from .events import Alert, AlertDispatcher, AlertKind
from .exceptions import (
    ConfigurationError,
    FedShieldError,
    PrivacyBudgetExceededError,
    ShapeMismatchError,
)
from .update import ClientUpdate, TrainingMetrics

__version__ = "0.1.0"

__all__ = [
    "Alert",
    "AlertDispatcher",
    "AlertKind",
    "ConfigurationError",
    "FedShieldError",
    "PrivacyBudgetExceededError",
    "ShapeMismatchError",
    "ClientUpdate",
    "TrainingMetrics",
]
