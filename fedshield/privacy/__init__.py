"""Privacy module for differential privacy on client model updates."""

from .config import PrivacyConfig
from .engine import DifferentialPrivacyEngine, PrivacyMetrics
from .gaussian_mechanism import GaussianMechanism
from .privacy_accountant import PrivacyAccountant, PrivacyBudget, PrivacyExpenditure
from .secure_summation import SecureSummation
from .weight_sanitizer import SanitizationResult, WeightSanitizer, clip_layer

__all__ = [
    "PrivacyConfig",
    "DifferentialPrivacyEngine",
    "PrivacyMetrics",
    "GaussianMechanism",
    "PrivacyAccountant",
    "PrivacyBudget",
    "PrivacyExpenditure",
    "SecureSummation",
    "SanitizationResult",
    "WeightSanitizer",
    "clip_layer",
]
