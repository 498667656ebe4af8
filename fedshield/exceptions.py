"""Exception hierarchy shared by the privacy and robustness engines."""

from typing import Any, Dict, Optional


class FedShieldError(Exception):
    """Base class for all errors raised by fedshield.

    Attributes:
        details: Optional structured context about the failure.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(FedShieldError, ValueError):
    """Raised when an engine is constructed with an invalid configuration."""


class ShapeMismatchError(FedShieldError, ValueError):
    """Raised when weight arrays do not share the expected layer shapes."""


class PrivacyBudgetExceededError(FedShieldError):
    """Raised in hard-stop mode when a client has no privacy budget left."""
