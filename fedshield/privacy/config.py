"""Configuration for the differential privacy engine."""

from dataclasses import dataclass
from typing import Optional

from fedshield.exceptions import ConfigurationError


@dataclass
class PrivacyConfig:
    """Configuration for differential privacy and secure summation.

    Attributes:
        enabled: Whether clipping, noising and budget accounting are applied.
        epsilon: Per-update privacy parameter (lower = more private).
        delta: Per-update failure probability.
        clip_norm: Maximum L2 norm of each layer.
        budget_epsilon: Ceiling on a client's cumulative epsilon.
            Defaults to ``epsilon``.
        budget_delta: Ceiling on a client's cumulative delta.
            Defaults to ``delta``.
        hard_stop_on_budget_exhaustion: If True, refuse updates that would
            push a client over its ceiling instead of only alerting.
        secure_summation_enabled: Whether the secure summation hook runs.
        secure_summation_threshold: Minimum number of participants the
            secure summation protocol expects.
    """

    enabled: bool = True
    epsilon: float = 1.0
    delta: float = 1e-5
    clip_norm: float = 1.0
    budget_epsilon: Optional[float] = None
    budget_delta: Optional[float] = None
    hard_stop_on_budget_exhaustion: bool = False
    secure_summation_enabled: bool = False
    secure_summation_threshold: int = 2

    def __post_init__(self):
        """Validate configuration values.

        Epsilon and delta are always checked, since the noise scale is
        derived from them even when DP is disabled.
        """
        if self.epsilon <= 0:
            raise ConfigurationError(f"Epsilon must be positive, got {self.epsilon}")
        if not 0 < self.delta < 1:
            raise ConfigurationError(f"Delta must be in (0, 1), got {self.delta}")
        if self.clip_norm <= 0:
            raise ConfigurationError(f"Clip norm must be positive, got {self.clip_norm}")

        if self.budget_epsilon is None:
            self.budget_epsilon = self.epsilon
        if self.budget_delta is None:
            self.budget_delta = self.delta
        if self.budget_epsilon <= 0:
            raise ConfigurationError(
                f"Budget epsilon must be positive, got {self.budget_epsilon}"
            )
        if self.budget_delta <= 0:
            raise ConfigurationError(
                f"Budget delta must be positive, got {self.budget_delta}"
            )

        if self.secure_summation_threshold < 1:
            raise ConfigurationError(
                f"Secure summation threshold must be >= 1, "
                f"got {self.secure_summation_threshold}"
            )
