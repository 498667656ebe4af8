"""Gaussian mechanism for differential privacy."""

import math
from typing import Optional

import numpy as np
from loguru import logger


class GaussianMechanism:
    """Gaussian mechanism for (epsilon, delta)-differential privacy.

    Adds zero-mean Gaussian noise calibrated with the standard formula
    from Dwork & Roth. Noise samples are drawn with the Box-Muller
    transform from two independent uniform draws per coordinate.

    Attributes:
        epsilon: Privacy parameter (lower = more private).
        delta: Failure probability.
        sigma: Computed noise scale.
    """

    def __init__(
        self,
        epsilon: float,
        delta: float,
        seed: Optional[int] = None,
    ):
        """Initialize the Gaussian mechanism.

        Args:
            epsilon: Privacy parameter. Must be positive.
            delta: Failure probability. Must be in (0, 1).
            seed: Optional seed for the noise generator.

        Raises:
            ValueError: If parameters are out of valid range.
        """
        if epsilon <= 0:
            raise ValueError(f"Epsilon must be positive, got {epsilon}")
        if not 0 < delta < 1:
            raise ValueError(f"Delta must be in (0, 1), got {delta}")

        self.epsilon = epsilon
        self.delta = delta
        self.sigma = self._compute_sigma()
        self._rng = np.random.default_rng(seed)

        logger.debug(
            f"GaussianMechanism initialized: epsilon={epsilon}, "
            f"delta={delta}, sigma={self.sigma:.4f}"
        )

    def _compute_sigma(self) -> float:
        """Compute the noise scale sigma.

        sigma = sqrt(2 * ln(1.25 / delta)) / epsilon

        Returns:
            Noise scale sigma.
        """
        return math.sqrt(2 * math.log(1.25 / self.delta)) / self.epsilon

    def sample(self, size: int) -> np.ndarray:
        """Draw standard-deviation-sigma noise with Box-Muller.

        Args:
            size: Number of samples.

        Returns:
            Array of ``size`` noise values with mean 0 and std sigma.
        """
        # 1 - U maps [0, 1) onto (0, 1] so the log is always finite
        u1 = 1.0 - self._rng.random(size)
        u2 = self._rng.random(size)
        z0 = np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * math.pi * u2)
        return self.sigma * z0

    def add_noise(self, data: np.ndarray) -> np.ndarray:
        """Add calibrated Gaussian noise to data.

        Args:
            data: Input data array of any shape.

        Returns:
            New array with noise added; the input is not modified.
        """
        data = np.asarray(data, dtype=np.float64)
        noise = self.sample(data.size).reshape(data.shape)
        return data + noise

    def get_sigma(self) -> float:
        return self.sigma

    def __repr__(self) -> str:
        return (
            f"GaussianMechanism(epsilon={self.epsilon}, delta={self.delta}, "
            f"sigma={self.sigma:.4f})"
        )
