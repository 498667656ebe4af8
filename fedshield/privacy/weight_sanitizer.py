"""Per-layer L2 clipping and noising of model weights."""

from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np
from loguru import logger

from fedshield.update import Weights
from .gaussian_mechanism import GaussianMechanism


def clip_layer(layer: np.ndarray, clip_norm: float) -> Tuple[np.ndarray, float]:
    """Clip a layer to a maximum L2 norm.

    Layers whose norm is already within ``clip_norm`` (including empty
    layers, whose norm is 0) are returned as-is.

    Args:
        layer: 1-D weight vector.
        clip_norm: Maximum allowed L2 norm.

    Returns:
        Tuple of (clipped layer, norm before clipping).
    """
    norm = float(np.linalg.norm(layer))
    if norm <= clip_norm:
        return layer, norm
    return layer * (clip_norm / norm), norm


@dataclass
class SanitizationResult:
    """Outcome of sanitizing one weight list.

    Attributes:
        weights: Clipped and noised layers.
        max_norm: Largest pre-clip layer norm.
        layers_clipped: Number of layers that exceeded the clip norm.
    """

    weights: Weights
    max_norm: float
    layers_clipped: int


class WeightSanitizer:
    """Applies clipping followed by Gaussian noise to each layer.

    Attributes:
        clip_norm: Maximum L2 norm per layer.
        mechanism: Gaussian mechanism for noise addition.
    """

    def __init__(self, clip_norm: float, mechanism: GaussianMechanism):
        if clip_norm <= 0:
            raise ValueError(f"Clip norm must be positive, got {clip_norm}")
        self.clip_norm = clip_norm
        self.mechanism = mechanism
        self._stats: Dict = {
            "num_sanitizations": 0,
            "layers_processed": 0,
            "layers_clipped": 0,
        }

    def sanitize(self, weights: Weights) -> SanitizationResult:
        """Clip and noise every layer.

        Args:
            weights: Per-layer weight vectors. Not modified.

        Returns:
            SanitizationResult with new weight arrays.
        """
        sanitized: Weights = []
        max_norm = 0.0
        num_clipped = 0

        for layer in weights:
            clipped, norm = clip_layer(layer, self.clip_norm)
            max_norm = max(max_norm, norm)
            if norm > self.clip_norm:
                num_clipped += 1
            sanitized.append(self.mechanism.add_noise(clipped))

        self._stats["num_sanitizations"] += 1
        self._stats["layers_processed"] += len(weights)
        self._stats["layers_clipped"] += num_clipped

        logger.debug(
            f"Sanitized {len(weights)} layers: clipped={num_clipped}, "
            f"max_norm={max_norm:.4f}, sigma={self.mechanism.get_sigma():.4f}"
        )

        return SanitizationResult(
            weights=sanitized,
            max_norm=max_norm,
            layers_clipped=num_clipped,
        )

    def get_stats(self) -> Dict:
        return self._stats.copy()

    def __repr__(self) -> str:
        return (
            f"WeightSanitizer(clip_norm={self.clip_norm}, "
            f"sigma={self.mechanism.get_sigma():.4f})"
        )
