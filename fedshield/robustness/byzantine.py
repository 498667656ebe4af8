"""Behavioral Byzantine-suspicion scoring of client updates."""

from dataclasses import dataclass, field
from typing import Dict

import numpy as np
from loguru import logger

from fedshield.update import ClientUpdate, rms_distance
from .anomaly import layer_statistics, zscores
from .history import UpdateHistory

OPPOSITE_SIGN_WEIGHT = 0.5
MAGNITUDE_WEIGHT = 0.3
DIVERGENCE_WEIGHT = 0.2

OPPOSITE_SIGN_FRACTION = 0.8
MAGNITUDE_FRACTION = 0.1


@dataclass
class ByzantineReport:
    """Instantaneous suspicion of one update.

    Attributes:
        suspicion: Weighted sum of the signals that fired, in [0, 1].
        signals: Which of the three signals fired.
        details: Measured fractions and distances.
    """

    suspicion: float
    signals: Dict[str, bool] = field(default_factory=dict)
    details: Dict[str, float] = field(default_factory=dict)


class ByzantineDetector:
    """Score how Byzantine an update looks relative to recent history.

    Three independent signals contribute to the score:
    - opposite_sign (0.5): more than 80% of coordinates have the opposite
      sign of the per-coordinate historical mean.
    - magnitude (0.3): more than 10% of coordinates have an absolute value
      whose z-score against the layer statistics exceeds 2x the threshold.
    - divergence (0.2): the mean RMS distance to the historical updates
      exceeds 3x the threshold.

    Attributes:
        outlier_threshold: Base z-score threshold the cutoffs derive from.
    """

    def __init__(self, outlier_threshold: float = 3.0):
        if outlier_threshold <= 0:
            raise ValueError(f"Threshold must be positive, got {outlier_threshold}")
        self.outlier_threshold = outlier_threshold

    def score(self, update: ClientUpdate, history: UpdateHistory) -> ByzantineReport:
        """Compute the instantaneous suspicion score of an update.

        Args:
            update: Update under test (already appended to history).
            history: Reference distribution.

        Returns:
            ByzantineReport with the weighted score and its components.
        """
        if len(history) == 0:
            raise RuntimeError("Byzantine scoring requires a non-empty history")

        opposite_fraction = self._opposite_sign_fraction(update, history)
        magnitude_fraction = self._magnitude_anomaly_fraction(update, history)
        mean_divergence = self._mean_divergence(update, history)

        signals = {
            "opposite_sign": opposite_fraction > OPPOSITE_SIGN_FRACTION,
            "magnitude": magnitude_fraction > MAGNITUDE_FRACTION,
            "divergence": mean_divergence > 3 * self.outlier_threshold,
        }
        suspicion = (
            OPPOSITE_SIGN_WEIGHT * signals["opposite_sign"]
            + MAGNITUDE_WEIGHT * signals["magnitude"]
            + DIVERGENCE_WEIGHT * signals["divergence"]
        )

        logger.debug(
            f"ByzantineDetector: {update.client_id} suspicion={suspicion:.2f} "
            f"(opposite={opposite_fraction:.3f}, magnitude={magnitude_fraction:.3f}, "
            f"divergence={mean_divergence:.4f})"
        )

        return ByzantineReport(
            suspicion=min(1.0, float(suspicion)),
            signals=signals,
            details={
                "opposite_sign_fraction": opposite_fraction,
                "magnitude_anomaly_fraction": magnitude_fraction,
                "mean_divergence": mean_divergence,
            },
        )

    def _opposite_sign_fraction(self, update: ClientUpdate, history: UpdateHistory) -> float:
        opposite = 0
        total = 0
        for layer, layer_weights in enumerate(update.weights):
            mean_gradient = history.layer_stack(layer).mean(axis=0)
            opposite += int(np.sum(np.sign(layer_weights) * np.sign(mean_gradient) < 0))
            total += layer_weights.size
        return opposite / total if total else 0.0

    def _magnitude_anomaly_fraction(self, update: ClientUpdate, history: UpdateHistory) -> float:
        anomalous = 0
        total = 0
        for layer, layer_weights in enumerate(update.weights):
            mean, std = layer_statistics(history, layer)
            scores = zscores(np.abs(layer_weights), mean, std)
            anomalous += int(np.sum(scores > 2 * self.outlier_threshold))
            total += layer_weights.size
        return anomalous / total if total else 0.0

    def _mean_divergence(self, update: ClientUpdate, history: UpdateHistory) -> float:
        distances = [rms_distance(update.weights, past.weights) for past in history]
        return float(np.mean(distances))

    def __repr__(self) -> str:
        return f"ByzantineDetector(outlier_threshold={self.outlier_threshold})"
