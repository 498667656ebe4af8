"""Statistical anomaly detection of client updates against recent history."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

import numpy as np
from loguru import logger

from fedshield.update import ClientUpdate
from .history import UpdateHistory


def zscores(values: np.ndarray, mean: float, std: float) -> np.ndarray:
    """Absolute z-scores of values against a reference mean and std.

    With a zero std a value equal to the mean scores 0 and any other
    value scores infinity.
    """
    diff = np.abs(np.asarray(values, dtype=np.float64) - mean)
    if std > 0:
        return diff / std
    return np.where(diff > 0, np.inf, 0.0)


def layer_statistics(history: UpdateHistory, layer: int) -> Tuple[float, float]:
    """Mean and population std of every historical value of one layer."""
    values = history.layer_values(layer)
    if values.size == 0:
        return 0.0, 0.0
    return float(np.mean(values)), float(np.std(values))


@dataclass
class AnomalyReport:
    """Outcome of the statistical anomaly check for one update.

    Attributes:
        is_anomalous: Whether any check fired.
        anomalies: Human-readable findings in detection order.
        details: Z-scores behind the findings.
    """

    is_anomalous: bool
    anomalies: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)


class StatisticalAnomalyDetector:
    """Flag updates whose weights or metrics are outliers w.r.t. history.

    For each layer the detector pools every historical value of that layer,
    computes its mean and std, and flags the layer at the first coordinate
    of the update whose z-score exceeds the threshold. Reported accuracy and
    loss are z-scored against their historical values in the same way.

    Attributes:
        threshold: Z-score cutoff.
    """

    def __init__(self, threshold: float = 3.0):
        if threshold <= 0:
            raise ValueError(f"Threshold must be positive, got {threshold}")
        self.threshold = threshold

    def detect(self, update: ClientUpdate, history: UpdateHistory) -> AnomalyReport:
        """Run the weight and metric checks.

        Args:
            update: Update under test (already appended to history).
            history: Reference distribution.

        Returns:
            AnomalyReport describing what fired.
        """
        if len(history) == 0:
            raise RuntimeError("Anomaly detection requires a non-empty history")

        anomalies: List[str] = []
        details: Dict[str, Any] = {"outlier_layers": []}

        for layer, layer_weights in enumerate(update.weights):
            mean, std = layer_statistics(history, layer)
            scores = zscores(layer_weights, mean, std)
            offending = np.flatnonzero(scores > self.threshold)
            if offending.size > 0:
                first = int(offending[0])
                anomalies.append(f"Weight outlier detected in layer {layer}")
                details["outlier_layers"].append(
                    {"layer": layer, "index": first, "zscore": float(scores[first])}
                )

        accuracies, losses = history.metric_values()
        accuracy_z = float(
            zscores(np.array([update.metrics.accuracy]), np.mean(accuracies), np.std(accuracies))[0]
        )
        loss_z = float(
            zscores(np.array([update.metrics.loss]), np.mean(losses), np.std(losses))[0]
        )
        details["accuracy_zscore"] = accuracy_z
        details["loss_zscore"] = loss_z

        if accuracy_z > self.threshold:
            anomalies.append("Accuracy anomaly detected")
        if loss_z > self.threshold:
            anomalies.append("Loss anomaly detected")

        if anomalies:
            logger.debug(
                f"StatisticalAnomalyDetector: {update.client_id} flagged with "
                f"{len(anomalies)} findings (threshold={self.threshold})"
            )

        return AnomalyReport(
            is_anomalous=bool(anomalies),
            anomalies=anomalies,
            details=details,
        )

    def __repr__(self) -> str:
        return f"StatisticalAnomalyDetector(threshold={self.threshold})"
