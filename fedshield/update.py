"""Client update container and weight-array helpers."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Sequence, Tuple

import numpy as np

from fedshield.exceptions import ShapeMismatchError

Weights = List[np.ndarray]
LayerShapes = Tuple[int, ...]


@dataclass
class TrainingMetrics:
    """Metrics reported by a participant for its local training run.

    Attributes:
        loss: Final training loss (non-negative).
        accuracy: Local accuracy in [0, 1].
        training_duration: Wall-clock seconds spent training (non-negative).
    """

    loss: float
    accuracy: float
    training_duration: float = 0.0

    def __post_init__(self):
        """Validate metric ranges."""
        if self.loss < 0:
            raise ValueError(f"loss must be non-negative, got {self.loss}")
        if not 0.0 <= self.accuracy <= 1.0:
            raise ValueError(f"accuracy must be in [0, 1], got {self.accuracy}")
        if self.training_duration < 0:
            raise ValueError(
                f"training_duration must be non-negative, got {self.training_duration}"
            )


@dataclass
class ClientUpdate:
    """One participant's contribution to one training round.

    Weights are stored as a list of 1-D float64 arrays, one per layer.

    Attributes:
        client_id: Opaque identifier of the participant.
        round_num: Training round the update belongs to.
        weights: Per-layer weight vectors.
        metrics: Locally reported training metrics.
        timestamp: Time the update was produced.
    """

    client_id: str
    round_num: int
    weights: Weights
    metrics: TrainingMetrics
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        self.weights = as_weights(self.weights)

    @property
    def num_parameters(self) -> int:
        return int(sum(layer.size for layer in self.weights))

    def layer_shapes(self) -> LayerShapes:
        return layer_shapes(self.weights)

    def copy(self) -> "ClientUpdate":
        """Return a copy that shares no weight buffers with this update."""
        return ClientUpdate(
            client_id=self.client_id,
            round_num=self.round_num,
            weights=[layer.copy() for layer in self.weights],
            metrics=TrainingMetrics(
                loss=self.metrics.loss,
                accuracy=self.metrics.accuracy,
                training_duration=self.metrics.training_duration,
            ),
            timestamp=self.timestamp,
        )

    def __repr__(self) -> str:
        return (
            f"ClientUpdate(client_id={self.client_id!r}, round={self.round_num}, "
            f"layers={len(self.weights)}, params={self.num_parameters})"
        )


def as_weights(weights: Sequence[Sequence[float]]) -> Weights:
    """Coerce a sequence of layers into a list of 1-D float64 arrays."""
    return [np.asarray(layer, dtype=np.float64).reshape(-1) for layer in weights]


def layer_shapes(weights: Sequence[np.ndarray]) -> LayerShapes:
    """Get the per-layer lengths of a weight list."""
    return tuple(int(np.size(layer)) for layer in weights)


def check_shapes(
    weights: Sequence[np.ndarray],
    expected: LayerShapes,
    context: str = "update",
) -> None:
    """Check that weights match the expected per-layer lengths.

    Args:
        weights: Weight list to check.
        expected: Expected per-layer lengths.
        context: Short description used in the error message.

    Raises:
        ShapeMismatchError: If the layer count or any layer length differs.
    """
    actual = layer_shapes(weights)
    if len(actual) != len(expected):
        raise ShapeMismatchError(
            f"{context} has {len(actual)} layers, expected {len(expected)}",
            details={"actual": actual, "expected": expected},
        )
    for layer, (got, want) in enumerate(zip(actual, expected)):
        if got != want:
            raise ShapeMismatchError(
                f"{context} layer {layer} has {got} values, expected {want}",
                details={"layer": layer, "actual": actual, "expected": expected},
            )


def flatten(weights: Sequence[np.ndarray]) -> np.ndarray:
    """Concatenate all layers into a single 1-D vector."""
    if not weights:
        return np.zeros(0, dtype=np.float64)
    return np.concatenate([np.asarray(layer, dtype=np.float64).reshape(-1) for layer in weights])


def rms_distance(
    weights_a: Sequence[np.ndarray],
    weights_b: Sequence[np.ndarray],
) -> float:
    """Root-mean-square coordinate distance between two weight lists.

    Computes sqrt(sum((a - b)^2) / num_coordinates). Both lists must share
    layer shapes; callers check this first.

    Returns:
        The RMS distance, or 0.0 when there are no coordinates.
    """
    a = flatten(weights_a)
    b = flatten(weights_b)
    if a.size == 0:
        return 0.0
    return float(np.sqrt(np.mean((a - b) ** 2)))
