"""Bounded FIFO history of recent client updates."""

from collections import deque
from typing import Deque, Iterator, List, Tuple

import numpy as np

from fedshield.update import ClientUpdate, LayerShapes


class UpdateHistory:
    """The most recent updates, oldest evicted first.

    Entries are private copies, so later changes to a caller's update do
    not leak into the reference distribution.

    Attributes:
        capacity: Maximum number of retained updates.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._updates: Deque[ClientUpdate] = deque(maxlen=capacity)

    def append(self, update: ClientUpdate) -> None:
        self._updates.append(update.copy())

    @property
    def is_full(self) -> bool:
        return len(self._updates) >= self.capacity

    def layer_shapes(self) -> LayerShapes:
        """Layer shapes of the retained updates (they all share one shape)."""
        if not self._updates:
            raise RuntimeError("Layer shapes requested from an empty history")
        return self._updates[0].layer_shapes()

    def layer_values(self, layer: int) -> np.ndarray:
        """All scalar values of one layer across the history, concatenated."""
        if not self._updates:
            raise RuntimeError("Statistics requested from an empty history")
        return np.concatenate([u.weights[layer] for u in self._updates])

    def layer_stack(self, layer: int) -> np.ndarray:
        """One layer of every retained update, stacked as [num_updates, layer_len]."""
        if not self._updates:
            raise RuntimeError("Statistics requested from an empty history")
        return np.stack([u.weights[layer] for u in self._updates])

    def metric_values(self) -> Tuple[np.ndarray, np.ndarray]:
        """Reported (accuracies, losses) across the history."""
        if not self._updates:
            raise RuntimeError("Statistics requested from an empty history")
        accuracies = np.array([u.metrics.accuracy for u in self._updates], dtype=np.float64)
        losses = np.array([u.metrics.loss for u in self._updates], dtype=np.float64)
        return accuracies, losses

    def updates(self) -> List[ClientUpdate]:
        return list(self._updates)

    def clear(self) -> None:
        self._updates.clear()

    def __len__(self) -> int:
        return len(self._updates)

    def __iter__(self) -> Iterator[ClientUpdate]:
        return iter(list(self._updates))

    def __repr__(self) -> str:
        return f"UpdateHistory({len(self._updates)}/{self.capacity})"
