"""Robust selection of client updates for Byzantine-resilient aggregation."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np
from loguru import logger

from fedshield.update import ClientUpdate, rms_distance


def pairwise_distances(updates: Sequence[ClientUpdate]) -> np.ndarray:
    """Symmetric matrix of RMS distances between every pair of updates."""
    n = len(updates)
    distances = np.zeros((n, n))
    for i in range(n):
        for j in range(i + 1, n):
            d = rms_distance(updates[i].weights, updates[j].weights)
            distances[i, j] = d
            distances[j, i] = d
    return distances


class RobustSelector(ABC):
    """Base class for methods that pick a trustworthy subset of updates."""

    @abstractmethod
    def select(
        self, updates: List[ClientUpdate]
    ) -> Tuple[List[ClientUpdate], Dict[str, Any]]:
        """Select the updates safe to aggregate.

        Args:
            updates: One round's updates, all sharing layer shapes.

        Returns:
            Tuple of (selected updates, stats_dict).
        """
        pass


class KrumSelector(RobustSelector):
    """Multi-Krum selection (Blanchard et al., NeurIPS 2017).

    With n updates the selector assumes f = (n - 1) // 2 Byzantine
    participants and keeps m = n - f - 2 updates. Each update is scored by
    the sum of its m smallest distances to the other updates; the m updates
    with the lowest scores survive. Honest updates cluster together, so
    outliers accumulate large scores.

    When m <= 0 there are too few participants for the guarantee to hold
    and every update is kept.
    """

    def select(
        self, updates: List[ClientUpdate]
    ) -> Tuple[List[ClientUpdate], Dict[str, Any]]:
        n = len(updates)
        f = (n - 1) // 2
        m = n - f - 2

        stats: Dict[str, Any] = {
            "selection_method": "krum",
            "num_updates": n,
            "assumed_byzantine": max(f, 0),
            "num_selected": n,
            "scores": [],
            "selected_indices": list(range(n)),
        }

        if m <= 0:
            logger.debug(f"Krum: {n} updates are too few for selection, keeping all")
            return list(updates), stats

        distances = pairwise_distances(updates)

        scores = np.zeros(n)
        for i in range(n):
            others = np.delete(distances[i], i)
            scores[i] = np.sum(np.sort(others, kind="stable")[:m])

        order = np.argsort(scores, kind="stable")
        selected_indices = [int(i) for i in order[:m]]

        stats["num_selected"] = m
        stats["scores"] = scores.tolist()
        stats["selected_indices"] = selected_indices

        logger.debug(
            f"Krum: kept {m} of {n} updates (f={f}), "
            f"rejected {[updates[i].client_id for i in order[m:]]}"
        )

        return [updates[i] for i in selected_indices], stats

    def __repr__(self) -> str:
        return "KrumSelector()"
