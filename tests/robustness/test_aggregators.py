"""Tests for Krum robust selection."""

import numpy as np
import pytest

from fedshield import ClientUpdate, TrainingMetrics
from fedshield.robustness import KrumSelector, pairwise_distances


def make_update(client_id, weights):
    return ClientUpdate(
        client_id=client_id,
        round_num=1,
        weights=weights,
        metrics=TrainingMetrics(loss=0.1, accuracy=0.9),
    )


def clustered_updates(num_honest, num_far=1):
    updates = [
        make_update(f"honest_{i}", [np.full(4, 0.01 * i), np.full(2, 0.01 * i)])
        for i in range(num_honest)
    ]
    updates += [
        make_update(f"far_{i}", [np.full(4, 100.0), np.full(2, 100.0)])
        for i in range(num_far)
    ]
    return updates


class TestPairwiseDistances:
    """Tests for the RMS distance matrix."""

    def test_symmetric_with_zero_diagonal(self):
        """Test the shape and symmetry of the distance matrix."""
        updates = clustered_updates(3)
        distances = pairwise_distances(updates)

        assert distances.shape == (4, 4)
        np.testing.assert_allclose(distances, distances.T)
        np.testing.assert_array_equal(np.diag(distances), np.zeros(4))

    def test_rms_distance_value(self):
        """Test that distances are RMS over all coordinates."""
        a = make_update("a", [np.zeros(3), np.zeros(1)])
        b = make_update("b", [np.full(3, 2.0), np.full(1, 2.0)])
        assert pairwise_distances([a, b])[0, 1] == pytest.approx(2.0)


class TestKrumSelector:
    """Tests for multi-Krum selection."""

    @pytest.mark.parametrize("n", [0, 1, 2, 3])
    def test_too_few_updates_keeps_all(self, n):
        """Test that m <= 0 returns every update unfiltered."""
        updates = clustered_updates(n, num_far=0)
        selected, stats = KrumSelector().select(updates)

        assert selected == updates
        assert stats["num_selected"] == n

    def test_far_update_rejected(self):
        """Test that a distant update does not survive selection."""
        updates = clustered_updates(4)
        selected, stats = KrumSelector().select(updates)

        assert stats["assumed_byzantine"] == 2
        assert stats["num_selected"] == 1
        assert len(selected) == 1
        assert selected[0].client_id.startswith("honest_")

    def test_keeps_m_updates(self):
        """Test that m = n - f - 2 updates are kept."""
        updates = clustered_updates(5, num_far=2)
        selected, stats = KrumSelector().select(updates)

        # n=7, f=3, m=2
        assert len(selected) == 2
        assert all(u.client_id.startswith("honest_") for u in selected)
        assert stats["scores"][5] > max(stats["scores"][:5])

    def test_ties_broken_by_index(self):
        """Test that equal scores keep the earlier updates."""
        updates = [make_update(f"c{i}", [np.zeros(3)]) for i in range(6)]
        selected, stats = KrumSelector().select(updates)

        # n=6, f=2, m=2
        assert stats["selected_indices"] == [0, 1]
        assert [u.client_id for u in selected] == ["c0", "c1"]

    def test_input_not_modified(self):
        """Test that the input list is left untouched."""
        updates = clustered_updates(4)
        before = list(updates)
        KrumSelector().select(updates)
        assert updates == before
