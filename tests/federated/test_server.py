"""Integration tests for FederatedServer rounds."""

import numpy as np
import pytest

from fedshield import AlertKind, ClientUpdate, TrainingMetrics
from fedshield.federated import FederatedServer, RoundResult
from fedshield.privacy import PrivacyConfig
from fedshield.robustness import DefenseConfig, ModelPoisoningAttack

GLOBAL_WEIGHTS = [np.zeros(4), np.zeros(3)]


def make_round(round_num, num_clients=5):
    return [
        ClientUpdate(
            client_id=f"client_{i}",
            round_num=round_num,
            weights=[np.full(4, 0.5 + 0.001 * i), np.full(3, -0.2 - 0.001 * i)],
            metrics=TrainingMetrics(loss=0.3, accuracy=0.85, training_duration=1.0),
        )
        for i in range(num_clients)
    ]


class TestFederatedServerInit:
    """Tests for FederatedServer construction."""

    def test_engines_initialized(self):
        """Test that both engines are built and the DP engine activated."""
        alerts = []
        server = FederatedServer(PrivacyConfig(), DefenseConfig(), listeners=[alerts.append])

        assert server.dp_engine.initialized
        assert server.defense_engine.config.min_updates_for_detection == 10
        assert alerts[0].kind == AlertKind.INITIALIZED

    def test_invalid_max_workers(self):
        """Test that max_workers must be positive."""
        with pytest.raises(ValueError, match="max_workers"):
            FederatedServer(PrivacyConfig(), DefenseConfig(), max_workers=0)


class TestRunRound:
    """Tests for complete rounds."""

    def test_first_round_end_to_end(self):
        """Test that all five clients pass the first round and spend epsilon once."""
        server = FederatedServer(
            PrivacyConfig(epsilon=1.0, delta=1e-5),
            DefenseConfig(min_updates_for_detection=6),
            seed=0,
        )

        result = server.run_round(make_round(1), GLOBAL_WEIGHTS)

        assert isinstance(result, RoundResult)
        assert result.round_num == 1
        assert result.accepted_ids == [f"client_{i}" for i in range(5)]
        assert result.rejected == {}
        assert all(v.is_valid and v.anomalies == [] for v in result.validation.values())
        for i in range(5):
            budget = server.dp_engine.get_privacy_budget(f"client_{i}")
            assert budget.epsilon == 1.0
            assert result.privacy_metrics[f"client_{i}"].epsilon == 1.0

    def test_round_alerts(self):
        """Test that the round collects the alerts of both engines."""
        server = FederatedServer(
            PrivacyConfig(), DefenseConfig(min_updates_for_detection=6), seed=0
        )

        result = server.run_round(make_round(1), GLOBAL_WEIGHTS)

        kinds = [a.kind for a in result.alerts]
        assert kinds.count(AlertKind.UPDATES_FILTERED) == 1
        assert kinds.count(AlertKind.UPDATE_PROCESSED) == 5
        assert AlertKind.INITIALIZED not in kinds

    def test_malformed_update_rejected(self):
        """Test that a structurally broken update is rejected without aborting."""
        server = FederatedServer(
            PrivacyConfig(), DefenseConfig(min_updates_for_detection=6), seed=0
        )
        updates = make_round(1, num_clients=3)
        updates.append(
            ClientUpdate(
                client_id="broken",
                round_num=1,
                weights=[np.zeros(2)],
                metrics=TrainingMetrics(loss=0.3, accuracy=0.85),
            )
        )

        result = server.run_round(updates, GLOBAL_WEIGHTS)

        assert len(result.accepted) == 3
        assert result.rejected["broken"].startswith("structural error")
        assert "broken" not in result.validation

    def test_hard_stop_rejects_second_round(self):
        """Test that exhausted budgets reject updates in hard-stop mode."""
        server = FederatedServer(
            PrivacyConfig(epsilon=1.0, hard_stop_on_budget_exhaustion=True),
            DefenseConfig(min_updates_for_detection=6),
            seed=0,
        )
        server.run_round(make_round(1), GLOBAL_WEIGHTS)

        result = server.run_round(make_round(2), GLOBAL_WEIGHTS)

        assert result.accepted == []
        assert len(result.rejected) == 5
        assert all(r.startswith("privacy budget exhausted") for r in result.rejected.values())
        assert all(v.is_valid for v in result.validation.values())

    def test_warn_only_second_round(self):
        """Test that the default policy keeps accepting while alerting."""
        server = FederatedServer(
            PrivacyConfig(epsilon=1.0), DefenseConfig(min_updates_for_detection=6), seed=0
        )
        server.run_round(make_round(1), GLOBAL_WEIGHTS)

        result = server.run_round(make_round(2), GLOBAL_WEIGHTS)

        assert len(result.accepted) == 5
        exceeded = [a for a in result.alerts if a.kind == AlertKind.PRIVACY_BUDGET_EXCEEDED]
        assert len(exceeded) == 5

    def test_parallel_privatization(self):
        """Test that several workers give the same accepted set and charges."""
        server = FederatedServer(
            PrivacyConfig(epsilon=1.0, budget_epsilon=10.0),
            DefenseConfig(min_updates_for_detection=6),
            max_workers=4,
            seed=0,
        )

        result = server.run_round(make_round(1), GLOBAL_WEIGHTS)

        assert result.accepted_ids == [f"client_{i}" for i in range(5)]
        assert server.get_stats()["privacy"]["updates_processed"] == 5

    def test_krum_filters_poisoned_update(self):
        """Test that a scaled update is dropped by Krum selection."""
        server = FederatedServer(
            PrivacyConfig(budget_epsilon=10.0),
            DefenseConfig(min_updates_for_detection=20, use_krum=True),
            seed=0,
        )
        updates = ModelPoisoningAttack(attack_type="scaling", scale_factor=100.0).apply(
            make_round(1, num_clients=7), [6]
        )

        result = server.run_round(updates, GLOBAL_WEIGHTS)

        assert "client_6" not in result.accepted_ids
        assert result.rejected["client_6"] == "filtered by defense aggregation"

    def test_stats(self):
        """Test per-round statistics."""
        server = FederatedServer(
            PrivacyConfig(), DefenseConfig(min_updates_for_detection=6), seed=0
        )
        server.run_round(make_round(1), GLOBAL_WEIGHTS)

        stats = server.get_stats()

        assert stats["rounds"][0]["num_received"] == 5
        assert stats["rounds"][0]["num_accepted"] == 5
        assert stats["defense"]["updates_validated"] == 5
        assert "FederatedServer(rounds=1" in repr(server)
