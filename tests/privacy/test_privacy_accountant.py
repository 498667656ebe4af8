"""Tests for PrivacyAccountant class."""

import pytest

from fedshield.privacy import PrivacyAccountant


class TestPrivacyAccountantInit:
    """Tests for PrivacyAccountant initialization."""

    def test_init_with_target(self):
        """Test initialization with a target budget."""
        accountant = PrivacyAccountant(target_epsilon=10.0, target_delta=1e-4)
        assert accountant.target_epsilon == 10.0
        assert accountant.target_delta == 1e-4
        assert len(accountant.expenditures) == 0
        assert len(accountant) == 0


class TestRecordExpenditure:
    """Tests for recording privacy expenditures."""

    def test_record_single_expenditure(self):
        """Test recording a single expenditure."""
        accountant = PrivacyAccountant(target_epsilon=10.0, target_delta=1e-4)
        budget = accountant.record_expenditure("client_0", epsilon=1.0, delta=1e-5, round_num=1)

        assert len(accountant.expenditures) == 1
        assert accountant.expenditures[0].client_id == "client_0"
        assert accountant.expenditures[0].round_num == 1
        assert budget.epsilon == 1.0
        assert budget.delta == 1e-5

    def test_composition_per_client(self):
        """Test basic composition: totals are sums per client."""
        accountant = PrivacyAccountant(target_epsilon=10.0, target_delta=1e-4)
        accountant.record_expenditure("a", epsilon=1.0, delta=1e-5, round_num=1)
        accountant.record_expenditure("a", epsilon=2.0, delta=1e-5, round_num=2)
        accountant.record_expenditure("b", epsilon=0.5, delta=1e-6, round_num=2)

        assert accountant.get_budget("a").epsilon == pytest.approx(3.0)
        assert accountant.get_budget("a").delta == pytest.approx(2e-5)
        assert accountant.get_budget("b").epsilon == pytest.approx(0.5)
        assert len(accountant) == 2

    def test_budget_never_decreases(self):
        """Test that recorded totals are monotonically non-decreasing."""
        accountant = PrivacyAccountant(target_epsilon=10.0, target_delta=1e-4)
        previous = 0.0
        for round_num, epsilon in enumerate([0.5, 0.0, 1.5, 0.25]):
            budget = accountant.record_expenditure("a", epsilon, 0.0, round_num)
            assert budget.epsilon >= previous
            previous = budget.epsilon

    def test_negative_expenditure_rejected(self):
        """Test that negative charges raise ValueError."""
        accountant = PrivacyAccountant(target_epsilon=10.0, target_delta=1e-4)
        with pytest.raises(ValueError, match="non-negative"):
            accountant.record_expenditure("a", epsilon=-1.0, delta=0.0, round_num=1)

    def test_get_budget_returns_snapshot(self):
        """Test that mutating a returned budget does not change the ledger."""
        accountant = PrivacyAccountant(target_epsilon=10.0, target_delta=1e-4)
        accountant.record_expenditure("a", epsilon=1.0, delta=1e-5, round_num=1)

        snapshot = accountant.get_budget("a")
        snapshot.epsilon = 99.0

        assert accountant.get_budget("a").epsilon == 1.0

    def test_unknown_client(self):
        """Test that unseen clients have no budget record."""
        accountant = PrivacyAccountant(target_epsilon=10.0, target_delta=1e-4)
        assert accountant.get_budget("ghost") is None
        assert not accountant.is_exceeded("ghost")


class TestBudgetLimits:
    """Tests for budget ceilings."""

    def test_is_exceeded(self):
        """Test exceeding either ceiling."""
        accountant = PrivacyAccountant(target_epsilon=2.0, target_delta=1e-5)
        accountant.record_expenditure("a", epsilon=2.0, delta=1e-5, round_num=1)
        assert not accountant.is_exceeded("a")

        accountant.record_expenditure("a", epsilon=0.1, delta=0.0, round_num=2)
        assert accountant.is_exceeded("a")

    def test_delta_ceiling(self):
        """Test that the delta ceiling is enforced independently."""
        accountant = PrivacyAccountant(target_epsilon=100.0, target_delta=1e-5)
        accountant.record_expenditure("a", epsilon=0.1, delta=2e-5, round_num=1)
        assert accountant.is_exceeded("a")

    def test_would_exceed(self):
        """Test projection of a charge against the ceilings."""
        accountant = PrivacyAccountant(target_epsilon=2.0, target_delta=1e-4)
        assert not accountant.would_exceed("a", epsilon=2.0, delta=0.0)
        accountant.record_expenditure("a", epsilon=1.5, delta=0.0, round_num=1)
        assert accountant.would_exceed("a", epsilon=1.0, delta=0.0)

    def test_remaining_budget(self):
        """Test remaining epsilon, floored at zero."""
        accountant = PrivacyAccountant(target_epsilon=5.0, target_delta=1e-4)
        assert accountant.get_remaining_budget("a") == 5.0

        accountant.record_expenditure("a", epsilon=3.0, delta=0.0, round_num=1)
        assert accountant.get_remaining_budget("a") == 2.0

        accountant.record_expenditure("a", epsilon=4.0, delta=0.0, round_num=2)
        assert accountant.get_remaining_budget("a") == 0.0


class TestPrivacyReport:
    """Tests for privacy report generation."""

    def test_report_structure(self):
        """Test that the report covers clients and rounds."""
        accountant = PrivacyAccountant(target_epsilon=1.0, target_delta=1e-5)
        accountant.record_expenditure("a", epsilon=1.0, delta=1e-5, round_num=1)
        accountant.record_expenditure("a", epsilon=1.0, delta=1e-5, round_num=2)
        accountant.record_expenditure("b", epsilon=1.0, delta=1e-5, round_num=2)

        report = accountant.get_report()

        assert report["target_epsilon"] == 1.0
        assert report["num_expenditures"] == 3
        assert report["clients"]["a"]["epsilon"] == 2.0
        assert report["clients"]["a"]["budget_exceeded"] is True
        assert report["clients"]["b"]["budget_exceeded"] is False
        assert len(report["expenditures_by_round"]["round_2"]) == 2
