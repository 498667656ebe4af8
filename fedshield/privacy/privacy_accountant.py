"""Per-client privacy budget ledger using basic composition."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional

from loguru import logger


@dataclass
class PrivacyBudget:
    """Cumulative privacy expenditure of one client.

    Attributes:
        client_id: Client the budget belongs to.
        epsilon: Total epsilon spent.
        delta: Total delta spent.
        last_update: Time of the most recent charge.
    """

    client_id: str
    epsilon: float = 0.0
    delta: float = 0.0
    last_update: datetime = field(default_factory=datetime.now)


@dataclass
class PrivacyExpenditure:
    """Record of a single privacy expenditure."""

    client_id: str
    epsilon: float
    delta: float
    round_num: int
    description: str = ""


class PrivacyAccountant:
    """Tracks cumulative privacy expenditure per client.

    Uses the basic composition theorem:
    - Total epsilon = sum of individual epsilons
    - Total delta = sum of individual deltas

    Budgets are only ever increased. The accountant is not thread-safe on
    its own; the owning engine serializes access.

    Attributes:
        target_epsilon: Ceiling on a client's cumulative epsilon.
        target_delta: Ceiling on a client's cumulative delta.
        expenditures: All recorded expenditures in order.
    """

    def __init__(self, target_epsilon: float, target_delta: float):
        """Initialize the privacy accountant.

        Args:
            target_epsilon: Maximum cumulative epsilon per client.
            target_delta: Maximum cumulative delta per client.
        """
        self.target_epsilon = target_epsilon
        self.target_delta = target_delta
        self.expenditures: List[PrivacyExpenditure] = []
        self._budgets: Dict[str, PrivacyBudget] = {}

        logger.info(
            f"PrivacyAccountant initialized with target epsilon={target_epsilon}, "
            f"delta={target_delta}"
        )

    def get_or_create(self, client_id: str) -> PrivacyBudget:
        """Get a client's budget record, creating an empty one on first touch."""
        budget = self._budgets.get(client_id)
        if budget is None:
            budget = PrivacyBudget(client_id=client_id)
            self._budgets[client_id] = budget
            logger.debug(f"Created privacy budget for client {client_id}")
        return budget

    def get_budget(self, client_id: str) -> Optional[PrivacyBudget]:
        """Get a snapshot of a client's budget, or None if never charged."""
        budget = self._budgets.get(client_id)
        return replace(budget) if budget is not None else None

    def record_expenditure(
        self,
        client_id: str,
        epsilon: float,
        delta: float,
        round_num: int,
        description: str = "",
    ) -> PrivacyBudget:
        """Charge a client for one privacy-protected release.

        Args:
            client_id: Client being charged.
            epsilon: Privacy parameter spent.
            delta: Failure probability spent.
            round_num: Training round number.
            description: Optional description of the operation.

        Returns:
            Snapshot of the client's updated budget.

        Raises:
            ValueError: If epsilon or delta is negative.
        """
        if epsilon < 0 or delta < 0:
            raise ValueError(
                f"Privacy expenditure must be non-negative, got epsilon={epsilon}, delta={delta}"
            )

        self.expenditures.append(
            PrivacyExpenditure(
                client_id=client_id,
                epsilon=epsilon,
                delta=delta,
                round_num=round_num,
                description=description,
            )
        )

        budget = self.get_or_create(client_id)
        budget.epsilon += epsilon
        budget.delta += delta
        budget.last_update = datetime.now()

        logger.debug(
            f"Recorded privacy expenditure: client={client_id}, round={round_num}, "
            f"epsilon={epsilon}, delta={delta}. "
            f"Total: epsilon={budget.epsilon:.4f}, delta={budget.delta:.2e}"
        )

        return replace(budget)

    def is_exceeded(self, client_id: str) -> bool:
        """Check whether a client's cumulative spend is over either ceiling."""
        budget = self._budgets.get(client_id)
        if budget is None:
            return False
        return budget.epsilon > self.target_epsilon or budget.delta > self.target_delta

    def would_exceed(self, client_id: str, epsilon: float, delta: float) -> bool:
        """Check whether charging a client would push it over either ceiling."""
        budget = self._budgets.get(client_id)
        spent_epsilon = budget.epsilon if budget else 0.0
        spent_delta = budget.delta if budget else 0.0
        return (
            spent_epsilon + epsilon > self.target_epsilon
            or spent_delta + delta > self.target_delta
        )

    def get_remaining_budget(self, client_id: str) -> float:
        """Get the remaining epsilon budget of a client (never negative)."""
        budget = self._budgets.get(client_id)
        spent = budget.epsilon if budget else 0.0
        return max(0.0, self.target_epsilon - spent)

    def get_report(self) -> Dict:
        """Get a privacy report covering every client.

        Returns:
            Dictionary with per-client totals and expenditures grouped by round.
        """
        report = {
            "target_epsilon": self.target_epsilon,
            "target_delta": self.target_delta,
            "num_expenditures": len(self.expenditures),
            "clients": {},
            "expenditures_by_round": {},
        }

        for client_id, budget in self._budgets.items():
            report["clients"][client_id] = {
                "epsilon": budget.epsilon,
                "delta": budget.delta,
                "remaining_budget": self.get_remaining_budget(client_id),
                "budget_exceeded": self.is_exceeded(client_id),
                "last_update": budget.last_update.isoformat(),
            }

        for exp in self.expenditures:
            round_key = f"round_{exp.round_num}"
            report["expenditures_by_round"].setdefault(round_key, []).append(
                {
                    "client_id": exp.client_id,
                    "epsilon": exp.epsilon,
                    "delta": exp.delta,
                    "description": exp.description,
                }
            )

        return report

    def __len__(self) -> int:
        return len(self._budgets)

    def __repr__(self) -> str:
        return (
            f"PrivacyAccountant(clients={len(self._budgets)}, "
            f"expenditures={len(self.expenditures)}, "
            f"target_epsilon={self.target_epsilon})"
        )
