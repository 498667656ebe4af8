"""Federated server running the defense and privacy engines over a round."""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from loguru import logger

from fedshield.events import Alert, AlertListener
from fedshield.exceptions import PrivacyBudgetExceededError, ShapeMismatchError
from fedshield.privacy import DifferentialPrivacyEngine, PrivacyConfig, PrivacyMetrics
from fedshield.robustness import DefenseConfig, RobustAggregationEngine, ValidationResult
from fedshield.update import ClientUpdate


@dataclass
class RoundResult:
    """Outcome of one round.

    Attributes:
        round_num: Round the updates belong to.
        accepted: Privatized updates that may be aggregated.
        validation: Validation verdict per client id.
        privacy_metrics: Privacy transform per accepted client id.
        rejected: Reason per rejected client id.
        alerts: Every alert raised by either engine during the round.
    """

    round_num: int
    accepted: List[ClientUpdate] = field(default_factory=list)
    validation: Dict[str, ValidationResult] = field(default_factory=dict)
    privacy_metrics: Dict[str, PrivacyMetrics] = field(default_factory=dict)
    rejected: Dict[str, str] = field(default_factory=dict)
    alerts: List[Alert] = field(default_factory=list)

    @property
    def accepted_ids(self) -> List[str]:
        return [update.client_id for update in self.accepted]


class FederatedServer:
    """Coordinator-side pipeline for one federated round.

    The server coordinates each round:
    1. Validates every update with the robust aggregation engine
    2. Filters the valid updates with aggregate_defense (Krum, reputation)
    3. Privatizes the survivors with the differential privacy engine

    Aggregating the returned updates into a new global model is left to
    the caller.

    Attributes:
        dp_engine: Differential privacy engine.
        defense_engine: Robust aggregation engine.
        round_stats: Summary of every completed round.
    """

    def __init__(
        self,
        privacy_config: PrivacyConfig,
        defense_config: DefenseConfig,
        listeners: Optional[Iterable[AlertListener]] = None,
        max_workers: int = 1,
        seed: Optional[int] = None,
    ):
        """Initialize the federated server.

        Args:
            privacy_config: Configuration of the differential privacy engine.
            defense_config: Configuration of the robust aggregation engine.
            listeners: Optional callbacks receiving every alert of both engines.
            max_workers: Threads used to privatize accepted updates.
            seed: Optional seed for the noise generator.
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        self.max_workers = max_workers
        self._round_alerts: List[Alert] = []

        listeners = list(listeners or []) + [self._round_alerts.append]
        self.dp_engine = DifferentialPrivacyEngine(privacy_config, listeners=listeners, seed=seed)
        self.defense_engine = RobustAggregationEngine(defense_config, listeners=listeners)
        self.dp_engine.initialize()

        self.round_stats: List[Dict] = []

    def run_round(
        self,
        updates: Sequence[ClientUpdate],
        global_weights: Sequence[Sequence[float]],
        round_num: Optional[int] = None,
    ) -> RoundResult:
        """Run validation, defense filtering and privatization for one round.

        Updates with malformed shapes, failed validation, filtered by the
        defense, or (in hard-stop mode) without budget are rejected with a
        reason; they never abort the round.

        Args:
            updates: Raw updates received this round.
            global_weights: Current global model weights.
            round_num: Round number; defaults to the first update's round.

        Returns:
            RoundResult with the privatized updates to aggregate.
        """
        if round_num is None:
            round_num = updates[0].round_num if updates else 0
        self._round_alerts.clear()
        result = RoundResult(round_num=round_num)

        logger.info(f"Server: Round {round_num} received {len(updates)} updates")

        valid_updates: List[ClientUpdate] = []
        for update in updates:
            try:
                verdict = self.defense_engine.validate(update, global_weights)
            except ShapeMismatchError as e:
                result.rejected[update.client_id] = f"structural error: {e}"
                continue
            result.validation[update.client_id] = verdict
            if verdict.is_valid:
                valid_updates.append(update)
            else:
                result.rejected[update.client_id] = "; ".join(verdict.anomalies) or "invalid"

        survivors = self.defense_engine.aggregate_defense(valid_updates, global_weights)
        surviving_ids = {update.client_id for update in survivors}
        for update in valid_updates:
            if update.client_id not in surviving_ids:
                result.rejected[update.client_id] = "filtered by defense aggregation"

        for update, outcome in zip(survivors, self._privatize(survivors)):
            if isinstance(outcome, PrivacyBudgetExceededError):
                result.rejected[update.client_id] = f"privacy budget exhausted: {outcome}"
                continue
            processed, metrics = outcome
            result.accepted.append(processed)
            result.privacy_metrics[update.client_id] = metrics

        result.alerts = list(self._round_alerts)
        self.round_stats.append(
            {
                "round_num": round_num,
                "num_received": len(updates),
                "num_valid": len(valid_updates),
                "num_accepted": len(result.accepted),
                "num_rejected": len(result.rejected),
                "num_alerts": len(result.alerts),
            }
        )

        logger.info(
            f"Server: Round {round_num} accepted {len(result.accepted)}/{len(updates)} updates"
        )
        return result

    def _privatize(self, updates: List[ClientUpdate]) -> List:
        def privatize_one(update: ClientUpdate):
            try:
                return self.dp_engine.process(update)
            except PrivacyBudgetExceededError as e:
                return e

        if self.max_workers == 1 or len(updates) <= 1:
            return [privatize_one(update) for update in updates]

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(privatize_one, updates))

    def get_stats(self) -> Dict:
        """Get server statistics for every round plus both engines.

        Returns:
            Dictionary with round, defense and privacy statistics.
        """
        return {
            "rounds": list(self.round_stats),
            "defense": self.defense_engine.get_stats(),
            "privacy": self.dp_engine.get_privacy_report(),
        }

    def __repr__(self) -> str:
        return (
            f"FederatedServer(rounds={len(self.round_stats)}, "
            f"dp={self.dp_engine!r}, defense={self.defense_engine!r})"
        )
