"""Per-client reputation and Byzantine-suspicion scores."""

from dataclasses import dataclass, replace
from typing import Dict, Optional

from loguru import logger

# Exponential moving average: new = HISTORY_WEIGHT * old + OBSERVATION_WEIGHT * observed
HISTORY_WEIGHT = 0.7
OBSERVATION_WEIGHT = 0.3

DEFAULT_CLIENT_SCORE = 0.5
DEFAULT_BYZANTINE_SCORE = 0.0


def ema(current: float, observation: float) -> float:
    """Fold one observation into an exponential moving average."""
    return HISTORY_WEIGHT * current + OBSERVATION_WEIGHT * observation


@dataclass
class ClientScore:
    """Trust scores of a single client.

    Attributes:
        client_id: Identifier for the client.
        score: Reputation EMA of validation outcomes, in [0, 1].
        byzantine_score: EMA of per-update Byzantine suspicion, in [0, 1].
        num_validations: Number of outcomes folded into ``score``.
        num_byzantine_checks: Number of suspicion values folded into
            ``byzantine_score``.
    """

    client_id: str
    score: float = DEFAULT_CLIENT_SCORE
    byzantine_score: float = DEFAULT_BYZANTINE_SCORE
    num_validations: int = 0
    num_byzantine_checks: int = 0


class ClientScoreBook:
    """Ledger of ClientScore records keyed by client id.

    Records are created explicitly on first touch and never deleted. The
    book is not thread-safe on its own; the owning engine serializes access.
    """

    def __init__(self):
        self._scores: Dict[str, ClientScore] = {}

    def get_or_create(self, client_id: str) -> ClientScore:
        score = self._scores.get(client_id)
        if score is None:
            score = ClientScore(client_id=client_id)
            self._scores[client_id] = score
            logger.debug(f"Created score record for client {client_id}")
        return score

    def get(self, client_id: str) -> Optional[ClientScore]:
        """Get a snapshot of a client's record, or None if unseen."""
        score = self._scores.get(client_id)
        return replace(score) if score is not None else None

    def record_validation(self, client_id: str, is_valid: bool) -> float:
        """Fold a validation outcome (1.0 valid, 0.0 invalid) into the reputation EMA.

        Returns:
            The updated reputation score.
        """
        record = self.get_or_create(client_id)
        record.score = ema(record.score, 1.0 if is_valid else 0.0)
        record.num_validations += 1
        return record.score

    def record_byzantine(self, client_id: str, suspicion: float) -> float:
        """Fold an instantaneous suspicion score into the Byzantine EMA.

        Args:
            client_id: Client being scored.
            suspicion: Suspicion of the current update, in [0, 1].

        Returns:
            The updated Byzantine score.
        """
        if not 0.0 <= suspicion <= 1.0:
            raise ValueError(f"suspicion must be in [0, 1], got {suspicion}")
        record = self.get_or_create(client_id)
        record.byzantine_score = ema(record.byzantine_score, suspicion)
        record.num_byzantine_checks += 1
        return record.byzantine_score

    def client_score(self, client_id: str) -> float:
        """Reputation score, 0.0 for clients never validated."""
        record = self._scores.get(client_id)
        return record.score if record is not None else 0.0

    def byzantine_score(self, client_id: str) -> float:
        record = self._scores.get(client_id)
        return record.byzantine_score if record is not None else 0.0

    def __contains__(self, client_id: str) -> bool:
        return client_id in self._scores

    def __len__(self) -> int:
        return len(self._scores)

    def __repr__(self) -> str:
        return f"ClientScoreBook(clients={len(self._scores)})"
