"""Configuration for the robust aggregation engine."""

from dataclasses import dataclass

from fedshield.exceptions import ConfigurationError


@dataclass
class DefenseConfig:
    """Configuration for anomaly detection and Byzantine-resilient selection.

    Attributes:
        outlier_threshold: Z-score cutoff for statistical outliers.
        min_updates_for_detection: History capacity; checks are skipped
            until this many updates have been seen.
        byzantine_threshold: Cutoff on the Byzantine score EMA, in [0, 1].
        use_krum: Whether aggregate_defense applies multi-Krum selection.
        accuracy_threshold: Minimum reported accuracy for a valid update.
        loss_threshold: Maximum reported loss for a valid update.
        min_client_score: Client score below which updates are dropped
            by aggregate_defense.
    """

    outlier_threshold: float = 3.0
    min_updates_for_detection: int = 10
    byzantine_threshold: float = 0.5
    use_krum: bool = False
    accuracy_threshold: float = 0.0
    loss_threshold: float = float("inf")
    min_client_score: float = 0.5

    def __post_init__(self):
        """Validate configuration values."""
        if self.outlier_threshold <= 0:
            raise ConfigurationError(
                f"outlier_threshold must be positive, got {self.outlier_threshold}"
            )
        if self.min_updates_for_detection < 1:
            raise ConfigurationError(
                f"min_updates_for_detection must be >= 1, "
                f"got {self.min_updates_for_detection}"
            )
        if not 0 <= self.byzantine_threshold <= 1:
            raise ConfigurationError(
                f"byzantine_threshold must be in [0, 1], got {self.byzantine_threshold}"
            )
        if not 0 <= self.accuracy_threshold <= 1:
            raise ConfigurationError(
                f"accuracy_threshold must be in [0, 1], got {self.accuracy_threshold}"
            )
        if self.loss_threshold < 0:
            raise ConfigurationError(
                f"loss_threshold must be non-negative, got {self.loss_threshold}"
            )
        if not 0 <= self.min_client_score <= 1:
            raise ConfigurationError(
                f"min_client_score must be in [0, 1], got {self.min_client_score}"
            )
