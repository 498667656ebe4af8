"""Robust aggregation engine: per-update validation and per-round filtering."""

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
from loguru import logger

from fedshield.events import Alert, AlertDispatcher, AlertKind, AlertListener
from fedshield.update import ClientUpdate, as_weights, check_shapes, layer_shapes, rms_distance
from .aggregators import KrumSelector
from .anomaly import StatisticalAnomalyDetector
from .byzantine import ByzantineDetector
from .client_scoring import ClientScoreBook
from .config import DefenseConfig
from .history import UpdateHistory


@dataclass
class ValidationMetrics:
    """Metrics attached to a validation verdict.

    Attributes:
        accuracy: Accuracy reported by the client.
        loss: Loss reported by the client.
        divergence: RMS distance between the update and the global model.
    """

    accuracy: float
    loss: float
    divergence: float


@dataclass
class ValidationResult:
    """Verdict on one client update.

    Attributes:
        is_valid: True if the update passed local checks and was neither
            anomalous nor Byzantine.
        metrics: Reported metrics and divergence from the global model.
        anomalies: Human-readable findings, in detection order.
        byzantine_score: The client's Byzantine EMA after this update.
        alerts: Alerts raised while validating.
    """

    is_valid: bool
    metrics: ValidationMetrics
    anomalies: List[str] = field(default_factory=list)
    byzantine_score: float = 0.0
    alerts: List[Alert] = field(default_factory=list)


class RobustAggregationEngine:
    """Detects anomalous or adversarial updates and filters each round.

    The engine keeps a bounded history of recent updates as the reference
    distribution and a score book of per-client reputation and Byzantine
    scores. Until the history is full every update is accepted (cold start).

    ``validate`` and ``aggregate_defense`` each run entirely under one lock,
    so the statistical read phase of one update never interleaves with the
    history and score writes of another.

    Attributes:
        config: Defense configuration.
        history: Bounded FIFO of recent updates.
    """

    def __init__(
        self,
        config: DefenseConfig,
        listeners: Optional[Iterable[AlertListener]] = None,
    ):
        """Initialize the engine.

        Args:
            config: Defense configuration (validated on construction).
            listeners: Optional callbacks receiving every alert.
        """
        self.config = config
        self.history = UpdateHistory(capacity=config.min_updates_for_detection)
        self._scores = ClientScoreBook()
        self._anomaly_detector = StatisticalAnomalyDetector(config.outlier_threshold)
        self._byzantine_detector = ByzantineDetector(config.outlier_threshold)
        self._selector = KrumSelector()
        self._events = AlertDispatcher(listeners)
        self._lock = threading.Lock()
        self._stats: Dict[str, Any] = {
            "updates_validated": 0,
            "updates_rejected": 0,
            "anomalies_detected": 0,
            "byzantine_detected": 0,
            "last_defense": {},
        }

        logger.info(
            f"RobustAggregationEngine initialized: outlier_threshold={config.outlier_threshold}, "
            f"min_updates_for_detection={config.min_updates_for_detection}, "
            f"byzantine_threshold={config.byzantine_threshold}, use_krum={config.use_krum}"
        )

    def add_listener(self, listener: AlertListener) -> None:
        self._events.add_listener(listener)

    def validate(
        self,
        update: ClientUpdate,
        global_weights: Sequence[Sequence[float]],
    ) -> ValidationResult:
        """Validate one update against history and the global model.

        Args:
            update: The client's update. Not modified; a copy is kept in history.
            global_weights: Current global model weights.

        Returns:
            ValidationResult. Statistical findings are reported in
            ``anomalies``, never raised.

        Raises:
            ShapeMismatchError: If the update's layer shapes differ from the
                global model or from the updates already in history.
        """
        with self._lock:
            try:
                return self._validate(update, as_weights(global_weights))
            except Exception as e:
                logger.error(f"Validation of update from {update.client_id} failed: {e}")
                self._events.emit(AlertKind.ERROR, client_id=update.client_id, error=str(e))
                raise

    def _validate(self, update: ClientUpdate, global_weights: List[np.ndarray]) -> ValidationResult:
        client_id = update.client_id
        check_shapes(
            update.weights,
            layer_shapes(global_weights),
            context=f"update from {client_id} vs global model",
        )
        if len(self.history) > 0:
            check_shapes(
                update.weights,
                self.history.layer_shapes(),
                context=f"update from {client_id} vs round history",
            )

        self.history.append(update)
        self._stats["updates_validated"] += 1

        metrics = ValidationMetrics(
            accuracy=update.metrics.accuracy,
            loss=update.metrics.loss,
            divergence=rms_distance(update.weights, global_weights),
        )

        if not self.history.is_full:
            # Local checks still drive reputation; their findings are not reported
            locally_valid = self._check_local_validity(metrics, [])
            self._scores.record_validation(client_id, locally_valid)
            logger.debug(
                f"Cold start: {len(self.history)}/{self.history.capacity} updates in history, "
                f"accepting {client_id} without statistical checks"
            )
            return ValidationResult(
                is_valid=True,
                metrics=metrics,
                byzantine_score=self._scores.byzantine_score(client_id),
            )

        alerts: List[Alert] = []

        report = self._anomaly_detector.detect(update, self.history)
        anomalies = list(report.anomalies)
        if report.is_anomalous:
            self._stats["anomalies_detected"] += 1
            logger.warning(f"Anomalies detected for client {client_id}: {anomalies}")
            alerts.append(
                self._events.emit(
                    AlertKind.ANOMALY_DETECTED,
                    client_id=client_id,
                    anomalies=list(anomalies),
                )
            )

        byzantine = self._byzantine_detector.score(update, self.history)
        byzantine_score = self._scores.record_byzantine(client_id, byzantine.suspicion)
        is_byzantine = byzantine_score > self.config.byzantine_threshold
        if is_byzantine:
            self._stats["byzantine_detected"] += 1
            logger.warning(
                f"Byzantine behavior detected for client {client_id}: "
                f"score={byzantine_score:.3f} > {self.config.byzantine_threshold}"
            )
            alerts.append(
                self._events.emit(
                    AlertKind.BYZANTINE_DETECTED,
                    client_id=client_id,
                    byzantine_score=byzantine_score,
                    signals=dict(byzantine.signals),
                )
            )
            anomalies.append("Byzantine behavior detected")

        locally_valid = self._check_local_validity(metrics, anomalies)
        client_score = self._scores.record_validation(client_id, locally_valid)

        is_valid = locally_valid and not report.is_anomalous and not is_byzantine
        if not is_valid:
            self._stats["updates_rejected"] += 1

        logger.debug(
            f"Validated {client_id}: valid={is_valid}, divergence={metrics.divergence:.4f}, "
            f"client_score={client_score:.3f}, byzantine_score={byzantine_score:.3f}"
        )

        return ValidationResult(
            is_valid=is_valid,
            metrics=metrics,
            anomalies=anomalies,
            byzantine_score=byzantine_score,
            alerts=alerts,
        )

    def _check_local_validity(self, metrics: ValidationMetrics, anomalies: List[str]) -> bool:
        if metrics.accuracy < self.config.accuracy_threshold:
            anomalies.append("Accuracy below threshold")
            return False
        if metrics.loss > self.config.loss_threshold:
            anomalies.append("Loss above threshold")
            return False
        return True

    def aggregate_defense(
        self,
        updates: Sequence[ClientUpdate],
        global_weights: Sequence[Sequence[float]],
    ) -> List[ClientUpdate]:
        """Select the subset of a round's updates that is safe to aggregate.

        Applies multi-Krum when ``use_krum`` is set, then drops updates from
        clients whose reputation is below ``min_client_score``.

        Args:
            updates: The round's updates.
            global_weights: Current global model weights.

        Returns:
            The surviving updates.

        Raises:
            ShapeMismatchError: If any update's layer shapes differ from the
                global model.
        """
        with self._lock:
            try:
                return self._aggregate_defense(list(updates), as_weights(global_weights))
            except Exception as e:
                logger.error(f"Defense aggregation failed: {e}")
                self._events.emit(AlertKind.ERROR, error=str(e))
                raise

    def _aggregate_defense(
        self,
        updates: List[ClientUpdate],
        global_weights: List[np.ndarray],
    ) -> List[ClientUpdate]:
        expected = layer_shapes(global_weights)
        for update in updates:
            check_shapes(update.weights, expected, context=f"update from {update.client_id}")

        filtered = updates
        krum_stats: Dict[str, Any] = {}
        if self.config.use_krum:
            filtered, krum_stats = self._selector.select(filtered)

        filtered = [
            update
            for update in filtered
            if self._scores.client_score(update.client_id) >= self.config.min_client_score
        ]

        self._stats["last_defense"] = {
            "original_count": len(updates),
            "filtered_count": len(filtered),
            "krum": krum_stats,
        }

        logger.info(f"Defense aggregation kept {len(filtered)} of {len(updates)} updates")
        self._events.emit(
            AlertKind.UPDATES_FILTERED,
            original_count=len(updates),
            filtered_count=len(filtered),
        )

        return filtered

    def get_client_score(self, client_id: str) -> float:
        """Reputation score of a client, 0.0 if never validated."""
        with self._lock:
            return self._scores.client_score(client_id)

    def get_byzantine_score(self, client_id: str) -> float:
        with self._lock:
            return self._scores.byzantine_score(client_id)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            stats = dict(self._stats)
            stats["history_size"] = len(self.history)
            stats["num_clients"] = len(self._scores)
            return stats

    def __repr__(self) -> str:
        return (
            f"RobustAggregationEngine(history={len(self.history)}/{self.history.capacity}, "
            f"use_krum={self.config.use_krum})"
        )
