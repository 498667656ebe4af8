"""Differential privacy engine: clipping, noising and budget accounting per update."""

import threading
from dataclasses import dataclass, replace
from typing import Dict, Iterable, Optional, Tuple

from loguru import logger

from fedshield.exceptions import PrivacyBudgetExceededError
from fedshield.events import AlertDispatcher, AlertKind, AlertListener
from fedshield.update import ClientUpdate, LayerShapes, Weights, check_shapes
from .config import PrivacyConfig
from .gaussian_mechanism import GaussianMechanism
from .privacy_accountant import PrivacyAccountant, PrivacyBudget
from .secure_summation import SecureSummation
from .weight_sanitizer import WeightSanitizer


@dataclass(frozen=True)
class PrivacyMetrics:
    """Description of the privacy transform applied to one update.

    Attributes:
        epsilon: Epsilon charged for this update.
        delta: Delta charged for this update.
        clip_norm: Per-layer L2 clipping bound.
        noise_scale: Standard deviation of the added noise.
        gradient_norm: Largest pre-clip layer L2 norm.
    """

    epsilon: float
    delta: float
    clip_norm: float
    noise_scale: float
    gradient_norm: float


class DifferentialPrivacyEngine:
    """Transforms client updates into privacy-preserving versions.

    For each update the engine clips every layer to ``clip_norm``, adds
    Gaussian noise with std ``noise_scale``, charges the client's budget
    under basic composition and alerts when the budget is exceeded.

    ``process`` is a consuming transform: it returns a new ClientUpdate and
    never writes into the caller's weight buffers. All state changes happen
    under a single lock, so the engine can be shared by worker threads.

    Attributes:
        config: Active privacy configuration.
        accountant: Per-client budget ledger.
    """

    def __init__(
        self,
        config: PrivacyConfig,
        listeners: Optional[Iterable[AlertListener]] = None,
        seed: Optional[int] = None,
    ):
        """Initialize the engine.

        Args:
            config: Privacy configuration (validated on construction).
            listeners: Optional callbacks receiving every alert.
            seed: Optional seed for the noise generator.
        """
        self._lock = threading.Lock()
        self._events = AlertDispatcher(listeners)
        self._seed = seed
        self._initialized = False
        self._model_shapes: Optional[LayerShapes] = None
        self._processed_count = 0

        self.accountant = PrivacyAccountant(
            target_epsilon=config.budget_epsilon,
            target_delta=config.budget_delta,
        )
        self._apply_config(config)

    def _apply_config(self, config: PrivacyConfig) -> None:
        self.config = config
        self._mechanism = GaussianMechanism(
            epsilon=config.epsilon,
            delta=config.delta,
            seed=self._seed,
        )
        self._sanitizer = WeightSanitizer(config.clip_norm, self._mechanism)
        self._secure_summation: Optional[SecureSummation] = None
        if config.secure_summation_enabled:
            self._secure_summation = SecureSummation(config.secure_summation_threshold)
        self.accountant.target_epsilon = config.budget_epsilon
        self.accountant.target_delta = config.budget_delta

    @property
    def noise_scale(self) -> float:
        return self._mechanism.get_sigma()

    @property
    def clip_norm(self) -> float:
        return self.config.clip_norm

    @property
    def initialized(self) -> bool:
        return self._initialized

    def add_listener(self, listener: AlertListener) -> None:
        self._events.add_listener(listener)

    def initialize(self, config: Optional[PrivacyConfig] = None) -> None:
        """Activate the privacy policy.

        Args:
            config: Optional replacement configuration. Existing budgets are
                kept; only the policy and the ceilings change.
        """
        with self._lock:
            if config is not None:
                self._apply_config(config)
            self._initialized = True

            logger.info(
                f"DifferentialPrivacyEngine initialized: dp_enabled={self.config.enabled}, "
                f"epsilon={self.config.epsilon}, delta={self.config.delta}, "
                f"clip_norm={self.clip_norm}, noise_scale={self.noise_scale:.4f}, "
                f"secure_summation={self.config.secure_summation_enabled}"
            )
            self._events.emit(
                AlertKind.INITIALIZED,
                dp_enabled=self.config.enabled,
                secure_summation_enabled=self.config.secure_summation_enabled,
                noise_scale=self.noise_scale,
                clip_norm=self.clip_norm,
            )

    def process(self, update: ClientUpdate) -> Tuple[ClientUpdate, PrivacyMetrics]:
        """Privatize one client update and charge its budget.

        Args:
            update: The raw update. Left untouched.

        Returns:
            Tuple of (privatized copy of the update, privacy metrics).

        Raises:
            ShapeMismatchError: If the layer shapes differ from the model
                shapes seen on the first processed update.
            PrivacyBudgetExceededError: In hard-stop mode, if the charge
                would exceed the client's ceiling.
        """
        with self._lock:
            try:
                return self._process(update)
            except Exception as e:
                logger.error(f"Failed to process update from {update.client_id}: {e}")
                self._events.emit(AlertKind.ERROR, client_id=update.client_id, error=str(e))
                raise

    def _process(self, update: ClientUpdate) -> Tuple[ClientUpdate, PrivacyMetrics]:
        self._check_model_shapes(update)

        if self.config.enabled:
            weights, metrics = self._apply_differential_privacy(update)
        else:
            weights = [layer.copy() for layer in update.weights]
            metrics = PrivacyMetrics(
                epsilon=0.0,
                delta=0.0,
                clip_norm=self.clip_norm,
                noise_scale=self.noise_scale,
                gradient_norm=0.0,
            )

        if self._secure_summation is not None:
            weights = self._secure_summation.apply(weights)

        processed = replace(update, weights=weights)
        self._processed_count += 1

        logger.debug(
            f"Processed update from {update.client_id} (round {update.round_num}): "
            f"gradient_norm={metrics.gradient_norm:.4f}, epsilon={metrics.epsilon}"
        )
        self._events.emit(
            AlertKind.UPDATE_PROCESSED,
            client_id=update.client_id,
            privacy_metrics=metrics,
        )
        return processed, metrics

    def _apply_differential_privacy(
        self, update: ClientUpdate
    ) -> Tuple[Weights, PrivacyMetrics]:
        epsilon = self.config.epsilon
        delta = self.config.delta

        if self.config.hard_stop_on_budget_exhaustion and self.accountant.would_exceed(
            update.client_id, epsilon, delta
        ):
            budget = self.accountant.get_budget(update.client_id)
            raise PrivacyBudgetExceededError(
                f"Privacy budget exhausted for client {update.client_id}",
                details={"budget": budget},
            )

        result = self._sanitizer.sanitize(update.weights)
        metrics = PrivacyMetrics(
            epsilon=epsilon,
            delta=delta,
            clip_norm=self.clip_norm,
            noise_scale=self.noise_scale,
            gradient_norm=result.max_norm,
        )

        budget = self.accountant.record_expenditure(
            client_id=update.client_id,
            epsilon=epsilon,
            delta=delta,
            round_num=update.round_num,
            description="update privatization",
        )
        if self.accountant.is_exceeded(update.client_id):
            logger.warning(
                f"Privacy budget exceeded for client {update.client_id}: "
                f"epsilon={budget.epsilon:.4f} (limit {self.accountant.target_epsilon}), "
                f"delta={budget.delta:.2e} (limit {self.accountant.target_delta})"
            )
            self._events.emit(
                AlertKind.PRIVACY_BUDGET_EXCEEDED,
                client_id=update.client_id,
                budget=budget,
            )

        return result.weights, metrics

    def _check_model_shapes(self, update: ClientUpdate) -> None:
        if self._model_shapes is None:
            self._model_shapes = update.layer_shapes()
            return
        check_shapes(update.weights, self._model_shapes, context=f"update from {update.client_id}")

    def get_privacy_budget(self, client_id: str) -> Optional[PrivacyBudget]:
        """Get a snapshot of a client's cumulative budget, or None if unseen."""
        with self._lock:
            return self.accountant.get_budget(client_id)

    def get_privacy_report(self) -> Dict:
        with self._lock:
            report = self.accountant.get_report()
            report["updates_processed"] = self._processed_count
            report["noise_scale"] = self.noise_scale
            report["clip_norm"] = self.clip_norm
            report["sanitizer"] = self._sanitizer.get_stats()
            return report

    def __repr__(self) -> str:
        status = "enabled" if self.config.enabled else "disabled"
        return (
            f"DifferentialPrivacyEngine({status}, epsilon={self.config.epsilon}, "
            f"delta={self.config.delta}, noise_scale={self.noise_scale:.4f})"
        )
