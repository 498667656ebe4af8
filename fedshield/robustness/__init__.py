"""Robustness module for Byzantine-resilient federated learning.

This module defends the coordinator against anomalous and malicious
clients:
- Statistical anomaly detection against a bounded update history (Z-score)
- Behavioral Byzantine scoring with per-client moving averages
- Multi-Krum robust selection and reputation-based filtering
- Attack simulations for evaluation
"""

from .config import DefenseConfig
from .aggregators import KrumSelector, RobustSelector, pairwise_distances
from .anomaly import AnomalyReport, StatisticalAnomalyDetector
from .attacks import ModelPoisoningAttack
from .byzantine import ByzantineDetector, ByzantineReport
from .client_scoring import ClientScore, ClientScoreBook
from .defense import RobustAggregationEngine, ValidationMetrics, ValidationResult
from .history import UpdateHistory

__all__ = [
    "DefenseConfig",
    "KrumSelector",
    "RobustSelector",
    "pairwise_distances",
    "AnomalyReport",
    "StatisticalAnomalyDetector",
    "ModelPoisoningAttack",
    "ByzantineDetector",
    "ByzantineReport",
    "ClientScore",
    "ClientScoreBook",
    "RobustAggregationEngine",
    "ValidationMetrics",
    "ValidationResult",
    "UpdateHistory",
]
