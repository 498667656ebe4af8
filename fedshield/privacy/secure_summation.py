"""Secure summation hook applied after noising.

The cryptographic protocol is not implemented; the hook hands weights
through unchanged so that a real protocol can be slotted in later.
"""

from loguru import logger

from fedshield.update import Weights


class SecureSummation:
    """Pass-through secure summation stage.

    Attributes:
        threshold: Minimum number of participants the protocol expects.
    """

    def __init__(self, threshold: int = 2):
        if threshold < 1:
            raise ValueError(f"Threshold must be >= 1, got {threshold}")
        self.threshold = threshold
        logger.info(f"SecureSummation initialized (pass-through), threshold={threshold}")

    def apply(self, weights: Weights) -> Weights:
        return weights

    def __repr__(self) -> str:
        return f"SecureSummation(threshold={self.threshold})"
