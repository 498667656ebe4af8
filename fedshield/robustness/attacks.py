"""Attack simulations for robustness evaluation.

This module provides attack implementations for testing the defenses of
the robust aggregation engine against Byzantine/malicious clients.
These are for evaluation purposes only.
"""

from dataclasses import replace
from typing import List, Optional

import numpy as np
from loguru import logger

from fedshield.update import ClientUpdate, Weights


class ModelPoisoningAttack:
    """Simulate model poisoning attacks for robustness evaluation.

    Supported attack types:
    - "scaling": Multiply updates by a large factor to dominate aggregation
    - "noise": Add random noise to corrupt the update
    - "sign_flip": Flip the sign of updates to reverse learning direction

    Attributes:
        attack_type: Type of attack to simulate.
        scale_factor: Multiplication factor for scaling attack.
        noise_std: Standard deviation of noise for noise attack.
        seed: Random seed for reproducibility.
    """

    VALID_ATTACK_TYPES = ["scaling", "noise", "sign_flip"]

    def __init__(
        self,
        attack_type: str = "scaling",
        scale_factor: float = 100.0,
        noise_std: float = 10.0,
        seed: Optional[int] = None,
    ):
        """Initialize the attack simulator.

        Args:
            attack_type: Type of attack ("scaling", "noise", or "sign_flip").
            scale_factor: Multiplication factor for scaling attack.
            noise_std: Standard deviation of noise for noise attack.
            seed: Random seed for reproducibility.

        Raises:
            ValueError: If attack_type is not valid.
        """
        if attack_type not in self.VALID_ATTACK_TYPES:
            raise ValueError(
                f"attack_type must be one of {self.VALID_ATTACK_TYPES}, "
                f"got {attack_type}"
            )

        self.attack_type = attack_type
        self.scale_factor = scale_factor
        self.noise_std = noise_std
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def apply(
        self,
        updates: List[ClientUpdate],
        malicious_indices: List[int],
    ) -> List[ClientUpdate]:
        """Apply the attack to the specified client updates.

        Args:
            updates: One round's updates.
            malicious_indices: Indices of the updates sent by malicious clients.

        Returns:
            New list of updates; attacked entries are fresh copies and the
            originals are left untouched.

        Raises:
            ValueError: If malicious_indices are out of bounds.
        """
        if not updates:
            return []

        num_clients = len(updates)
        for idx in malicious_indices:
            if idx < 0 or idx >= num_clients:
                raise ValueError(
                    f"Malicious index {idx} out of bounds for {num_clients} clients"
                )

        result = list(updates)
        for idx in malicious_indices:
            result[idx] = replace(updates[idx], weights=self.attack_weights(updates[idx].weights))

        logger.debug(
            f"ModelPoisoningAttack: applied {self.attack_type} attack to "
            f"{len(malicious_indices)} of {num_clients} clients"
        )

        return result

    def attack_weights(self, weights: Weights) -> Weights:
        """Apply the attack to every layer of a weight list."""
        if self.attack_type == "scaling":
            return [layer * self.scale_factor for layer in weights]
        if self.attack_type == "noise":
            return [layer + self._rng.normal(0, self.noise_std, layer.shape) for layer in weights]
        return [-layer for layer in weights]

    def __repr__(self) -> str:
        return f"ModelPoisoningAttack(type={self.attack_type})"
