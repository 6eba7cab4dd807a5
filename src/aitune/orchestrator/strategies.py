# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Candidate-generation strategies for the offload sweep."""

import logging
import math
from abc import ABC, abstractmethod

from aitune.common.config import SweepConfig

logger = logging.getLogger(__name__)

__all__ = [
    "CandidateStrategy",
    "FixedCandidatesStrategy",
    "LayerPercentageStrategy",
    "select_strategy",
]


class CandidateStrategy(ABC):
    """Base class for candidate strategies.

    Strategies decide:
    1. Which candidate values a sweep tries
    2. The order they are tried in (always highest offload first)
    3. How the chosen strategy is described in logs and summaries
    """

    @abstractmethod
    def get_candidates(self) -> list[int]:
        """Return candidates in the order the sweep should try them.

        Returns:
            Distinct candidate values, descending
        """
        pass

    @abstractmethod
    def describe(self) -> str:
        """Short human-readable description, e.g. ``"layers(48) x [100,90,75]%"``."""
        pass

    @staticmethod
    def _descending_unique(values: list[int]) -> list[int]:
        return sorted(set(values), reverse=True)


class FixedCandidatesStrategy(CandidateStrategy):
    """Hand-tuned list of offload values. Used when no layer count is known.

    Attributes:
        values: Candidate values as configured
    """

    def __init__(self, values: list[int]) -> None:
        """Initialize FixedCandidatesStrategy.

        Args:
            values: Candidate values; order and duplicates do not matter

        Raises:
            ValueError: If values is empty
        """
        if not values:
            raise ValueError(
                "Fixed candidate strategy requires at least one value. "
                "Provide a list such as --candidates 80,64,48."
            )
        self.values = list(values)

    def get_candidates(self) -> list[int]:
        return self._descending_unique(self.values)

    def describe(self) -> str:
        return f"fixed {self.get_candidates()}"


class LayerPercentageStrategy(CandidateStrategy):
    """Percentages of the model's offloadable layer count.

    Each percentage maps to ``ceil(layers * pct / 100)`` (at least 1). The ladder
    is model-proportional, so small models get a short sweep instead of many
    values that all exceed their layer count.

    Attributes:
        layer_count: Offloadable layers reported by the backend
        percent_ladder: Percentages in (0, 100]
    """

    def __init__(self, layer_count: int, percent_ladder: list[int]) -> None:
        """Initialize LayerPercentageStrategy.

        Raises:
            ValueError: If layer_count is not positive or percent_ladder is empty
        """
        if layer_count <= 0:
            raise ValueError(f"Layer count must be positive, got {layer_count}")
        if not percent_ladder:
            raise ValueError("Percent ladder requires at least one percentage")
        self.layer_count = layer_count
        self.percent_ladder = list(percent_ladder)

    def get_candidates(self) -> list[int]:
        return self._descending_unique(
            [max(1, math.ceil(self.layer_count * pct / 100)) for pct in self.percent_ladder]
        )

    def describe(self) -> str:
        ladder = ",".join(str(pct) for pct in self.percent_ladder)
        return f"layers({self.layer_count}) x [{ladder}]%"


def select_strategy(config: SweepConfig, layer_count: int | None) -> CandidateStrategy:
    """Prefer the layer-derived ladder whenever a layer count is available."""
    if config.auto_candidates and layer_count:
        logger.debug(f"Deriving candidates from {layer_count} layers")
        return LayerPercentageStrategy(layer_count, config.percent_ladder)
    return FixedCandidatesStrategy(config.candidates)
