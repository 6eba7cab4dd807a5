# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from pydantic import Field, field_validator

from aitune.common.config.base_config import BaseConfig, parse_int_list

DEFAULT_CANDIDATES = [80, 72, 64, 56, 48, 40, 32, 24, 16]
DEFAULT_PERCENT_LADDER = [100, 90, 75, 60, 50, 40, 30, 20, 10]


class SweepConfig(BaseConfig):
    """Search policy for the offload sweep."""

    @field_validator("candidates", "percent_ladder", mode="before")
    @classmethod
    def parse_value_list(cls, v):
        """Parse comma/space separated candidate lists from CLI input."""
        return parse_int_list(v, "candidate list")

    @field_validator("candidates")
    @classmethod
    def validate_candidates(cls, v: list[int]) -> list[int]:
        if not v:
            raise ValueError(
                "Sweep requires at least one candidate value. "
                "Provide a list such as --candidates 80,64,48."
            )
        if any(value < 0 for value in v):
            raise ValueError(f"Candidate values must be non-negative, got {v}")
        return v

    @field_validator("percent_ladder")
    @classmethod
    def validate_percent_ladder(cls, v: list[int]) -> list[int]:
        if not v or any(not 0 < pct <= 100 for pct in v):
            raise ValueError(
                f"Percent ladder values must be in (0, 100], got {v}. Example: 100,90,75,50"
            )
        return v

    exhaustive: bool = Field(
        default=False,
        description="Try every candidate instead of stopping at the first working one",
    )
    fast_mode: bool = Field(
        default=True,
        description="Apply candidates as runtime options; when off, bake a variant for every candidate",
    )
    auto_candidates: bool = Field(
        default=True,
        description="Derive candidates from the layer count reported by the backend",
    )
    candidates: list[int] = Field(default_factory=lambda: list(DEFAULT_CANDIDATES))
    percent_ladder: list[int] = Field(
        default_factory=lambda: list(DEFAULT_PERCENT_LADDER)
    )
    early_stop_delta: float | None = Field(
        default=None,
        ge=0,
        description="Stop when a new best improves on the previous best by less than this fraction",
    )
    zero_throughput_break_limit: int = Field(
        default=3,
        ge=0,
        description="Abort an exhaustive sweep after this many consecutive zero/CPU-bound trials (0 disables)",
    )
    no_improvement_limit: int = Field(
        default=5,
        ge=0,
        description="Exhaustive mode: abort after this many non-improving trials (0 disables)",
    )
    publish_best: bool = Field(
        default=False, description="Bake, warm up and re-measure the winner as 'published' (variant backends only)"
    )
    warmup_publish: bool = True
    warmup_tokens: int = Field(default=64, ge=1)
    vanilla_baseline: bool = Field(
        default=True,
        description="Measure each model as-is on the persistent endpoint before tuning",
    )
