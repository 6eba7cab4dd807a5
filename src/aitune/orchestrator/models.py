# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Data models for sweeps and runs."""

from pathlib import Path

from pydantic import BaseModel, Field

from aitune.common.config import SweepConfig
from aitune.common.enums import StopReason, TrialLabel, TrialOutcome


class Trial(BaseModel):
    """One measured execution of a model against an endpoint.

    Attributes:
        label: Ledger label of the trial
        candidate: Candidate value, None for the as-is baseline
        model_ref: Model or variant name the request was sent to
        outcome: Success, zero throughput, CPU-bound or error
        tokens_per_second: Measured throughput (0.0 unless successful)
        config_alias: Full configuration alias used in log lines
        error: Failure detail, if any
    """

    label: TrialLabel
    candidate: int | None = None
    model_ref: str
    outcome: TrialOutcome
    tokens_per_second: float = Field(default=0.0, ge=0)
    tokens: int = 0
    elapsed_seconds: float = 0.0
    config_alias: str = ""
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == TrialOutcome.SUCCESS


class SweepPolicy(BaseModel):
    """Stop rules of a sweep.

    Attributes:
        exhaustive: Try every candidate instead of stopping at the first success
        early_stop_delta: Stop when a new best improves the previous best by less than this fraction
        zero_throughput_break_limit: Consecutive zero/CPU-bound trials that abort an exhaustive sweep (0 disables)
        no_improvement_limit: Non-improving trials after a best that abort an exhaustive sweep (0 disables)
    """

    exhaustive: bool = False
    early_stop_delta: float | None = None
    zero_throughput_break_limit: int = 3
    no_improvement_limit: int = 5

    @classmethod
    def from_config(cls, config: SweepConfig) -> "SweepPolicy":
        return cls(
            exhaustive=config.exhaustive,
            early_stop_delta=config.early_stop_delta,
            zero_throughput_break_limit=config.zero_throughput_break_limit,
            no_improvement_limit=config.no_improvement_limit,
        )


class SweepResult(BaseModel):
    """Result of sweeping one (base model, endpoint) pair."""

    base_model: str
    endpoint_id: str
    endpoint: str
    suffix: str
    device_label: str
    strategy: str = ""
    candidates: list[int] = Field(default_factory=list)
    baseline: Trial | None = None
    trials: list[Trial] = Field(default_factory=list)
    best: Trial | None = None
    published: Trial | None = None
    stop_reason: StopReason = StopReason.EXHAUSTED

    @property
    def has_working_configuration(self) -> bool:
        return self.best is not None

    @property
    def attempted_candidates(self) -> list[int]:
        return [trial.candidate for trial in self.trials if trial.candidate is not None]


class SkippedPair(BaseModel):
    """A (base model, endpoint) pair that could not be swept."""

    base_model: str
    endpoint_id: str
    endpoint: str
    reason: str


class RunReport(BaseModel):
    """Everything a run produced, for the console and JSON summaries."""

    backend: str
    ledger_path: Path
    models: list[str] = Field(default_factory=list)
    vanilla: list[Trial] = Field(default_factory=list)
    sweeps: list[SweepResult] = Field(default_factory=list)
    skipped: list[SkippedPair] = Field(default_factory=list)
    deleted_variants: list[str] = Field(default_factory=list)

    @property
    def without_working_configuration(self) -> list[SweepResult]:
        return [sweep for sweep in self.sweeps if not sweep.has_working_configuration]
