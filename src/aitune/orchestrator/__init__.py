# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from aitune.orchestrator.models import (
    RunReport,
    SkippedPair,
    SweepPolicy,
    SweepResult,
    Trial,
)
from aitune.orchestrator.orchestrator import (
    RunOrchestrator,
    filter_models,
    model_pattern_regex,
    select_devices,
)
from aitune.orchestrator.strategies import (
    CandidateStrategy,
    FixedCandidatesStrategy,
    LayerPercentageStrategy,
    select_strategy,
)
from aitune.orchestrator.sweep import SweepEngine, SweepProgress

__all__ = [
    "CandidateStrategy",
    "FixedCandidatesStrategy",
    "LayerPercentageStrategy",
    "RunOrchestrator",
    "RunReport",
    "SkippedPair",
    "SweepEngine",
    "SweepPolicy",
    "SweepProgress",
    "SweepResult",
    "Trial",
    "filter_models",
    "model_pattern_regex",
    "select_devices",
    "select_strategy",
]
