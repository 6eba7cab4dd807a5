# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Tests for shared enumerations."""

import pytest

from aitune.common.enums import (
    BackendType,
    CandidateMode,
    TrialLabel,
    TrialOutcome,
)


class TestCaseInsensitiveStrEnum:
    @pytest.mark.parametrize("value", ["ollama", "OLLAMA", "Ollama"])
    def test_lookup_ignores_case(self, value: str) -> None:
        assert BackendType(value) is BackendType.OLLAMA

    def test_str_is_value(self) -> None:
        """Test members render as their ledger value."""
        assert str(TrialLabel.BASE_AS_IS) == "base-as-is"
        assert f"{TrialLabel.OPTIMIZED_CPU_BOUND}" == "optimized-cpu-bound"

    def test_unknown_value_raises(self) -> None:
        with pytest.raises(ValueError):
            BackendType("vllm")


class TestTrialOutcome:
    @pytest.mark.parametrize(
        "outcome,expected",
        [
            (TrialOutcome.SUCCESS, False),
            (TrialOutcome.ZERO_THROUGHPUT, True),
            (TrialOutcome.CPU_BOUND, True),
            (TrialOutcome.ERROR, False),
        ],
    )
    def test_is_zero_like(self, outcome: TrialOutcome, expected: bool) -> None:
        """Test which outcomes count towards the consecutive-zero limit."""
        assert outcome.is_zero_like is expected


class TestCandidateMode:
    @pytest.mark.parametrize(
        "mode,expected",
        [
            (CandidateMode.RUNTIME_OPTION, False),
            (CandidateMode.BAKED_VARIANT, False),
            (CandidateMode.LAUNCH_ARGUMENT, True),
        ],
    )
    def test_requires_relaunch(self, mode: CandidateMode, expected: bool) -> None:
        assert mode.requires_relaunch is expected
