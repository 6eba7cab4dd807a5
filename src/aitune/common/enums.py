# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Enumerations shared across the tuning engine."""

from enum import Enum


class CaseInsensitiveStrEnum(str, Enum):
    """String enum whose members can be looked up case-insensitively.

    Allows CLI values such as ``--backend OLLAMA`` to resolve to ``BackendType.OLLAMA``.
    """

    def __str__(self) -> str:
        return self.value

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lowered = value.lower()
            for member in cls:
                if member.value.lower() == lowered:
                    return member
        return None


class BackendType(CaseInsensitiveStrEnum):
    """Supported inference backends."""

    OLLAMA = "ollama"
    LLAMACPP = "llamacpp"


class CandidateMode(CaseInsensitiveStrEnum):
    """How a backend applies a candidate value to a trial."""

    RUNTIME_OPTION = "runtime_option"
    """Candidate is sent with the generation request (e.g. Ollama ``num_gpu`` option)."""

    BAKED_VARIANT = "baked_variant"
    """Candidate must be materialized into a named variant before benchmarking."""

    LAUNCH_ARGUMENT = "launch_argument"
    """Candidate is a server launch argument; each candidate restarts the endpoint."""

    @property
    def requires_relaunch(self) -> bool:
        return self is CandidateMode.LAUNCH_ARGUMENT


class TrialOutcome(CaseInsensitiveStrEnum):
    """Outcome of a single trial."""

    SUCCESS = "success"
    ZERO_THROUGHPUT = "zero_throughput"
    CPU_BOUND = "cpu_bound"
    ERROR = "error"

    @property
    def is_zero_like(self) -> bool:
        """True for outcomes that count towards the consecutive-zero break limit."""
        return self in (TrialOutcome.ZERO_THROUGHPUT, TrialOutcome.CPU_BOUND)


class TrialLabel(CaseInsensitiveStrEnum):
    """Trial label written to the ledger."""

    BASE_AS_IS = "base-as-is"
    OPTIMIZED = "optimized"
    OPTIMIZED_CPU_BOUND = "optimized-cpu-bound"
    PUBLISHED = "published"


class EndpointState(CaseInsensitiveStrEnum):
    """Lifecycle state of an inference endpoint."""

    UNBOUND = "unbound"
    PROVISIONING = "provisioning"
    READY = "ready"
    IN_USE = "in_use"
    DRAINING = "draining"
    TORN_DOWN = "torn_down"
    FAILED = "failed"


class EndpointKind(CaseInsensitiveStrEnum):
    """Whether an endpoint lives for the whole run or is recreated per device binding."""

    PERSISTENT = "persistent"
    EPHEMERAL = "ephemeral"


class DeviceBindingMode(CaseInsensitiveStrEnum):
    """How selected devices are grouped into endpoints."""

    SEPARATE = "separate"
    COMBINED = "combined"


class VariantState(CaseInsensitiveStrEnum):
    """Visibility state of a baked variant."""

    PENDING = "pending"
    VISIBLE = "visible"
    DELETED = "deleted"


class StopReason(CaseInsensitiveStrEnum):
    """Why a sweep stopped iterating candidates."""

    EXHAUSTED = "exhausted"
    FIRST_SUCCESS = "first_success"
    ZERO_THROUGHPUT_LIMIT = "zero_throughput_limit"
    NO_IMPROVEMENT_LIMIT = "no_improvement_limit"
    EARLY_STOP_DELTA = "early_stop_delta"
