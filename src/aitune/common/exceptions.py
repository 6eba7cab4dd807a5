# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Exception taxonomy for the tuning engine.

Lower-level failures (HTTP, process spawn, JSON decoding) are converted into one
of these kinds before they reach the sweep engine.
"""


class AITuneError(Exception):
    """Base class for all AITune errors."""


class SetupError(AITuneError):
    """Fatal configuration or environment problem (missing binary, bad config)."""


class LedgerWriteError(AITuneError):
    """The results ledger could not be written. Always fatal for the run."""


class BackendError(AITuneError):
    """Raw failure talking to a backend (transport, bad payload, process spawn)."""


class EndpointNotReadyError(AITuneError):
    """An endpoint did not reach the ready state within its budget.

    Scoped to one (model, endpoint) pair: the caller skips the pair and continues.
    """

    def __init__(self, endpoint_id: str, address: str, reason: str = "") -> None:
        self.endpoint_id = endpoint_id
        self.address = address
        self.reason = reason
        message = f"Error: endpoint not ready: {endpoint_id} ({address})"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class TrialFailure(AITuneError):
    """Candidate-scoped failure. The sweep continues with the next candidate."""


class BakeFailedError(TrialFailure):
    """Materializing a variant for a candidate failed."""

    def __init__(self, name: str, reason: str = "") -> None:
        self.name = name
        self.reason = reason
        message = f"Failed to bake variant {name}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
