# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Health check mixin for inference endpoints.

Provides readiness views over an endpoint's lifecycle state:
- is_ready(): Readiness check - can a trial claim the endpoint right now?
- is_claimed(): Is a trial currently running on the endpoint?
"""

from aitune.common.enums import EndpointState


class HealthCheckMixin:
    """Readiness checks derived from ``EndpointState``.

    The mixin expects the endpoint to have a `state` attribute.
    """

    state: EndpointState

    def is_ready(self) -> bool:
        """Readiness check: True only when READY (provisioned and not claimed)."""
        return self.state == EndpointState.READY

    def is_claimed(self) -> bool:
        return self.state == EndpointState.IN_USE
