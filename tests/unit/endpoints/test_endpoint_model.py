# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Tests for the Endpoint data model."""

from unittest.mock import MagicMock

from aitune.common.enums import BackendType, EndpointKind
from aitune.endpoints import Endpoint


class TestEndpoint:
    def test_addressing(self) -> None:
        endpoint = Endpoint("ollama-test-a", "A", "127.0.0.1", 11435, BackendType.OLLAMA)
        assert endpoint.address == "127.0.0.1:11435"
        assert endpoint.base_url == "http://127.0.0.1:11435"
        assert endpoint.is_persistent is False

    def test_multi_device_fields(self, device_factory) -> None:
        """Test ledger fields of a combined endpoint join every device."""
        devices = (device_factory(0, memory_mib=24564), device_factory(1, "NVIDIA GeForce RTX 5090", 32607))
        endpoint = Endpoint(
            "ollama-test-multi", "MULTI", "127.0.0.1", 11435, BackendType.OLLAMA, devices=devices
        )

        assert endpoint.device_indices == [0, 1]
        assert endpoint.device_name == "NVIDIA GeForce RTX 3090 Ti+NVIDIA GeForce RTX 5090"
        assert endpoint.device_locator == "GPU-0000-0000+GPU-0000-0001"
        assert endpoint.device_memory_mib == 24564 + 32607

    def test_pid_only_while_running(self) -> None:
        endpoint = Endpoint(
            "ollama-persistent", "P", "127.0.0.1", 11434, BackendType.OLLAMA, EndpointKind.PERSISTENT
        )
        assert endpoint.pid is None

        endpoint.process = MagicMock(is_running=True, pid=4242)
        assert endpoint.pid == 4242

        endpoint.process.is_running = False
        assert endpoint.pid is None
