# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Tests for EndpointManager."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from aitune.common.config import EndpointConfig
from aitune.common.enums import BackendType, DeviceBindingMode, EndpointKind, EndpointState
from aitune.common.exceptions import BackendError, EndpointNotReadyError
from aitune.endpoints import COMBINED_SUFFIX, EndpointManager


def _backend(healthy: bool = True) -> MagicMock:
    backend = MagicMock()
    backend.backend_type = BackendType.OLLAMA
    backend.health_check = AsyncMock(return_value=healthy)
    backend.stop = AsyncMock()
    handle = MagicMock()
    handle.is_running = True
    handle.returncode = None
    handle.log_path = Path("/tmp/ollama-test-a.log")
    backend.start = AsyncMock(return_value=handle)
    return backend


def _manager(backend: MagicMock, **config) -> EndpointManager:
    config.setdefault("ready_timeout", 0.05)
    manager = EndpointManager(backend, EndpointConfig(**config), supervisor=MagicMock())
    manager.poll_interval = 0.01
    return manager


class TestPlanEndpoints:
    """Test mapping devices onto endpoints."""

    def test_separate_mode_one_endpoint_per_device(self, device_factory) -> None:
        manager = _manager(_backend(), base_port=12000)
        devices = [device_factory(0), device_factory(1)]

        planned = manager.plan_endpoints(devices, DeviceBindingMode.SEPARATE)

        assert [e.suffix for e in planned] == ["A", "B"]
        assert [e.endpoint_id for e in planned] == ["ollama-test-a", "ollama-test-b"]
        assert [e.port for e in planned] == [12000, 12001]
        assert [e.devices for e in planned] == [(devices[0],), (devices[1],)]
        assert all(e.kind == EndpointKind.EPHEMERAL for e in planned)
        assert all(e.state == EndpointState.UNBOUND for e in planned)

    def test_combined_mode_binds_all_devices(self, device_factory) -> None:
        manager = _manager(_backend())
        devices = [device_factory(0), device_factory(1)]

        planned = manager.plan_endpoints(devices, DeviceBindingMode.COMBINED)

        assert len(planned) == 1
        assert planned[0].suffix == COMBINED_SUFFIX
        assert planned[0].devices == tuple(devices)
        assert planned[0].visible_devices == "GPU-0000-0000,GPU-0000-0001"

    def test_combined_mode_with_one_device_is_separate(self, device) -> None:
        planned = _manager(_backend()).plan_endpoints([device], DeviceBindingMode.COMBINED)
        assert planned[0].suffix == "A"

    def test_no_devices_plans_cpu_endpoint(self) -> None:
        """Test a machine without accelerators still gets one endpoint."""
        planned = _manager(_backend()).plan_endpoints([], DeviceBindingMode.SEPARATE)

        assert len(planned) == 1
        assert planned[0].devices == ()
        assert planned[0].device_label == "cpu"
        assert planned[0].device_memory_mib is None

    def test_planned_endpoints_are_registered(self, device) -> None:
        manager = _manager(_backend())
        planned = manager.plan_endpoints([device], DeviceBindingMode.SEPARATE)
        assert manager.endpoints == planned


class TestPersistentEndpoint:
    """Test the catalog-owning endpoint."""

    def test_persistent_endpoint_identity(self) -> None:
        manager = _manager(_backend(), persistent_port=11434)
        endpoint = manager.persistent_endpoint

        assert endpoint is manager.persistent_endpoint
        assert endpoint.endpoint_id == "ollama-persistent"
        assert endpoint.suffix == "P"
        assert endpoint.port == 11434
        assert endpoint.is_persistent

    @pytest.mark.asyncio
    async def test_adopts_running_service(self) -> None:
        """Test a serving endpoint is used as-is without starting a process."""
        backend = _backend(healthy=True)
        manager = _manager(backend)

        endpoint = await manager.ensure_persistent()

        assert endpoint.state == EndpointState.READY
        assert endpoint.managed is False
        backend.start.assert_not_called()

    @pytest.mark.asyncio
    async def test_not_serving_without_start_flag(self) -> None:
        manager = _manager(_backend(healthy=False))

        with pytest.raises(EndpointNotReadyError, match="--start-persistent"):
            await manager.ensure_persistent()
        assert manager.persistent_endpoint.state == EndpointState.FAILED

    @pytest.mark.asyncio
    async def test_starts_when_requested(self) -> None:
        backend = _backend()
        backend.health_check = AsyncMock(side_effect=[False, True, True])
        manager = _manager(backend, start_persistent=True)

        endpoint = await manager.ensure_persistent()

        assert endpoint.state == EndpointState.READY
        assert endpoint.managed is True
        backend.start.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_shutdown_stops_managed_persistent(self) -> None:
        backend = _backend()
        backend.health_check = AsyncMock(side_effect=[False, True, True])
        manager = _manager(backend, start_persistent=True)
        await manager.ensure_persistent()

        await manager.shutdown()

        backend.stop.assert_awaited_once()
        assert manager.persistent_endpoint.state == EndpointState.TORN_DOWN

    @pytest.mark.asyncio
    async def test_shutdown_leaves_adopted_persistent_running(self) -> None:
        backend = _backend()
        manager = _manager(backend)
        await manager.ensure_persistent()

        await manager.shutdown()

        backend.stop.assert_not_called()
        assert manager.persistent_endpoint.state == EndpointState.READY


class TestProvision:
    """Test starting endpoints and waiting for readiness."""

    @pytest.mark.asyncio
    async def test_provision_ready(self, device) -> None:
        backend = _backend()
        manager = _manager(backend)
        endpoint = manager.plan_endpoints([device], DeviceBindingMode.SEPARATE)[0]

        await manager.provision(endpoint, model_ref="llama3:8b", candidate=32)

        assert endpoint.state == EndpointState.READY
        assert endpoint.process is backend.start.return_value
        backend.start.assert_awaited_once_with(
            manager.supervisor, endpoint, model_ref="llama3:8b", candidate=32
        )

    @pytest.mark.asyncio
    async def test_provision_timeout_fails_endpoint(self, device) -> None:
        """Test an endpoint that never answers is marked FAILED and stopped."""
        backend = _backend(healthy=False)
        manager = _manager(backend)
        endpoint = manager.plan_endpoints([device], DeviceBindingMode.SEPARATE)[0]

        with pytest.raises(EndpointNotReadyError, match="no healthy response"):
            await manager.provision(endpoint)

        assert endpoint.state == EndpointState.FAILED
        assert endpoint.process is None
        backend.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_provision_process_exit(self, device) -> None:
        backend = _backend(healthy=False)
        backend.start.return_value.is_running = False
        backend.start.return_value.returncode = 2
        manager = _manager(backend)
        endpoint = manager.plan_endpoints([device], DeviceBindingMode.SEPARATE)[0]

        with pytest.raises(EndpointNotReadyError, match="exited with code 2"):
            await manager.provision(endpoint)
        assert endpoint.state == EndpointState.FAILED

    @pytest.mark.asyncio
    async def test_provision_spawn_failure(self, device) -> None:
        backend = _backend()
        backend.start.side_effect = BackendError("no such binary")
        manager = _manager(backend)
        endpoint = manager.plan_endpoints([device], DeviceBindingMode.SEPARATE)[0]

        with pytest.raises(EndpointNotReadyError, match="no such binary"):
            await manager.provision(endpoint)
        assert endpoint.state == EndpointState.FAILED

    @pytest.mark.asyncio
    async def test_reprovision_stops_previous_process(self, device) -> None:
        """Test applying a new launch argument replaces the running process."""
        backend = _backend()
        manager = _manager(backend)
        endpoint = manager.plan_endpoints([device], DeviceBindingMode.SEPARATE)[0]

        await manager.provision(endpoint, candidate=48)
        first = endpoint.process
        await manager.provision(endpoint, candidate=24)

        backend.stop.assert_awaited_once_with(manager.supervisor, first)
        assert backend.start.await_count == 2


class TestClaim:
    """Test exclusive use of an endpoint by one trial."""

    @pytest.mark.asyncio
    async def test_claim_and_release(self, endpoint_factory) -> None:
        manager = _manager(_backend())
        endpoint = endpoint_factory()

        async with manager.claim(endpoint) as claimed:
            assert claimed is endpoint
            assert endpoint.state == EndpointState.IN_USE
        assert endpoint.state == EndpointState.READY

    @pytest.mark.asyncio
    async def test_claim_released_on_error(self, endpoint_factory) -> None:
        manager = _manager(_backend())
        endpoint = endpoint_factory()

        with pytest.raises(ValueError):
            async with manager.claim(endpoint):
                raise ValueError("trial failed")
        assert endpoint.state == EndpointState.READY

    @pytest.mark.asyncio
    async def test_double_claim_rejected(self, endpoint_factory) -> None:
        """Test a second concurrent trial on the same endpoint is refused."""
        manager = _manager(_backend())
        endpoint = endpoint_factory()

        async with manager.claim(endpoint):
            with pytest.raises(RuntimeError, match="already in use"):
                async with manager.claim(endpoint):
                    pass

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "state", [EndpointState.UNBOUND, EndpointState.FAILED, EndpointState.TORN_DOWN]
    )
    async def test_claim_requires_ready(self, endpoint_factory, state: EndpointState) -> None:
        manager = _manager(_backend())
        endpoint = endpoint_factory()
        endpoint.state = state

        with pytest.raises(EndpointNotReadyError):
            async with manager.claim(endpoint):
                pass


class TestTeardown:
    """Test tearing endpoints down."""

    @pytest.mark.asyncio
    async def test_teardown_ephemeral(self, device) -> None:
        backend = _backend()
        manager = _manager(backend)
        endpoint = manager.plan_endpoints([device], DeviceBindingMode.SEPARATE)[0]
        await manager.provision(endpoint)

        await manager.teardown(endpoint)

        assert endpoint.state == EndpointState.TORN_DOWN
        assert endpoint.process is None
        backend.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_teardown_skips_persistent(self) -> None:
        backend = _backend()
        manager = _manager(backend)
        endpoint = await manager.ensure_persistent()

        await manager.teardown(endpoint)

        assert endpoint.state == EndpointState.READY

    @pytest.mark.asyncio
    async def test_teardown_errors_are_logged(self, device) -> None:
        """Test a failing stop still leaves the endpoint torn down."""
        backend = _backend()
        manager = _manager(backend)
        endpoint = manager.plan_endpoints([device], DeviceBindingMode.SEPARATE)[0]
        await manager.provision(endpoint)
        backend.stop.side_effect = OSError("gone")

        await manager.teardown(endpoint)

        assert endpoint.state == EndpointState.TORN_DOWN

    @pytest.mark.asyncio
    async def test_shutdown_tears_down_ephemeral(self, device_factory) -> None:
        backend = _backend()
        manager = _manager(backend)
        planned = manager.plan_endpoints(
            [device_factory(0), device_factory(1)], DeviceBindingMode.SEPARATE
        )
        for endpoint in planned:
            await manager.provision(endpoint)

        await manager.shutdown()

        assert all(e.state == EndpointState.TORN_DOWN for e in planned)
        assert backend.stop.await_count == 2


class TestReadLogTail:
    def test_no_process(self, endpoint_factory) -> None:
        assert _manager(_backend()).read_log_tail(endpoint_factory()) == ""

    def test_reads_process_log(self, endpoint_factory, tmp_path: Path) -> None:
        log = tmp_path / "ollama-test-a.log"
        log.write_text("one\ntwo\nthree\n")
        endpoint = endpoint_factory()
        endpoint.process = MagicMock(log_path=log)

        assert _manager(_backend()).read_log_tail(endpoint, max_lines=2) == "two\nthree\n"
