# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Endpoint lifecycle management.

State machine per endpoint::

    UNBOUND -> PROVISIONING -> READY <-> IN_USE
                   |             |
                   v             v
                 FAILED      DRAINING -> TORN_DOWN

The persistent endpoint owns the model store and is reused for the whole run.
Ephemeral endpoints are bound to one device set and are torn down after use.
"""

import asyncio
import string
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from aitune.common.config import EndpointConfig
from aitune.common.enums import DeviceBindingMode, EndpointKind, EndpointState
from aitune.common.environment import Environment
from aitune.common.exceptions import BackendError, EndpointNotReadyError
from aitune.common.mixins import AITuneLoggerMixin
from aitune.common.retry import poll_until
from aitune.devices import Device
from aitune.endpoints.models import Endpoint
from aitune.endpoints.supervisor import ProcessSupervisor, read_log_tail

if TYPE_CHECKING:
    from aitune.backends.base import InferenceBackend

__all__ = ["COMBINED_SUFFIX", "PERSISTENT_SUFFIX", "EndpointManager"]

PERSISTENT_SUFFIX = "P"
COMBINED_SUFFIX = "MULTI"


class EndpointManager(AITuneLoggerMixin):
    """Plans, provisions, health-checks and tears down endpoints for one backend."""

    def __init__(
        self,
        backend: "InferenceBackend",
        config: EndpointConfig,
        supervisor: ProcessSupervisor,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.backend = backend
        self.config = config
        self.supervisor = supervisor
        self.ready_timeout = config.ready_timeout or Environment.ENDPOINT.READY_TIMEOUT
        self.poll_interval = Environment.ENDPOINT.POLL_INTERVAL
        # Pull and bake operations against the shared model store run one at a time.
        self.catalog_lock = asyncio.Lock()
        self._persistent: Endpoint | None = None
        self._endpoints: dict[str, Endpoint] = {}

    @property
    def endpoints(self) -> list[Endpoint]:
        return list(self._endpoints.values())

    def _endpoint_id(self, suffix: str) -> str:
        if suffix == PERSISTENT_SUFFIX:
            return f"{self.backend.backend_type}-persistent"
        return f"{self.backend.backend_type}-test-{suffix.lower()}"

    def _register(self, endpoint: Endpoint) -> Endpoint:
        self._endpoints[endpoint.endpoint_id] = endpoint
        return endpoint

    def plan_endpoints(
        self, devices: Sequence[Device], mode: DeviceBindingMode
    ) -> list[Endpoint]:
        """Map the selected devices onto ephemeral endpoints.

        Separate mode gives one endpoint per device (suffixes A, B, ...); combined
        mode gives one endpoint over every device. With no devices a single
        CPU-only endpoint is planned.
        """
        if mode == DeviceBindingMode.COMBINED and len(devices) > 1:
            groups = [(COMBINED_SUFFIX, tuple(devices))]
        elif not devices:
            groups = [("A", ())]
        else:
            if len(devices) > len(string.ascii_uppercase):
                raise ValueError(
                    f"At most {len(string.ascii_uppercase)} separate endpoints are supported"
                )
            groups = [
                (string.ascii_uppercase[i], (device,)) for i, device in enumerate(devices)
            ]

        planned = []
        for offset, (suffix, device_set) in enumerate(groups):
            endpoint = Endpoint(
                endpoint_id=self._endpoint_id(suffix),
                suffix=suffix,
                host=self.config.host,
                port=self.config.base_port + offset,
                backend=self.backend.backend_type,
                kind=EndpointKind.EPHEMERAL,
                devices=device_set,
            )
            self.debug(
                f"Planned {endpoint.endpoint_id} on {endpoint.address} "
                f"for devices [{endpoint.device_label}]"
            )
            planned.append(self._register(endpoint))
        return planned

    @property
    def persistent_endpoint(self) -> Endpoint:
        if self._persistent is None:
            self._persistent = self._register(
                Endpoint(
                    endpoint_id=self._endpoint_id(PERSISTENT_SUFFIX),
                    suffix=PERSISTENT_SUFFIX,
                    host=self.config.host,
                    port=self.config.persistent_port,
                    backend=self.backend.backend_type,
                    kind=EndpointKind.PERSISTENT,
                )
            )
        return self._persistent

    async def check_health(self, endpoint: Endpoint) -> bool:
        return await self.backend.health_check(endpoint.address)

    async def ensure_persistent(self) -> Endpoint:
        """Make sure the persistent endpoint is serving.

        An already running service is adopted as is. Otherwise it is started only
        when ``start_persistent`` is set.

        Raises:
            EndpointNotReadyError: If it is not serving and cannot be started
        """
        endpoint = self.persistent_endpoint
        if endpoint.state in (EndpointState.READY, EndpointState.IN_USE):
            return endpoint
        if await self.check_health(endpoint):
            self.info(f"Using running persistent endpoint {endpoint.address}")
            endpoint.state = EndpointState.READY
            return endpoint
        if not self.config.start_persistent:
            endpoint.state = EndpointState.FAILED
            raise EndpointNotReadyError(
                endpoint.endpoint_id,
                endpoint.address,
                "not serving (pass --start-persistent to start it)",
            )
        await self.provision(endpoint)
        return endpoint

    async def provision(
        self,
        endpoint: Endpoint,
        model_ref: str | None = None,
        candidate: int | None = None,
    ) -> Endpoint:
        """Start the endpoint's process and wait until it answers health checks.

        A process already owned by this endpoint is stopped first, so this is
        also how launch-argument candidates are applied.

        Raises:
            EndpointNotReadyError: If the process cannot be started or never becomes ready
        """
        if endpoint.process is not None:
            await self._stop_process(endpoint)

        endpoint.state = EndpointState.PROVISIONING
        try:
            handle = await self.backend.start(
                self.supervisor, endpoint, model_ref=model_ref, candidate=candidate
            )
        except BackendError as e:
            endpoint.state = EndpointState.FAILED
            raise EndpointNotReadyError(endpoint.endpoint_id, endpoint.address, str(e)) from e
        endpoint.process = handle
        endpoint.managed = True

        async def _ready_or_exited() -> bool:
            return not handle.is_running or await self.check_health(endpoint)

        await poll_until(
            _ready_or_exited,
            timeout=self.ready_timeout,
            interval=self.poll_interval,
            description=f"{endpoint.endpoint_id} readiness",
        )
        if not handle.is_running:
            reason = f"process exited with code {handle.returncode} (log: {handle.log_path})"
        elif not await self.check_health(endpoint):
            reason = f"no healthy response within {self.ready_timeout:g}s"
        else:
            endpoint.state = EndpointState.READY
            self.info(f"Endpoint {endpoint.endpoint_id} ready on {endpoint.address}")
            return endpoint

        endpoint.state = EndpointState.FAILED
        await self._stop_process(endpoint)
        raise EndpointNotReadyError(endpoint.endpoint_id, endpoint.address, reason)

    @asynccontextmanager
    async def claim(self, endpoint: Endpoint) -> AsyncIterator[Endpoint]:
        """Hold the endpoint for one trial. Only one trial may hold it at a time."""
        if endpoint.is_claimed():
            raise RuntimeError(f"Endpoint {endpoint.endpoint_id} is already in use")
        if not endpoint.is_ready():
            raise EndpointNotReadyError(
                endpoint.endpoint_id, endpoint.address, f"state is {endpoint.state}"
            )
        endpoint.state = EndpointState.IN_USE
        try:
            yield endpoint
        finally:
            if endpoint.state == EndpointState.IN_USE:
                endpoint.state = EndpointState.READY

    def read_log_tail(self, endpoint: Endpoint, max_lines: int | None = None) -> str:
        """Recent output of the endpoint's process ('' when not started by us)."""
        if endpoint.process is None:
            return ""
        return read_log_tail(
            endpoint.process.log_path, max_lines or Environment.ENDPOINT.LOG_TAIL_LINES
        )

    async def teardown(self, endpoint: Endpoint) -> None:
        """Stop an ephemeral endpoint. Errors are logged and never raised."""
        if endpoint.is_persistent:
            self.debug(f"Not tearing down persistent endpoint {endpoint.endpoint_id}")
            return
        endpoint.state = EndpointState.DRAINING
        try:
            await self._stop_process(endpoint)
        except (OSError, BackendError) as e:
            self.warning(f"Teardown of {endpoint.endpoint_id} failed: {e!r}")
        finally:
            endpoint.process = None
            endpoint.state = EndpointState.TORN_DOWN

    async def shutdown(self) -> None:
        """Tear down every ephemeral endpoint and stop a persistent endpoint we started."""
        for endpoint in self.endpoints:
            if endpoint.is_persistent:
                continue
            if endpoint.state != EndpointState.TORN_DOWN:
                await self.teardown(endpoint)
        persistent = self._persistent
        if persistent is not None and persistent.managed and persistent.process is not None:
            self.info(f"Stopping persistent endpoint {persistent.endpoint_id}")
            try:
                await self._stop_process(persistent)
            except (OSError, BackendError) as e:
                self.warning(f"Stopping {persistent.endpoint_id} failed: {e!r}")
            persistent.state = EndpointState.TORN_DOWN

    async def _stop_process(self, endpoint: Endpoint) -> None:
        handle = endpoint.process
        if handle is None:
            return
        endpoint.process = None
        await self.backend.stop(self.supervisor, handle)
