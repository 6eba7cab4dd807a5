# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Endpoint data model."""

from dataclasses import dataclass, field

from aitune.common.enums import BackendType, EndpointKind, EndpointState
from aitune.common.mixins import HealthCheckMixin
from aitune.devices import Device, device_set_label
from aitune.endpoints.supervisor import ProcessHandle

__all__ = ["Endpoint"]


@dataclass(eq=False)
class Endpoint(HealthCheckMixin):
    """A network-addressable inference service bound to a device set.

    Attributes:
        endpoint_id: Logical id, also used as the service/unit identifier (e.g. "ollama-test-a")
        suffix: Short label written to the ledger ("A", "B", "MULTI", "P")
        host: Address the service binds to
        port: Service port
        backend: Backend kind serving this endpoint
        kind: Persistent (long-lived model store owner) or ephemeral (per device binding)
        devices: Devices made visible to the service process
        state: Current lifecycle state
        process: Handle of the managed process, None when not started by us
        managed: Whether this run started (and therefore owns) the process
    """

    endpoint_id: str
    suffix: str
    host: str
    port: int
    backend: BackendType
    kind: EndpointKind = EndpointKind.EPHEMERAL
    devices: tuple[Device, ...] = ()
    state: EndpointState = EndpointState.UNBOUND
    process: ProcessHandle | None = field(default=None, repr=False)
    managed: bool = False

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def base_url(self) -> str:
        return f"http://{self.address}"

    @property
    def is_persistent(self) -> bool:
        return self.kind == EndpointKind.PERSISTENT

    @property
    def device_label(self) -> str:
        return device_set_label(self.devices)

    @property
    def device_indices(self) -> list[int]:
        return [device.index for device in self.devices]

    @property
    def visible_devices(self) -> str:
        """Value for the device-visibility variable (UUIDs are stable across reorders)."""
        return ",".join(device.uuid for device in self.devices)

    @property
    def device_name(self) -> str:
        return "+".join(device.name for device in self.devices)

    @property
    def device_locator(self) -> str:
        return "+".join(device.uuid for device in self.devices)

    @property
    def device_memory_mib(self) -> int | None:
        if not self.devices:
            return None
        return sum(device.memory_mib for device in self.devices)

    @property
    def pid(self) -> int | None:
        if self.process is None or not self.process.is_running:
            return None
        return self.process.pid
