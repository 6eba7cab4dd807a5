# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Accelerator enumeration and backend-agnostic device selection."""

import logging
import re
import subprocess
from collections.abc import Callable, Sequence

from pydantic import BaseModel, ConfigDict

from aitune.common.environment import Environment
from aitune.common.exceptions import SetupError

logger = logging.getLogger(__name__)

__all__ = [
    "Device",
    "DeviceRegistry",
    "device_set_label",
    "normalize_device_label",
    "parse_device_table",
]

_QUERY_FIELDS = "index,name,uuid,memory.total,serial"
_VENDOR_TOKENS = re.compile(r"nvidia|geforce|rtx|\s|-")


class Device(BaseModel):
    """One accelerator as reported by the vendor tool. Immutable once enumerated."""

    model_config = ConfigDict(frozen=True)

    index: int
    name: str
    memory_mib: int
    uuid: str
    serial: str = ""

    @property
    def label(self) -> str:
        return normalize_device_label(self.name, self.serial or self.uuid)


def normalize_device_label(name: str, locator: str = "") -> str:
    """Compact device label used in variant names and ledger rows.

    Example: ``("NVIDIA GeForce RTX 3090 Ti", "1324...45")`` -> ``"3090ti45"``.
    """
    label = _VENDOR_TOKENS.sub("", name.lower())
    locator = locator.strip()
    if len(locator) >= 2:
        label += locator[-2:].lower()
    return label or "unknown-gpu"


def device_set_label(devices: Sequence[Device]) -> str:
    """Label of a device set; ``cpu`` when the set is empty."""
    if not devices:
        return "cpu"
    return "+".join(device.label for device in devices)


def parse_device_table(output: str) -> list[Device]:
    """Parse ``nvidia-smi --query-gpu=index,name,uuid,memory.total,serial`` CSV output.

    Lines that cannot be parsed are skipped with a warning.
    """
    devices = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = [part.strip() for part in line.split(",")]
        if len(parts) < 4:
            logger.warning(f"Skipping unparsable device row: {line!r}")
            continue
        try:
            memory = int(float(parts[3].removesuffix("MiB").strip()))
            devices.append(
                Device(
                    index=int(parts[0]),
                    name=parts[1],
                    uuid=parts[2],
                    memory_mib=memory,
                    serial=parts[4] if len(parts) > 4 and parts[4] != "[N/A]" else "",
                )
            )
        except ValueError:
            logger.warning(f"Skipping unparsable device row: {line!r}")
    return devices


def _query_nvidia_smi() -> str:
    result = subprocess.run(
        [
            Environment.DEVICE.SMI_BINARY,
            f"--query-gpu={_QUERY_FIELDS}",
            "--format=csv,noheader,nounits",
        ],
        capture_output=True,
        text=True,
        check=True,
        timeout=Environment.DEVICE.QUERY_TIMEOUT,
    )
    return result.stdout


class DeviceRegistry:
    """Enumerates accelerators once and answers selection queries.

    Enumeration never fails the run: with no vendor tool or no devices the
    registry is simply empty and trials run CPU-only.
    """

    def __init__(self, query: Callable[[], str] = _query_nvidia_smi) -> None:
        self._query = query
        self._devices: list[Device] | None = None

    def refresh(self) -> list[Device]:
        """Re-enumerate devices."""
        try:
            output = self._query()
        except FileNotFoundError:
            logger.info("No accelerator tool found; running CPU-only")
            output = ""
        except (subprocess.SubprocessError, OSError) as e:
            logger.warning(f"Device enumeration failed, running CPU-only: {e!r}")
            output = ""
        self._devices = parse_device_table(output)
        return list(self._devices)

    def list_devices(self) -> list[Device]:
        """Return enumerated devices (enumerating on first use)."""
        if self._devices is None:
            return self.refresh()
        return list(self._devices)

    def get(self, index: int) -> Device:
        for device in self.list_devices():
            if device.index == index:
                return device
        raise SetupError(
            f"Device {index} not found. Available: "
            f"{[d.index for d in self.list_devices()] or 'none'}"
        )

    def select_by_ids(self, indices: Sequence[int]) -> list[Device]:
        return [self.get(index) for index in indices]

    def select_by_name_pattern(
        self, substring: str, exclude: Sequence[Device] = ()
    ) -> Device | None:
        """First device whose name contains ``substring`` (case-insensitive)."""
        needle = substring.lower()
        excluded = {device.uuid for device in exclude}
        for device in self.list_devices():
            if needle in device.name.lower() and device.uuid not in excluded:
                return device
        return None

    def rank_by_memory_descending(self) -> list[Device]:
        """Devices ordered by total memory, largest first; ties keep index order."""
        return sorted(self.list_devices(), key=lambda d: (-d.memory_mib, d.index))

    def select_by_names(self, substrings: Sequence[str]) -> list[Device]:
        """One distinct device per substring.

        Falls back to index order when a pattern does not match, mirroring how the
        per-device endpoints were historically bound.
        """
        selected: list[Device] = []
        for substring in substrings:
            device = self.select_by_name_pattern(substring, exclude=selected)
            if device is None:
                remaining = [d for d in self.list_devices() if d not in selected]
                if not remaining:
                    logger.warning(f"No device left for pattern '{substring}'")
                    continue
                device = remaining[0]
                logger.warning(
                    f"No device matches '{substring}'; falling back to device {device.index}"
                )
            selected.append(device)
        return selected
