# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Tests for device enumeration and selection."""

import subprocess
from unittest.mock import Mock

import pytest

from aitune.common.exceptions import SetupError
from aitune.devices import (
    Device,
    DeviceRegistry,
    device_set_label,
    normalize_device_label,
    parse_device_table,
)

SMI_OUTPUT = """\
0, NVIDIA GeForce RTX 3090 Ti, GPU-aaaa, 24564, 1324021012345
1, NVIDIA GeForce RTX 5090, GPU-bbbb, 32607, [N/A]
2, NVIDIA GeForce RTX 3060, GPU-cccc, 12288, 1322321099907
"""


class TestNormalizeDeviceLabel:
    """Test compact device labels."""

    @pytest.mark.parametrize(
        "name,locator,expected",
        [
            ("NVIDIA GeForce RTX 3090 Ti", "1324021012345", "3090ti45"),
            ("NVIDIA GeForce RTX 5090", "GPU-1234-abCD", "5090cd"),
            ("NVIDIA A100-SXM4-80GB", "", "a100sxm480gb"),
            ("NVIDIA GeForce RTX 4090", "7", "4090"),
            ("NVIDIA", "", "unknown-gpu"),
        ],
    )
    def test_labels(self, name: str, locator: str, expected: str) -> None:
        assert normalize_device_label(name, locator) == expected

    def test_device_label_prefers_serial(self) -> None:
        """Test the serial disambiguates identical models, falling back to the UUID."""
        with_serial = Device(index=0, name="RTX 3090", memory_mib=1, uuid="GPU-x1", serial="99")
        without_serial = Device(index=1, name="RTX 3090", memory_mib=1, uuid="GPU-x1")
        assert with_serial.label == "309099"
        assert without_serial.label == "3090x1"

    def test_device_set_label(self, device_factory) -> None:
        devices = [device_factory(0), device_factory(1, name="NVIDIA GeForce RTX 5090")]
        assert device_set_label(devices) == "3090ti05+509015"
        assert device_set_label([]) == "cpu"


class TestParseDeviceTable:
    """Test parsing of vendor-tool output."""

    def test_parses_rows(self) -> None:
        devices = parse_device_table(SMI_OUTPUT)

        assert [d.index for d in devices] == [0, 1, 2]
        assert devices[0].name == "NVIDIA GeForce RTX 3090 Ti"
        assert devices[0].uuid == "GPU-aaaa"
        assert devices[0].memory_mib == 24564
        assert devices[1].serial == ""

    def test_memory_with_units(self) -> None:
        devices = parse_device_table("0, RTX 4090, GPU-a, 24564 MiB, 1")
        assert devices[0].memory_mib == 24564

    def test_skips_unparsable_rows(self) -> None:
        """Test garbage lines are skipped rather than failing enumeration."""
        devices = parse_device_table("garbage\n\nx, RTX, GPU-a, lots\n0, RTX 4090, GPU-a, 1024")
        assert len(devices) == 1
        assert devices[0].index == 0

    def test_empty_output(self) -> None:
        assert parse_device_table("") == []


class TestDeviceRegistry:
    """Test DeviceRegistry selection queries."""

    @pytest.fixture
    def registry(self) -> DeviceRegistry:
        return DeviceRegistry(query=lambda: SMI_OUTPUT)

    def test_enumerates_lazily_once(self) -> None:
        query = Mock(return_value=SMI_OUTPUT)
        registry = DeviceRegistry(query=query)

        registry.list_devices()
        registry.list_devices()

        query.assert_called_once()

    @pytest.mark.parametrize(
        "error",
        [
            FileNotFoundError("nvidia-smi"),
            subprocess.CalledProcessError(9, "nvidia-smi"),
            subprocess.TimeoutExpired("nvidia-smi", 10),
        ],
    )
    def test_enumeration_failure_means_cpu_only(self, error: Exception) -> None:
        """Test a missing or failing vendor tool yields an empty registry."""
        registry = DeviceRegistry(query=Mock(side_effect=error))
        assert registry.refresh() == []
        assert registry.list_devices() == []

    def test_get_unknown_index(self, registry: DeviceRegistry) -> None:
        with pytest.raises(SetupError, match="Device 7 not found"):
            registry.get(7)

    def test_select_by_ids_keeps_order(self, registry: DeviceRegistry) -> None:
        assert [d.index for d in registry.select_by_ids([2, 0])] == [2, 0]

    def test_select_by_name_pattern_case_insensitive(self, registry: DeviceRegistry) -> None:
        assert registry.select_by_name_pattern("rtx 5090").index == 1
        assert registry.select_by_name_pattern("h100") is None

    def test_select_by_name_pattern_excludes(self, registry: DeviceRegistry) -> None:
        first = registry.select_by_name_pattern("RTX")
        second = registry.select_by_name_pattern("RTX", exclude=[first])
        assert (first.index, second.index) == (0, 1)

    def test_rank_by_memory_descending(self, registry: DeviceRegistry) -> None:
        assert [d.index for d in registry.rank_by_memory_descending()] == [1, 0, 2]

    def test_select_by_names_distinct_devices(self, registry: DeviceRegistry) -> None:
        """Test each pattern binds a different device."""
        selected = registry.select_by_names(["5090", "3090 Ti"])
        assert [d.index for d in selected] == [1, 0]

    def test_select_by_names_falls_back_to_index_order(self, registry: DeviceRegistry) -> None:
        """Test an unmatched pattern takes the first device not yet selected."""
        selected = registry.select_by_names(["3090", "h100"])
        assert [d.index for d in selected] == [0, 1]

    def test_select_by_names_runs_out_of_devices(self, registry: DeviceRegistry) -> None:
        selected = registry.select_by_names(["a", "b", "c", "d"])
        assert len(selected) == 3
