# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from aitune.devices.registry import (
    Device,
    DeviceRegistry,
    device_set_label,
    normalize_device_label,
    parse_device_table,
)

__all__ = [
    "Device",
    "DeviceRegistry",
    "device_set_label",
    "normalize_device_label",
    "parse_device_table",
]
