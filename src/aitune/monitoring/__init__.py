# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from aitune.monitoring.watchdog import (
    CpuBoundWatchdog,
    UtilizationSample,
    UtilizationSampler,
    parse_gpu_utilization,
)

__all__ = [
    "CpuBoundWatchdog",
    "UtilizationSample",
    "UtilizationSampler",
    "parse_gpu_utilization",
]
