# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from aitune.common.config.base_config import BaseConfig
from aitune.common.config.bench_config import BenchConfig
from aitune.common.config.device_config import DeviceConfig
from aitune.common.config.endpoint_config import EndpointConfig
from aitune.common.config.model_selection_config import ModelSelectionConfig
from aitune.common.config.output_config import OutputConfig
from aitune.common.config.sweep_config import SweepConfig
from aitune.common.config.user_config import UserConfig

__all__ = [
    "BaseConfig",
    "BenchConfig",
    "DeviceConfig",
    "EndpointConfig",
    "ModelSelectionConfig",
    "OutputConfig",
    "SweepConfig",
    "UserConfig",
]
