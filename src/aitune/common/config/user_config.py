# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from pydantic import Field

from aitune.common.config.base_config import BaseConfig
from aitune.common.config.bench_config import BenchConfig
from aitune.common.config.device_config import DeviceConfig
from aitune.common.config.endpoint_config import EndpointConfig
from aitune.common.config.model_selection_config import ModelSelectionConfig
from aitune.common.config.output_config import OutputConfig
from aitune.common.config.sweep_config import SweepConfig


class UserConfig(BaseConfig):
    """Complete configuration of one tuning run."""

    bench: BenchConfig = Field(default_factory=BenchConfig)
    sweep: SweepConfig = Field(default_factory=SweepConfig)
    devices: DeviceConfig = Field(default_factory=DeviceConfig)
    endpoint: EndpointConfig = Field(default_factory=EndpointConfig)
    models: ModelSelectionConfig = Field(default_factory=ModelSelectionConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
