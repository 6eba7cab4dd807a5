# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from aitune.common.mixins.health_check_mixin import HealthCheckMixin
from aitune.common.mixins.logger_mixin import AITuneLoggerMixin

__all__ = [
    "AITuneLoggerMixin",
    "HealthCheckMixin",
]
