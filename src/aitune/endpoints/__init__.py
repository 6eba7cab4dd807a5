# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from aitune.endpoints.manager import (
    COMBINED_SUFFIX,
    PERSISTENT_SUFFIX,
    EndpointManager,
)
from aitune.endpoints.models import Endpoint
from aitune.endpoints.supervisor import ProcessHandle, ProcessSupervisor, read_log_tail

__all__ = [
    "COMBINED_SUFFIX",
    "PERSISTENT_SUFFIX",
    "Endpoint",
    "EndpointManager",
    "ProcessHandle",
    "ProcessSupervisor",
    "read_log_tail",
]
