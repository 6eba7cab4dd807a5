# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from pathlib import Path

from pydantic import Field

from aitune.common.config.base_config import BaseConfig
from aitune.common.enums import BackendType


class EndpointConfig(BaseConfig):
    """Backend selection and endpoint addressing."""

    backend: BackendType = BackendType.OLLAMA
    binary: str | None = Field(
        default=None,
        description="Backend executable. Defaults to the backend's usual binary name on PATH.",
    )
    host: str = "127.0.0.1"
    persistent_port: int = Field(
        default=11434, ge=1, le=65535, description="Always-on endpoint that owns the model store"
    )
    base_port: int = Field(
        default=11435, ge=1, le=65535, description="First port of the per-device endpoints"
    )
    start_persistent: bool = Field(
        default=False,
        description="Start the persistent endpoint if it is not already serving",
    )
    model_store: Path | None = Field(
        default=None, description="Shared model store passed to every endpoint"
    )
    ready_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Readiness budget in seconds (defaults to AITUNE_ENDPOINT_READY_TIMEOUT)",
    )
    parallel: bool = Field(
        default=False,
        description="Run sweeps on different endpoints concurrently",
    )
