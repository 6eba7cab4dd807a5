# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from pathlib import Path

import httpx

from aitune.backends.base import GenerateResponse, InferenceBackend
from aitune.backends.llamacpp import LlamaCppBackend
from aitune.backends.ollama import OllamaBackend
from aitune.common.config import UserConfig
from aitune.common.enums import BackendType

__all__ = [
    "GenerateResponse",
    "InferenceBackend",
    "LlamaCppBackend",
    "OllamaBackend",
    "create_backend",
]


def create_backend(
    config: UserConfig, client: httpx.AsyncClient | None = None
) -> InferenceBackend:
    """Build the backend selected by ``config.endpoint.backend``."""
    endpoint = config.endpoint
    model_store = Path(endpoint.model_store) if endpoint.model_store else None
    if endpoint.backend == BackendType.OLLAMA:
        return OllamaBackend(
            binary=endpoint.binary,
            model_store=model_store,
            client=client,
            bake_candidates=not config.sweep.fast_mode,
        )
    if endpoint.backend == BackendType.LLAMACPP:
        return LlamaCppBackend(
            binary=endpoint.binary,
            model_store=model_store,
            client=client,
            context_size=config.bench.context_size,
            batch_size=config.bench.batch_size,
        )
    raise ValueError(f"Unsupported backend: {endpoint.backend}")
