# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""llama.cpp server backend.

``llama-server`` serves exactly one GGUF file and takes the offload amount as the
``-ngl`` launch argument, so every candidate is a fresh server launch.
"""

import re
from pathlib import Path
from typing import Any

import httpx

from aitune.backends.base import InferenceBackend
from aitune.common.config import BenchConfig
from aitune.common.enums import BackendType, CandidateMode
from aitune.common.exceptions import BackendError
from aitune.endpoints.models import Endpoint

__all__ = ["LlamaCppBackend"]


class LlamaCppBackend(InferenceBackend):
    """Launches ``llama-server`` per candidate and reads its ``timings`` block."""

    backend_type = BackendType.LLAMACPP
    default_binary = "llama-server"
    LAYER_COUNT_PATTERN = re.compile(r"n_layer\s*=\s*(\d+)")

    def __init__(self, *args, context_size: int = 4096, batch_size: int | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.context_size = context_size
        self.batch_size = batch_size
        self._model_paths: dict[str, Path] = {}

    @property
    def candidate_mode(self) -> CandidateMode:
        return CandidateMode.LAUNCH_ARGUMENT

    @property
    def has_persistent_endpoint(self) -> bool:
        return False

    def model_path(self, model_ref: str) -> Path:
        """Resolve a discovered model name (or an explicit path) to its GGUF file."""
        if model_ref in self._model_paths:
            return self._model_paths[model_ref]
        path = Path(model_ref)
        if path.suffix == ".gguf":
            return path
        if self.model_store is not None:
            candidate = self.model_store / f"{model_ref}.gguf"
            if candidate.exists():
                return candidate
        raise BackendError(f"No GGUF file found for model '{model_ref}'")

    async def list_models(self, address: str) -> list[str]:
        if self.model_store is None or not self.model_store.is_dir():
            return []
        self._model_paths = {
            path.stem: path for path in sorted(self.model_store.rglob("*.gguf"))
        }
        return list(self._model_paths)

    def server_command(
        self, endpoint: Endpoint, model_ref: str | None = None, candidate: int | None = None
    ) -> list[str]:
        if model_ref is None:
            raise BackendError("llama-server needs a model to launch")
        command = [
            self.binary,
            "-m",
            str(self.model_path(model_ref)),
            "--host",
            endpoint.host,
            "--port",
            str(endpoint.port),
            "-c",
            str(self.context_size),
        ]
        if self.batch_size is not None:
            command += ["-b", str(self.batch_size)]
        if candidate is not None:
            command += ["-ngl", str(candidate)]
        return command

    def server_env(self, endpoint: Endpoint) -> dict[str, str]:
        return self.device_visibility_env(endpoint)

    async def health_check(self, address: str) -> bool:
        # /health answers 503 while the model is still loading.
        try:
            response = await self.client.get(f"http://{address}/health")
        except httpx.HTTPError as e:
            self.debug(f"Health check for {address} failed: {e!r}")
            return False
        return response.status_code == 200

    def build_options(self, bench: BenchConfig, candidate: int | None) -> dict[str, Any]:
        return {
            "n_predict": bench.max_tokens,
            "temperature": bench.temperature,
            "cache_prompt": False,
        }

    def build_generate_request(
        self, model_ref: str, options: dict[str, Any], prompt: str
    ) -> tuple[str, dict[str, Any]]:
        return "/completion", {"prompt": prompt, "stream": False, **options}

    def parse_metrics(self, payload: dict[str, Any]) -> tuple[int, float]:
        timings = payload.get("timings") or {}
        tokens = int(timings.get("predicted_n") or payload.get("tokens_predicted") or 0)
        elapsed = float(timings.get("predicted_ms") or 0) / 1000.0
        return tokens, elapsed
