# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Ollama backend.

The offload candidate is Ollama's ``num_gpu`` option. It is either sent with each
generation request or baked into a named model derived from the base model.
"""

import re
from typing import Any

import httpx

from aitune.backends.base import InferenceBackend
from aitune.common.config import BenchConfig
from aitune.common.enums import BackendType, CandidateMode
from aitune.common.exceptions import BackendError
from aitune.endpoints.models import Endpoint

__all__ = ["OllamaBackend"]

NANOSECONDS_PER_SECOND = 1_000_000_000


class OllamaBackend(InferenceBackend):
    """Talks to ``ollama serve`` instances over the native HTTP API."""

    backend_type = BackendType.OLLAMA
    default_binary = "ollama"
    LAYER_COUNT_PATTERN = re.compile(r"layers\.model=(\d+)")

    def __init__(self, *args, bake_candidates: bool = False, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.bake_candidates = bake_candidates

    @property
    def candidate_mode(self) -> CandidateMode:
        if self.bake_candidates:
            return CandidateMode.BAKED_VARIANT
        return CandidateMode.RUNTIME_OPTION

    @property
    def supports_variants(self) -> bool:
        return True

    def server_command(
        self, endpoint: Endpoint, model_ref: str | None = None, candidate: int | None = None
    ) -> list[str]:
        return [self.binary, "serve"]

    def server_env(self, endpoint: Endpoint) -> dict[str, str]:
        env = {"OLLAMA_HOST": endpoint.address}
        if self.model_store is not None:
            env["OLLAMA_MODELS"] = str(self.model_store)
        if not endpoint.is_persistent:
            env.update(self.device_visibility_env(endpoint))
        if len(endpoint.devices) > 1:
            env["OLLAMA_SCHED_SPREAD"] = "1"
        return env

    async def health_check(self, address: str) -> bool:
        try:
            response = await self.client.get(f"http://{address}/api/tags")
        except httpx.HTTPError as e:
            self.debug(f"Health check for {address} failed: {e!r}")
            return False
        return response.status_code == 200

    async def list_models(self, address: str) -> list[str]:
        try:
            response = await self.client.get(f"http://{address}/api/tags")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise BackendError(f"Listing models on {address} failed: {e!r}") from e
        return [entry["name"] for entry in data.get("models", []) if entry.get("name")]

    def model_matches(self, listed_name: str, name: str) -> bool:
        return listed_name == name or listed_name == f"{name}:latest"

    def build_options(self, bench: BenchConfig, candidate: int | None) -> dict[str, Any]:
        options: dict[str, Any] = {
            "num_predict": bench.max_tokens,
            "num_ctx": bench.context_size,
            "temperature": bench.temperature,
        }
        if bench.batch_size is not None:
            options["num_batch"] = bench.batch_size
        if candidate is not None:
            options["num_gpu"] = candidate
        return options

    def build_generate_request(
        self, model_ref: str, options: dict[str, Any], prompt: str
    ) -> tuple[str, dict[str, Any]]:
        return "/api/generate", {
            "model": model_ref,
            "prompt": prompt,
            "stream": False,
            "options": options,
        }

    def parse_metrics(self, payload: dict[str, Any]) -> tuple[int, float]:
        tokens = int(payload.get("eval_count") or 0)
        elapsed = float(payload.get("eval_duration") or 0) / NANOSECONDS_PER_SECOND
        return tokens, elapsed

    async def pull_model(self, address: str, model: str) -> None:
        await self._post(address, "/api/pull", {"model": model, "stream": False}, "pull")

    async def bake_variant(
        self, address: str, name: str, base_model: str, candidate: int
    ) -> None:
        payload = {
            "model": name,
            "from": base_model,
            "parameters": {"num_gpu": candidate},
            "stream": False,
        }
        await self._post(address, "/api/create", payload, "create")

    async def delete_variant(self, address: str, name: str) -> None:
        try:
            response = await self.client.request(
                "DELETE", f"http://{address}/api/delete", json={"model": name}
            )
        except httpx.HTTPError as e:
            raise BackendError(f"Deleting {name} on {address} failed: {e!r}") from e
        if response.status_code == 404:
            self.debug(f"Variant {name} already absent on {address}")
            return
        if response.is_error:
            raise BackendError(
                f"Deleting {name} on {address} failed: HTTP {response.status_code} {response.text}"
            )

    async def _post(self, address: str, path: str, payload: dict[str, Any], action: str) -> None:
        try:
            response = await self.client.post(f"http://{address}{path}", json=payload)
        except httpx.HTTPError as e:
            raise BackendError(f"Ollama {action} on {address} failed: {e!r}") from e
        if response.is_error:
            raise BackendError(
                f"Ollama {action} on {address} failed: HTTP {response.status_code} {response.text}"
            )
