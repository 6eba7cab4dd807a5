# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Shared fixtures: a scripted backend, devices and ready endpoints."""

import asyncio
from typing import Any
from unittest.mock import MagicMock

import pytest

from aitune.backends.base import GenerateResponse, InferenceBackend
from aitune.common.config import BenchConfig
from aitune.common.enums import BackendType, CandidateMode, EndpointState
from aitune.common.exceptions import BackendError
from aitune.devices import Device
from aitune.endpoints import Endpoint

HANG = "hang"


def make_device(
    index: int = 0, name: str = "NVIDIA GeForce RTX 3090 Ti", memory_mib: int = 24564
) -> Device:
    return Device(
        index=index,
        name=name,
        memory_mib=memory_mib,
        uuid=f"GPU-0000-{index:04d}",
        serial=f"13240000{index}5",
    )


def ready_endpoint(
    devices: tuple[Device, ...] = (), suffix: str = "A", port: int = 11435
) -> Endpoint:
    return Endpoint(
        endpoint_id=f"ollama-test-{suffix.lower()}",
        suffix=suffix,
        host="127.0.0.1",
        port=port,
        backend=BackendType.OLLAMA,
        devices=devices,
        state=EndpointState.READY,
    )


class ScriptedBackend(InferenceBackend):
    """Backend whose throughput per candidate is scripted.

    ``rates`` maps a candidate (None for the as-is baseline) to tokens/sec, or to
    ``HANG`` for a generation that never returns. Baked variants live in an
    in-memory catalog.
    """

    backend_type = BackendType.OLLAMA
    default_binary = "scripted-server"

    def __init__(
        self,
        rates: dict[int | None, Any] | None = None,
        mode: CandidateMode = CandidateMode.RUNTIME_OPTION,
        variants: bool = False,
        models: list[str] | None = None,
        log_text: str = "",
    ) -> None:
        super().__init__(client=MagicMock())
        self.rates = rates or {}
        self.mode = mode
        self.variants_supported = variants
        self.models = list(models or ["llama3:8b"])
        self.log_text = log_text
        self.catalog: dict[str, int] = {}
        self.fail_bake = False
        self.launched: list[int | None] = []
        self.generated: list[tuple[str, int | None]] = []
        self.baked: list[str] = []
        self.deleted: list[str] = []

    @property
    def candidate_mode(self) -> CandidateMode:
        return self.mode

    @property
    def supports_variants(self) -> bool:
        return self.variants_supported

    def resolve_binary(self) -> str:
        return f"/usr/bin/{self.binary}"

    def server_command(self, endpoint, model_ref=None, candidate=None) -> list[str]:
        return [self.binary]

    def server_env(self, endpoint) -> dict[str, str]:
        return self.device_visibility_env(endpoint)

    async def start(self, supervisor, endpoint, model_ref=None, candidate=None):
        self.launched.append(candidate)
        handle = MagicMock()
        handle.is_running = True
        handle.pid = None
        return handle

    async def stop(self, supervisor, handle) -> None:
        handle.is_running = False

    async def health_check(self, address: str) -> bool:
        return True

    async def list_models(self, address: str) -> list[str]:
        return self.models + list(self.catalog)

    def build_options(self, bench: BenchConfig, candidate: int | None) -> dict[str, Any]:
        options: dict[str, Any] = {"num_predict": bench.max_tokens}
        if candidate is not None:
            options["num_gpu"] = candidate
        return options

    def build_generate_request(self, model_ref, options, prompt):
        return "/generate", {"model": model_ref, "prompt": prompt, "options": options}

    def _effective_candidate(self, model_ref: str, options: dict[str, Any]) -> int | None:
        if "num_gpu" in options:
            return options["num_gpu"]
        if model_ref in self.catalog:
            return self.catalog[model_ref]
        if self.mode == CandidateMode.LAUNCH_ARGUMENT and self.launched:
            return self.launched[-1]
        return None

    async def generate(self, address, model_ref, options, prompt, timeout) -> GenerateResponse:
        if prompt == "warm up":
            return GenerateResponse(status_code=200, payload={"rate": 1.0})
        candidate = self._effective_candidate(model_ref, options)
        self.generated.append((model_ref, candidate))
        rate = self.rates.get(candidate, 0.0)
        if rate == HANG:
            await asyncio.sleep(3600)
        return GenerateResponse(status_code=200, payload={"rate": rate})

    def parse_metrics(self, payload: dict[str, Any]) -> tuple[int, float]:
        return round(payload["rate"] * 100), 100.0

    async def bake_variant(self, address, name, base_model, candidate) -> None:
        self.baked.append(name)
        if self.fail_bake:
            raise BackendError("create rejected")
        self.catalog[name] = candidate

    async def delete_variant(self, address, name) -> None:
        self.deleted.append(name)
        self.catalog.pop(name, None)

    def layer_count_from_log(self, log_text: str) -> int | None:
        if not self.log_text:
            return None
        return int(self.log_text)

    @property
    def attempted_candidates(self) -> list[int | None]:
        return [candidate for _, candidate in self.generated]


@pytest.fixture
def device() -> Device:
    return make_device()


@pytest.fixture
def device_factory():
    return make_device


@pytest.fixture
def endpoint_factory():
    return ready_endpoint


@pytest.fixture
def backend_factory():
    return ScriptedBackend
