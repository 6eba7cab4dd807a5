# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Backend collaborator contract.

One implementation exists per supported inference server. Backends translate
transport failures into ``BackendError`` so nothing above this layer branches on
``httpx`` or process errors.
"""

import re
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar

import httpx
import orjson

from aitune.common.config import BenchConfig
from aitune.common.enums import BackendType, CandidateMode
from aitune.common.environment import Environment
from aitune.common.exceptions import BackendError, SetupError
from aitune.common.mixins import AITuneLoggerMixin
from aitune.endpoints.models import Endpoint
from aitune.endpoints.supervisor import ProcessHandle, ProcessSupervisor

__all__ = ["GenerateResponse", "InferenceBackend"]


@dataclass(slots=True)
class GenerateResponse:
    """Raw generation response.

    ``payload`` is empty when the body was missing or not a JSON object.
    """

    status_code: int
    payload: dict[str, Any] = field(default_factory=dict)
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class InferenceBackend(AITuneLoggerMixin, ABC):
    """Base class for inference backends.

    Subclasses describe how to launch the server for a device set, how to talk
    to its HTTP API, and how to read token counts out of its responses.
    """

    backend_type: ClassVar[BackendType]
    default_binary: ClassVar[str]
    LAYER_COUNT_PATTERN: ClassVar[re.Pattern[str] | None] = None

    def __init__(
        self,
        binary: str | None = None,
        model_store: Path | None = None,
        client: httpx.AsyncClient | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.binary = binary or self.default_binary
        self.model_store = Path(model_store) if model_store else None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                Environment.HTTP.CONTROL_TIMEOUT,
                connect=Environment.HTTP.CONNECT_TIMEOUT,
            )
        )

    @property
    @abstractmethod
    def candidate_mode(self) -> CandidateMode:
        """How candidates are applied to a trial."""

    @property
    def supports_variants(self) -> bool:
        """Whether named variants can be baked for this backend."""
        return False

    @property
    def has_persistent_endpoint(self) -> bool:
        """Whether a long-lived endpoint owns the model catalog."""
        return True

    def resolve_binary(self) -> str:
        """Absolute path of the backend executable.

        Raises:
            SetupError: If the binary cannot be found
        """
        path = shutil.which(self.binary)
        if path is None:
            raise SetupError(
                f"{self.backend_type} binary '{self.binary}' not found. "
                f"Install it or pass --binary."
            )
        return path

    @abstractmethod
    def server_command(
        self, endpoint: Endpoint, model_ref: str | None = None, candidate: int | None = None
    ) -> list[str]:
        """Command line that serves ``endpoint``."""

    @abstractmethod
    def server_env(self, endpoint: Endpoint) -> dict[str, str]:
        """Environment restricting the server to the endpoint's device set."""

    def device_visibility_env(self, endpoint: Endpoint) -> dict[str, str]:
        # An empty value hides every device, which is what a CPU-only endpoint wants.
        return {"CUDA_VISIBLE_DEVICES": endpoint.visible_devices}

    async def start(
        self,
        supervisor: ProcessSupervisor,
        endpoint: Endpoint,
        model_ref: str | None = None,
        candidate: int | None = None,
    ) -> ProcessHandle:
        """Start a server process for ``endpoint``."""
        command = self.server_command(endpoint, model_ref=model_ref, candidate=candidate)
        return await supervisor.start(endpoint.endpoint_id, command, self.server_env(endpoint))

    async def stop(self, supervisor: ProcessSupervisor, handle: ProcessHandle) -> None:
        await supervisor.stop(handle)

    @abstractmethod
    async def health_check(self, address: str) -> bool:
        """True when the server at ``address`` answers its readiness check."""

    @abstractmethod
    def build_generate_request(
        self, model_ref: str, options: dict[str, Any], prompt: str
    ) -> tuple[str, dict[str, Any]]:
        """Return (path, json payload) of a non-streaming generation request."""

    @abstractmethod
    def build_options(self, bench: BenchConfig, candidate: int | None) -> dict[str, Any]:
        """Request options for the fixed bench parameters plus an optional candidate."""

    @abstractmethod
    def parse_metrics(self, payload: dict[str, Any]) -> tuple[int, float]:
        """Return (tokens produced, elapsed seconds) from a generation response."""

    async def generate(
        self,
        address: str,
        model_ref: str,
        options: dict[str, Any],
        prompt: str,
        timeout: float,
    ) -> GenerateResponse:
        """Issue one generation request.

        Raises:
            BackendError: On transport failures and timeouts
        """
        path, payload = self.build_generate_request(model_ref, options, prompt)
        try:
            response = await self.client.post(
                f"http://{address}{path}", json=payload, timeout=timeout
            )
        except httpx.HTTPError as e:
            raise BackendError(f"Generation request to {address} failed: {e!r}") from e
        return GenerateResponse(
            status_code=response.status_code,
            payload=_json_object(response.content),
            text=response.text,
        )

    async def list_models(self, address: str) -> list[str]:
        """Models available on the endpoint."""
        return []

    async def pull_model(self, address: str, model: str) -> None:
        """Make ``model`` available in the shared store. No-op by default."""

    async def bake_variant(
        self, address: str, name: str, base_model: str, candidate: int
    ) -> None:
        raise BackendError(f"{self.backend_type} does not support baked variants")

    async def delete_variant(self, address: str, name: str) -> None:
        raise BackendError(f"{self.backend_type} does not support baked variants")

    def model_matches(self, listed_name: str, name: str) -> bool:
        """Whether a catalog entry refers to ``name``."""
        return listed_name == name

    def layer_count_from_log(self, log_text: str) -> int | None:
        """Offloadable layer count of the most recently loaded model, if logged."""
        if self.LAYER_COUNT_PATTERN is None:
            return None
        matches = self.LAYER_COUNT_PATTERN.findall(log_text)
        if not matches:
            return None
        return int(matches[-1])

    async def aclose(self) -> None:
        await self.client.aclose()


def _json_object(content: bytes) -> dict[str, Any]:
    """Decode a JSON object body; for line-delimited streams keep the last object."""
    if not content:
        return {}
    try:
        data = orjson.loads(content)
    except orjson.JSONDecodeError:
        data = None
        for line in content.splitlines():
            try:
                data = orjson.loads(line)
            except orjson.JSONDecodeError:
                continue
    return data if isinstance(data, dict) else {}
