# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Single-shot generation measurement.

The metric client issues exactly one non-streaming generation request and turns
the response into a throughput figure. It never raises for backend problems:
non-2xx responses, empty bodies, timeouts and transport errors all measure as
zero tokens, which the sweep engine records as a zero-throughput trial.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import orjson

from aitune.common.exceptions import BackendError
from aitune.common.mixins import AITuneLoggerMixin

__all__ = ["GenerationResult", "MetricClient", "compute_tokens_per_second"]

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def compute_tokens_per_second(tokens: int, elapsed_seconds: float) -> float:
    """Throughput of one generation.

    Exactly ``tokens / elapsed_seconds`` when both are positive, otherwise 0.0.
    Never negative and never rounded.
    """
    if elapsed_seconds <= 0 or tokens <= 0:
        return 0.0
    return tokens / elapsed_seconds


@dataclass(slots=True)
class GenerationResult:
    """Outcome of one measured generation request."""

    tokens: int = 0
    elapsed_seconds: float = 0.0
    status_code: int | None = None
    error: str | None = None
    payload: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def tokens_per_second(self) -> float:
        return compute_tokens_per_second(self.tokens, self.elapsed_seconds)

    @property
    def succeeded(self) -> bool:
        return self.tokens_per_second > 0


class MetricClient(AITuneLoggerMixin):
    """Measures tokens/sec of one generation through a backend.

    Args:
        backend: Backend that knows the request and response shapes
        debug_dir: When set, every request/response pair is written here as JSON
    """

    def __init__(self, backend, debug_dir: Path | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.backend = backend
        self.debug_dir = Path(debug_dir) if debug_dir else None

    async def measure(
        self,
        address: str,
        model_ref: str,
        options: dict[str, Any],
        prompt: str,
        timeout: float,
        capture_key: str | None = None,
    ) -> GenerationResult:
        """Run one generation and return its measured throughput."""
        result = GenerationResult()
        try:
            response = await self.backend.generate(address, model_ref, options, prompt, timeout)
        except BackendError as e:
            result.error = str(e)
        else:
            result.status_code = response.status_code
            result.payload = response.payload
            if not response.ok:
                result.error = f"HTTP {response.status_code}: {response.text[:200]}"
            elif not response.payload:
                result.error = "empty response"
            else:
                try:
                    result.tokens, result.elapsed_seconds = self.backend.parse_metrics(
                        response.payload
                    )
                except (TypeError, ValueError) as e:
                    result.error = f"unparsable metrics: {e!r}"

        if result.error:
            self.debug(f"Generation on {address} for {model_ref} measured zero: {result.error}")

        if self.debug_dir is not None and capture_key:
            request = {
                "address": address,
                "model": model_ref,
                "options": options,
                "prompt": prompt,
                "timeout": timeout,
            }
            self._capture(capture_key, request, result)
        return result

    def _capture(self, key: str, request: dict[str, Any], result: GenerationResult) -> None:
        stem = _UNSAFE_FILENAME_CHARS.sub("_", key)
        metrics = {
            "tokens": result.tokens,
            "elapsed_seconds": result.elapsed_seconds,
            "tokens_per_second": result.tokens_per_second,
            "status_code": result.status_code,
            "error": result.error,
        }
        try:
            self.debug_dir.mkdir(parents=True, exist_ok=True)
            for suffix, content in (
                ("request", request),
                ("response", result.payload),
                ("metrics", metrics),
            ):
                path = self.debug_dir / f"{stem}_{suffix}.json"
                path.write_bytes(orjson.dumps(content, option=orjson.OPT_INDENT_2))
        except (OSError, TypeError) as e:
            self.warning(f"Could not write debug capture {stem}: {e!r}")
