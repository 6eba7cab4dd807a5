# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from pydantic import Field

from aitune.common.config.base_config import BaseConfig

DEFAULT_PROMPT = "Tell me a 1-sentence fun fact about GPUs."


class BenchConfig(BaseConfig):
    """Fixed parameters applied to every generation request of a run.

    These values are recorded in the ledger so runs stay comparable.
    """

    prompt: str = Field(default=DEFAULT_PROMPT, min_length=1)
    max_tokens: int = Field(
        default=64, ge=1, description="Maximum tokens to generate per trial (num_predict)"
    )
    context_size: int = Field(default=4096, ge=1, description="Context window (num_ctx)")
    batch_size: int | None = Field(
        default=None, ge=1, description="Batch size, where the backend accepts one"
    )
    temperature: float = Field(
        default=0.0, ge=0, description="Sampling temperature. 0 keeps trials deterministic."
    )
    generation_timeout: float = Field(
        default=60.0, gt=0, description="Wall-clock budget of one generation request"
    )
