# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
import re

from pydantic import Field, field_validator

from aitune.common.config.base_config import BaseConfig


class ModelSelectionConfig(BaseConfig):
    """Filters applied to the models discovered on the persistent endpoint."""

    @field_validator("include", "exclude")
    @classmethod
    def validate_regex(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            re.compile(v)
        except re.error as err:
            raise ValueError(f"Invalid model regex '{v}': {err}") from err
        return v

    pattern: str | None = Field(
        default=None,
        description="Model name pattern; 'gpt-oss-20b' also matches the tag 'gpt-oss:20b'",
    )
    include: str | None = Field(default=None, description="Keep only models matching this regex")
    exclude: str | None = Field(default=None, description="Drop models matching this regex")
    models: list[str] = Field(
        default_factory=list,
        description="Explicit models to benchmark; skips discovery when set",
    )
