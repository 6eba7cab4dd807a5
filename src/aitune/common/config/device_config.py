# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from pydantic import Field, field_validator, model_validator

from aitune.common.config.base_config import BaseConfig, parse_int_list, parse_str_list
from aitune.common.enums import DeviceBindingMode


class DeviceConfig(BaseConfig):
    """Which accelerators to bind, and how to group them into endpoints.

    Exactly one selector applies, in this order: explicit ``gpus``/``combined`` ids,
    ``match_names`` substrings, then ``top_n`` devices ranked by memory. With no
    selector, every enumerated device gets its own endpoint.
    """

    @field_validator("gpus", "combined", mode="before")
    @classmethod
    def parse_device_ids(cls, v):
        return parse_int_list(v, "device id list")

    @field_validator("match_names", mode="before")
    @classmethod
    def parse_match_names(cls, v):
        return parse_str_list(v)

    @model_validator(mode="after")
    def validate_exclusive_selection(self) -> "DeviceConfig":
        if self.gpus and self.combined:
            raise ValueError(
                "Use either --gpu (one endpoint per device) or --combined "
                "(one endpoint over all devices), not both."
            )
        return self

    gpus: list[int] | None = Field(
        default=None, description="Device ids, one ephemeral endpoint per device"
    )
    combined: list[int] | None = Field(
        default=None, description="Device ids bound together into one endpoint"
    )
    match_names: list[str] = Field(
        default_factory=list, description="Device name substrings, e.g. '5090,3090 Ti'"
    )
    top_n: int | None = Field(
        default=None, ge=1, description="Use the N devices with the most memory"
    )

    @property
    def binding_mode(self) -> DeviceBindingMode:
        return DeviceBindingMode.COMBINED if self.combined else DeviceBindingMode.SEPARATE
