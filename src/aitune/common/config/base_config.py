# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from pydantic import BaseModel, ConfigDict


class BaseConfig(BaseModel):
    """Base class for all configuration sections."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")


def parse_int_list(v, field_label: str) -> list[int] | None:
    """Parse comma/space separated integers from CLI input.

    Accepts ``None``, a single int, a list of ints, or strings such as
    ``"80,64,48"`` or ``"80 64 48"``.

    Raises:
        ValueError: If any element is not an integer
    """
    if v is None:
        return None
    if isinstance(v, int):
        return [v]
    if isinstance(v, (list, tuple)):
        parts = list(v)
    elif isinstance(v, str):
        parts = [part for part in v.replace(",", " ").split() if part]
    else:
        raise ValueError(
            f"Invalid {field_label} type {type(v).__name__}. "
            f"Expected int, str, list[int], or None."
        )

    values = []
    for part in parts:
        try:
            values.append(int(part))
        except (TypeError, ValueError) as err:
            raise ValueError(
                f"Invalid {field_label}: '{v}'. Failed to parse value: '{part}'. "
                f"Examples: 80,64,48 or '80 64 48'"
            ) from err
    return values


def parse_str_list(v) -> list[str]:
    """Parse a comma separated string (or list) into stripped, non-empty strings."""
    if v is None:
        return []
    if isinstance(v, str):
        return [part.strip() for part in v.split(",") if part.strip()]
    return [str(part).strip() for part in v if str(part).strip()]
