# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from aitune.variants.manager import (
    Variant,
    VariantManager,
    base_alias,
    configuration_alias,
    variant_name,
)

__all__ = [
    "Variant",
    "VariantManager",
    "base_alias",
    "configuration_alias",
    "variant_name",
]
