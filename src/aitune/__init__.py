# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""AITune - offload auto-tuning benchmarks for LLM inference servers."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("aitune")
except PackageNotFoundError:
    __version__ = "unknown"
