# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from aitune.metrics.client import GenerationResult, MetricClient, compute_tokens_per_second

__all__ = ["GenerationResult", "MetricClient", "compute_tokens_per_second"]
