# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Process-wide operational settings loaded from ``AITUNE_*`` environment variables.

Usage:
    from aitune.common.environment import Environment

    Environment.ENDPOINT.READY_TIMEOUT
    Environment.WATCHDOG.CPU_THRESHOLD_PERCENT

Each section has its own prefix, e.g. ``AITUNE_WATCHDOG_SUSTAINED_SAMPLES=6``.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["Environment"]


class _EndpointSettings(BaseSettings):
    """Endpoint provisioning and readiness polling."""

    model_config = SettingsConfigDict(env_prefix="AITUNE_ENDPOINT_")

    READY_TIMEOUT: float = Field(
        default=30.0, gt=0, description="Seconds to wait for an endpoint to become ready"
    )
    POLL_INTERVAL: float = Field(
        default=1.0, gt=0, description="Seconds between readiness checks"
    )
    STOP_TIMEOUT: float = Field(
        default=30.0, gt=0, description="Seconds to wait for a process to exit before killing it"
    )
    LOG_TAIL_LINES: int = Field(
        default=400, ge=1, description="Lines of backend log scanned for diagnostics"
    )


class _WatchdogSettings(BaseSettings):
    """CPU-bound trial detection."""

    model_config = SettingsConfigDict(env_prefix="AITUNE_WATCHDOG_")

    ENABLED: bool = True
    CPU_THRESHOLD_PERCENT: float = Field(
        default=300.0,
        ge=0,
        description="Backend process CPU utilization (sum over cores) considered CPU-bound",
    )
    GPU_FLOOR_PERCENT: float = Field(
        default=10.0,
        ge=0,
        le=100,
        description="Accelerator utilization below which a trial is considered not offloaded",
    )
    SUSTAINED_SAMPLES: int = Field(
        default=4,
        ge=1,
        description="Consecutive samples that must satisfy both thresholds",
    )
    SAMPLE_INTERVAL: float = Field(default=1.0, gt=0)


class _VariantSettings(BaseSettings):
    """Variant naming and visibility polling."""

    model_config = SettingsConfigDict(env_prefix="AITUNE_VARIANT_")

    PREFIX: str = Field(default="aitune-", description="Prefix of every baked variant name")
    VISIBLE_TIMEOUT: float = Field(default=12.0, gt=0)
    POLL_INTERVAL: float = Field(default=1.0, gt=0)


class _HttpSettings(BaseSettings):
    """HTTP client timeouts for non-generation calls."""

    model_config = SettingsConfigDict(env_prefix="AITUNE_HTTP_")

    CONNECT_TIMEOUT: float = Field(default=5.0, gt=0)
    CONTROL_TIMEOUT: float = Field(
        default=30.0, gt=0, description="Timeout for catalog, bake and delete calls"
    )


class _DeviceSettings(BaseSettings):
    """Accelerator enumeration."""

    model_config = SettingsConfigDict(env_prefix="AITUNE_DEVICE_")

    SMI_BINARY: str = "nvidia-smi"
    QUERY_TIMEOUT: float = Field(default=10.0, gt=0)


class _Environment(BaseSettings):
    ENDPOINT: _EndpointSettings = Field(default_factory=_EndpointSettings)
    WATCHDOG: _WatchdogSettings = Field(default_factory=_WatchdogSettings)
    VARIANT: _VariantSettings = Field(default_factory=_VariantSettings)
    HTTP: _HttpSettings = Field(default_factory=_HttpSettings)
    DEVICE: _DeviceSettings = Field(default_factory=_DeviceSettings)


Environment = _Environment()
