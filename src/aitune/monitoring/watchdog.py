# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""CPU-bound trial detection.

A misconfigured offload can make a backend silently fall back to CPU execution.
The watchdog samples the backend process's CPU usage and the bound devices'
utilization while a trial runs, and fires once high CPU and idle accelerators
have been observed for several consecutive samples.
"""

import asyncio
import logging
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass

import psutil

from aitune.common.environment import Environment

logger = logging.getLogger(__name__)

__all__ = ["CpuBoundWatchdog", "UtilizationSample", "UtilizationSampler"]


@dataclass(frozen=True, slots=True)
class UtilizationSample:
    """One observation. ``gpu_percent`` is None when utilization could not be read."""

    cpu_percent: float
    gpu_percent: float | None


def parse_gpu_utilization(output: str) -> dict[int, float]:
    """Parse ``nvidia-smi --query-gpu=index,utilization.gpu`` CSV output."""
    utilization = {}
    for line in output.splitlines():
        parts = [part.strip() for part in line.split(",")]
        if len(parts) < 2:
            continue
        try:
            utilization[int(parts[0])] = float(parts[1])
        except ValueError:
            continue
    return utilization


class UtilizationSampler:
    """Reads process CPU usage with psutil and device utilization with nvidia-smi."""

    def __init__(self) -> None:
        self._processes: dict[int, psutil.Process] = {}

    def cpu_percent(self, pid: int) -> float:
        """CPU usage of ``pid`` and its children summed over cores (400 = four busy cores).

        The first reading for a process is 0.0; psutil measures between calls.
        """
        try:
            root = self._process(pid)
            processes = [root, *root.children(recursive=True)]
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            self._processes.pop(pid, None)
            return 0.0
        total = 0.0
        for process in processes:
            try:
                total += self._process(process.pid).cpu_percent(interval=None)
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                self._processes.pop(process.pid, None)
        return total

    def _process(self, pid: int) -> psutil.Process:
        process = self._processes.get(pid)
        if process is None:
            process = psutil.Process(pid)
            self._processes[pid] = process
        return process

    def gpu_percent(self, indices: Sequence[int]) -> float | None:
        """Highest utilization among ``indices``, or None if it cannot be read."""
        try:
            result = subprocess.run(
                [
                    Environment.DEVICE.SMI_BINARY,
                    "--query-gpu=index,utilization.gpu",
                    "--format=csv,noheader,nounits",
                ],
                capture_output=True,
                text=True,
                check=True,
                timeout=Environment.DEVICE.QUERY_TIMEOUT,
            )
        except (subprocess.SubprocessError, OSError) as e:
            logger.debug(f"Could not read device utilization: {e!r}")
            return None
        utilization = parse_gpu_utilization(result.stdout)
        values = [utilization[index] for index in indices if index in utilization]
        return max(values) if values else None

    def sample(self, pid: int, indices: Sequence[int]) -> UtilizationSample:
        return UtilizationSample(
            cpu_percent=self.cpu_percent(pid),
            gpu_percent=self.gpu_percent(indices),
        )


class CpuBoundWatchdog:
    """Fires after ``sustained_samples`` consecutive CPU-bound observations.

    A single sample never fires on its own; any sample that is not CPU-bound
    (including one with unknown accelerator utilization) resets the run.
    """

    def __init__(
        self,
        sampler: UtilizationSampler | None = None,
        cpu_threshold: float | None = None,
        gpu_floor: float | None = None,
        sustained_samples: int | None = None,
        interval: float | None = None,
    ) -> None:
        settings = Environment.WATCHDOG
        self.sampler = sampler or UtilizationSampler()
        self.cpu_threshold = (
            settings.CPU_THRESHOLD_PERCENT if cpu_threshold is None else cpu_threshold
        )
        self.gpu_floor = settings.GPU_FLOOR_PERCENT if gpu_floor is None else gpu_floor
        self.sustained_samples = sustained_samples or settings.SUSTAINED_SAMPLES
        self.interval = settings.SAMPLE_INTERVAL if interval is None else interval
        self.consecutive = 0

    def reset(self) -> None:
        self.consecutive = 0

    def is_cpu_bound(self, sample: UtilizationSample) -> bool:
        return (
            sample.gpu_percent is not None
            and sample.cpu_percent >= self.cpu_threshold
            and sample.gpu_percent < self.gpu_floor
        )

    def observe(self, sample: UtilizationSample) -> bool:
        """Record a sample; True once the sustained window is reached."""
        if self.is_cpu_bound(sample):
            self.consecutive += 1
        else:
            self.consecutive = 0
        return self.consecutive >= self.sustained_samples

    async def watch(self, pid: int, indices: Sequence[int]) -> UtilizationSample:
        """Sample until the trial looks CPU-bound and return the last sample.

        Runs until cancelled otherwise.
        """
        self.reset()
        while True:
            sample = await asyncio.to_thread(self.sampler.sample, pid, indices)
            if self.observe(sample):
                logger.warning(
                    f"Process {pid} looks CPU-bound: cpu={sample.cpu_percent:.0f}% "
                    f"gpu={sample.gpu_percent:.0f}% for {self.consecutive} samples"
                )
                return sample
            await asyncio.sleep(self.interval)
