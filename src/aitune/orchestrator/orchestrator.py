# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Run orchestrator for aitune benchmarks."""

import asyncio
import logging
import re

from aitune.backends.base import InferenceBackend
from aitune.common.config import DeviceConfig, ModelSelectionConfig, UserConfig
from aitune.common.environment import Environment
from aitune.common.exceptions import BackendError, EndpointNotReadyError, SetupError
from aitune.devices import Device, DeviceRegistry
from aitune.endpoints import Endpoint, EndpointManager, ProcessSupervisor
from aitune.ledger import ResultsLedger
from aitune.metrics import MetricClient
from aitune.monitoring import UtilizationSampler
from aitune.orchestrator.models import RunReport, SkippedPair, SweepResult
from aitune.orchestrator.sweep import SweepEngine
from aitune.variants import VariantManager

logger = logging.getLogger(__name__)

__all__ = [
    "RunOrchestrator",
    "filter_models",
    "model_pattern_regex",
    "select_devices",
]


def select_devices(registry: DeviceRegistry, config: DeviceConfig) -> list[Device]:
    """Apply the configured device selector.

    Explicit ids win, then name substrings, then the top-N devices by memory.
    With no selector every enumerated device is used.
    """
    if config.gpus:
        return registry.select_by_ids(config.gpus)
    if config.combined:
        return registry.select_by_ids(config.combined)
    if config.match_names:
        return registry.select_by_names(config.match_names)
    if config.top_n:
        return registry.rank_by_memory_descending()[: config.top_n]
    return registry.list_devices()


def model_pattern_regex(pattern: str) -> str:
    """Regex for a ``--model`` pattern that also accepts the tag form.

    ``gpt-oss-20b`` matches ``gpt-oss-20b``, ``gpt-oss:20b`` and ``gpt-oss:20b-q4``.
    """
    escaped = re.escape(pattern)
    alternatives = [f"^{escaped}(:|$)"]
    if "-" in pattern:
        head, _, tail = pattern.rpartition("-")
        alternatives.append(f"^{re.escape(head)}:{re.escape(tail)}")
    alternatives.append(escaped)
    return "|".join(alternatives)


def filter_models(
    models: list[str], config: ModelSelectionConfig, variant_prefix: str
) -> list[str]:
    """Drop derived variants, then apply the pattern and include/exclude filters."""
    selected = []
    pattern = re.compile(model_pattern_regex(config.pattern)) if config.pattern else None
    include = re.compile(config.include) if config.include else None
    exclude = re.compile(config.exclude) if config.exclude else None
    for model in models:
        if variant_prefix and model.startswith(variant_prefix):
            continue
        if pattern is not None and not pattern.search(model):
            continue
        if include is not None and not include.search(model):
            continue
        if exclude is not None and exclude.search(model):
            continue
        selected.append(model)
    return list(dict.fromkeys(selected))


class RunOrchestrator:
    """Drives a full tuning run: every selected model on every planned endpoint.

    The orchestrator:
    - Enumerates and selects devices, and plans one endpoint per device set
    - Discovers and filters base models through the persistent endpoint
    - Measures each model as-is on the persistent endpoint (vanilla baseline)
    - Sweeps each (model, endpoint) pair, skipping pairs whose endpoint never becomes ready
    - Garbage-collects non-winning variants once at the end, then tears endpoints down

    Pairs on different endpoints run concurrently when ``endpoint.parallel`` is set.
    """

    def __init__(
        self,
        config: UserConfig,
        backend: InferenceBackend,
        ledger: ResultsLedger,
        registry: DeviceRegistry | None = None,
        supervisor: ProcessSupervisor | None = None,
        sampler: UtilizationSampler | None = None,
    ):
        """Initialize RunOrchestrator.

        Args:
            config: Run configuration
            backend: Backend serving every endpoint of the run
            ledger: Ledger every trial is recorded in
            registry: Device registry (enumerates devices when omitted)
            supervisor: Process supervisor for managed endpoints
            sampler: Utilization sampler for CPU-bound detection
        """
        self.config = config
        self.backend = backend
        self.ledger = ledger
        self.registry = registry or DeviceRegistry()
        self.supervisor = supervisor or ProcessSupervisor(
            config.output.log_dir / "services", stop_timeout=Environment.ENDPOINT.STOP_TIMEOUT
        )
        self.endpoints = EndpointManager(backend, config.endpoint, self.supervisor)
        self.variants: VariantManager | None = None
        if backend.supports_variants and backend.has_persistent_endpoint:
            self.variants = VariantManager(
                backend,
                self.endpoints.persistent_endpoint,
                catalog_lock=self.endpoints.catalog_lock,
            )
        debug_dir = config.output.debug_dir if config.output.debug_capture else None
        self.metrics = MetricClient(backend, debug_dir=debug_dir)
        self.engine = SweepEngine(
            backend,
            self.endpoints,
            self.metrics,
            ledger,
            config,
            variants=self.variants,
            sampler=sampler,
        )

    async def execute(self) -> RunReport:
        """Run every selected model on every planned endpoint.

        Returns:
            RunReport with every sweep, skipped pair and deleted variant

        Raises:
            SetupError: Missing backend binary, unknown devices, or no reachable model catalog
            LedgerWriteError: If a trial cannot be recorded
        """
        report = RunReport(backend=str(self.backend.backend_type), ledger_path=self.ledger.path)
        self.backend.resolve_binary()

        devices = select_devices(self.registry, self.config.devices)
        planned = self.endpoints.plan_endpoints(devices, self.config.devices.binding_mode)
        logger.info(
            f"Starting {self.backend.backend_type} run on {len(planned)} endpoint(s): "
            + ", ".join(f"{e.suffix}={e.device_label}@{e.address}" for e in planned)
        )

        try:
            if self.backend.has_persistent_endpoint:
                try:
                    await self.endpoints.ensure_persistent()
                except EndpointNotReadyError as e:
                    raise SetupError(f"Model catalog unavailable: {e}") from e

            report.models = await self.discover_models()
            if not report.models:
                logger.warning("No models to benchmark; nothing to do")
                return report
            logger.info(f"Models: {', '.join(report.models)}")

            for model in report.models:
                if self.config.sweep.vanilla_baseline and self.backend.has_persistent_endpoint:
                    report.vanilla.append(
                        await self.engine.run_baseline(model, self.endpoints.persistent_endpoint)
                    )
                await self._sweep_model(model, planned, report)

            if self.variants is not None:
                report.deleted_variants = await self.variants.collect_garbage(self.ledger)
        finally:
            await self.endpoints.shutdown()

        working = sum(1 for sweep in report.sweeps if sweep.has_working_configuration)
        logger.info(
            f"Run complete: {working}/{len(report.sweeps)} pair(s) with a working configuration, "
            f"{len(report.skipped)} skipped"
        )
        return report

    async def discover_models(self) -> list[str]:
        """Models to benchmark: the explicit list, or everything the catalog lists."""
        selection = self.config.models
        address = self.endpoints.persistent_endpoint.address
        if selection.models:
            if self.backend.has_persistent_endpoint:
                await self._pull_missing(address, selection.models)
            return list(dict.fromkeys(selection.models))
        try:
            models = await self.backend.list_models(address)
        except BackendError as e:
            raise SetupError(f"Could not list models: {e}") from e
        return filter_models(models, selection, Environment.VARIANT.PREFIX)

    async def _pull_missing(self, address: str, models: list[str]) -> None:
        try:
            available = await self.backend.list_models(address)
        except BackendError as e:
            raise SetupError(f"Could not list models: {e}") from e
        for model in models:
            if any(self.backend.model_matches(name, model) for name in available):
                continue
            logger.info(f"Pulling missing model {model} via {address}")
            async with self.endpoints.catalog_lock:
                try:
                    await self.backend.pull_model(address, model)
                except BackendError as e:
                    logger.warning(f"Could not pull {model}: {e}")

    async def _sweep_model(
        self, model: str, planned: list[Endpoint], report: RunReport
    ) -> None:
        if self.config.endpoint.parallel:
            # A fatal error in one pair cancels its siblings before it propagates.
            try:
                async with asyncio.TaskGroup() as group:
                    for endpoint in planned:
                        group.create_task(self._sweep_pair(model, endpoint, report))
            except ExceptionGroup as errors:
                raise errors.exceptions[0] from None
        else:
            for endpoint in planned:
                await self._sweep_pair(model, endpoint, report)

    async def _sweep_pair(self, model: str, endpoint: Endpoint, report: RunReport) -> None:
        try:
            if not self.engine.mode.requires_relaunch:
                await self.endpoints.provision(endpoint)
            result: SweepResult = await self.engine.run(model, endpoint)
            report.sweeps.append(result)
        except EndpointNotReadyError as e:
            logger.error(f"Skipping {model} on {endpoint.endpoint_id}: {e}")
            report.skipped.append(
                SkippedPair(
                    base_model=model,
                    endpoint_id=endpoint.endpoint_id,
                    endpoint=endpoint.address,
                    reason=str(e),
                )
            )
        finally:
            await self.endpoints.teardown(endpoint)
