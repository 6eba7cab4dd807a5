# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Offload sweep for one (base model, endpoint) pair.

A sweep measures the model as-is, then walks the candidate list from the highest
offload down, applying the stop rules of its ``SweepPolicy`` after every trial.
Trials on one endpoint are strictly sequential. Every trial is written to the
ledger before the next one starts.
"""

import asyncio

from aitune.backends.base import InferenceBackend
from aitune.common.config import UserConfig
from aitune.common.enums import CandidateMode, StopReason, TrialLabel, TrialOutcome
from aitune.common.environment import Environment
from aitune.common.exceptions import BakeFailedError, EndpointNotReadyError
from aitune.common.mixins import AITuneLoggerMixin
from aitune.endpoints import Endpoint, EndpointManager
from aitune.ledger import LedgerRow, ResultsLedger
from aitune.metrics import GenerationResult, MetricClient
from aitune.monitoring import CpuBoundWatchdog, UtilizationSampler
from aitune.orchestrator.models import SweepPolicy, SweepResult, Trial
from aitune.orchestrator.strategies import CandidateStrategy, select_strategy
from aitune.variants import VariantManager, base_alias, configuration_alias

__all__ = ["SweepEngine", "SweepProgress"]

WARMUP_PROMPT = "warm up"


class SweepProgress:
    """Running best and stop-rule counters of one sweep.

    ``zero_run`` counts consecutive zero-throughput or CPU-bound trials; error
    outcomes leave it unchanged. Only an exhaustive sweep stops on it; a
    non-exhaustive sweep keeps walking until the first success.
    ``no_improvement_run`` counts trials since the running best last improved
    and only starts once a best exists.
    """

    def __init__(self, policy: SweepPolicy) -> None:
        self.policy = policy
        self.best: Trial | None = None
        self.zero_run = 0
        self.no_improvement_run = 0
        self.stop_reason: StopReason | None = None

    def record(self, trial: Trial) -> StopReason | None:
        """Account for ``trial`` and return the reason to stop, if any."""
        if trial.outcome.is_zero_like:
            self.zero_run += 1
        elif trial.succeeded:
            self.zero_run = 0

        previous = self.best
        improved = trial.succeeded and (
            previous is None or trial.tokens_per_second > previous.tokens_per_second
        )
        if improved:
            self.best = trial
            self.no_improvement_run = 0
        elif self.best is not None:
            self.no_improvement_run += 1

        self.stop_reason = self._stop_reason(trial, improved, previous)
        return self.stop_reason

    def _stop_reason(
        self, trial: Trial, improved: bool, previous: Trial | None
    ) -> StopReason | None:
        policy = self.policy
        if not policy.exhaustive:
            return StopReason.FIRST_SUCCESS if trial.succeeded else None
        if policy.zero_throughput_break_limit and self.zero_run >= policy.zero_throughput_break_limit:
            return StopReason.ZERO_THROUGHPUT_LIMIT
        if (
            policy.no_improvement_limit
            and self.best is not None
            and self.no_improvement_run >= policy.no_improvement_limit
        ):
            return StopReason.NO_IMPROVEMENT_LIMIT
        if (
            policy.early_stop_delta is not None
            and improved
            and previous is not None
            and (trial.tokens_per_second - previous.tokens_per_second)
            / previous.tokens_per_second
            < policy.early_stop_delta
        ):
            return StopReason.EARLY_STOP_DELTA
        return None


class SweepEngine(AITuneLoggerMixin):
    """Runs sweeps and records every trial in the ledger.

    Args:
        backend: Backend serving the endpoints
        endpoints: Endpoint lifecycle manager (claims, launch-argument re-provisioning)
        metrics: Metric client measuring single generations
        ledger: Results ledger every trial is appended to
        config: Run configuration
        variants: Variant manager; required to bake candidates or publish winners
        sampler: Utilization sampler for CPU-bound detection
    """

    def __init__(
        self,
        backend: InferenceBackend,
        endpoints: EndpointManager,
        metrics: MetricClient,
        ledger: ResultsLedger,
        config: UserConfig,
        variants: VariantManager | None = None,
        sampler: UtilizationSampler | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.backend = backend
        self.endpoints = endpoints
        self.metrics = metrics
        self.ledger = ledger
        self.config = config
        self.variants = variants
        self.sampler = sampler or UtilizationSampler()
        self.policy = SweepPolicy.from_config(config.sweep)

    @property
    def mode(self) -> CandidateMode:
        return self.backend.candidate_mode

    async def run(self, base_model: str, endpoint: Endpoint) -> SweepResult:
        """Sweep ``base_model`` on ``endpoint``.

        Raises:
            EndpointNotReadyError: If the endpoint cannot be brought up for the baseline
            LedgerWriteError: If a trial cannot be recorded
        """
        result = SweepResult(
            base_model=base_model,
            endpoint_id=endpoint.endpoint_id,
            endpoint=endpoint.address,
            suffix=endpoint.suffix,
            device_label=endpoint.device_label,
        )
        self.info(
            f"[{endpoint.suffix}] Sweeping {base_model} on {endpoint.address} "
            f"(devices: {endpoint.device_label}, mode: {self.mode})"
        )

        result.baseline = await self.run_baseline(base_model, endpoint)

        strategy = self._strategy_for(endpoint)
        candidates = strategy.get_candidates()
        result.strategy = strategy.describe()
        result.candidates = candidates
        self.info(f"[{endpoint.suffix}] Candidates {strategy.describe()}: {candidates}")

        progress = SweepProgress(self.policy)
        for candidate in candidates:
            trial = await self.run_candidate(base_model, endpoint, candidate)
            result.trials.append(trial)
            stop_reason = progress.record(trial)
            if stop_reason is not None:
                result.stop_reason = stop_reason
                self.info(
                    f"[{endpoint.suffix}] Stopping sweep of {base_model} after candidate "
                    f"{candidate}: {stop_reason}"
                )
                break

        result.best = progress.best
        if result.best is None:
            self.warning(f"[{endpoint.suffix}] No working configuration for {base_model}")
            return result

        self.info(
            f"[{endpoint.suffix}] Best for {base_model}: candidate {result.best.candidate} "
            f"at {result.best.tokens_per_second:.2f} tok/s"
        )
        if self._should_publish():
            result.published = await self.publish(base_model, endpoint, result.best)
        return result

    def _should_publish(self) -> bool:
        sweep = self.config.sweep
        return (
            self.backend.supports_variants
            and self.variants is not None
            and sweep.publish_best
        )

    def _strategy_for(self, endpoint: Endpoint) -> CandidateStrategy:
        layer_count = None
        if self.config.sweep.auto_candidates:
            layer_count = self.backend.layer_count_from_log(self.endpoints.read_log_tail(endpoint))
            if layer_count is None:
                self.debug(f"No layer count in {endpoint.endpoint_id} log; using fixed candidates")
        return select_strategy(self.config.sweep, layer_count)

    async def run_baseline(self, base_model: str, endpoint: Endpoint) -> Trial:
        """Measure the model with no candidate applied. Always recorded."""
        if self.mode == CandidateMode.LAUNCH_ARGUMENT:
            await self.endpoints.provision(endpoint, model_ref=base_model)
        return await self._measure_trial(
            base_model, endpoint, TrialLabel.BASE_AS_IS, model_ref=base_model, candidate=None
        )

    async def run_candidate(self, base_model: str, endpoint: Endpoint, candidate: int) -> Trial:
        """Apply ``candidate`` the way the backend requires and measure it."""
        if self.mode == CandidateMode.LAUNCH_ARGUMENT:
            try:
                await self.endpoints.provision(endpoint, model_ref=base_model, candidate=candidate)
            except EndpointNotReadyError as e:
                self.warning(f"[{endpoint.suffix}] Candidate {candidate} failed to launch: {e}")
                return self._record_failure(
                    base_model,
                    endpoint,
                    TrialLabel.OPTIMIZED,
                    base_model,
                    candidate,
                    TrialOutcome.ZERO_THROUGHPUT,
                    str(e),
                )
            return await self._measure_trial(
                base_model, endpoint, TrialLabel.OPTIMIZED, base_model, candidate
            )

        if self.mode == CandidateMode.BAKED_VARIANT:
            name = await self._bake_visible(base_model, endpoint, candidate, TrialLabel.OPTIMIZED)
            if isinstance(name, Trial):
                return name
            return await self._measure_trial(
                base_model, endpoint, TrialLabel.OPTIMIZED, name, candidate, baked=True
            )

        return await self._measure_trial(
            base_model, endpoint, TrialLabel.OPTIMIZED, base_model, candidate
        )

    async def publish(self, base_model: str, endpoint: Endpoint, best: Trial) -> Trial:
        """Bake the winner, warm it up and re-measure it as the published trial."""
        name = await self._bake_visible(base_model, endpoint, best.candidate, TrialLabel.PUBLISHED)
        if isinstance(name, Trial):
            return name
        if self.config.sweep.warmup_publish:
            await self._warm_up(endpoint, name)
        trial = await self._measure_trial(
            base_model, endpoint, TrialLabel.PUBLISHED, name, best.candidate, baked=True
        )
        if trial.succeeded:
            self.info(f"[{endpoint.suffix}] Published {name} at {trial.tokens_per_second:.2f} tok/s")
        return trial

    async def _bake_visible(
        self, base_model: str, endpoint: Endpoint, candidate: int, label: TrialLabel
    ) -> str | Trial:
        """Bake and wait for the variant; returns its name, or the recorded failed trial."""
        name = self.variants.name_for(base_model, endpoint.device_label, candidate)
        try:
            await self.variants.bake(name, base_model, candidate, endpoint)
        except BakeFailedError as e:
            self.warning(f"[{endpoint.suffix}] {e}")
            await self.variants.delete(name)
            return self._record_failure(
                base_model, endpoint, label, name, candidate, TrialOutcome.ERROR, str(e)
            )
        if not await self.variants.wait_visible(name, endpoint):
            await self.variants.delete(name)
            return self._record_failure(
                base_model,
                endpoint,
                label,
                name,
                candidate,
                TrialOutcome.ERROR,
                f"variant {name} never became visible on {endpoint.address}",
            )
        return name

    async def _warm_up(self, endpoint: Endpoint, model_ref: str) -> None:
        bench = self.config.bench.model_copy(update={"max_tokens": self.config.sweep.warmup_tokens})
        options = self.backend.build_options(bench, None)
        async with self.endpoints.claim(endpoint):
            result = await self.metrics.measure(
                endpoint.address, model_ref, options, WARMUP_PROMPT, bench.generation_timeout
            )
        self.debug(f"[{endpoint.suffix}] Warm-up of {model_ref}: {result.tokens_per_second:.2f} tok/s")

    async def _measure_trial(
        self,
        base_model: str,
        endpoint: Endpoint,
        label: TrialLabel,
        model_ref: str,
        candidate: int | None,
        baked: bool = False,
    ) -> Trial:
        bench = self.config.bench
        # A baked variant already carries its candidate.
        option_candidate = None if baked or self.mode == CandidateMode.LAUNCH_ARGUMENT else candidate
        options = self.backend.build_options(bench, option_candidate)
        alias = self._config_alias(base_model, endpoint, candidate)
        capture_key = (
            f"{self.backend.backend_type}_{endpoint.suffix}_{base_alias(base_model)}_"
            f"{label}_ng{candidate if candidate is not None else 'base'}"
        )

        generation, cpu_bound = await self._generate_watched(
            endpoint, model_ref, options, capture_key
        )
        if cpu_bound:
            if baked:
                await self.variants.delete(model_ref)
            return self._record(
                base_model,
                endpoint,
                Trial(
                    label=TrialLabel.OPTIMIZED_CPU_BOUND,
                    candidate=candidate,
                    model_ref=model_ref,
                    outcome=TrialOutcome.CPU_BOUND,
                    config_alias=alias,
                    error=(
                        "abandoned: CPU-bound during publish"
                        if label == TrialLabel.PUBLISHED
                        else "abandoned: CPU-bound"
                    ),
                ),
            )

        outcome = TrialOutcome.SUCCESS if generation.succeeded else TrialOutcome.ZERO_THROUGHPUT
        return self._record(
            base_model,
            endpoint,
            Trial(
                label=label,
                candidate=candidate,
                model_ref=model_ref,
                outcome=outcome,
                tokens_per_second=generation.tokens_per_second,
                tokens=generation.tokens,
                elapsed_seconds=generation.elapsed_seconds,
                config_alias=alias,
                error=generation.error,
            ),
        )

    async def _generate_watched(
        self, endpoint: Endpoint, model_ref: str, options: dict, capture_key: str
    ) -> tuple[GenerationResult | None, bool]:
        """Run one generation, abandoning it if the watchdog reports a CPU-bound trial.

        Returns:
            (generation result, False) or (None, True) when abandoned
        """
        bench = self.config.bench
        async with self.endpoints.claim(endpoint):
            generation_task = asyncio.create_task(
                self.metrics.measure(
                    endpoint.address,
                    model_ref,
                    options,
                    bench.prompt,
                    bench.generation_timeout,
                    capture_key=capture_key,
                )
            )
            pid = endpoint.pid
            if not Environment.WATCHDOG.ENABLED or pid is None or not endpoint.devices:
                return await generation_task, False

            watchdog = CpuBoundWatchdog(self.sampler)
            watch_task = asyncio.create_task(watchdog.watch(pid, endpoint.device_indices))
            try:
                done, _ = await asyncio.wait(
                    {generation_task, watch_task}, return_when=asyncio.FIRST_COMPLETED
                )
                if generation_task not in done and watch_task.exception() is not None:
                    self.warning(
                        f"[{endpoint.suffix}] Utilization sampling failed: "
                        f"{watch_task.exception()!r}"
                    )
                    done, _ = await asyncio.wait({generation_task})
            finally:
                # Cancelling the generation closes its HTTP connection.
                for task in (generation_task, watch_task):
                    if not task.done():
                        task.cancel()
                await asyncio.gather(generation_task, watch_task, return_exceptions=True)

        if generation_task in done:
            return generation_task.result(), False
        self.warning(f"[{endpoint.suffix}] Abandoned CPU-bound trial of {model_ref}")
        return None, True

    def _config_alias(self, base_model: str, endpoint: Endpoint, candidate: int | None) -> str:
        bench = self.config.bench
        return configuration_alias(
            self.backend.backend_type,
            base_model,
            endpoint.device_label,
            candidate,
            bench.max_tokens,
            bench.context_size,
            bench.temperature,
            self.config.sweep.exhaustive,
        )

    def _record_failure(
        self,
        base_model: str,
        endpoint: Endpoint,
        label: TrialLabel,
        model_ref: str,
        candidate: int | None,
        outcome: TrialOutcome,
        error: str,
    ) -> Trial:
        return self._record(
            base_model,
            endpoint,
            Trial(
                label=label,
                candidate=candidate,
                model_ref=model_ref,
                outcome=outcome,
                config_alias=self._config_alias(base_model, endpoint, candidate),
                error=error,
            ),
        )

    def _record(self, base_model: str, endpoint: Endpoint, trial: Trial) -> Trial:
        bench = self.config.bench
        self.ledger.append(
            LedgerRow(
                endpoint=endpoint.address,
                unit=endpoint.endpoint_id,
                suffix=endpoint.suffix,
                base_model=base_model,
                label=trial.label,
                model_ref=trial.model_ref,
                candidate=trial.candidate,
                context_size=bench.context_size,
                batch_size=bench.batch_size,
                max_tokens=bench.max_tokens,
                tokens_per_second=trial.tokens_per_second,
                device_label=endpoint.device_label,
                device_name=endpoint.device_name,
                device_locator=endpoint.device_locator,
                device_memory_mib=endpoint.device_memory_mib,
            )
        )
        candidate = "base" if trial.candidate is None else trial.candidate
        message = (
            f"[{endpoint.suffix}] {trial.label} {trial.config_alias or trial.model_ref} "
            f"ng={candidate} -> {trial.tokens_per_second:.2f} tok/s ({trial.outcome})"
        )
        if trial.succeeded:
            self.info(message)
        else:
            self.warning(f"{message}: {trial.error}" if trial.error else message)
        return trial
