# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Command line interface."""

import logging
import sys
from pathlib import Path
from typing import Annotated

from cyclopts import App, Group, Parameter
from pydantic import ValidationError

from aitune import __version__
from aitune.common.config import (
    BenchConfig,
    DeviceConfig,
    EndpointConfig,
    ModelSelectionConfig,
    OutputConfig,
    SweepConfig,
    UserConfig,
)
from aitune.common.enums import BackendType

app = App(name="aitune", help="Find the best accelerator offload per model and device.", version=__version__)

_MODELS = Group("Models")
_DEVICES = Group("Devices")
_SWEEP = Group("Sweep")
_OUTPUT = Group("Output")


def build_user_config(
    *,
    backend: BackendType = BackendType.OLLAMA,
    binary: str | None = None,
    model: str | None = None,
    models: str | None = None,
    include_models: str | None = None,
    exclude_models: str | None = None,
    gpu: str | None = None,
    combined: str | None = None,
    match_gpu: str | None = None,
    top_gpus: int | None = None,
    exhaustive: bool = False,
    fast: bool = True,
    publish_best: bool = False,
    candidates: str | None = None,
    auto_candidates: bool = True,
    max_tokens: int = 64,
    context_size: int = 4096,
    timeout: float = 60.0,
    start_persistent: bool = False,
    model_store: Path | None = None,
    parallel: bool = False,
    log_dir: Path = Path("artifacts"),
    debug_capture: bool = False,
) -> UserConfig:
    """Build the run configuration from command line values.

    Explicit ``candidates`` replace the fixed list used when no layer count is
    known; pass ``auto_candidates=False`` to always use them.
    """
    sweep = {
        "exhaustive": exhaustive,
        "fast_mode": fast,
        "publish_best": publish_best,
        "auto_candidates": auto_candidates,
    }
    if candidates is not None:
        sweep["candidates"] = candidates

    return UserConfig(
        bench=BenchConfig(
            max_tokens=max_tokens, context_size=context_size, generation_timeout=timeout
        ),
        sweep=SweepConfig(**sweep),
        devices=DeviceConfig(
            gpus=gpu, combined=combined, match_names=match_gpu, top_n=top_gpus
        ),
        endpoint=EndpointConfig(
            backend=backend,
            binary=binary,
            start_persistent=start_persistent,
            model_store=model_store,
            parallel=parallel,
        ),
        models=ModelSelectionConfig(
            pattern=model,
            include=include_models,
            exclude=exclude_models,
            models=[m.strip() for m in models.split(",") if m.strip()] if models else [],
        ),
        output=OutputConfig(log_dir=log_dir, debug_capture=debug_capture),
    )


@app.command
def run(
    *,
    backend: BackendType = BackendType.OLLAMA,
    binary: Annotated[str | None, Parameter(help="Backend executable")] = None,
    model: Annotated[
        str | None, Parameter(group=_MODELS, help="Model pattern, e.g. gpt-oss-20b")
    ] = None,
    models: Annotated[
        str | None, Parameter(group=_MODELS, help="Comma separated models; skips discovery")
    ] = None,
    include_models: Annotated[str | None, Parameter(group=_MODELS, help="Include regex")] = None,
    exclude_models: Annotated[str | None, Parameter(group=_MODELS, help="Exclude regex")] = None,
    gpu: Annotated[
        str | None, Parameter(group=_DEVICES, help="Device ids, one endpoint each (e.g. 0,1)")
    ] = None,
    combined: Annotated[
        str | None, Parameter(group=_DEVICES, help="Device ids bound into one endpoint")
    ] = None,
    match_gpu: Annotated[
        str | None, Parameter(group=_DEVICES, help="Device name substrings (e.g. '5090,3090 Ti')")
    ] = None,
    top_gpus: Annotated[
        int | None, Parameter(group=_DEVICES, help="Use the N devices with the most memory")
    ] = None,
    exhaustive: Annotated[
        bool, Parameter(group=_SWEEP, help="Try every candidate, not just the first that works")
    ] = False,
    fast: Annotated[
        bool,
        Parameter(group=_SWEEP, help="Runtime options only; --no-fast bakes a variant per candidate"),
    ] = True,
    publish_best: Annotated[
        bool, Parameter(group=_SWEEP, help="Bake, warm up and re-measure the winner")
    ] = False,
    candidates: Annotated[
        str | None, Parameter(group=_SWEEP, help="Candidate list, e.g. 80,64,48")
    ] = None,
    auto_candidates: Annotated[
        bool,
        Parameter(group=_SWEEP, help="Derive candidates from the model's layer count"),
    ] = True,
    max_tokens: Annotated[int, Parameter(group=_SWEEP, help="Tokens to generate per trial")] = 64,
    context_size: Annotated[int, Parameter(group=_SWEEP, help="Context window")] = 4096,
    timeout: Annotated[float, Parameter(group=_SWEEP, help="Generation timeout (s)")] = 60.0,
    start_persistent: bool = False,
    model_store: Path | None = None,
    parallel: Annotated[bool, Parameter(help="Sweep endpoints concurrently")] = False,
    log_dir: Annotated[Path, Parameter(group=_OUTPUT)] = Path("artifacts"),
    debug_capture: Annotated[
        bool, Parameter(group=_OUTPUT, help="Save raw requests and responses")
    ] = False,
    verbose: Annotated[bool, Parameter(name=["--verbose", "-v"], group=_OUTPUT)] = False,
    quiet: Annotated[bool, Parameter(name=["--quiet", "-q"], group=_OUTPUT)] = False,
) -> int:
    """Benchmark and tune every selected model on every selected device set."""
    from aitune.cli_runner import run_tuning

    try:
        user_config = build_user_config(
            backend=backend,
            binary=binary,
            model=model,
            models=models,
            include_models=include_models,
            exclude_models=exclude_models,
            gpu=gpu,
            combined=combined,
            match_gpu=match_gpu,
            top_gpus=top_gpus,
            exhaustive=exhaustive,
            fast=fast,
            publish_best=publish_best,
            candidates=candidates,
            auto_candidates=auto_candidates,
            max_tokens=max_tokens,
            context_size=context_size,
            timeout=timeout,
            start_persistent=start_persistent,
            model_store=model_store,
            parallel=parallel,
            log_dir=log_dir,
            debug_capture=debug_capture,
        )
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return 1

    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    return run_tuning(user_config, log_level=level)


@app.command
def devices() -> int:
    """List the accelerators available for binding."""
    from aitune.cli_runner import print_devices

    return print_devices()


@app.command
def summarize(
    ledger: Path,
    *,
    top: int = 5,
    json_dir: Path | None = None,
) -> int:
    """Show the best configuration per endpoint and model from an existing ledger."""
    from aitune.cli_runner import summarize_ledger

    return summarize_ledger(ledger, top_n=top, json_dir=json_dir)


def main() -> None:
    result = app()
    sys.exit(result if isinstance(result, int) else 0)
