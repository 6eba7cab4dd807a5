# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

import asyncio
import logging
from pathlib import Path

from rich.console import Console
from rich.table import Table

from aitune.backends import create_backend
from aitune.common.config import UserConfig
from aitune.common.exceptions import LedgerWriteError, SetupError
from aitune.common.logging import setup_rich_logging
from aitune.devices import DeviceRegistry
from aitune.exporters import RunSummaryExporter
from aitune.ledger import ResultsLedger
from aitune.orchestrator import RunOrchestrator, RunReport

logger = logging.getLogger(__name__)


async def run_benchmark(
    user_config: UserConfig,
    console: Console,
    registry: DeviceRegistry | None = None,
) -> RunReport:
    """Run one tuning pass and write the ledger, summary JSON and console summary."""
    output = user_config.output
    backend_name = str(user_config.endpoint.backend)
    ledger = ResultsLedger(output.ledger_path(backend_name))
    logger.info(f"Ledger: {ledger.path}")

    backend = create_backend(user_config)
    try:
        orchestrator = RunOrchestrator(user_config, backend, ledger, registry=registry)
        report = await orchestrator.execute()
    finally:
        await backend.aclose()

    exporter = RunSummaryExporter(
        ledger, report=report, top_n=output.top_n, timestamp=output.run_timestamp
    )
    summary_path = exporter.export(output.log_dir)
    exporter.print(console)
    logger.info(f"Summary: {summary_path}")
    return report


def run_tuning(user_config: UserConfig, log_level: int = logging.INFO) -> int:
    """Run the tuning engine and return the process exit code.

    Failed (model, endpoint) pairs are part of a normal run and still exit 0.
    Setup and ledger errors exit 1.
    """
    console = Console()
    setup_rich_logging(log_level, log_file=user_config.output.run_log_path)
    try:
        report = asyncio.run(run_benchmark(user_config, console))
    except (SetupError, LedgerWriteError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    console.print(f"Ledger written to {report.ledger_path}")
    return 0


def print_devices(registry: DeviceRegistry | None = None) -> int:
    """Print the enumerated accelerators."""
    console = Console()
    devices = (registry or DeviceRegistry()).list_devices()
    if not devices:
        console.print("No accelerators found; runs will be CPU-only.")
        return 0
    table = Table(title="Accelerators")
    table.add_column("Index", justify="right")
    table.add_column("Name")
    table.add_column("Label", style="cyan")
    table.add_column("Memory (MiB)", justify="right")
    table.add_column("UUID")
    for device in devices:
        table.add_row(
            str(device.index), device.name, device.label, str(device.memory_mib), device.uuid
        )
    console.print(table)
    return 0


def summarize_ledger(path: Path, top_n: int = 5, json_dir: Path | None = None) -> int:
    """Rebuild and print the best-per-pair view of an existing ledger."""
    console = Console()
    try:
        ledger = ResultsLedger.from_file(path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Cannot read ledger {path}: {e}[/red]")
        return 1
    exporter = RunSummaryExporter(ledger, top_n=top_n)
    exporter.print(console)
    if json_dir is not None:
        console.print(f"Summary written to {exporter.export(json_dir)}")
    return 0
