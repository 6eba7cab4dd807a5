# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Run summary: console table and JSON export."""

from pathlib import Path
from typing import Any

import orjson
from rich.console import Console
from rich.table import Table

from aitune.common.mixins import AITuneLoggerMixin
from aitune.ledger import LedgerRow, ResultsLedger
from aitune.orchestrator.models import RunReport


def _row_dict(row: LedgerRow) -> dict[str, Any]:
    return row.model_dump(mode="json")


class RunSummaryExporter(AITuneLoggerMixin):
    """Summarizes a ledger (and optionally the run that produced it).

    The summary contains:
    - best: fastest successful row per (endpoint, base model) pair
    - no_working_configuration: pairs where every trial measured zero
    - skipped: pairs whose endpoint never became ready
    - top: the fastest rows overall
    - deleted_variants: variants removed by garbage collection

    Works from the ledger alone, so ``aitune summarize`` can rebuild the same
    view from a CSV file of an earlier run.
    """

    def __init__(
        self,
        ledger: ResultsLedger,
        report: RunReport | None = None,
        top_n: int = 5,
        timestamp: str | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.ledger = ledger
        self.report = report
        self.top_n = top_n
        self.timestamp = timestamp

    def get_file_name(self) -> str:
        if self.timestamp:
            return f"summary_{self.timestamp}.json"
        return "summary.json"

    def build(self) -> dict[str, Any]:
        best = self.ledger.best_by_pair()
        no_working = [
            {"endpoint": key.endpoint, "base_model": key.base_model}
            for key in self.ledger.pairs()
            if key not in best
        ]
        summary: dict[str, Any] = {
            "ledger": str(self.ledger.path),
            "num_rows": len(self.ledger.rows),
            "best": [_row_dict(row) for row in best.values()],
            "no_working_configuration": no_working,
            "skipped": [],
            "top": [_row_dict(row) for row in self.ledger.top(self.top_n)],
            "deleted_variants": [],
        }
        if self.report is not None:
            summary["backend"] = self.report.backend
            summary["models"] = self.report.models
            summary["no_working_configuration"] = [
                {
                    "endpoint": sweep.endpoint,
                    "base_model": sweep.base_model,
                    "stop_reason": str(sweep.stop_reason),
                    "candidates": sweep.attempted_candidates,
                }
                for sweep in self.report.without_working_configuration
            ]
            summary["skipped"] = [pair.model_dump(mode="json") for pair in self.report.skipped]
            summary["deleted_variants"] = self.report.deleted_variants
        return summary

    def export(self, output_dir: Path) -> Path:
        """Write the JSON summary into ``output_dir`` and return its path."""
        path = Path(output_dir) / self.get_file_name()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(orjson.dumps(self.build(), option=orjson.OPT_INDENT_2))
        self.debug(f"Wrote summary to {path}")
        return path

    def print(self, console: Console) -> None:
        """Render the best-per-pair table plus failures to ``console``."""
        summary = self.build()
        table = Table(title="Best configuration per endpoint and model")
        table.add_column("Endpoint", style="cyan")
        table.add_column("Devices")
        table.add_column("Base model", style="bold")
        table.add_column("Label")
        table.add_column("Model / variant")
        table.add_column("Candidate", justify="right")
        table.add_column("tok/s", justify="right", style="green")
        for row in sorted(
            summary["best"], key=lambda r: (r["suffix"], -r["tokens_per_second"])
        ):
            table.add_row(
                f"{row['suffix']} {row['endpoint']}",
                row["device_label"],
                row["base_model"],
                row["label"],
                row["model_ref"],
                "" if row["candidate"] is None else str(row["candidate"]),
                f"{row['tokens_per_second']:.2f}",
            )
        console.print(table)

        for pair in summary["no_working_configuration"]:
            console.print(
                f"[yellow]No working configuration:[/yellow] {pair['base_model']} on {pair['endpoint']}"
            )
        for pair in summary["skipped"]:
            console.print(
                f"[red]Skipped:[/red] {pair['base_model']} on {pair['endpoint_id']}: {pair['reason']}"
            )
