# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from pathlib import Path

import orjson
import pytest
from rich.console import Console

from aitune.common.enums import StopReason, TrialLabel
from aitune.exporters import RunSummaryExporter
from aitune.ledger import LedgerRow, ResultsLedger
from aitune.orchestrator import RunReport, SkippedPair, SweepResult

ENDPOINT_A = "127.0.0.1:11435"
ENDPOINT_B = "127.0.0.1:11436"


def _row(endpoint: str, base_model: str, candidate: int | None, tps: float, **kwargs) -> LedgerRow:
    return LedgerRow(
        endpoint=endpoint,
        unit="ollama-test-a" if endpoint == ENDPOINT_A else "ollama-test-b",
        suffix="A" if endpoint == ENDPOINT_A else "B",
        base_model=base_model,
        label=kwargs.pop("label", TrialLabel.OPTIMIZED),
        model_ref=base_model,
        candidate=candidate,
        tokens_per_second=tps,
        device_label="3090ti45" if endpoint == ENDPOINT_A else "509012",
        **kwargs,
    )


@pytest.fixture
def ledger(tmp_path: Path) -> ResultsLedger:
    ledger = ResultsLedger(tmp_path / "ledger.csv")
    ledger.append(_row(ENDPOINT_A, "llama3:8b", None, 8.0, label=TrialLabel.BASE_AS_IS))
    ledger.append(_row(ENDPOINT_A, "llama3:8b", 48, 0.0))
    ledger.append(_row(ENDPOINT_A, "llama3:8b", 32, 41.25))
    ledger.append(_row(ENDPOINT_B, "llama3:8b", 48, 77.5))
    ledger.append(_row(ENDPOINT_B, "qwen3:8b", 48, 0.0))
    return ledger


class TestRunSummaryExporter:
    """Test summaries built from a ledger, with and without a run report."""

    def test_build_from_ledger(self, ledger: ResultsLedger) -> None:
        summary = RunSummaryExporter(ledger, top_n=2).build()

        assert summary["num_rows"] == 5
        best = {(row["endpoint"], row["base_model"]): row for row in summary["best"]}
        assert best[(ENDPOINT_A, "llama3:8b")]["candidate"] == 32
        assert best[(ENDPOINT_B, "llama3:8b")]["tokens_per_second"] == 77.5
        assert summary["no_working_configuration"] == [
            {"endpoint": ENDPOINT_B, "base_model": "qwen3:8b"}
        ]
        assert [row["tokens_per_second"] for row in summary["top"]] == [77.5, 41.25]
        assert summary["skipped"] == []

    def test_build_with_report(self, ledger: ResultsLedger) -> None:
        """Test run details come from the report when one is given."""
        report = RunReport(
            backend="ollama",
            ledger_path=ledger.path,
            models=["llama3:8b", "qwen3:8b"],
            sweeps=[
                SweepResult(
                    base_model="qwen3:8b",
                    endpoint_id="ollama-test-b",
                    endpoint=ENDPOINT_B,
                    suffix="B",
                    device_label="509012",
                    stop_reason=StopReason.ZERO_THROUGHPUT_LIMIT,
                )
            ],
            skipped=[
                SkippedPair(
                    base_model="llama3:8b",
                    endpoint_id="ollama-test-c",
                    endpoint="127.0.0.1:11437",
                    reason="no healthy response within 30s",
                )
            ],
            deleted_variants=["aitune-ollama-llama3-8b-3090ti45-ng48"],
        )

        summary = RunSummaryExporter(ledger, report=report).build()

        assert summary["backend"] == "ollama"
        assert summary["no_working_configuration"][0]["stop_reason"] == "zero_throughput_limit"
        assert summary["skipped"][0]["endpoint_id"] == "ollama-test-c"
        assert summary["deleted_variants"] == ["aitune-ollama-llama3-8b-3090ti45-ng48"]

    @pytest.mark.parametrize(
        "timestamp,expected",
        [("20250101_120000", "summary_20250101_120000.json"), (None, "summary.json")],
    )
    def test_export(
        self, ledger: ResultsLedger, tmp_path: Path, timestamp: str | None, expected: str
    ) -> None:
        exporter = RunSummaryExporter(ledger, timestamp=timestamp)

        path = exporter.export(tmp_path / "out")

        assert path.name == expected
        data = orjson.loads(path.read_bytes())
        assert data["num_rows"] == 5
        assert data["best"][0]["label"] in ("optimized", "base-as-is")

    def test_print(self, ledger: ResultsLedger) -> None:
        console = Console(record=True, width=200)

        RunSummaryExporter(ledger).print(console)

        text = console.export_text()
        assert "41.25" in text
        assert "77.50" in text
        assert "No working configuration: qwen3:8b on 127.0.0.1:11436" in text
