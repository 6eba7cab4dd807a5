# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Append-only results ledger.

The on-disk format is a fixed 16-column CSV shared by every backend so runs can
be compared across backends. ``tokens_per_sec`` is column 12. An in-memory index
of the best row per (endpoint, base model) pair is maintained as rows are
appended, so "best" queries never rescan the file.
"""

import csv
import threading
from datetime import datetime
from pathlib import Path
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from aitune.common.enums import TrialLabel
from aitune.common.exceptions import LedgerWriteError
from aitune.common.mixins import AITuneLoggerMixin

__all__ = ["LEDGER_COLUMNS", "LedgerRow", "PairKey", "ResultsLedger"]

LEDGER_COLUMNS = [
    "ts",
    "endpoint",
    "unit",
    "suffix",
    "base_model",
    "variant_label",
    "model_tag",
    "num_gpu",
    "num_ctx",
    "batch",
    "num_predict",
    "tokens_per_sec",
    "gpu_label",
    "gpu_name",
    "gpu_uuid",
    "gpu_mem_mib",
]

_TUNED_LABELS = (TrialLabel.OPTIMIZED, TrialLabel.PUBLISHED)


class PairKey(NamedTuple):
    """A (endpoint address, base model) pair."""

    endpoint: str
    base_model: str


def _timestamp() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


def _optional_int(value: str) -> int | None:
    value = value.strip()
    return int(value) if value else None


class LedgerRow(BaseModel):
    """One recorded trial."""

    model_config = ConfigDict(frozen=True)

    timestamp: str = Field(default_factory=_timestamp)
    endpoint: str
    unit: str
    suffix: str
    base_model: str
    label: TrialLabel
    model_ref: str
    candidate: int | None = None
    context_size: int | None = None
    batch_size: int | None = None
    max_tokens: int | None = None
    tokens_per_second: float = Field(default=0.0, ge=0)
    device_label: str = ""
    device_name: str = ""
    device_locator: str = ""
    device_memory_mib: int | None = None

    @property
    def key(self) -> PairKey:
        return PairKey(self.endpoint, self.base_model)

    @property
    def is_tuned(self) -> bool:
        return self.candidate is not None and self.label in _TUNED_LABELS

    def to_csv_row(self) -> list[str]:
        def _blank(value) -> str:
            return "" if value is None else str(value)

        return [
            self.timestamp,
            self.endpoint,
            self.unit,
            self.suffix,
            self.base_model,
            str(self.label),
            self.model_ref,
            _blank(self.candidate),
            _blank(self.context_size),
            _blank(self.batch_size),
            _blank(self.max_tokens),
            f"{self.tokens_per_second:.2f}",
            self.device_label,
            self.device_name,
            self.device_locator,
            _blank(self.device_memory_mib),
        ]

    @classmethod
    def from_csv_row(cls, record: dict[str, str]) -> "LedgerRow":
        return cls(
            timestamp=record["ts"],
            endpoint=record["endpoint"],
            unit=record["unit"],
            suffix=record["suffix"],
            base_model=record["base_model"],
            label=TrialLabel(record["variant_label"]),
            model_ref=record["model_tag"],
            candidate=_optional_int(record["num_gpu"]),
            context_size=_optional_int(record["num_ctx"]),
            batch_size=_optional_int(record["batch"]),
            max_tokens=_optional_int(record["num_predict"]),
            tokens_per_second=float(record["tokens_per_sec"] or 0),
            device_label=record["gpu_label"],
            device_name=record["gpu_name"],
            device_locator=record["gpu_uuid"],
            device_memory_mib=_optional_int(record["gpu_mem_mib"]),
        )


class ResultsLedger(AITuneLoggerMixin):
    """Thread-safe append-only trial ledger backed by a CSV file.

    Args:
        path: CSV file. The header is written when the file is new or empty.

    Raises:
        LedgerWriteError: If the file cannot be created or appended to
    """

    def __init__(self, path: Path, **kwargs) -> None:
        super().__init__(**kwargs)
        self.path = Path(path)
        self._lock = threading.Lock()
        self._rows: list[LedgerRow] = []
        self._best: dict[PairKey, LedgerRow] = {}
        self._best_tuned: dict[PairKey, LedgerRow] = {}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if not self.path.exists() or self.path.stat().st_size == 0:
                with open(self.path, "w", newline="", encoding="utf-8") as f:
                    csv.writer(f).writerow(LEDGER_COLUMNS)
        except OSError as e:
            raise LedgerWriteError(f"Cannot create ledger {self.path}: {e}") from e

    @classmethod
    def from_file(cls, path: Path) -> "ResultsLedger":
        """Open an existing ledger and rebuild its index from the rows on disk.

        Raises:
            FileNotFoundError: If ``path`` does not exist
            ValueError: If the header does not match the ledger schema
        """
        path = Path(path)
        with open(path, newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            if reader.fieldnames != LEDGER_COLUMNS:
                raise ValueError(f"{path} is not a results ledger (header: {reader.fieldnames})")
            records = list(reader)
        ledger = cls(path)
        for record in records:
            ledger._index(LedgerRow.from_csv_row(record))
        return ledger

    def append(self, row: LedgerRow) -> LedgerRow:
        """Durably append ``row`` and update the best index."""
        with self._lock:
            try:
                with open(self.path, "a", newline="", encoding="utf-8") as f:
                    csv.writer(f).writerow(row.to_csv_row())
            except OSError as e:
                raise LedgerWriteError(f"Cannot append to ledger {self.path}: {e}") from e
            self._index(row)
        return row

    def _index(self, row: LedgerRow) -> None:
        self._rows.append(row)
        if row.tokens_per_second <= 0:
            return
        current = self._best.get(row.key)
        if current is None or row.tokens_per_second > current.tokens_per_second:
            self._best[row.key] = row
        if row.is_tuned:
            current = self._best_tuned.get(row.key)
            if current is None or row.tokens_per_second > current.tokens_per_second:
                self._best_tuned[row.key] = row

    @property
    def rows(self) -> list[LedgerRow]:
        with self._lock:
            return list(self._rows)

    def best(self, endpoint: str, base_model: str) -> LedgerRow | None:
        """Highest tokens/sec row with a positive rate for the pair, any label."""
        return self._best.get(PairKey(endpoint, base_model))

    def best_tuned(self, endpoint: str, base_model: str) -> LedgerRow | None:
        """Highest tokens/sec optimized or published row carrying a candidate."""
        return self._best_tuned.get(PairKey(endpoint, base_model))

    def best_by_pair(self) -> dict[PairKey, LedgerRow]:
        with self._lock:
            return dict(self._best)

    def pairs(self) -> list[PairKey]:
        """Every pair with at least one row, in first-seen order."""
        with self._lock:
            return list(dict.fromkeys(row.key for row in self._rows))

    def top(self, n: int) -> list[LedgerRow]:
        """The ``n`` fastest successful rows."""
        with self._lock:
            successful = [row for row in self._rows if row.tokens_per_second > 0]
        return sorted(successful, key=lambda row: row.tokens_per_second, reverse=True)[:n]
