# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from datetime import datetime
from pathlib import Path

from pydantic import Field

from aitune.common.config.base_config import BaseConfig


class OutputConfig(BaseConfig):
    """Where the ledger, run log and debug captures are written."""

    log_dir: Path = Field(default=Path("artifacts"))
    debug_capture: bool = Field(
        default=False,
        description="Persist raw request/response pairs for every trial",
    )
    run_timestamp: str = Field(
        default_factory=lambda: datetime.now().strftime("%Y%m%d_%H%M%S"),
        description="Timestamp shared by every file of this run",
    )
    top_n: int = Field(default=5, ge=1, le=100, description="Rows in the summary's top list")

    @property
    def debug_dir(self) -> Path:
        return self.log_dir / f"debug_{self.run_timestamp}"

    def ledger_path(self, backend: str) -> Path:
        return self.log_dir / f"{backend}_bench_{self.run_timestamp}.csv"

    @property
    def run_log_path(self) -> Path:
        return self.log_dir / f"aitune_{self.run_timestamp}.log"

    @property
    def summary_path(self) -> Path:
        return self.log_dir / f"summary_{self.run_timestamp}.json"
