# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Tests for the backend process supervisor."""

import sys
from pathlib import Path

import pytest

from aitune.common.exceptions import BackendError
from aitune.endpoints import ProcessSupervisor
from aitune.endpoints.supervisor import read_log_tail


class TestReadLogTail:
    def test_missing_file(self, tmp_path: Path) -> None:
        assert read_log_tail(tmp_path / "missing.log", 10) == ""

    def test_last_lines(self, tmp_path: Path) -> None:
        path = tmp_path / "server.log"
        path.write_text("".join(f"line {i}\n" for i in range(10)))
        assert read_log_tail(path, 3) == "line 7\nline 8\nline 9\n"


class TestProcessSupervisor:
    """Test spawning and stopping server processes."""

    @pytest.mark.asyncio
    async def test_start_captures_output_and_env(self, tmp_path: Path) -> None:
        """Test the process sees the injected environment and its output is logged."""
        supervisor = ProcessSupervisor(tmp_path)
        command = [
            sys.executable,
            "-c",
            "import os; print('visible=' + os.environ['CUDA_VISIBLE_DEVICES'], flush=True)",
        ]

        handle = await supervisor.start("ollama-test-a", command, {"CUDA_VISIBLE_DEVICES": "GPU-1"})
        await handle.process.wait()
        await supervisor.stop(handle)

        assert handle.log_path == tmp_path / "ollama-test-a.log"
        assert "visible=GPU-1" in handle.log_path.read_text()
        assert handle.returncode == 0
        assert handle.is_running is False

    @pytest.mark.asyncio
    async def test_stop_terminates_running_process(self, tmp_path: Path) -> None:
        supervisor = ProcessSupervisor(tmp_path, stop_timeout=5)
        handle = await supervisor.start(
            "sleeper", [sys.executable, "-c", "import time; time.sleep(60)"], {}
        )
        assert handle.is_running

        await supervisor.stop(handle)

        assert handle.is_running is False

    @pytest.mark.asyncio
    async def test_missing_binary(self, tmp_path: Path) -> None:
        supervisor = ProcessSupervisor(tmp_path)
        with pytest.raises(BackendError, match="Failed to start"):
            await supervisor.start("ghost", ["/nonexistent/aitune-server"], {})
