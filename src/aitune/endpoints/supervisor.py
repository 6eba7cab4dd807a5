# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Managed child processes for backend servers.

Each backend server is spawned with its device-visibility environment injected
and its combined stdout/stderr captured to a log file, which is later scanned
for diagnostics such as the model's layer count.
"""

import asyncio
import contextlib
import logging
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO

from aitune.common.exceptions import BackendError

logger = logging.getLogger(__name__)

__all__ = ["ProcessHandle", "ProcessSupervisor", "read_log_tail"]


@dataclass(slots=True)
class ProcessHandle:
    """A running (or exited) backend server process."""

    name: str
    command: list[str]
    log_path: Path
    process: asyncio.subprocess.Process
    _log_file: IO[bytes] | None = field(default=None, repr=False)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> int | None:
        return self.process.returncode

    @property
    def is_running(self) -> bool:
        return self.process.returncode is None


def read_log_tail(path: Path, max_lines: int) -> str:
    """Return the last ``max_lines`` lines of a log file ('' if missing)."""
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            lines = f.readlines()
    except FileNotFoundError:
        return ""
    return "".join(lines[-max_lines:])


class ProcessSupervisor:
    """Starts and stops backend server processes."""

    def __init__(self, log_dir: Path, stop_timeout: float = 30.0) -> None:
        self.log_dir = Path(log_dir)
        self.stop_timeout = stop_timeout

    async def start(
        self,
        name: str,
        command: Sequence[str],
        env: Mapping[str, str],
    ) -> ProcessHandle:
        """Spawn ``command`` with ``env`` layered over the current environment.

        Raises:
            BackendError: If the process could not be spawned
        """
        self.log_dir.mkdir(parents=True, exist_ok=True)
        log_path = self.log_dir / f"{name}.log"
        log_file = open(log_path, "ab")
        full_env = {**os.environ, **env}
        logger.debug(f"Starting {name}: {' '.join(command)} (log: {log_path})")
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=log_file,
                stderr=asyncio.subprocess.STDOUT,
                env=full_env,
                start_new_session=True,
            )
        except OSError as e:
            log_file.close()
            raise BackendError(f"Failed to start {name}: {e}") from e
        return ProcessHandle(
            name=name,
            command=list(command),
            log_path=log_path,
            process=process,
            _log_file=log_file,
        )

    async def stop(self, handle: ProcessHandle) -> int | None:
        """Terminate the process, killing it if it ignores SIGTERM.

        Returns:
            The exit code, or None if it could not be determined
        """
        process = handle.process
        try:
            if process.returncode is None:
                process.terminate()
                try:
                    await asyncio.wait_for(process.wait(), timeout=self.stop_timeout)
                except TimeoutError:
                    logger.warning(
                        f"{handle.name} did not stop within {self.stop_timeout}s; killing"
                    )
                    process.kill()
                    await process.wait()
        except ProcessLookupError:
            logger.debug(f"{handle.name} already exited")
        finally:
            if handle._log_file is not None:
                with contextlib.suppress(OSError):
                    handle._log_file.close()
                handle._log_file = None
        logger.debug(f"Stopped {handle.name} (code={process.returncode})")
        return process.returncode
