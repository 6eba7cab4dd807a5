# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Console and file logging setup."""

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_CONFIGURED_HANDLERS: list[logging.Handler] = []


def setup_rich_logging(
    level: int = logging.INFO,
    log_file: Path | None = None,
    console: Console | None = None,
) -> None:
    """Configure the root ``aitune`` logger with a rich console handler.

    Calling this again replaces the handlers installed by the previous call, so
    the CLI can reconfigure verbosity once the log directory is known.

    Args:
        level: Console log level
        log_file: Optional file that receives DEBUG and above in plain text
        console: Console to render to (defaults to stderr)
    """
    logger = logging.getLogger("aitune")
    for handler in _CONFIGURED_HANDLERS:
        logger.removeHandler(handler)
        handler.close()
    _CONFIGURED_HANDLERS.clear()

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    rich_handler.setLevel(level)
    _CONFIGURED_HANDLERS.append(rich_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        _CONFIGURED_HANDLERS.append(file_handler)

    for handler in _CONFIGURED_HANDLERS:
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if log_file is not None else level)
    logger.propagate = False
