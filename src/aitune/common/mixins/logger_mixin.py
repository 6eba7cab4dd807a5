# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Logger mixin giving classes ``self.info(...)`` style helpers."""

import logging


class AITuneLoggerMixin:
    """Adds a per-class logger and convenience logging methods.

    The logger name defaults to the module of the concrete class so log records
    line up with the module-level loggers used by plain functions.
    """

    def __init__(self, logger_name: str | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.logger = logging.getLogger(logger_name or self.__class__.__module__)

    @property
    def is_debug_enabled(self) -> bool:
        return self.logger.isEnabledFor(logging.DEBUG)

    def debug(self, message: str) -> None:
        self.logger.debug(message)

    def info(self, message: str) -> None:
        self.logger.info(message)

    def warning(self, message: str) -> None:
        self.logger.warning(message)

    def error(self, message: str) -> None:
        self.logger.error(message)

    def exception(self, message: str) -> None:
        self.logger.exception(message)
