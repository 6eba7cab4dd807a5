# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Bounded, cancellable polling."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

__all__ = ["poll_until"]


async def poll_until(
    predicate: Callable[[], Awaitable[bool]],
    timeout: float,
    interval: float = 1.0,
    description: str = "condition",
) -> bool:
    """Await ``predicate`` until it returns True or ``timeout`` seconds elapse.

    The predicate is always evaluated at least once. Exceptions raised by the
    predicate propagate to the caller; cancelling the surrounding task stops
    polling immediately.

    Args:
        predicate: Async callable returning True once the condition holds
        timeout: Total time budget in seconds
        interval: Delay between attempts in seconds
        description: Used in debug logging only

    Returns:
        True if the predicate succeeded within the budget, False otherwise
    """
    deadline = time.monotonic() + timeout
    attempt = 0
    while True:
        attempt += 1
        if await predicate():
            logger.debug(f"{description} satisfied after {attempt} attempt(s)")
            return True
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.debug(f"{description} not satisfied after {attempt} attempt(s)")
            return False
        await asyncio.sleep(min(interval, remaining))
