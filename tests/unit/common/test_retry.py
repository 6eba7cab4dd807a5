# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Tests for bounded polling."""

import asyncio

import pytest

from aitune.common.retry import poll_until


class TestPollUntil:
    """Test poll_until."""

    @pytest.mark.asyncio
    async def test_returns_true_once_predicate_holds(self) -> None:
        """Test polling stops at the first True."""
        calls = []

        async def predicate() -> bool:
            calls.append(1)
            return len(calls) == 3

        assert await poll_until(predicate, timeout=5, interval=0.001) is True
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_returns_false_after_timeout(self) -> None:
        async def predicate() -> bool:
            return False

        assert await poll_until(predicate, timeout=0.02, interval=0.005) is False

    @pytest.mark.asyncio
    async def test_evaluates_at_least_once(self) -> None:
        """Test a zero budget still checks the predicate once."""
        calls = []

        async def predicate() -> bool:
            calls.append(1)
            return True

        assert await poll_until(predicate, timeout=0) is True
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_predicate_errors_propagate(self) -> None:
        async def predicate() -> bool:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await poll_until(predicate, timeout=1)

    @pytest.mark.asyncio
    async def test_cancellation_stops_polling(self) -> None:
        """Test cancelling the caller interrupts the sleep between attempts."""

        async def predicate() -> bool:
            return False

        task = asyncio.create_task(poll_until(predicate, timeout=60, interval=30))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
