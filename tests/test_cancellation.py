"""Tests for httpchain.cancellation."""

from __future__ import annotations

import asyncio
import inspect

import pytest

from httpchain.cancellation import CancellationToken
from httpchain.exceptions import CancellationFault


class TestCancellationToken:
    def test_initial_state(self) -> None:
        token = CancellationToken()
        assert token.is_cancelled is False
        token.raise_if_cancelled()

    def test_cancel_is_idempotent(self) -> None:
        token = CancellationToken()
        token.cancel("first")
        token.cancel("second")

        with pytest.raises(CancellationFault, match="first"):
            token.raise_if_cancelled()

    @pytest.mark.asyncio
    async def test_guard_returns_result(self) -> None:
        async def work() -> int:
            return 42

        assert await CancellationToken().guard(work()) == 42

    @pytest.mark.asyncio
    async def test_guard_propagates_errors(self) -> None:
        async def work() -> None:
            raise ValueError("inner")

        with pytest.raises(ValueError, match="inner"):
            await CancellationToken().guard(work())

    @pytest.mark.asyncio
    async def test_guard_aborts_pending_work(self) -> None:
        finished: list[bool] = []

        async def slow() -> None:
            await asyncio.sleep(10)
            finished.append(True)

        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel)

        with pytest.raises(CancellationFault):
            await token.guard(slow())
        assert finished == []

    @pytest.mark.asyncio
    async def test_cancel_after(self) -> None:
        token = CancellationToken()
        token.cancel_after(0.01)

        with pytest.raises(CancellationFault, match="timed out after 0.01s"):
            await token.guard(asyncio.sleep(10))

    @pytest.mark.asyncio
    async def test_fired_token_rejects_new_work(self) -> None:
        token = CancellationToken()
        token.cancel()
        coro = asyncio.sleep(0)

        with pytest.raises(CancellationFault):
            await token.guard(coro)
        assert inspect.getcoroutinestate(coro) == inspect.CORO_CLOSED

    def test_exit_code(self) -> None:
        assert CancellationFault("x").exit_code == 130
