"""Tests for httpchain.handlers -- ordering, fault wrapping, cancellation."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from httpchain.cancellation import CancellationToken
from httpchain.exceptions import CancellationFault, InHandlerFault
from httpchain.handlers import ExceptionHandlerChain, StatusHandlerChain


def _response(status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request("GET", "https://api.example.com/x"))


class TestStatusHandlerChain:
    @pytest.mark.asyncio
    async def test_runs_in_registration_order(self) -> None:
        calls: list[str] = []
        chain = StatusHandlerChain()
        chain.register(lambda r, c: calls.append("first"))
        chain.register(lambda r, c: calls.append("second"))
        chain.register(lambda r, c: calls.append("third"))

        ran = await chain.invoke_all(_response(), cancellation=CancellationToken())

        assert ran is True
        assert calls == ["first", "second", "third"]

    @pytest.mark.asyncio
    async def test_async_callbacks_are_awaited_in_order(self) -> None:
        calls: list[str] = []

        async def slow(response, cancellation):
            await asyncio.sleep(0.01)
            calls.append("slow")

        async def fast(response, cancellation):
            calls.append("fast")

        chain = StatusHandlerChain().register(slow).register(fast)
        await chain.invoke_all(_response(), cancellation=CancellationToken())

        assert calls == ["slow", "fast"]

    @pytest.mark.asyncio
    async def test_empty_chain_reports_nothing_ran(self) -> None:
        assert await StatusHandlerChain().invoke_all(_response(), cancellation=CancellationToken()) is False

    @pytest.mark.asyncio
    async def test_none_response_is_ignored(self) -> None:
        calls: list[int] = []
        chain = StatusHandlerChain().register(lambda r, c: calls.append(1))

        assert await chain.invoke_all(None, cancellation=CancellationToken()) is False
        assert calls == []

    @pytest.mark.asyncio
    async def test_first_failure_stops_the_chain(self) -> None:
        calls: list[str] = []

        def boom(response, cancellation):
            raise ValueError("bad handler")

        chain = StatusHandlerChain()
        chain.register(lambda r, c: calls.append("before"))
        chain.register(boom)
        chain.register(lambda r, c: calls.append("after"))

        response = _response(500)
        with pytest.raises(InHandlerFault) as exc_info:
            await chain.invoke_all(response, cancellation=CancellationToken())

        assert calls == ["before"]
        fault = exc_info.value
        assert fault.chain == "status"
        assert "boom" in fault.handler
        assert isinstance(fault.cause, ValueError)
        assert fault.response is response
        assert fault.status_code == 500

    @pytest.mark.asyncio
    async def test_cancellation_is_not_wrapped(self) -> None:
        def cancelled(response, cancellation):
            raise CancellationFault("stop")

        chain = StatusHandlerChain().register(cancelled)
        with pytest.raises(CancellationFault):
            await chain.invoke_all(_response(), cancellation=CancellationToken())

    @pytest.mark.asyncio
    async def test_fired_token_skips_remaining_handlers(self) -> None:
        token = CancellationToken()
        calls: list[str] = []

        def first(response, cancellation):
            calls.append("first")
            cancellation.cancel("user abort")

        chain = StatusHandlerChain().register(first).register(lambda r, c: calls.append("second"))
        with pytest.raises(CancellationFault, match="user abort"):
            await chain.invoke_all(_response(), cancellation=token)

        assert calls == ["first"]

    @pytest.mark.asyncio
    async def test_on_status_filters_by_raw_code(self) -> None:
        seen: list[int] = []
        chain = StatusHandlerChain().on_status(404, lambda r, c: seen.append(r.status_code))

        await chain.invoke_all(_response(200), cancellation=CancellationToken())
        await chain.invoke_all(_response(404), cancellation=CancellationToken())

        assert seen == [404]

    @pytest.mark.asyncio
    async def test_iter_invoke_yields_each_result(self) -> None:
        chain = StatusHandlerChain()
        chain.register(lambda r, c: 1)
        chain.register(lambda r, c: 2)

        results = [
            result async for result in chain.iter_invoke(_response(), cancellation=CancellationToken())
        ]
        assert results == [1, 2]

    def test_register_rejects_non_callable(self) -> None:
        with pytest.raises(TypeError):
            StatusHandlerChain().register("not callable")  # type: ignore[arg-type]

    def test_clear_and_len(self) -> None:
        chain = StatusHandlerChain().register(lambda r, c: None)
        assert len(chain) == 1
        chain.clear()
        assert chain.is_empty


class TestExceptionHandlerChain:
    @pytest.mark.asyncio
    async def test_receives_response_and_exception(self) -> None:
        received: list[tuple] = []
        error = RuntimeError("connection reset")
        chain = ExceptionHandlerChain().register(lambda r, e, c: received.append((r, e)))

        await chain.invoke_all(None, error, cancellation=CancellationToken())

        assert received == [(None, error)]

    @pytest.mark.asyncio
    async def test_failure_is_wrapped_with_chain_name(self) -> None:
        def broken(response, exception, cancellation):
            raise KeyError("oops")

        chain = ExceptionHandlerChain().register(broken)
        with pytest.raises(InHandlerFault) as exc_info:
            await chain.invoke_all(None, RuntimeError("x"), cancellation=CancellationToken())

        assert exc_info.value.chain == "exception"
        assert exc_info.value.response is None
