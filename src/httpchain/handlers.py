"""Ordered handler chains for status and exception callbacks.

A chain is an append-only list of callbacks that the pipeline invokes one
after another, in registration order, for a given event class:

* :class:`StatusHandlerChain` -- called with ``(response, cancellation)``
  for every response the pipeline observes, including each retry attempt.
* :class:`ExceptionHandlerChain` -- called with
  ``(response_or_None, exception, cancellation)`` when dispatch fails.

Callbacks may be plain functions or coroutines. They never run
concurrently: a later handler can rely on state mutated by an earlier one.
The first callback that raises stops the pass and the fault surfaces as an
:class:`~httpchain.exceptions.InHandlerFault`.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Iterator, Optional, Union

import httpx

from httpchain.cancellation import CancellationToken
from httpchain.exceptions import CancellationFault, InHandlerFault

logger = logging.getLogger(__name__)

StatusCallback = Callable[
    [httpx.Response, CancellationToken], Union[None, Awaitable[None]]
]
ExceptionCallback = Callable[
    [Optional[httpx.Response], BaseException, CancellationToken],
    Union[None, Awaitable[None]],
]


def _callback_name(callback: Callable[..., Any]) -> str:
    return getattr(callback, "__qualname__", None) or repr(callback)


class HandlerChain:
    """Append-only list of callbacks invoked sequentially.

    Subclasses set :attr:`kind`, which is reported in log lines and in
    :attr:`InHandlerFault.chain`.
    """

    kind = "generic"

    def __init__(self) -> None:
        self._callbacks: list[Callable[..., Any]] = []

    def register(self, callback: Callable[..., Any]) -> HandlerChain:
        """Append *callback* to the chain and return the chain."""
        if not callable(callback):
            raise TypeError(f"{self.kind} handler must be callable, got {callback!r}")
        self._callbacks.append(callback)
        return self

    def clear(self) -> None:
        self._callbacks.clear()

    def __len__(self) -> int:
        return len(self._callbacks)

    def __iter__(self) -> Iterator[Callable[..., Any]]:
        return iter(list(self._callbacks))

    @property
    def is_empty(self) -> bool:
        return not self._callbacks

    async def iter_invoke(
        self, *args: Any, cancellation: CancellationToken
    ) -> AsyncIterator[Any]:
        """Invoke callbacks one at a time, yielding each awaited result.

        Works on a snapshot of the registrations taken when iteration
        starts. Cancellation is checked before every callback.

        Raises:
            CancellationFault: If the token fires between or during callbacks.
            InHandlerFault: If a callback raises; remaining callbacks are
                skipped.
        """
        response = args[0] if args and isinstance(args[0], httpx.Response) else None
        for callback in list(self._callbacks):
            cancellation.raise_if_cancelled()
            name = _callback_name(callback)
            logger.debug("Executing %s handler %s", self.kind, name)
            try:
                result = callback(*args, cancellation)
                if inspect.isawaitable(result):
                    result = await cancellation.guard(result)
            except CancellationFault:
                raise
            except Exception as exc:
                raise InHandlerFault(
                    f"{self.kind} handler {name} failed: {exc}",
                    chain=self.kind,
                    handler=name,
                    response=response,
                    cause=exc,
                ) from exc
            logger.debug("Executed %s handler %s", self.kind, name)
            yield result

    async def invoke_all(self, *args: Any, cancellation: CancellationToken) -> bool:
        """Run the whole chain.

        Returns:
            ``False`` when the chain is empty (nothing ran), ``True`` after
            every callback completed.
        """
        if not self._callbacks:
            return False
        async for _ in self.iter_invoke(*args, cancellation=cancellation):
            pass
        return True


class StatusHandlerChain(HandlerChain):
    """Callbacks run for every response, regardless of status code."""

    kind = "status"

    def register(self, callback: StatusCallback) -> StatusHandlerChain:  # type: ignore[override]
        super().register(callback)
        return self

    def on_status(self, status_code: int, callback: StatusCallback) -> StatusHandlerChain:
        """Register *callback* to run only when the raw status equals *status_code*."""
        code = int(status_code)

        async def _filtered(response: httpx.Response, cancellation: CancellationToken) -> None:
            if response.status_code != code:
                return
            logger.debug("Running handler for status %d", code)
            result = callback(response, cancellation)
            if inspect.isawaitable(result):
                await result

        _filtered.__qualname__ = f"on_status[{code}]({_callback_name(callback)})"
        return self.register(_filtered)

    async def invoke_all(  # type: ignore[override]
        self, response: Optional[httpx.Response], *, cancellation: CancellationToken
    ) -> bool:
        if response is None:
            return False
        return await super().invoke_all(response, cancellation=cancellation)


class ExceptionHandlerChain(HandlerChain):
    """Callbacks run when dispatch fails; observers only, never suppressors."""

    kind = "exception"

    def register(self, callback: ExceptionCallback) -> ExceptionHandlerChain:  # type: ignore[override]
        super().register(callback)
        return self

    async def invoke_all(  # type: ignore[override]
        self,
        response: Optional[httpx.Response],
        exception: BaseException,
        *,
        cancellation: CancellationToken,
    ) -> bool:
        return await super().invoke_all(response, exception, cancellation=cancellation)
