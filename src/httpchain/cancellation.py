"""Cooperative cancellation signal threaded through every suspension point.

A :class:`CancellationToken` is created by the caller (or defaulted by the
pipeline) and passed to the base-address resolver, the authorizer, the
transport, every handler callback, and the log writer. Firing the token
aborts whichever await is currently pending and surfaces a
:class:`~httpchain.exceptions.CancellationFault`.

Example::

    token = CancellationToken()
    token.cancel_after(5.0)
    body = await client.url("/slow").send_for_string(token)
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Optional, TypeVar

from httpchain.exceptions import CancellationFault

T = TypeVar("T")


class CancellationToken:
    """One-shot cancellation flag backed by an :class:`asyncio.Event`."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = "operation was cancelled"
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: Optional[str] = None) -> None:
        """Fire the token. Calling it again has no further effect."""
        if self._event.is_set():
            return
        if reason:
            self._reason = reason
        self._event.set()

    def cancel_after(self, delay: float) -> None:
        """Fire the token after *delay* seconds on the running loop."""
        loop = asyncio.get_running_loop()
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(
            delay, self.cancel, f"operation timed out after {delay}s"
        )

    def raise_if_cancelled(self) -> None:
        """Raise :class:`CancellationFault` if the token has fired."""
        if self._event.is_set():
            raise CancellationFault(self._reason)

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await *awaitable*, aborting it as soon as the token fires.

        An unstarted coroutine refused because the token already fired is
        closed.

        Raises:
            CancellationFault: If the token fired before or while waiting.
        """
        if self._event.is_set():
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise CancellationFault(self._reason)
        task: asyncio.Future[Any] = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except BaseException:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        raise CancellationFault(self._reason)
