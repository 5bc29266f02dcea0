"""The request execution pipeline.

:class:`RequestPipeline` drives one logical call from an unsent
:class:`~httpchain.request.PendingRequest` to a final response or a final
error. Each attempt goes through the same steps:

1. Apply the :class:`~httpchain.snapshot.ClientConfig` (first attempt only;
   retry clones already carry the changes).
2. Resolve the base address.
3. Authorize (every attempt, so refreshed credentials are picked up).
4. Dispatch through the transport. A dispatch failure is shown to the
   exception handlers and then re-raised unchanged.
5. Hand the response to the log writer (best-effort).
6. Run the status handlers.
7. Ask the retry policy. While it says yes and attempts remain, clone the
   request and go back to step 2.

Once no retry is due, enforce-success is checked against the final
response, the config snapshot is cleared and the response is returned.
The snapshot is cleared on faults as well.

Collaborators are injected explicitly; the pipeline holds no per-call
state, so one instance can serve many calls as long as each call brings its
own ``ClientConfig``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Optional

import httpx

from httpchain.auth import Authorizer, NoAuthorizer
from httpchain.cancellation import CancellationToken
from httpchain.exceptions import CancellationFault, StatusEnforcementFault
from httpchain.handlers import ExceptionHandlerChain, StatusHandlerChain
from httpchain.logwriter import LoggingLogWriter, LogWriter
from httpchain.request import PendingRequest
from httpchain.retry import DEFAULT_RETRY_BUDGET, NeverRetry, RetryPolicy, RetryState
from httpchain.snapshot import ClientConfig
from httpchain.transport import BaseAddressResolver, StaticBaseAddress, Transport

logger = logging.getLogger(__name__)


def is_success_status(status_code: int) -> bool:
    """True for raw status codes in the inclusive range [200, 299]."""
    return 200 <= status_code <= 299


class RequestPipeline:
    """Orchestrates configuration, dispatch, handlers and retry.

    Args:
        transport: Sends requests.
        base_address: Resolves the base address for relative targets.
            Defaults to none (targets are used as-is).
        authorizer: Attaches credentials. Defaults to no auth.
        log_writer: Receives every response and its duration.
        retry_policy: Decides whether a response is resent. Defaults to
            never.
        retry_budget: Maximum resends for one logical call.
        status_handlers: Chain run for every response.
        exception_handlers: Chain run when dispatch fails.

    Example::

        pipeline = RequestPipeline(
            HttpxTransport(),
            base_address=StaticBaseAddress("https://api.example.com"),
            retry_policy=StatusCodeRetryPolicy({503}),
        )
        response = await pipeline.execute(PendingRequest("GET", "/users"), ClientConfig())
    """

    def __init__(
        self,
        transport: Transport,
        base_address: Optional[BaseAddressResolver] = None,
        authorizer: Optional[Authorizer] = None,
        log_writer: Optional[LogWriter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        retry_budget: int = DEFAULT_RETRY_BUDGET,
        status_handlers: Optional[StatusHandlerChain] = None,
        exception_handlers: Optional[ExceptionHandlerChain] = None,
    ) -> None:
        if retry_budget < 0:
            raise ValueError("retry_budget cannot be negative")
        self.transport = transport
        self.base_address = base_address or StaticBaseAddress()
        self.authorizer = authorizer or NoAuthorizer()
        self.log_writer = log_writer or LoggingLogWriter()
        self.retry_policy = retry_policy or NeverRetry()
        self.retry_budget = retry_budget
        self.status_handlers = status_handlers or StatusHandlerChain()
        self.exception_handlers = exception_handlers or ExceptionHandlerChain()

    async def execute(
        self,
        request: PendingRequest,
        config: Optional[ClientConfig] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> httpx.Response:
        """Run *request* through the pipeline and return the final response.

        Raises:
            TransportFault: Dispatch failed (after the exception handlers ran).
            InHandlerFault: A status or exception handler raised.
            StatusEnforcementFault: Enforce-success is set, the final status
                is not 2xx, and no success-violation callback absorbed it.
            CancellationFault: *cancellation* fired.
        """
        if config is None:
            config = ClientConfig()
        if cancellation is None:
            cancellation = CancellationToken()

        state = RetryState(attempts_remaining=self.retry_budget)
        current = request
        try:
            while True:
                response = await self._attempt(current, config, state, cancellation)

                if not self.retry_policy.should_retry(response):
                    break
                if not state.can_retry():
                    logger.debug(
                        "Retry budget exhausted for %s %s, returning HTTP %d",
                        current.method, current.url, response.status_code,
                    )
                    break

                cancellation.raise_if_cancelled()
                current = current.clone()
                state.consume()
                logger.info(
                    "Retrying the request %s, retries remaining: %d (previous status %d)",
                    current.url, state.attempts_remaining, response.status_code,
                )
                delay = self.retry_policy.delay_for(state.attempts_used)
                if delay > 0:
                    await cancellation.guard(asyncio.sleep(delay))

            await self._enforce_success(response, config, cancellation)
            return response
        finally:
            config.clear()
            state.finish()

    # ------------------------------------------------------------------ #
    # Steps
    # ------------------------------------------------------------------ #

    async def _attempt(
        self,
        request: PendingRequest,
        config: ClientConfig,
        state: RetryState,
        cancellation: CancellationToken,
    ) -> httpx.Response:
        if not state.retry_in_progress:
            config.apply_to(request, self)

        request.base_address = await cancellation.guard(self.base_address.resolve(cancellation))
        await cancellation.guard(self.authorizer.apply(request, cancellation))

        started = time.perf_counter()
        try:
            response = await cancellation.guard(self.transport.send(request, cancellation))
        except CancellationFault:
            raise
        except Exception as exc:
            logger.warning("Sending %s %s failed: %s", request.method, request.url, exc)
            await self.exception_handlers.invoke_all(None, exc, cancellation=cancellation)
            raise
        elapsed_ms = (time.perf_counter() - started) * 1000

        await self._write_log(response, elapsed_ms, cancellation)

        if is_success_status(response.status_code):
            logger.debug("%s %s -> %d", request.method, request.url, response.status_code)
        else:
            try:
                body = response.text[:500]
            except httpx.ResponseNotRead:
                body = "<streamed>"
            logger.warning(
                "%s %s -> %d, response: %s",
                request.method, request.url, response.status_code, body,
            )

        await self.status_handlers.invoke_all(response, cancellation=cancellation)
        return response

    async def _write_log(
        self,
        response: Optional[httpx.Response],
        elapsed_ms: float,
        cancellation: CancellationToken,
    ) -> None:
        try:
            await cancellation.guard(self.log_writer.write(response, elapsed_ms, cancellation))
        except CancellationFault:
            raise
        except Exception as exc:
            logger.warning("Log writer %r failed: %s", self.log_writer, exc, exc_info=True)

    async def _enforce_success(
        self,
        response: httpx.Response,
        config: ClientConfig,
        cancellation: CancellationToken,
    ) -> None:
        if not config.enforce_success or is_success_status(response.status_code):
            return

        message = (
            f"Response status code does not indicate success: "
            f"{response.status_code} ({response.reason_phrase or 'unknown'})"
        )
        callback = config.on_success_violation
        if callback is None:
            raise StatusEnforcementFault(message, response=response)

        logger.debug("%s; passing it to the success-violation callback", message)
        result = callback(response)
        if inspect.isawaitable(result):
            await cancellation.guard(result)
