"""Fluent client built on top of :class:`~httpchain.pipeline.RequestPipeline`.

:class:`Client` records what the next call should look like (path, query
string, verb, body, headers, success policy) in a
:class:`~httpchain.snapshot.ClientConfig` and then sends it through the
pipeline with one of the ``send_for_*`` entry points. The recorded state is
cleared after every call, so each call starts from a clean slate.

Handlers registered with the ``on_*`` methods live on the pipeline and
apply to every call; register them once, before the first send.

Example::

    client = build_client(profile)
    user = await (
        client.url("/users")
        .add_query("id", 42)
        .on_not_found(lambda response, token: print("missing"))
        .ensure_success()
        .send_for_value(User)
    )
"""

from __future__ import annotations

import inspect
import io
import logging
from typing import Any, Callable, Optional, Type, TypeVar

import httpx

from httpchain.cancellation import CancellationToken
from httpchain.exceptions import DeserializationFault
from httpchain.handlers import ExceptionCallback, StatusCallback
from httpchain.pipeline import RequestPipeline
from httpchain.request import PendingRequest
from httpchain.serialization import JSON_MEDIA_TYPE, NamingStrategy, decode, encode
from httpchain.snapshot import (
    ClientConfig,
    ClientMutator,
    RequestMutator,
    SuccessViolationCallback,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

BadRequestCallback = Callable[[Any, httpx.Response, CancellationToken], Any]


class Client:
    """Builder surface plus the three send entry points.

    Args:
        pipeline: The pipeline that executes calls.
        config: Per-call state. A fresh :class:`ClientConfig` by default.
        enforce_success: Enforce success on every call, as if
            :meth:`ensure_success` were called each time.
    """

    def __init__(
        self,
        pipeline: RequestPipeline,
        config: Optional[ClientConfig] = None,
        enforce_success: bool = False,
    ) -> None:
        self._pipeline = pipeline
        self._config = config if config is not None else ClientConfig()
        self.enforce_success = enforce_success

    @property
    def pipeline(self) -> RequestPipeline:
        return self._pipeline

    @property
    def config(self) -> ClientConfig:
        return self._config

    # ------------------------------------------------------------------ #
    # URL path
    # ------------------------------------------------------------------ #

    def url(self, url: str, append: bool = False) -> Client:
        """Set the request path, or append a segment when *append* is true."""
        return self.add_url(url) if append else self.set_url(url)

    def set_url(self, url: str, make_absolute: bool = False) -> Client:
        path = url
        if make_absolute and not path.endswith("/"):
            path += "/"
        self._config.url_path = path
        return self

    def add_url(self, url: str) -> Client:
        """Append a path segment, inserting a single ``/`` between segments."""
        path = self._config.url_path
        if path and not path.endswith("/"):
            path += "/"
        self._config.url_path = path + (url.lstrip("/") if path else url)
        return self

    # ------------------------------------------------------------------ #
    # Query string
    # ------------------------------------------------------------------ #

    def add_query(self, key: str, value: Any) -> Client:
        """Add a query parameter; adding an existing key raises."""
        self._config.add_query(key, value)
        return self

    def set_query(self, key: str, value: Any) -> Client:
        self._config.set_query(key, value)
        return self

    def remove_query(self, key: str) -> Client:
        self._config.remove_query(key)
        return self

    def has_query(self, key: str) -> bool:
        return self._config.has_query(key)

    def clear_query(self) -> Client:
        self._config.query_parameters = {}
        return self

    # ------------------------------------------------------------------ #
    # Mutators
    # ------------------------------------------------------------------ #

    def config_request(self, mutator: RequestMutator) -> Client:
        """Queue a callable that edits the :class:`PendingRequest` before dispatch."""
        self._config.request_mutators.append(mutator)
        return self

    def config_client(self, mutator: ClientMutator) -> Client:
        """Queue a callable receiving ``(pipeline, config)`` before dispatch."""
        self._config.client_mutators.append(mutator)
        return self

    def header(self, name: str, value: str) -> Client:
        def _set_header(request: PendingRequest) -> None:
            request.headers[name] = value

        return self.config_request(_set_header)

    def accept(self, media_type: str = JSON_MEDIA_TYPE) -> Client:
        def _add_accept(request: PendingRequest) -> None:
            current = request.headers.get("Accept")
            if current is None:
                request.headers["Accept"] = media_type
            elif media_type not in [part.strip() for part in current.split(",")]:
                request.headers["Accept"] = f"{current}, {media_type}"

        return self.config_request(_add_accept)

    def accept_json(self) -> Client:
        return self.accept(JSON_MEDIA_TYPE)

    def naming(self, strategy: NamingStrategy) -> Client:
        def _set_naming(pipeline: RequestPipeline, config: ClientConfig) -> None:
            config.naming_strategy = strategy

        return self.config_client(_set_naming)

    def camel_case(self) -> Client:
        return self.naming(NamingStrategy.CAMEL)

    def snake_case(self) -> Client:
        return self.naming(NamingStrategy.SNAKE)

    # ------------------------------------------------------------------ #
    # Verbs and bodies
    # ------------------------------------------------------------------ #

    def method(self, method: str) -> Client:
        def _set_method(request: PendingRequest) -> None:
            request.method = method.upper()

        return self.config_request(_set_method)

    def get(self) -> Client:
        return self.method("GET")

    def delete(self) -> Client:
        return self.method("DELETE")

    def _with_body(
        self,
        method: str,
        data: Any,
        naming_strategy: Optional[NamingStrategy],
        media_type: str,
    ) -> Client:
        config = self._config

        def _set_body(request: PendingRequest) -> None:
            request.method = method
            if data is not None:
                strategy = naming_strategy or config.naming_strategy
                request.set_body(encode(data, strategy), media_type)

        return self.config_request(_set_body)

    def post(
        self,
        data: Any = None,
        naming_strategy: Optional[NamingStrategy] = None,
        media_type: str = JSON_MEDIA_TYPE,
    ) -> Client:
        """Send as POST with *data* serialized using the naming strategy.

        Without an explicit *naming_strategy* the client's strategy at
        dispatch time is used.
        """
        return self._with_body("POST", data, naming_strategy, media_type)

    def put(
        self,
        data: Any = None,
        naming_strategy: Optional[NamingStrategy] = None,
        media_type: str = JSON_MEDIA_TYPE,
    ) -> Client:
        return self._with_body("PUT", data, naming_strategy, media_type)

    def patch(
        self,
        data: Any = None,
        naming_strategy: Optional[NamingStrategy] = None,
        media_type: str = JSON_MEDIA_TYPE,
    ) -> Client:
        return self._with_body("PATCH", data, naming_strategy, media_type)

    # ------------------------------------------------------------------ #
    # Handlers
    # ------------------------------------------------------------------ #

    def on_any_response(self, callback: StatusCallback) -> Client:
        self._pipeline.status_handlers.register(callback)
        return self

    def on_status(self, status_code: int, callback: StatusCallback) -> Client:
        """Run *callback* for responses whose raw status equals *status_code*."""
        self._pipeline.status_handlers.on_status(status_code, callback)
        return self

    def on_not_found(self, callback: StatusCallback) -> Client:
        return self.on_status(404, callback)

    def on_forbidden(self, callback: StatusCallback) -> Client:
        return self.on_status(403, callback)

    def on_unauthorized(self, callback: StatusCallback) -> Client:
        return self.on_status(401, callback)

    def on_too_many_requests(self, callback: StatusCallback) -> Client:
        return self.on_status(429, callback)

    def on_bad_request(self, callback: BadRequestCallback) -> Client:
        """Run *callback* with ``(error_body, response, cancellation)`` on HTTP 400.

        The error body is the decoded JSON payload, or the raw text when the
        body is not JSON.
        """

        async def _bad_request(response: httpx.Response, cancellation: CancellationToken) -> None:
            try:
                error_body: Any = decode(response.content, Any, NamingStrategy.NONE)
            except DeserializationFault:
                error_body = response.text or None
            result = callback(error_body, response, cancellation)
            if inspect.isawaitable(result):
                await result

        _bad_request.__qualname__ = f"on_bad_request({getattr(callback, '__qualname__', callback)})"
        return self.on_status(400, _bad_request)

    def on_exception(self, callback: ExceptionCallback) -> Client:
        self._pipeline.exception_handlers.register(callback)
        return self

    def ensure_success(self, on_violation: Optional[SuccessViolationCallback] = None) -> Client:
        """Fail the call when its final status is outside [200, 299].

        Args:
            on_violation: Called with the response instead of raising
                :class:`~httpchain.exceptions.StatusEnforcementFault`. If it
                returns normally the response is handed back to the caller;
                if it raises, that error propagates.
        """
        self._config.enforce_success = True
        self._config.on_success_violation = on_violation
        return self

    # ------------------------------------------------------------------ #
    # Clearing
    # ------------------------------------------------------------------ #

    def clear_configs(self) -> Client:
        self._config.request_mutators = []
        self._config.client_mutators = []
        return self

    def clear_handlers(self) -> Client:
        self._pipeline.status_handlers.clear()
        self._pipeline.exception_handlers.clear()
        return self

    def clear(self) -> Client:
        """Drop all recorded state and every registered handler."""
        self._config.clear()
        return self.clear_handlers()

    # ------------------------------------------------------------------ #
    # Sending
    # ------------------------------------------------------------------ #

    async def send(self, cancellation: Optional[CancellationToken] = None) -> httpx.Response:
        """Send the recorded call and return the raw response."""
        if self.enforce_success:
            self._config.enforce_success = True
        request = PendingRequest(method="GET", target=self._config.url_path)
        return await self._pipeline.execute(request, self._config, cancellation)

    async def send_for_stream(self, cancellation: Optional[CancellationToken] = None) -> io.BytesIO:
        """Send the call and return the body as a binary stream."""
        response = await self.send(cancellation)
        return io.BytesIO(response.content)

    async def send_for_string(self, cancellation: Optional[CancellationToken] = None) -> Optional[str]:
        """Send the call and return the body as text (``None`` for an empty body)."""
        response = await self.send(cancellation)
        if not response.content:
            return None
        return response.text

    async def send_for_value(
        self,
        target: Type[T] | Any = Any,
        cancellation: Optional[CancellationToken] = None,
    ) -> Optional[T]:
        """Send the call and decode the JSON body into *target*.

        Field names are matched using the client's naming strategy. When
        the body cannot be decoded, ``None`` is returned, unless
        enforce-success was requested for this call, in which case the
        :class:`~httpchain.exceptions.DeserializationFault` propagates.
        """
        enforce = self.enforce_success or self._config.enforce_success
        response = await self.send(cancellation)
        try:
            return decode(response.content, target, self._config.naming_strategy)
        except DeserializationFault as exc:
            exc.response = response
            if enforce:
                raise
            logger.debug("Could not decode response body, returning None: %s", exc)
            return None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def aclose(self) -> None:
        close = getattr(self._pipeline.transport, "aclose", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
